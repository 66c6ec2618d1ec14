# bookci_workflow.py
# Workflow for the docs book: test the code examples on every change under
# docs/book, publish to gh-pages from the default branch.
from __future__ import annotations

from bookci.book import book_workflow


def workflow():
    return book_workflow()
