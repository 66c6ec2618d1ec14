# book.py
# The "Book" workflow: test the documentation code examples, then render the
# book with mdBook and publish it to gh-pages (pushes to the default branch only).
from __future__ import annotations

from .dsl import job, on, sh, uses, wf
from .model import Workflow

BOOK_DIR = "docs/book"
BOOK_PATHS = [f"{BOOK_DIR}/**"]
TESTS_MANIFEST = f"{BOOK_DIR}/tests/Cargo.toml"
RENDER_DIR = "gh-pages/master"  # relative to BOOK_DIR, where mdbook resolves -d
PUBLISH_DIR = f"{BOOK_DIR}/gh-pages"

ON_DEFAULT_BRANCH = "github.ref_name == github.event.repository.default_branch"


def book_workflow() -> Workflow:
    checkout = uses("Checkout", "actions/checkout@v2")

    return wf(
        job(
            "tests",
            checkout,
            uses(
                "Install rust",
                "actions-rs/toolchain@v1",
                toolchain="stable",
                profile="minimal",
                override=True,
            ),
            uses(
                "Test via skeptic",
                "actions-rs/cargo@v1",
                command="test",
                args=f"--manifest-path {TESTS_MANIFEST}",
            ),
            display_name="Test code examples",
        ),
        job(
            "deploy",
            checkout,
            uses("Install mdBook", "peaceiris/actions-mdbook@v1"),
            sh("Render book", f"mdbook build -d {RENDER_DIR} {BOOK_DIR}"),
            uses(
                "Deploy",
                "peaceiris/actions-gh-pages@v3",
                github_token="${{ secrets.GITHUB_TOKEN }}",
                keep_files=True,
                publish_dir=PUBLISH_DIR,
            ),
            needs=["tests"],
            condition=ON_DEFAULT_BRANCH,
            display_name="Deploy book on gh-pages",
        ),
        name="Book",
        triggers=[
            on("pull_request", paths=BOOK_PATHS),
            on("push", paths=BOOK_PATHS),
        ],
    )
