from __future__ import annotations
import os

DEFAULT_BRANCH = os.environ.get("BOOKCI_DEFAULT_BRANCH", "master")
WORK_DIR = os.environ.get("BOOKCI_WORK_DIR", ".bookci/runs")
TOKEN_ENV = os.environ.get("BOOKCI_TOKEN_ENV", "GITHUB_TOKEN")
GIT_USER_NAME = os.environ.get("BOOKCI_GIT_USER_NAME", "github-actions[bot]")
GIT_USER_EMAIL = os.environ.get("BOOKCI_GIT_USER_EMAIL", "github-actions[bot]@users.noreply.github.com")
