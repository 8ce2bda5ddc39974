from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
for extra in (ROOT, ROOT / "src"):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import DocumentTree, WritingBackend  # noqa: E402


@pytest.fixture
def documents(tmp_path: Path) -> DocumentTree:
    """Provide a document tree rooted in pytest's per-test tmp directory."""

    root = tmp_path / "docs"
    root.mkdir()
    return DocumentTree(root)


@pytest.fixture
def backend() -> WritingBackend:
    return WritingBackend()


@pytest.fixture(name="logger")
def _logger_fixture() -> logging.Logger:
    logger = logging.getLogger("doc_batch.tests")
    logger.handlers.clear()
    logger.propagate = False
    logger.addHandler(logging.NullHandler())
    return logger


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep DOC_BATCH_* settings from the developer's shell out of tests."""

    for key in list(os.environ):
        if key.startswith("DOC_BATCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("DOC_BATCH_HOME", str(tmp_path / "workspace-home"))
