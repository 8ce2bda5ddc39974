"""Shared testing fixtures and stubs for the doc_batch test suite."""

from .backends import CountingBackend, WritingBackend  # noqa: F401
from .markitdown import MarkItDownStub, install_markitdown_stub_module  # noqa: F401
from .documents import DocumentTree, build_tree  # noqa: F401

__all__ = [
    "CountingBackend",
    "DocumentTree",
    "MarkItDownStub",
    "WritingBackend",
    "build_tree",
    "install_markitdown_stub_module",
]
