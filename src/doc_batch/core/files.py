"""Common file handling utilities shared across doc-batch modules."""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "ensure_directory",
    "extension_of",
    "normalize_extension",
]


def normalize_extension(value: str) -> str:
    """Normalize an extension to lower-case without a leading dot.

    ``"docx"``, ``".DOCX"`` and ``" .Docx "`` all normalize to ``"docx"``.
    """

    candidate = value.strip().lower()
    if candidate.startswith("."):
        candidate = candidate[1:]
    if not candidate:
        raise ValueError(f"Invalid extension: {value!r}")
    return candidate


def extension_of(path: Path) -> str | None:
    suffix = path.suffix
    if not suffix:
        return None
    return suffix.lstrip(".").lower()


def ensure_directory(path: Path) -> Path:
    """Create ``path`` and its parents; an existing directory is not an error.

    Safe to call from several threads for the same path.
    """

    path.mkdir(parents=True, exist_ok=True)
    return path
