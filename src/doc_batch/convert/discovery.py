"""Recursive discovery of convertible files."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from doc_batch.core.files import extension_of, normalize_extension

from .errors import DiscoveryError, RootDirectoryError
from .models import DiscoveredFile

logger = logging.getLogger(__name__)


def discover(root: Path, extension: str) -> Iterator[DiscoveredFile]:
    """Yield files below ``root`` whose extension matches ``extension``.

    ``root`` is validated immediately; the walk itself is lazy. Entries are
    visited in sorted order so repeated runs over the same tree agree.
    Symlinked directories are not followed. A directory that cannot be
    listed is logged and skipped.
    """

    normalized = normalize_extension(extension)
    resolved = Path(root).expanduser()
    if not resolved.exists():
        raise RootDirectoryError(f"Input directory not found: {resolved}")
    if not resolved.is_dir():
        raise RootDirectoryError(f"Input path is not a directory: {resolved}")
    resolved = resolved.resolve()

    logger.debug(
        "Discovering files",
        extra={"root": str(resolved), "extension": normalized},
    )
    return _walk(resolved, normalized)


def _walk(root: Path, extension: str) -> Iterator[DiscoveredFile]:
    for current, dirnames, filenames in os.walk(
        root, onerror=_log_walk_error, followlinks=False
    ):
        dirnames.sort()
        directory = Path(current)
        for name in sorted(filenames):
            candidate = directory / name
            if extension_of(candidate) != extension:
                continue
            if not candidate.is_file():
                continue
            yield DiscoveredFile(
                path=candidate,
                relative=candidate.relative_to(root),
                extension=extension,
            )


def _log_walk_error(exc: OSError) -> None:
    error = DiscoveryError(f"Skipping unreadable entry {exc.filename}: {exc}")
    logger.warning(
        str(error),
        extra={"path": exc.filename, "errno": exc.errno},
    )


__all__ = ["discover"]
