"""Rename files whose names trip up shell and converter tooling."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path

from .errors import NameCollisionError
from .models import DiscoveredFile

logger = logging.getLogger(__name__)

# Office lock files (``~$report.docx``) and shell expansion are the usual
# sources of these characters.
UNSAFE_CHARACTERS: tuple[str, ...] = ("$", "~")
REPLACEMENT = "_"


def sanitize_name(name: str) -> str:
    """Return ``name`` with unsafe characters replaced in the stem only."""

    path = Path(name)
    stem = path.stem
    for char in UNSAFE_CHARACTERS:
        stem = stem.replace(char, REPLACEMENT)
    return f"{stem}{path.suffix}"


def sanitize(path: Path) -> Path:
    """Rename ``path`` in place if its name is unsafe and return the result.

    Safe names are returned unchanged without touching the filesystem.
    Raises :class:`NameCollisionError` if the sanitized name is taken.
    """

    fixed = sanitize_name(path.name)
    if fixed == path.name:
        return path

    target = path.with_name(fixed)
    if target.exists():
        raise NameCollisionError(path, target)

    logger.warning(
        "Renaming file with unsafe characters",
        extra={"source": str(path), "target": str(target)},
    )
    path.rename(target)
    return target


def sanitize_discovered(discovered: DiscoveredFile) -> DiscoveredFile:
    """Apply :func:`sanitize` to a discovered file and update its paths."""

    renamed = sanitize(discovered.path)
    if renamed == discovered.path:
        return discovered
    return replace(
        discovered,
        path=renamed,
        relative=discovered.relative.with_name(renamed.name),
    )


__all__ = [
    "UNSAFE_CHARACTERS",
    "sanitize",
    "sanitize_discovered",
    "sanitize_name",
]
