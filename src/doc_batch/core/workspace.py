"""Locate and prepare the doc-batch workspace.

The workspace holds ``config/`` (``convert.toml`` and friends) and ``logs/``
(the JSON run logs). Its root comes from, in order: an explicit path,
``DOC_BATCH_HOME``, or ``~/.doc-batch``. Only the last one may fall back to
the system temp directory when it cannot be created.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping


WORKSPACE_ENV = "DOC_BATCH_HOME"
DEFAULT_WORKSPACE = Path.home() / ".doc-batch"
SUBDIRECTORIES: tuple[str, ...] = ("config", "logs")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Workspace root, its subdirectories, and which of them were new."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        if key not in self.directories:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.directories[key]

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating any missing directories."""

    home, explicit = _locate(os.environ if env is None else env, path)
    if not create:
        return _layout(home, create=False)

    candidates = [home]
    fallback = Path(tempfile.gettempdir()) / "doc-batch"
    if not explicit and fallback != home:
        candidates.append(fallback)

    denied: PermissionError | None = None
    for candidate in candidates:
        try:
            return _layout(candidate, create=True)
        except PermissionError as exc:
            denied = exc
    raise WorkspaceError(f"Unable to prepare workspace at {home}") from denied


def _locate(env: Mapping[str, str], override: Path | None) -> tuple[Path, bool]:
    configured = (env.get(WORKSPACE_ENV) or "").strip()
    if override is not None:
        raw, explicit = override, True
    elif configured:
        raw, explicit = Path(configured), True
    else:
        raw, explicit = DEFAULT_WORKSPACE, False
    return raw.expanduser().resolve(), explicit


def _layout(home: Path, *, create: bool) -> WorkspaceLayout:
    if home.exists() and not home.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {home}"
        )

    directories = {name: home / name for name in SUBDIRECTORIES}
    created = {"home": False, **{name: False for name in directories}}
    if create:
        created["home"] = _ensure_dir(home)
        for name, directory in directories.items():
            created[name] = _ensure_dir(directory)
    else:
        for name, directory in directories.items():
            if directory.exists() and not directory.is_dir():
                raise WorkspaceError(
                    f"Expected workspace directory for '{name}' but found "
                    f"a file: {directory}"
                )

    return WorkspaceLayout(
        home=home,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _ensure_dir(path: Path) -> bool:
    """Create ``path`` with owner-only permissions; return True if new."""

    if path.is_dir():
        return False
    try:
        path.mkdir(parents=True)
    except FileExistsError as exc:
        if path.is_dir():
            return False
        raise WorkspaceError(
            f"Expected directory but found a non-directory entry: {path}"
        ) from exc
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return True
