"""TOML and dotenv helpers shared by command configuration loaders."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, MutableMapping

import tomllib

from dotenv import dotenv_values

__all__ = [
    "TomlConfigError",
    "load_toml",
    "load_env_file",
    "merge_defaults",
    "write_toml_template",
]


class TomlConfigError(RuntimeError):
    """Raised when a config file cannot be read, parsed or written."""


def load_toml(path: Path) -> Mapping[str, Any]:
    if not path.is_file():
        raise TomlConfigError(f"Config file not found: {path}")
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Failed to parse config TOML: {exc}") from exc


def load_env_file(path: Path, *, prefix: str) -> dict[str, str]:
    """Return the ``prefix``-scoped entries of the dotenv file at ``path``.

    A missing file yields ``{}``; keys declared without a value are dropped.
    """

    if not path.is_file():
        return {}
    values = dotenv_values(path)
    return {
        key: value
        for key, value in values.items()
        if value is not None and key.startswith(prefix)
    }


def merge_defaults(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    """Overlay ``override`` onto the defaults table ``base`` in place.

    Every key must already exist in ``base``; nested tables merge key by key.
    """

    for key, value in override.items():
        dotted = path + key
        if key not in base:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        if not isinstance(base[key], MutableMapping):
            base[key] = value
        elif isinstance(value, Mapping):
            merge_defaults(base[key], value, path=dotted + ".")
        else:
            raise TomlConfigError(
                f"Expected table for '{dotted}', found {type(value).__name__}."
            )


def write_toml_template(
    path: Path,
    *,
    template: str,
    overwrite: bool = False,
    mode: int = 0o600,
) -> Path:
    """Write ``template`` to ``path``; an existing file needs ``overwrite``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with path.open("w" if overwrite else "x", encoding="utf-8") as handle:
            handle.write(template)
    except FileExistsError as exc:
        raise TomlConfigError(f"Config already exists: {path}") from exc
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path
