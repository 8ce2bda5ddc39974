"""Commented TOML templates shipped inside the doc-batch packages."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Iterable

from .config import TomlConfigError, write_toml_template

__all__ = [
    "ConfigTemplate",
    "ConfigTemplateError",
    "get_template",
    "iter_templates",
]


class ConfigTemplateError(RuntimeError):
    """Raised for unknown templates or when a template cannot be written."""


@dataclass(frozen=True)
class ConfigTemplate:
    """A template file bundled as package data."""

    name: str
    package: str
    filename: str
    description: str

    def read_text(self) -> str:
        resource = resources.files(self.package) / self.filename
        if not resource.is_file():  # pragma: no cover - broken install
            raise ConfigTemplateError(
                f"Template '{self.name}' is missing from {self.package}."
            )
        return resource.read_text(encoding="utf-8")

    def write(
        self, path: Path, *, overwrite: bool = False, mode: int = 0o600
    ) -> Path:
        """Copy the template to ``path``, refusing to replace a file unless
        ``overwrite`` is set."""

        text = self.read_text()
        try:
            return write_toml_template(
                path, template=text, overwrite=overwrite, mode=mode
            )
        except TomlConfigError as exc:
            raise ConfigTemplateError(str(exc)) from exc


_REGISTRY = {
    template.name: template
    for template in (
        ConfigTemplate(
            name="convert",
            package="doc_batch.convert",
            filename="template.toml",
            description="Defaults for `doc-batch convert` runs.",
        ),
    )
}


def get_template(name: str) -> ConfigTemplate:
    template = _REGISTRY.get(name)
    if template is None:
        known = ", ".join(sorted(_REGISTRY))
        raise ConfigTemplateError(
            f"Unknown config template '{name}'. Known templates: {known}."
        )
    return template


def iter_templates() -> Iterable[ConfigTemplate]:
    return tuple(_REGISTRY.values())
