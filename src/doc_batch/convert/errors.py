"""Exception hierarchy for batch conversion runs."""

from __future__ import annotations

from pathlib import Path


class DocBatchError(RuntimeError):
    """Base class for conversion errors."""


class DiscoveryError(DocBatchError):
    """Raised when part of the input tree cannot be read."""


class RootDirectoryError(DiscoveryError):
    """Raised when the discovery root is missing or not a directory."""


class OutputDirectoryError(DocBatchError):
    """Raised when the output root cannot be created or is not a directory."""


class SanitizationError(DocBatchError):
    """Raised when an unsafe filename cannot be normalized."""


class NameCollisionError(SanitizationError):
    """Raised when the sanitized name is already taken."""

    def __init__(self, source: Path, target: Path) -> None:
        super().__init__(
            f"Cannot rename {source} to {target}: target already exists."
        )
        self.source = source
        self.target = target


class BackendUnavailableError(DocBatchError):
    """Raised when the conversion backend is not installed."""


class UnknownBackendError(DocBatchError):
    """Raised when a backend name is not registered."""


class ConversionError(DocBatchError):
    """Raised when a backend fails to convert a document."""


class OutputExistsError(ConversionError):
    """Raised when the conversion target is already present."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Output already exists: {path}")
        self.path = path


__all__ = [
    "DocBatchError",
    "DiscoveryError",
    "RootDirectoryError",
    "OutputDirectoryError",
    "SanitizationError",
    "NameCollisionError",
    "BackendUnavailableError",
    "UnknownBackendError",
    "ConversionError",
    "OutputExistsError",
]
