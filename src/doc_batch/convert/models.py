"""Value types passed between the conversion pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .backends import ConverterBackend


class ConversionStatus(Enum):
    """Outcome status for a single conversion."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class DiscoveredFile:
    """A file matched during discovery."""

    path: Path
    relative: Path
    extension: str


@dataclass(frozen=True)
class ConversionTask:
    """One file scheduled for conversion by ``backend``."""

    source: Path
    output_path: Path
    backend: "ConverterBackend"


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of converting (or attempting to convert) a single file."""

    source: Path
    status: ConversionStatus
    output_path: Optional[Path] = None
    reason: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ConversionStatus.SUCCESS

    @classmethod
    def success(cls, source: Path, output_path: Path) -> "ConversionOutcome":
        return cls(
            source=source,
            status=ConversionStatus.SUCCESS,
            output_path=output_path,
        )

    @classmethod
    def failure(
        cls,
        source: Path,
        reason: str,
        *,
        output_path: Optional[Path] = None,
        error: Optional[BaseException] = None,
    ) -> "ConversionOutcome":
        return cls(
            source=source,
            status=ConversionStatus.FAILED,
            output_path=output_path,
            reason=reason,
            error=error,
        )


def derive_output_path(
    discovered: DiscoveredFile,
    target_extension: str,
    output_root: Optional[Path] = None,
) -> Path:
    """Return where ``discovered`` converts to.

    Without ``output_root`` the output sits next to the input. With it, the
    input's position below the discovery root is mirrored under
    ``output_root``.
    """

    suffix = f".{target_extension}"
    if output_root is None:
        return discovered.path.with_suffix(suffix)
    return (output_root / discovered.relative).with_suffix(suffix)


__all__ = [
    "ConversionStatus",
    "DiscoveredFile",
    "ConversionTask",
    "ConversionOutcome",
    "derive_output_path",
]
