"""Discovery-to-report pipeline for a single conversion run."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from doc_batch.core.files import ensure_directory, normalize_extension

from .backends import ConverterBackend
from .discovery import discover
from .errors import (
    BackendUnavailableError,
    OutputDirectoryError,
    SanitizationError,
)
from .models import (
    ConversionOutcome,
    ConversionTask,
    DiscoveredFile,
    derive_output_path,
)
from .orchestrator import (
    ConversionOrchestrator,
    OrchestratorConfig,
    OutcomeCallback,
    notify,
)
from .report import BatchReport, fold
from .sanitize import sanitize_discovered


@dataclass(frozen=True)
class BatchRequest:
    """What to convert: a tree, a source extension and a target extension."""

    root: Path
    input_extension: str
    output_extension: str
    output_root: Optional[Path] = None


@dataclass(frozen=True)
class BatchResult:
    """Everything a run produced."""

    discovered: tuple[DiscoveredFile, ...]
    outcomes: tuple[ConversionOutcome, ...]
    report: BatchReport


def build_tasks(
    files: Iterable[DiscoveredFile],
    *,
    backend: ConverterBackend,
    output_extension: str,
    output_root: Optional[Path] = None,
) -> tuple[tuple[ConversionTask, ...], tuple[ConversionOutcome, ...]]:
    """Sanitize each file and map it to a task.

    Files that cannot be sanitized are returned as failed outcomes instead
    of tasks, so every input is accounted for exactly once.
    """

    target = normalize_extension(output_extension)
    tasks: list[ConversionTask] = []
    rejected: list[ConversionOutcome] = []
    for discovered in files:
        try:
            safe = sanitize_discovered(discovered)
        except (SanitizationError, OSError) as exc:
            rejected.append(
                ConversionOutcome.failure(discovered.path, str(exc), error=exc)
            )
            continue
        tasks.append(
            ConversionTask(
                source=safe.path,
                output_path=derive_output_path(safe, target, output_root),
                backend=backend,
            )
        )
    return tuple(tasks), tuple(rejected)


def run_batch(
    request: BatchRequest,
    *,
    backend: ConverterBackend,
    config: OrchestratorConfig,
    logger: logging.Logger,
    cancel_event: threading.Event | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> BatchResult:
    """Discover, sanitize, convert and report on one directory tree.

    Raises :class:`BackendUnavailableError` before touching any file when
    the backend is not installed, and
    :class:`~doc_batch.convert.errors.RootDirectoryError` when the root is
    unusable. The root is checked before the output directory is created;
    an output directory that cannot be created raises
    :class:`~doc_batch.convert.errors.OutputDirectoryError`. Per-file
    problems only ever show up in the report.
    """

    if not backend.check_installed():
        raise BackendUnavailableError(
            f"Conversion program not installed: {backend.name()}"
        )

    files = discover(request.root, request.input_extension)
    output_root = None
    if request.output_root is not None:
        output_root = _prepare_output_root(request.output_root)

    logger.info(
        "Starting conversion run",
        extra={
            "root": str(request.root),
            "input_extension": request.input_extension,
            "output_extension": request.output_extension,
            "output_root": str(output_root) if output_root else None,
            "backend": backend.name(),
            "concurrency": config.concurrency,
        },
    )

    discovered = tuple(files)
    logger.info(
        "Found files to convert",
        extra={"candidate_count": len(discovered)},
    )

    tasks, rejected = build_tasks(
        discovered,
        backend=backend,
        output_extension=request.output_extension,
        output_root=output_root,
    )
    for outcome in rejected:
        logger.error(
            "Excluded file that could not be sanitized",
            extra={"source": str(outcome.source), "reason": outcome.reason},
        )
        notify(on_outcome, outcome, logger)

    orchestrator = ConversionOrchestrator(config, logger=logger)
    converted = orchestrator.run(
        tasks, cancel_event=cancel_event, on_outcome=on_outcome
    )

    outcomes = rejected + converted
    report = fold(outcomes)
    logger.info(
        "Completed conversion run",
        extra={
            "attempted": report.attempted,
            "succeeded": report.succeeded,
            "failed": report.failed,
            "success_rate": report.success_rate_display,
        },
    )
    return BatchResult(discovered=discovered, outcomes=outcomes, report=report)


def _prepare_output_root(path: Path) -> Path:
    target = path.expanduser().resolve()
    try:
        return ensure_directory(target)
    except OSError as exc:
        raise OutputDirectoryError(
            f"Cannot use output directory {target}: {exc.strerror or exc}"
        ) from exc


__all__ = ["BatchRequest", "BatchResult", "build_tasks", "run_batch"]
