"""Bounded concurrent dispatch of conversion tasks."""

from __future__ import annotations

import errno
import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from .models import ConversionOutcome, ConversionTask

DEFAULT_CONCURRENCY = 4
CANCELLED_REASON = "Cancelled before dispatch"

OutcomeCallback = Callable[[ConversionOutcome], None]


@dataclass(frozen=True)
class OrchestratorConfig:
    """Dispatch settings; ``concurrency=None`` removes the bound."""

    concurrency: Optional[int] = DEFAULT_CONCURRENCY

    def __post_init__(self) -> None:
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be a positive integer or None")

    def workers_for(self, task_count: int) -> int:
        if self.concurrency is None:
            return max(task_count, 1)
        return max(min(self.concurrency, task_count), 1)


class ConversionOrchestrator:
    """Run conversion tasks on a thread pool, one outcome per task.

    At most ``config.concurrency`` tasks run at once and a new task is
    submitted as soon as a slot frees. A failing task never affects its
    siblings. Outcomes are collected on the calling thread, which is the
    only writer of the result list.
    """

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or OrchestratorConfig()
        self.logger = logger or logging.getLogger(__name__)

    def run(
        self,
        tasks: Sequence[ConversionTask],
        *,
        cancel_event: threading.Event | None = None,
        on_outcome: OutcomeCallback | None = None,
    ) -> tuple[ConversionOutcome, ...]:
        """Convert ``tasks`` and return every outcome.

        Once ``cancel_event`` is set (or a task reports the disk is full)
        no further task is submitted; in-flight tasks finish and each task
        that never started gets a failed outcome.
        """

        cancel = cancel_event or threading.Event()
        outcomes: list[ConversionOutcome] = []
        if not tasks:
            return ()

        def record(outcome: ConversionOutcome) -> None:
            outcomes.append(outcome)
            self._log_outcome(outcome)
            notify(on_outcome, outcome, self.logger)

        workers = self.config.workers_for(len(tasks))
        self.logger.info(
            "Running conversion tasks",
            extra={"task_count": len(tasks), "workers": workers},
        )

        queue = iter(tasks)
        pending: dict[Future[ConversionOutcome], ConversionTask] = {}
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="convert"
        ) as pool:
            while True:
                while len(pending) < workers and not cancel.is_set():
                    task = next(queue, None)
                    if task is None:
                        break
                    pending[pool.submit(_execute, task)] = task
                if not pending:
                    break
                done, _ = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    task = pending.pop(future)
                    outcome = future.result()
                    record(outcome)
                    if _is_systemic(outcome) and not cancel.is_set():
                        self.logger.error(
                            "Halting dispatch after systemic I/O failure",
                            extra={"source": str(task.source)},
                        )
                        cancel.set()

        for task in queue:
            record(
                ConversionOutcome.failure(
                    task.source, CANCELLED_REASON, output_path=task.output_path
                )
            )
        return tuple(outcomes)

    def _log_outcome(self, outcome: ConversionOutcome) -> None:
        if outcome.succeeded:
            self.logger.info(
                "Converted document",
                extra={
                    "source": str(outcome.source),
                    "output_path": str(outcome.output_path),
                },
            )
        else:
            self.logger.error(
                "Failed to convert document",
                extra={"source": str(outcome.source), "reason": outcome.reason},
            )


def _execute(task: ConversionTask) -> ConversionOutcome:
    try:
        return task.backend.convert(task.source, task.output_path)
    except Exception as exc:
        return ConversionOutcome.failure(
            task.source,
            f"{type(exc).__name__}: {exc}",
            output_path=task.output_path,
            error=exc,
        )


def notify(
    callback: OutcomeCallback | None,
    outcome: ConversionOutcome,
    logger: logging.Logger,
) -> None:
    """Pass ``outcome`` to ``callback``; a failing callback is only logged."""

    if callback is None:
        return
    try:
        callback(outcome)
    except Exception:
        logger.exception(
            "Outcome callback failed",
            extra={"source": str(outcome.source)},
        )


def _is_systemic(outcome: ConversionOutcome) -> bool:
    error = outcome.error
    return isinstance(error, OSError) and error.errno == errno.ENOSPC


def run_tasks(
    tasks: Iterable[ConversionTask],
    *,
    concurrency: Optional[int] = DEFAULT_CONCURRENCY,
    cancel_event: threading.Event | None = None,
) -> tuple[ConversionOutcome, ...]:
    """Convenience wrapper around :class:`ConversionOrchestrator`."""

    orchestrator = ConversionOrchestrator(OrchestratorConfig(concurrency))
    return orchestrator.run(tuple(tasks), cancel_event=cancel_event)


__all__ = [
    "CANCELLED_REASON",
    "DEFAULT_CONCURRENCY",
    "ConversionOrchestrator",
    "OrchestratorConfig",
    "notify",
    "run_tasks",
]
