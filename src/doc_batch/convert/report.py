"""Aggregate conversion outcomes into a batch report."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .models import ConversionOutcome


@dataclass(frozen=True)
class BatchReport:
    """Totals for a conversion run."""

    attempted: int
    succeeded: int
    failed: int
    success_rate: float
    failures: tuple[ConversionOutcome, ...] = ()

    @property
    def success_rate_display(self) -> str:
        return f"{self.success_rate:.2f}%"

    @property
    def is_total_failure(self) -> bool:
        """True when files were attempted and none converted."""

        return self.attempted > 0 and self.succeeded == 0


def fold(outcomes: Iterable[ConversionOutcome]) -> BatchReport:
    """Fold ``outcomes`` into a :class:`BatchReport`.

    Order does not matter. An empty batch reports a rate of ``0.00%``.
    """

    attempted = 0
    succeeded = 0
    failures: list[ConversionOutcome] = []
    for outcome in outcomes:
        attempted += 1
        if outcome.succeeded:
            succeeded += 1
        else:
            failures.append(outcome)

    rate = (succeeded / attempted) * 100.0 if attempted else 0.0
    return BatchReport(
        attempted=attempted,
        succeeded=succeeded,
        failed=len(failures),
        success_rate=rate,
        failures=tuple(sorted(failures, key=lambda item: str(item.source))),
    )


__all__ = ["BatchReport", "fold"]
