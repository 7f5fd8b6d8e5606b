"""Progress events for multi-stage operations."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable

__all__ = ["LoadingProgress", "ProgressCallback", "UNKNOWN_TOTAL"]

UNKNOWN_TOTAL = -1


@dataclass(frozen=True)
class LoadingProgress:
    """Snapshot of one stage's progress.

    Attributes:
        stage_name: Human readable stage label.
        total_tasks_quantity: Number of tasks in the stage, -1 if unknown.
        processed_tasks_quantity: Tasks completed so far.
    """

    stage_name: str
    total_tasks_quantity: int = UNKNOWN_TOTAL
    processed_tasks_quantity: int = 0

    @property
    def fraction(self) -> float | None:
        """Completed fraction in 0..1, or None when the total is unknown."""
        if self.total_tasks_quantity <= 0:
            return None
        return min(self.processed_tasks_quantity / self.total_tasks_quantity, 1.0)

    def advanced_to(self, processed: int) -> LoadingProgress:
        """Returns a copy with a new processed count."""
        return replace(self, processed_tasks_quantity=processed)


ProgressCallback = Callable[[LoadingProgress], None]
