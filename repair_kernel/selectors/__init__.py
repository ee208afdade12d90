"""Selectors for the repair kernel (read side)."""

from repair_kernel.selectors.job_selector import (
    BoardCard,
    BoardColumn,
    JobDetail,
    JobSelector,
    TechQueue,
)

__all__ = [
    "BoardCard",
    "BoardColumn",
    "JobDetail",
    "JobSelector",
    "TechQueue",
]
