from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

"""Injection batch models.

These track a batch of source documents through the orchestrator, from the
per-item outcome up to the tri-state summary reported to callers.
"""

__all__ = [
    "BatchResult",
    "BatchState",
    "BatchSummary",
    "InjectionOutcome",
    "OutcomeStatus",
    "ProgressEvent",
    "SourceDocument",
]


class OutcomeStatus(Enum):
    """Per-document result of one injection attempt.

    - SUCCESS: data written to the target row
    - FAILED: parse error, missing id, no target row, or write error
    - RATE_LIMITED: destination refused the write for quota reasons; deferred
    """
    SUCCESS = "success"
    FAILED = "failed"
    RATE_LIMITED = "rate_limited"


class BatchState(Enum):
    """Orchestrator lifecycle.

    State transitions: idle → running → (completed | awaiting_retry → running)
    """
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_RETRY = "awaiting_retry"
    COMPLETED = "completed"


@dataclass(frozen=True)
class SourceDocument:
    """A document queued for injection (bytes + original filename)."""
    name: str
    content: bytes


@dataclass(frozen=True)
class InjectionOutcome:
    name: str
    status: OutcomeStatus
    index: int = 0  # position in the submitted batch
    file_id: str = ""
    target_row: int | None = None  # 1-based destination row when resolved
    message: str = ""


@dataclass(frozen=True)
class BatchSummary:
    """Tri-state counts of one pass. ``skipped`` = rate-limited items."""
    success: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.success + self.failed + self.skipped

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[InjectionOutcome]) -> BatchSummary:
        return cls(
            success=sum(1 for o in outcomes if o.status is OutcomeStatus.SUCCESS),
            failed=sum(1 for o in outcomes if o.status is OutcomeStatus.FAILED),
            skipped=sum(1 for o in outcomes if o.status is OutcomeStatus.RATE_LIMITED),
        )


@dataclass(frozen=True)
class ProgressEvent:
    """Progress pushed to the caller's sink after every item.

    At the end of each pass one more event is sent with ``summary`` set: the
    first-pass counts after the first pass, the merged final counts after a
    retry pass.
    """
    current_item: str
    completed: int
    total: int
    percent: int
    eta_seconds: float
    summary: BatchSummary | None = None  # set only on the end-of-pass event


@dataclass(frozen=True)
class BatchResult:
    """Outcome of a run: first pass plus the optional automatic retry pass."""
    first_pass: list[InjectionOutcome]
    retry_pass: list[InjectionOutcome] | None = None
    cancelled: bool = False

    @property
    def first_summary(self) -> BatchSummary:
        return BatchSummary.from_outcomes(self.first_pass)

    @property
    def outcomes(self) -> list[InjectionOutcome]:
        """Latest outcome per item, in submission order."""
        if not self.retry_pass:
            return list(self.first_pass)
        retried = {o.index: o for o in self.retry_pass}
        return [retried.get(o.index, o) for o in self.first_pass]

    @property
    def final(self) -> BatchSummary:
        return BatchSummary.from_outcomes(self.outcomes)
