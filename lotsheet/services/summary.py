from __future__ import annotations

from ..models.injection import BatchResult, BatchSummary

"""SUMMARY line rendering for injection batches."""

__all__ = [
    "render_summary_line",
    "render_completion_message",
]


def _format_seconds(elapsed: float) -> str:
    if elapsed == 0:
        return "0"
    if elapsed == int(elapsed):
        return str(int(elapsed))
    if elapsed < 0.01:
        # 指数表記を避ける
        return f"{elapsed:.6f}".rstrip("0").rstrip(".")
    return f"{elapsed:.2f}"


def render_summary_line(result: BatchResult, elapsed_seconds: float) -> str:
    """Render the batch SUMMARY line.

    Format:
    SUMMARY files={total} success={s} failed={f} skipped={k} retried={r} elapsed_sec={t}

    Examples:
        >>> from lotsheet.models.injection import InjectionOutcome, OutcomeStatus
        >>> r = BatchResult(first_pass=[InjectionOutcome("01 A.xlsx", OutcomeStatus.SUCCESS)])
        >>> render_summary_line(r, 2.0)
        'SUMMARY files=1 success=1 failed=0 skipped=0 retried=0 elapsed_sec=2'
    """
    final = result.final
    retried = len(result.retry_pass or [])
    return (
        f"SUMMARY files={len(result.first_pass)} "
        f"success={final.success} "
        f"failed={final.failed} "
        f"skipped={final.skipped} "
        f"retried={retried} "
        f"elapsed_sec={_format_seconds(elapsed_seconds)}"
    )


def render_completion_message(summary: BatchSummary) -> str:
    """Short human message: ``Completed: 4 Success, 0 Failed, 1 Skipped``."""
    return (
        f"Completed: {summary.success} Success, {summary.failed} Failed, "
        f"{summary.skipped} Skipped"
    )
