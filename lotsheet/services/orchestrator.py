from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from ..excel.reader import ParseError
from ..extraction.extractor import extract_document
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord, ErrorType
from ..models.injection import (
    BatchResult,
    BatchState,
    BatchSummary,
    InjectionOutcome,
    OutcomeStatus,
    ProgressEvent,
    SourceDocument,
)
from ..models.records import ExtractedData
from ..sheets.target import (
    NOT_FOUND,
    RangeUpdate,
    RateLimited,
    WriteTarget,
    classify_write_error,
    find_target_row,
    range_with_sheet,
)

"""Batch injection of extracted documents into a destination sheet.

Documents are processed one at a time in submission order with a fixed delay
between items, so writes to the destination never overlap. Each item ends as
success, failed or rate-limited. Rate-limited items are kept as a pending set;
after the pass the orchestrator waits for the cool-down deadline and
resubmits exactly that set once. Items refused again in the retry pass count
as failed but stay pending so that ``retry_pending()`` can be called manually.

Re-running an item that already succeeded is safe: it overwrites the same
cells with the same values.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ACCOUNT_RANGE",
    "ID_COLUMN_RANGE",
    "SOA_RANGE",
    "InjectionOrchestrator",
    "ProgressSink",
    "build_updates",
]

ProgressSink = Callable[[ProgressEvent], None]

ID_COLUMN_RANGE = "A:A"
ACCOUNT_RANGE = ("B", "G")  # lot no, owner last, owner first, (blank), farmer last, farmer first
SOA_RANGE = ("I", "M")  # area, principal, penalty, old account, total


def build_updates(extracted: ExtractedData, row: int, tab_name: str | None = None) -> list[RangeUpdate]:
    """Range writes for one document at destination ``row`` (1-based)."""
    updates: list[RangeUpdate] = []
    if extracted.account_details:
        d = extracted.account_details[0]
        start, end = ACCOUNT_RANGE
        updates.append(
            RangeUpdate(
                range_with_sheet(tab_name, f"{start}{row}:{end}{row}"),
                [[
                    d.lot_no,
                    d.lot_owner.last_name,
                    d.lot_owner.first_name,
                    "",
                    d.farmer.last_name,
                    d.farmer.first_name,
                ]],
            )
        )
    if extracted.soa_details:
        start, end = SOA_RANGE
        updates.append(
            RangeUpdate(
                range_with_sheet(tab_name, f"{start}{row}:{end}{row}"),
                [extracted.soa_details[0].as_row()],
            )
        )
    return updates


class InjectionOrchestrator:
    """Drives a batch of source documents into a WriteTarget.

    Parameters
    ----------
    target: destination implementing WriteTarget
    tab_name: destination tab (None = target default)
    inter_item_delay: seconds slept between consecutive items
    cooldown_seconds: wait before the automatic retry of rate-limited items
    auto_retry: when False, ``run`` stops in AWAITING_RETRY and the caller
        decides when to call ``wait_and_retry`` / ``retry_pending``
    progress: optional sink receiving a ProgressEvent after every item
    error_log: optional ErrorLogBuffer receiving failed / deferred items
    clock, sleep: time source and sleeper (injectable for tests)
    """

    def __init__(
        self,
        target: WriteTarget,
        *,
        tab_name: str | None = None,
        inter_item_delay: float = 1.0,
        cooldown_seconds: float = 60.0,
        auto_retry: bool = True,
        progress: ProgressSink | None = None,
        error_log: ErrorLogBuffer | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.target = target
        self.tab_name = tab_name
        self.inter_item_delay = inter_item_delay
        self.cooldown_seconds = cooldown_seconds
        self.auto_retry = auto_retry
        self.progress = progress
        self.error_log = error_log
        self._clock = clock
        self._sleep = sleep

        self.state = BatchState.IDLE
        self.pending_retry: list[tuple[int, SourceDocument]] = []
        self.retry_deadline: float | None = None
        self.result: BatchResult | None = None
        self._cancelled = False
        self._still_pending: list[tuple[int, SourceDocument]] = []

    # ------------------------------------------------------------------
    # single item
    # ------------------------------------------------------------------

    def _fail(
        self, index: int, doc: SourceDocument, error_type: str, message: str,
        file_id: str = "", row: int | None = None,
    ) -> InjectionOutcome:
        self._record(doc, error_type, message, row)
        logger.warning("%s: %s", doc.name, message)
        return InjectionOutcome(
            name=doc.name, status=OutcomeStatus.FAILED, index=index,
            file_id=file_id, target_row=row, message=message,
        )

    def _record(self, doc: SourceDocument, error_type: str, message: str, row: int | None) -> None:
        if self.error_log is None:
            return
        self.error_log.append(
            ErrorRecord.create(
                file=doc.name,
                sheet=self.tab_name or "",
                row=row if row is not None else -1,
                error_type=error_type,
                message=message,
            )
        )

    def inject_one(self, index: int, doc: SourceDocument) -> InjectionOutcome:
        """Extract one document and write it to its destination row."""
        try:
            extracted = extract_document(doc.content, doc.name)
        except ParseError as e:
            return self._fail(index, doc, ErrorType.PARSE_ERROR, str(e))
        except Exception as e:
            logger.debug("extraction of %s failed", doc.name, exc_info=True)
            return self._fail(
                index, doc, ErrorType.EXTRACTION_FAILED, f"extraction failed: {type(e).__name__}: {e}"
            )

        file_id = extracted.file_id
        if not file_id:
            return self._fail(
                index, doc, ErrorType.MISSING_FILE_ID, "could not extract file id from filename"
            )

        row: int | None = None
        try:
            column = self.target.read_column(range_with_sheet(self.tab_name, ID_COLUMN_RANGE))
            found = find_target_row(column, file_id)
            if found == NOT_FOUND:
                return self._fail(
                    index, doc, ErrorType.TARGET_ROW_NOT_FOUND,
                    f"no row found for file id {file_id}", file_id=file_id,
                )
            row = found
            updates = build_updates(extracted, row, self.tab_name)
            if updates:
                self.target.batch_update(updates)
        except Exception as e:
            err = classify_write_error(e)
            if isinstance(err, RateLimited):
                self._record(doc, ErrorType.RATE_LIMITED, str(err), row)
                logger.warning("%s: rate limited, deferred (%s)", doc.name, err)
                return InjectionOutcome(
                    name=doc.name, status=OutcomeStatus.RATE_LIMITED, index=index,
                    file_id=file_id, target_row=row, message=str(err),
                )
            return self._fail(index, doc, ErrorType.WRITE_FAILED, str(err), file_id=file_id, row=row)

        message = f"{len(updates)} range(s) written" if updates else "nothing to write"
        logger.info("%s: file_id=%s row=%s %s", doc.name, file_id, row, message)
        return InjectionOutcome(
            name=doc.name, status=OutcomeStatus.SUCCESS, index=index,
            file_id=file_id, target_row=row, message=message,
        )

    # ------------------------------------------------------------------
    # passes
    # ------------------------------------------------------------------

    def _emit(self, name: str, completed: int, total: int, started: float) -> None:
        if self.progress is None:
            return
        elapsed = self._clock() - started
        per_item = elapsed / completed if completed else 0.0
        self.progress(
            ProgressEvent(
                current_item=name,
                completed=completed,
                total=total,
                percent=round(completed * 100 / total) if total else 100,
                eta_seconds=max(per_item * (total - completed), 0.0),
            )
        )

    def _emit_summary(self, summary: BatchSummary, total: int) -> None:
        if self.progress is None:
            return
        self.progress(
            ProgressEvent(
                current_item="",
                completed=summary.total,
                total=total,
                percent=round(summary.total * 100 / total) if total else 100,
                eta_seconds=0.0,
                summary=summary,
            )
        )

    def _run_pass(
        self, items: Sequence[tuple[int, SourceDocument]], *, final: bool
    ) -> list[InjectionOutcome]:
        self.state = BatchState.RUNNING
        outcomes: list[InjectionOutcome] = []
        started = self._clock()
        total = len(items)
        for position, (index, doc) in enumerate(items):
            if self._cancelled:
                logger.info("batch cancelled after %d/%d items", position, total)
                break
            if position > 0 and self.inter_item_delay > 0:
                self._sleep(self.inter_item_delay)
            outcome = self.inject_one(index, doc)
            if final and outcome.status is OutcomeStatus.RATE_LIMITED:
                # 再試行でも拒否された -> failed として報告 (pending には残す)
                outcome = InjectionOutcome(
                    name=outcome.name, status=OutcomeStatus.FAILED, index=index,
                    file_id=outcome.file_id, target_row=outcome.target_row,
                    message=f"rate limited after retry: {outcome.message}",
                )
                self._still_pending.append((index, doc))
            outcomes.append(outcome)
            self._emit(doc.name, position + 1, total, started)
        return outcomes

    def run(self, documents: Sequence[SourceDocument]) -> BatchResult:
        """Process a fresh batch. Always starts over (previous pending items are dropped)."""
        self._cancelled = False
        self.pending_retry = []
        self.retry_deadline = None
        self._still_pending = []
        items = list(enumerate(documents))
        logger.info("injecting %d document(s)", len(items))

        first = self._run_pass(items, final=False)
        self.result = BatchResult(first_pass=first, cancelled=self._cancelled)
        self._emit_summary(self.result.first_summary, len(items))
        by_index = dict(items)
        self.pending_retry = [
            (o.index, by_index[o.index]) for o in first if o.status is OutcomeStatus.RATE_LIMITED
        ]

        if self._cancelled or not self.pending_retry:
            self.state = BatchState.COMPLETED
            return self.result

        self.state = BatchState.AWAITING_RETRY
        self.retry_deadline = self._clock() + self.cooldown_seconds
        logger.info(
            "%d item(s) rate limited; retry in %gs", len(self.pending_retry), self.cooldown_seconds
        )
        if self.auto_retry:
            self.wait_and_retry()
        return self.result

    def wait_and_retry(self) -> BatchResult:
        """Sleep until the cool-down deadline, then resubmit the pending set once."""
        if self.state is BatchState.AWAITING_RETRY and self.retry_deadline is not None:
            remaining = self.retry_deadline - self._clock()
            if remaining > 0:
                self._sleep(remaining)
        return self.retry_pending()

    def retry_pending(self) -> BatchResult:
        """Resubmit exactly the pending rate-limited items (manual trigger)."""
        if self.result is None:
            raise RuntimeError("no batch has been run")
        if not self.pending_retry:
            self.state = BatchState.COMPLETED
            return self.result

        items = self.pending_retry
        self.pending_retry = []
        self.retry_deadline = None
        self._cancelled = False
        self._still_pending = []
        logger.info("retrying %d rate-limited item(s)", len(items))

        retried = self._run_pass(items, final=True)
        previous = {o.index: o for o in (self.result.retry_pass or [])}
        previous.update({o.index: o for o in retried})
        self.result = BatchResult(
            first_pass=self.result.first_pass,
            retry_pass=sorted(previous.values(), key=lambda o: o.index),
            cancelled=self._cancelled,
        )
        self._emit_summary(self.result.final, len(self.result.first_pass))
        processed = {o.index for o in retried}
        self.pending_retry = self._still_pending + [it for it in items if it[0] not in processed]
        self.state = BatchState.COMPLETED
        return self.result

    def cancel(self) -> None:
        """Stop before the next item. Writes already issued are kept."""
        self._cancelled = True
