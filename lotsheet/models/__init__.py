"""Domain models for the lot sheet extraction / profile generation tool."""

from .error_record import ErrorRecord, ErrorType
from .injection import (
    BatchResult,
    BatchState,
    BatchSummary,
    InjectionOutcome,
    OutcomeStatus,
    ProgressEvent,
    SourceDocument,
)
from .masters import LotGroup, MastersListRow
from .records import AccountDetail, ExtractedData, PersonName, SOADetail

__all__ = [
    # Extraction
    "AccountDetail",
    "ExtractedData",
    "PersonName",
    "SOADetail",
    # Master list
    "LotGroup",
    "MastersListRow",
    # Injection
    "BatchResult",
    "BatchState",
    "BatchSummary",
    "InjectionOutcome",
    "OutcomeStatus",
    "ProgressEvent",
    "SourceDocument",
    # Error log
    "ErrorRecord",
    "ErrorType",
]
