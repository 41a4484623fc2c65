"""
Domain package for GradeVault.

Exports the record, request and snapshot models shared by the store, the
decryption coordinator and the projection.
"""

from gradevault.domain.models import (
    AggregateSnapshot,
    DecryptionOutcome,
    DecryptionRequest,
    DecryptionState,
    FailureReason,
    GradeRecord,
    LedgerEntry,
    RecordView,
    RequestStatus,
    StoreStatus,
    ViewSnapshot,
)

__all__ = [
    "AggregateSnapshot",
    "DecryptionOutcome",
    "DecryptionRequest",
    "DecryptionState",
    "FailureReason",
    "GradeRecord",
    "LedgerEntry",
    "RecordView",
    "RequestStatus",
    "StoreStatus",
    "ViewSnapshot",
]
