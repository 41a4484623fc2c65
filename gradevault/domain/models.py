"""
Domain models for GradeVault.

Defines the grade record as seen by the client, the per-record decryption
lifecycle, and the derived snapshots handed to presentation code. Records and
snapshots are frozen; state changes produce new instances.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field, model_validator

MIN_SCORE = 0
MAX_SCORE = 100


class DecryptionState(str, Enum):
    ENCRYPTED = "encrypted"
    REQUESTING = "requesting"
    DECRYPTED = "decrypted"
    FAILED = "failed"


class FailureReason(str, Enum):
    AUTHORIZATION_DENIED = "authorization_denied"
    ORACLE_TIMEOUT = "oracle_timeout"
    ORACLE_ERROR = "oracle_error"


class RequestStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StoreStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"


class LedgerEntry(BaseModel):
    """
    A grade entry as reported by the ledger.
    """

    id: int = Field(..., ge=0, description="Ledger-assigned, monotonically increasing id.")
    subject: str = Field(..., description="Subject the score belongs to.")
    ciphertext_handle: str = Field(..., description="Opaque handle of the encrypted score.")
    owner: str = Field(..., description="Address of the student who submitted the entry.")

    model_config = {"frozen": True}


class GradeRecord(BaseModel):
    """
    Client-side view of a ledger entry plus its decryption state.

    `plaintext_score` is present if and only if the record is DECRYPTED.
    """

    id: int = Field(..., ge=0)
    subject: str
    ciphertext_handle: str
    owner: str
    plaintext_score: Optional[int] = Field(None, ge=MIN_SCORE, le=MAX_SCORE)
    decryption_state: DecryptionState = DecryptionState.ENCRYPTED

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _score_matches_state(self) -> "GradeRecord":
        decrypted = self.decryption_state is DecryptionState.DECRYPTED
        if decrypted != (self.plaintext_score is not None):
            raise ValueError(
                f"plaintext_score must be set iff state is decrypted "
                f"(state={self.decryption_state.value}, score={self.plaintext_score})"
            )
        return self

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "GradeRecord":
        return cls(
            id=entry.id,
            subject=entry.subject,
            ciphertext_handle=entry.ciphertext_handle,
            owner=entry.owner,
        )

    def with_state(
        self, state: DecryptionState, score: Optional[int] = None
    ) -> "GradeRecord":
        """Return a copy in `state`; validation re-runs on the copy."""
        return GradeRecord(
            id=self.id,
            subject=self.subject,
            ciphertext_handle=self.ciphertext_handle,
            owner=self.owner,
            plaintext_score=score,
            decryption_state=state,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DecryptionRequest(BaseModel):
    """One reveal attempt for a record; lives only while in flight."""

    record_id: int
    attempt: int = Field(1, ge=1)
    started_at: datetime = Field(default_factory=_utcnow)
    status: RequestStatus = RequestStatus.PENDING


class DecryptionOutcome(BaseModel):
    """What an awaited decryption request resolves to."""

    record_id: int
    state: DecryptionState
    score: Optional[int] = None
    failure_reason: Optional[FailureReason] = None
    attempt: int = 0

    model_config = {"frozen": True}


class AggregateSnapshot(BaseModel):
    student_average: Optional[int] = None
    global_average: Optional[int] = None
    decrypted_count: int = 0
    total_count: int = 0

    model_config = {"frozen": True}


class RecordView(BaseModel):
    """Presentation row for a single record."""

    id: int
    subject: str
    display_score: Optional[int] = None
    decryption_state: DecryptionState
    is_busy: bool = False
    display_label: str = ""
    failure_reason: Optional[FailureReason] = None
    render_error: Optional[str] = None

    model_config = {"frozen": True}


class ViewSnapshot(BaseModel):
    records: Tuple[RecordView, ...] = ()
    aggregates: AggregateSnapshot = Field(default_factory=AggregateSnapshot)
    status: StoreStatus = StoreStatus.IDLE
    error: Optional[str] = None

    model_config = {"frozen": True}


__all__ = [
    "MIN_SCORE",
    "MAX_SCORE",
    "DecryptionState",
    "FailureReason",
    "RequestStatus",
    "StoreStatus",
    "LedgerEntry",
    "GradeRecord",
    "DecryptionRequest",
    "DecryptionOutcome",
    "AggregateSnapshot",
    "RecordView",
    "ViewSnapshot",
]
