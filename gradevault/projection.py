"""
Read-only presentation snapshot of the records and their aggregates.

ViewProjection listens to the RecordStore, rebuilds a ViewSnapshot on every
change and pushes it to its own subscribers. It never talks to the ledger or
the oracle. Building the view for one record is isolated from the others: if
the label function raises for a record, only that row is rendered in an error
state.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from gradevault.aggregates import AggregateEngine
from gradevault.domain.models import (
    DecryptionState,
    FailureReason,
    GradeRecord,
    RecordView,
    ViewSnapshot,
)
from gradevault.store import RecordStore
from gradevault.utils.logging import get_logger

log = get_logger(__name__)

LabelFunc = Callable[[GradeRecord], str]
FailureLookup = Callable[[int], Optional[FailureReason]]
SnapshotListener = Callable[[ViewSnapshot], None]

HANDLE_PREVIEW_CHARS = 20
RENDER_ERROR_LABEL = "Failed to load score card"


def default_label(record: GradeRecord) -> str:
    """`85/100` once revealed, otherwise a truncated ciphertext handle."""
    if record.decryption_state is DecryptionState.DECRYPTED:
        return f"{record.plaintext_score}/100"
    if record.decryption_state is DecryptionState.REQUESTING:
        return "Decrypting..."
    return f"{record.ciphertext_handle[:HANDLE_PREVIEW_CHARS]}..."


class ViewProjection:
    """
    Derived view over a RecordStore.

    Parameters
    ----------
    store : RecordStore
        Upstream records.
    engine : AggregateEngine | None
        Aggregate calculator; defaults to one for the store's owner.
    label : callable | None
        Formats the display label of a record.
    failure_lookup : callable | None
        Returns the failure reason of a FAILED record (usually
        `DecryptionCoordinator.failure_reason`).
    """

    def __init__(
        self,
        store: RecordStore,
        engine: Optional[AggregateEngine] = None,
        label: Optional[LabelFunc] = None,
        failure_lookup: Optional[FailureLookup] = None,
    ) -> None:
        self._store = store
        self._engine = engine or AggregateEngine(owner=store.owner)
        self._label = label or default_label
        self._failure_lookup = failure_lookup
        self._listeners: List[SnapshotListener] = []
        self._snapshot = self._build()
        self._unsubscribe: Optional[Callable[[], None]] = store.subscribe(self._on_store_change)

    @property
    def snapshot(self) -> ViewSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register `listener`; it receives the current snapshot right away and
        every new one afterwards. Returns an unsubscribe callable.
        """
        self._listeners.append(listener)
        self._deliver(listener, self._snapshot)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def close(self) -> None:
        """Detach from the store; subscribers stop receiving snapshots."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    # --------------- Internal ---------------
    def _on_store_change(self, store: RecordStore) -> None:
        self._snapshot = self._build()
        for listener in list(self._listeners):
            self._deliver(listener, self._snapshot)

    @staticmethod
    def _deliver(listener: SnapshotListener, snapshot: ViewSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception:  # noqa: BLE001 - a broken consumer must not stop the others
            log.exception("Snapshot subscriber failed")

    def _build(self) -> ViewSnapshot:
        records = self._store.records
        return ViewSnapshot(
            records=tuple(self._project(record) for record in records),
            aggregates=self._engine.compute(records),
            status=self._store.status,
            error=self._store.last_error,
        )

    def _project(self, record: GradeRecord) -> RecordView:
        state = record.decryption_state
        base = {
            "id": record.id,
            "subject": record.subject,
            "display_score": record.plaintext_score,
            "decryption_state": state,
            "is_busy": state is DecryptionState.REQUESTING,
        }
        try:
            failure = (
                self._failure_lookup(record.id)
                if self._failure_lookup is not None and state is DecryptionState.FAILED
                else None
            )
            return RecordView(**base, display_label=self._label(record), failure_reason=failure)
        except Exception as exc:  # noqa: BLE001 - isolate per-record rendering failures
            log.exception("Failed to project record", extra={"record_id": record.id})
            return RecordView(
                **base,
                display_label=RENDER_ERROR_LABEL,
                render_error=str(exc) or type(exc).__name__,
            )


__all__ = ["ViewProjection", "default_label", "RENDER_ERROR_LABEL"]
