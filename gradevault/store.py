"""
Canonical cache of grade records fetched from the ledger.

RecordStore is the only writer of GradeRecord instances. It knows nothing about
the reveal protocol: the decryption coordinator drives state changes through
`mark_requesting`, `mark_failed` and `apply_decryption`, and every mutation is
pushed synchronously to subscribers.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from gradevault.collaborators.abstract import LedgerClient
from gradevault.domain.models import DecryptionState, GradeRecord, StoreStatus
from gradevault.errors import LedgerError, UnknownRecord
from gradevault.utils.logging import get_logger

log = get_logger(__name__)

StoreListener = Callable[["RecordStore"], None]


class RecordStore:
    """
    Ordered, append-only collection of GradeRecords.

    Parameters
    ----------
    ledger : LedgerClient
        Source of entries.
    owner : str | None
        Address of the viewing student. Loading fetches every visible entry
        regardless; the owner is kept for aggregate computation.
    """

    def __init__(self, ledger: LedgerClient, owner: Optional[str] = None) -> None:
        self._ledger = ledger
        self.owner = owner
        self._records: Dict[int, GradeRecord] = {}
        self._order: Tuple[int, ...] = ()
        self._listeners: List[StoreListener] = []
        self._status = StoreStatus.IDLE
        self._last_error: Optional[str] = None
        self._version = 0

    # --------------- Read API ---------------
    @property
    def records(self) -> Tuple[GradeRecord, ...]:
        """Records in ledger insertion order."""
        return tuple(self._records[record_id] for record_id in self._order)

    @property
    def status(self) -> StoreStatus:
        return self._status

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def version(self) -> int:
        """Incremented on every mutation."""
        return self._version

    def get(self, record_id: int) -> GradeRecord:
        try:
            return self._records[record_id]
        except KeyError:
            raise UnknownRecord(record_id) from None

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._order)

    # --------------- Subscriptions ---------------
    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register `listener`; returns a callable that unregisters it.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:  # noqa: BLE001 - one subscriber must not starve the rest
                log.exception("Record store subscriber failed")

    # --------------- Ledger sync ---------------
    async def load(self) -> Tuple[GradeRecord, ...]:
        """
        Fetch all visible entries and merge them into the store.

        All-or-nothing: when the ledger fails, loaded records are left untouched,
        the store is marked DEGRADED and the ledger error is re-raised.
        """
        self._status = StoreStatus.LOADING
        self._notify()
        try:
            entries = await self._ledger.fetch_records(None)
        except Exception as exc:
            self._status = StoreStatus.DEGRADED
            self._last_error = str(exc) or type(exc).__name__
            log.warning(
                "Ledger load failed",
                extra={
                    "error": self._last_error,
                    "expected": isinstance(exc, LedgerError),
                    "kept": len(self._order),
                },
            )
            self._notify()
            raise

        added = 0
        for entry in entries:
            existing = self._records.get(entry.id)
            if existing is None:
                self._records[entry.id] = GradeRecord.from_entry(entry)
                added += 1
            elif existing.ciphertext_handle != entry.ciphertext_handle or existing.subject != entry.subject:
                log.warning(
                    "Ledger reported different contents for a known record; keeping the original",
                    extra={"record_id": entry.id},
                )
        # Ids are monotonic, so ascending id is ledger insertion order.
        self._order = tuple(sorted(self._records))
        self._status = StoreStatus.READY
        self._last_error = None
        log.info("Records loaded", extra={"total": len(self._order), "added": added})
        self._notify()
        return self.records

    # --------------- State transitions ---------------
    def _replace(self, record: GradeRecord) -> None:
        self._records[record.id] = record
        self._notify()

    def mark_requesting(self, record_id: int) -> GradeRecord:
        record = self.get(record_id).with_state(DecryptionState.REQUESTING)
        self._replace(record)
        return record

    def mark_failed(self, record_id: int) -> GradeRecord:
        record = self.get(record_id).with_state(DecryptionState.FAILED)
        self._replace(record)
        return record

    def apply_decryption(self, record_id: int, plaintext_score: int) -> GradeRecord:
        """
        Store the revealed score; the record becomes DECRYPTED.
        """
        record = self.get(record_id).with_state(DecryptionState.DECRYPTED, plaintext_score)
        self._replace(record)
        return record


__all__ = ["RecordStore", "StoreListener"]
