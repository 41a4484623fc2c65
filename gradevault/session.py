"""
Session facade wiring the ledger, the oracle and the client-side engine.

A GradeSession owns one RecordStore, one DecryptionCoordinator and one
ViewProjection for a single viewing student.

Usage:
    async with build_session(get_settings()) as session:
        await session.load()
        await session.request_decrypt(0, authorization=signature)
        print(session.snapshot.aggregates)
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from gradevault.aggregates import AggregateEngine
from gradevault.collaborators.abstract import Encryptor, LedgerClient, RevealOracle
from gradevault.collaborators.http_oracle import HttpOracle
from gradevault.collaborators.memory import InMemoryCipher, InMemoryLedger
from gradevault.collaborators.postgres_ledger import PostgresLedger
from gradevault.config import Settings, build_dsn, get_settings
from gradevault.coordinator import DecryptionCoordinator
from gradevault.domain.models import MAX_SCORE, MIN_SCORE, DecryptionOutcome, ViewSnapshot
from gradevault.errors import LedgerError
from gradevault.projection import SnapshotListener, ViewProjection
from gradevault.store import RecordStore
from gradevault.utils.logging import get_logger

log = get_logger(__name__)


class GradeSession:
    def __init__(
        self,
        ledger: LedgerClient,
        oracle: RevealOracle,
        encryptor: Optional[Encryptor] = None,
        owner: Optional[str] = None,
        reveal_timeout: Optional[float] = 30.0,
    ) -> None:
        self.owner = owner
        self._ledger = ledger
        self._oracle = oracle
        self._encryptor = encryptor
        self.store = RecordStore(ledger, owner=owner)
        self.coordinator = DecryptionCoordinator(self.store, oracle, reveal_timeout=reveal_timeout)
        self.projection = ViewProjection(
            self.store,
            engine=AggregateEngine(owner=owner),
            failure_lookup=self.coordinator.failure_reason,
        )

    @property
    def snapshot(self) -> ViewSnapshot:
        return self.projection.snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.projection.subscribe(listener)

    async def load(self) -> ViewSnapshot:
        await self.store.load()
        return self.snapshot

    async def submit_record(self, subject: str, score: int) -> int:
        """
        Encrypt `score`, append it to the ledger and reload the store.

        Ledger errors from the write propagate and leave the loaded records as
        they were. Once the write is accepted the new id is returned even if the
        reload fails; that failure shows up as a degraded store status.
        """
        if self._encryptor is None:
            raise RuntimeError("this session has no encryptor; it is read-only")
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValueError(f"score must be within {MIN_SCORE}..{MAX_SCORE}, got {score}")
        if self.owner is None:
            raise RuntimeError("an owner address is required to submit records")
        handle = await self._encryptor.encrypt(score)
        record_id = await self._ledger.submit_record(subject, handle, self.owner)
        log.info("Grade submitted", extra={"record_id": record_id, "subject": subject})
        try:
            await self.store.load()
        except LedgerError as exc:
            log.warning(
                "Reload after submit failed",
                extra={"record_id": record_id, "error": str(exc)},
            )
        return record_id

    def request_decrypt(
        self, record_id: int, authorization: Any = None
    ) -> "asyncio.Future[DecryptionOutcome]":
        return self.coordinator.request_decrypt(record_id, authorization)

    async def close(self, wait: bool = True) -> None:
        """
        Tear the session down. With `wait`, in-flight reveals are awaited
        first so their results reach the store.
        """
        self.coordinator.close()
        if wait:
            await self.coordinator.drain()
        self.projection.close()
        seen = set()
        for resource in (self._ledger, self._oracle, self._encryptor):
            if resource is None or id(resource) in seen:
                continue
            seen.add(id(resource))
            closer = getattr(resource, "aclose", None) or getattr(resource, "close", None)
            if closer is not None and inspect.iscoroutinefunction(closer):
                await closer()

    async def __aenter__(self) -> "GradeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def build_session(settings: Optional[Settings] = None, owner: Optional[str] = None) -> GradeSession:
    """
    Construct a session from configuration.

    `LEDGER_BACKEND=memory` uses in-process collaborators (ledger and cipher);
    otherwise the Postgres ledger and the HTTP relayer are used.
    """
    s = settings or get_settings()
    viewer = owner or s.student_address
    if s.ledger_backend == "memory":
        cipher = InMemoryCipher()
        return GradeSession(
            InMemoryLedger(), cipher, cipher, owner=viewer, reveal_timeout=s.reveal_timeout_seconds
        )
    oracle = HttpOracle(s.oracle_url, timeout=s.oracle_timeout_seconds)
    return GradeSession(
        PostgresLedger(dsn_override=build_dsn(s)),
        oracle,
        oracle,
        owner=viewer,
        reveal_timeout=s.reveal_timeout_seconds,
    )


__all__ = ["GradeSession", "build_session"]
