"""
In-process ledger and cipher collaborators.

Deterministic stand-ins for the on-chain ledger and the encryption/reveal
relayer. They back the `memory` ledger backend and make failure modes easy to
provoke: flip `available`, restrict `allowed_authorizations`, or add latency.
"""

from __future__ import annotations

import asyncio
import hashlib
from typing import Any, Dict, List, Optional, Sequence, Set

from gradevault.collaborators.abstract import AbstractLedgerClient
from gradevault.domain.models import MAX_SCORE, MIN_SCORE, LedgerEntry
from gradevault.errors import (
    AuthorizationDenied,
    LedgerRejected,
    LedgerUnavailable,
    OracleError,
)
from gradevault.utils.logging import get_logger

log = get_logger(__name__)


class InMemoryLedger(AbstractLedgerClient):
    """
    Append-only list of entries with ids starting at 0.
    """

    def __init__(self, entries: Optional[Sequence[LedgerEntry]] = None, latency: float = 0.0) -> None:
        self._entries: List[LedgerEntry] = list(entries or [])
        self._latency = latency
        self.available = True
        self.fetch_calls = 0
        self.submit_calls = 0

    async def _pause(self) -> None:
        # Always yield so callers observe a real suspension point.
        await asyncio.sleep(self._latency)

    async def fetch_records(self, owner: Optional[str] = None) -> Sequence[LedgerEntry]:
        self.fetch_calls += 1
        await self._pause()
        if not self.available:
            raise LedgerUnavailable("in-memory ledger is offline")
        return tuple(e for e in self._entries if owner is None or e.owner == owner)

    async def submit_record(self, subject: str, ciphertext_handle: str, owner: str) -> int:
        self.submit_calls += 1
        await self._pause()
        if not self.available:
            raise LedgerUnavailable("in-memory ledger is offline")
        if not subject.strip():
            raise LedgerRejected("subject must not be empty")
        if not ciphertext_handle:
            raise LedgerRejected("ciphertext handle must not be empty")
        entry_id = len(self._entries)
        self._entries.append(
            LedgerEntry(id=entry_id, subject=subject, ciphertext_handle=ciphertext_handle, owner=owner)
        )
        log.debug("Ledger entry appended", extra={"record_id": entry_id, "owner": owner})
        return entry_id

    def entry_count(self) -> int:
        return len(self._entries)


class InMemoryCipher:
    """
    Encrypts scores into opaque handles and reveals them for authorized callers.

    When `allowed_authorizations` is None every caller is authorized.
    """

    def __init__(
        self,
        allowed_authorizations: Optional[Set[Any]] = None,
        latency: float = 0.0,
    ) -> None:
        self._plaintexts: Dict[str, int] = {}
        self._counter = 0
        self._latency = latency
        self.allowed_authorizations = allowed_authorizations
        self.reveal_calls: List[str] = []

    async def encrypt(self, score: int) -> str:
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ValueError(f"score must be within {MIN_SCORE}..{MAX_SCORE}, got {score}")
        self._counter += 1
        digest = hashlib.sha256(f"{self._counter}:{score}".encode("utf-8")).hexdigest()
        handle = f"0x{digest}"
        self._plaintexts[handle] = score
        return handle

    def register(self, ciphertext_handle: str, score: int) -> None:
        """Make a handle created elsewhere revealable."""
        self._plaintexts[ciphertext_handle] = score

    async def reveal(self, ciphertext_handle: str, authorization: Any = None) -> int:
        self.reveal_calls.append(ciphertext_handle)
        await asyncio.sleep(self._latency)
        if self.allowed_authorizations is not None and authorization not in self.allowed_authorizations:
            raise AuthorizationDenied("caller is not allowed to reveal this handle")
        try:
            return self._plaintexts[ciphertext_handle]
        except KeyError:
            raise OracleError(f"unknown ciphertext handle {ciphertext_handle[:10]}...") from None


__all__ = ["InMemoryLedger", "InMemoryCipher"]
