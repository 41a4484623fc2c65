"""
Collaborator interfaces for GradeVault.

The ledger persists encrypted grade entries; the oracle turns a ciphertext
handle back into a plaintext score for an authorized caller; the encryptor is
the opaque encryption capability used when submitting a new score. Concrete
implementations live next to this module (in-memory, Postgres, HTTP relayer).
"""

from __future__ import annotations

import abc
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from gradevault.domain.models import LedgerEntry


@runtime_checkable
class LedgerClient(Protocol):
    """
    Append-only store of grade entries.

    Failures surface as `LedgerUnavailable` (unreachable) or `LedgerRejected`
    (write refused).
    """

    async def fetch_records(self, owner: Optional[str] = None) -> Sequence[LedgerEntry]:
        """
        Return entries in insertion order, optionally restricted to one owner.
        """
        ...

    async def submit_record(self, subject: str, ciphertext_handle: str, owner: str) -> int:
        """
        Append an entry and return its ledger-assigned id.
        """
        ...


@runtime_checkable
class RevealOracle(Protocol):
    """
    Reveal service for ciphertext handles.

    Raises `AuthorizationDenied`, `OracleTimeout` or `OracleError`.
    """

    async def reveal(self, ciphertext_handle: str, authorization: Any = None) -> int:
        ...


@runtime_checkable
class Encryptor(Protocol):
    async def encrypt(self, score: int) -> str:
        ...


class AbstractLedgerClient(abc.ABC):
    """
    Optional ABC helper for class-based ledger implementations.
    """

    @abc.abstractmethod
    async def fetch_records(
        self, owner: Optional[str] = None
    ) -> Sequence[LedgerEntry]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def submit_record(
        self, subject: str, ciphertext_handle: str, owner: str
    ) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    async def close(self) -> None:
        """Release any held resources."""
        return None


__all__ = [
    "LedgerClient",
    "RevealOracle",
    "Encryptor",
    "AbstractLedgerClient",
]
