"""
Postgres-backed ledger for GradeVault.

Entries live in the append-only `public.grade_entries` table (see
`db/init.sql`). Access goes through an asyncpg pool created lazily on first
use; pool creation is retried with exponential backoff for transient
connection failures using tenacity.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import asyncpg
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from gradevault.collaborators.abstract import AbstractLedgerClient
from gradevault.config import build_dsn
from gradevault.domain.models import LedgerEntry
from gradevault.errors import LedgerRejected, LedgerUnavailable
from gradevault.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_ERRORS = (OSError, ConnectionError, asyncpg.PostgresConnectionError)

_FETCH_SQL = """
SELECT id, subject, ciphertext_handle, owner
FROM public.grade_entries
WHERE ($1::text IS NULL OR owner = $1)
ORDER BY id
"""

_INSERT_SQL = """
INSERT INTO public.grade_entries (subject, ciphertext_handle, owner)
VALUES ($1, $2, $3)
RETURNING id
"""


class PostgresLedger(AbstractLedgerClient):
    """
    Ledger client reading and appending grade entries with asyncpg.

    Parameters
    ----------
    dsn_override : str | None
        Connection string; defaults to the one composed from settings.
    connect_attempts : int
        How many times pool creation is attempted before giving up.
    retry_multiplier : float
        Multiplier for the exponential backoff between attempts.
    """

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        pool_min_size: int = 1,
        pool_max_size: int = 4,
        connect_attempts: int = 3,
        retry_multiplier: float = 1.0,
    ) -> None:
        self._dsn_override = dsn_override
        self._pool_min_size = pool_min_size
        self._pool_max_size = pool_max_size
        self._connect_attempts = connect_attempts
        self._retry_multiplier = retry_multiplier
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> asyncpg.Pool:
        async with self._pool_lock:
            if self._pool is not None:
                return self._pool
            dsn = self._dsn_override or build_dsn()
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self._connect_attempts),
                    wait=wait_exponential(multiplier=self._retry_multiplier, min=0, max=10),
                    retry=retry_if_exception_type(_TRANSIENT_ERRORS),
                    reraise=True,
                ):
                    with attempt:
                        self._pool = await asyncpg.create_pool(
                            dsn, min_size=self._pool_min_size, max_size=self._pool_max_size
                        )
            except _TRANSIENT_ERRORS as exc:
                log.warning("Ledger database unreachable", extra={"error": str(exc)})
                raise LedgerUnavailable(f"cannot connect to ledger database: {exc}") from exc
            return self._pool

    async def fetch_records(self, owner: Optional[str] = None) -> Sequence[LedgerEntry]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(_FETCH_SQL, owner)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, *_TRANSIENT_ERRORS) as exc:
            raise LedgerUnavailable(f"ledger fetch failed: {exc}") from exc
        return tuple(
            LedgerEntry(
                id=row["id"],
                subject=row["subject"],
                ciphertext_handle=row["ciphertext_handle"],
                owner=row["owner"],
            )
            for row in rows
        )

    async def submit_record(self, subject: str, ciphertext_handle: str, owner: str) -> int:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                entry_id = await conn.fetchval(_INSERT_SQL, subject, ciphertext_handle, owner)
        except asyncpg.IntegrityConstraintViolationError as exc:
            raise LedgerRejected(f"ledger refused entry: {exc}") from exc
        except (asyncpg.InterfaceError, *_TRANSIENT_ERRORS) as exc:
            raise LedgerUnavailable(f"ledger write failed: {exc}") from exc
        except asyncpg.PostgresError as exc:
            # e.g. the append-only trigger in db/init.sql
            raise LedgerRejected(f"ledger refused entry: {exc}") from exc
        log.info("Ledger entry appended", extra={"record_id": entry_id, "subject": subject})
        return int(entry_id)

    async def close(self) -> None:
        async with self._pool_lock:
            if self._pool is not None:
                await self._pool.close()
                self._pool = None


__all__ = ["PostgresLedger"]
