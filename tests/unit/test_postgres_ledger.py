from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any

import asyncpg
import pytest

from gradevault.collaborators import postgres_ledger as postgres_module
from gradevault.collaborators.postgres_ledger import PostgresLedger
from gradevault.domain.models import LedgerEntry
from gradevault.errors import LedgerRejected, LedgerUnavailable

CONNECT_ATTEMPTS = 2


class _FakeConnection:
    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = [
            {"id": 1, "subject": "Mathematics", "ciphertext_handle": "0xh1", "owner": "0xa11ce"},
            {"id": 2, "subject": "Physics", "ciphertext_handle": "0xh2", "owner": "0xb0b"},
        ]
        self.fetch_calls: list[tuple[Any, ...]] = []
        self.insert_error: Exception | None = None

    async def fetch(self, sql: str, *params: Any) -> list[dict[str, Any]]:
        self.fetch_calls.append(params)
        (owner,) = params
        return [row for row in self.rows if owner is None or row["owner"] == owner]

    async def fetchval(self, sql: str, *params: Any) -> int:
        if self.insert_error is not None:
            raise self.insert_error
        subject, handle, owner = params
        new_id = len(self.rows) + 1
        self.rows.append({"id": new_id, "subject": subject, "ciphertext_handle": handle, "owner": owner})
        return new_id


class _AcquireContext(AbstractAsyncContextManager[_FakeConnection]):
    def __init__(self, conn: _FakeConnection) -> None:
        self._conn = conn

    async def __aenter__(self) -> _FakeConnection:
        return self._conn

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class _FakePool:
    def __init__(self) -> None:
        self.conn = _FakeConnection()
        self.closed = False

    def acquire(self) -> _AcquireContext:
        return _AcquireContext(self.conn)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_pool(monkeypatch) -> _FakePool:
    pool = _FakePool()
    created: list[str] = []

    async def fake_create_pool(dsn: str, **kwargs: Any) -> _FakePool:
        del kwargs
        created.append(dsn)
        return pool

    monkeypatch.setattr(postgres_module.asyncpg, "create_pool", fake_create_pool)
    pool.created = created  # type: ignore[attr-defined]
    return pool


@pytest.mark.asyncio
async def test_fetch_records_maps_rows_to_entries(fake_pool: _FakePool) -> None:
    ledger = PostgresLedger(dsn_override="postgresql://test")

    entries = await ledger.fetch_records()

    assert entries == (
        LedgerEntry(id=1, subject="Mathematics", ciphertext_handle="0xh1", owner="0xa11ce"),
        LedgerEntry(id=2, subject="Physics", ciphertext_handle="0xh2", owner="0xb0b"),
    )
    assert fake_pool.conn.fetch_calls == [(None,)]


@pytest.mark.asyncio
async def test_pool_is_created_once(fake_pool: _FakePool) -> None:
    ledger = PostgresLedger(dsn_override="postgresql://test")

    await ledger.fetch_records("0xb0b")
    await ledger.submit_record("Chemistry", "0xh3", "0xb0b")
    await ledger.close()

    assert fake_pool.created == ["postgresql://test"]  # type: ignore[attr-defined]
    assert fake_pool.closed is True


@pytest.mark.asyncio
async def test_submit_record_returns_new_id(fake_pool: _FakePool) -> None:
    ledger = PostgresLedger(dsn_override="postgresql://test")

    new_id = await ledger.submit_record("Chemistry", "0xh3", "0xa11ce")

    assert new_id == 3
    assert [e.id for e in await ledger.fetch_records("0xa11ce")] == [1, 3]


@pytest.mark.asyncio
async def test_constraint_violation_maps_to_ledger_rejected(fake_pool: _FakePool) -> None:
    fake_pool.conn.insert_error = asyncpg.UniqueViolationError("duplicate handle")
    ledger = PostgresLedger(dsn_override="postgresql://test")

    with pytest.raises(LedgerRejected):
        await ledger.submit_record("Chemistry", "0xh1", "0xa11ce")


@pytest.mark.asyncio
async def test_trigger_refusal_maps_to_ledger_rejected(fake_pool: _FakePool) -> None:
    fake_pool.conn.insert_error = asyncpg.exceptions.RaiseError("grade_entries is append-only")
    ledger = PostgresLedger(dsn_override="postgresql://test")

    with pytest.raises(LedgerRejected, match="append-only"):
        await ledger.submit_record("Chemistry", "0xh3", "0xa11ce")


@pytest.mark.asyncio
async def test_connection_drop_on_write_maps_to_ledger_unavailable(fake_pool: _FakePool) -> None:
    fake_pool.conn.insert_error = ConnectionResetError("peer went away")
    ledger = PostgresLedger(dsn_override="postgresql://test")

    with pytest.raises(LedgerUnavailable):
        await ledger.submit_record("Chemistry", "0xh3", "0xa11ce")


@pytest.mark.asyncio
async def test_unreachable_database_is_retried_then_unavailable(monkeypatch) -> None:
    attempts: list[int] = []

    async def failing_create_pool(dsn: str, **kwargs: Any) -> _FakePool:
        del dsn, kwargs
        attempts.append(1)
        raise OSError("connection refused")

    monkeypatch.setattr(postgres_module.asyncpg, "create_pool", failing_create_pool)
    ledger = PostgresLedger(
        dsn_override="postgresql://test",
        connect_attempts=CONNECT_ATTEMPTS,
        retry_multiplier=0,
    )

    with pytest.raises(LedgerUnavailable):
        await ledger.fetch_records()

    assert len(attempts) == CONNECT_ATTEMPTS
