from __future__ import annotations

import pytest

from conftest import ALICE, make_entries
from gradevault.collaborators.memory import InMemoryLedger
from gradevault.domain.models import DecryptionState, StoreStatus
from gradevault.errors import LedgerUnavailable, UnknownRecord
from gradevault.store import RecordStore

EXPECTED_RECORDS = 4


@pytest.mark.asyncio
async def test_load_returns_records_in_ledger_order(ledger) -> None:
    store = RecordStore(ledger, owner=ALICE)

    records = await store.load()

    assert [r.id for r in records] == [0, 1, 2, 3]
    assert all(r.decryption_state is DecryptionState.ENCRYPTED for r in records)
    assert all(r.plaintext_score is None for r in records)
    assert store.status is StoreStatus.READY
    assert store.records == records


@pytest.mark.asyncio
async def test_records_view_is_stable_between_mutations(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()

    assert store.records == store.records
    assert isinstance(store.records, tuple)


@pytest.mark.asyncio
async def test_load_failure_keeps_loaded_records_and_degrades(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()
    store.apply_decryption(0, 80)
    before = store.records

    ledger.available = False
    with pytest.raises(LedgerUnavailable):
        await store.load()

    assert store.records == before
    assert store.status is StoreStatus.DEGRADED
    assert "offline" in (store.last_error or "")

    ledger.available = True
    await store.load()
    assert store.status is StoreStatus.READY
    assert store.last_error is None
    assert store.get(0).plaintext_score == 80


@pytest.mark.asyncio
async def test_reload_merges_new_entries_and_preserves_state(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()
    store.mark_requesting(1)
    store.apply_decryption(2, 100)

    await ledger.submit_record("Art", "0xh4", ALICE)
    await store.load()

    assert len(store) == EXPECTED_RECORDS + 1
    assert store.get(1).decryption_state is DecryptionState.REQUESTING
    assert store.get(2).plaintext_score == 100
    assert store.get(4).subject == "Art"


@pytest.mark.asyncio
async def test_records_are_never_dropped_by_a_shorter_fetch() -> None:
    entries = make_entries()
    store = RecordStore(InMemoryLedger(entries))
    await store.load()

    store._ledger = InMemoryLedger(entries[:2])
    await store.load()

    assert [r.id for r in store.records] == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_known_ids_keep_original_contents(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()
    tampered = [e.model_copy(update={"ciphertext_handle": "0xevil"}) for e in make_entries()]
    store._ledger = InMemoryLedger(tampered)

    await store.load()

    assert store.get(0).ciphertext_handle == "0xh0"


@pytest.mark.asyncio
async def test_apply_decryption_unknown_id_raises(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()

    with pytest.raises(UnknownRecord) as excinfo:
        store.apply_decryption(42, 90)

    assert excinfo.value.record_id == 42
    assert len(store) == EXPECTED_RECORDS


@pytest.mark.asyncio
async def test_subscribers_are_notified_and_isolated(ledger) -> None:
    store = RecordStore(ledger)
    seen: list[int] = []

    def broken(_store: RecordStore) -> None:
        raise RuntimeError("subscriber bug")

    store.subscribe(broken)
    unsubscribe = store.subscribe(lambda s: seen.append(s.version))

    await store.load()
    store.apply_decryption(0, 80)
    unsubscribe()
    store.apply_decryption(1, 90)

    # loading + ready + decryption
    assert len(seen) == 3
    assert seen == sorted(seen)


@pytest.mark.asyncio
async def test_plaintext_present_only_when_decrypted(ledger) -> None:
    store = RecordStore(ledger)
    await store.load()

    store.mark_requesting(0)
    store.mark_failed(0)
    assert store.get(0).plaintext_score is None

    store.apply_decryption(0, 75)
    assert store.get(0).decryption_state is DecryptionState.DECRYPTED
    assert store.get(0).plaintext_score == 75
