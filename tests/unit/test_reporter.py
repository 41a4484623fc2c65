from __future__ import annotations

import pytest
from rich.console import Console

from conftest import ALICE, Step
from gradevault.coordinator import DecryptionCoordinator
from gradevault.errors import OracleTimeout
from gradevault.projection import ViewProjection
from gradevault.reporter import print_snapshot
from gradevault.store import RecordStore


def _render(snapshot) -> str:
    console = Console(record=True, width=160)
    print_snapshot(snapshot, console=console)
    return console.export_text()


@pytest.mark.asyncio
async def test_report_lists_records_and_averages(ledger, oracle) -> None:
    store = RecordStore(ledger, owner=ALICE)
    coordinator = DecryptionCoordinator(store, oracle)
    projection = ViewProjection(store, failure_lookup=coordinator.failure_reason)
    await store.load()

    oracle.script("0xh1", Step(OracleTimeout("slow relayer")))
    await coordinator.request_decrypt(0)
    await coordinator.request_decrypt(1)

    text = _render(projection.snapshot)

    assert "Mathematics" in text
    assert "80/100" in text
    assert "oracle_timeout (retry possible)" in text
    assert "Ready" in text


def test_report_empty_snapshot(ledger) -> None:
    projection = ViewProjection(RecordStore(ledger))

    text = _render(projection.snapshot)

    assert "No grades submitted yet." in text
    assert "Not loaded" in text
    assert "N/A" in text
