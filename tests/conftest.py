"""
Pytest configuration for GradeVault.

Provides fixtures for:
- A seeded in-memory ledger (two students, four entries)
- A scripted reveal oracle whose answers can be held back per call
- Settings override with the in-memory backend
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import pytest

from gradevault.collaborators.memory import InMemoryLedger
from gradevault.config import Settings, get_settings
from gradevault.domain.models import LedgerEntry

ALICE = "0xa11ce"
BOB = "0xb0b"

# handle -> plaintext; alice holds 80/90/100, bob holds 60
SCORES = {"0xh0": 80, "0xh1": 90, "0xh2": 100, "0xh3": 60}


@dataclass
class Step:
    """One scripted reveal answer: a score or an exception, optionally gated."""

    result: Union[int, BaseException, Any]
    gate: Optional[asyncio.Event] = None


@dataclass
class ScriptedOracle:
    """
    Reveal oracle driven by per-handle scripts.

    Each call pops the next Step for the handle; when the script is empty the
    plaintext from `scores` is returned.
    """

    scores: Dict[str, int] = field(default_factory=lambda: dict(SCORES))
    scripts: Dict[str, List[Step]] = field(default_factory=dict)
    calls: List[tuple] = field(default_factory=list)

    def script(self, handle: str, *steps: Step) -> None:
        self.scripts.setdefault(handle, []).extend(steps)

    def calls_for(self, handle: str) -> int:
        return sum(1 for called_handle, _ in self.calls if called_handle == handle)

    async def reveal(self, ciphertext_handle: str, authorization: Any = None) -> int:
        self.calls.append((ciphertext_handle, authorization))
        steps = self.scripts.get(ciphertext_handle)
        if not steps:
            await asyncio.sleep(0)
            return self.scores[ciphertext_handle]
        step = steps.pop(0)
        if step.gate is not None:
            await step.gate.wait()
        else:
            await asyncio.sleep(0)
        if isinstance(step.result, BaseException):
            raise step.result
        return step.result


def make_entries() -> List[LedgerEntry]:
    owners = [ALICE, ALICE, ALICE, BOB]
    subjects = ["Mathematics", "Physics", "Chemistry", "History"]
    return [
        LedgerEntry(id=i, subject=subjects[i], ciphertext_handle=f"0xh{i}", owner=owners[i])
        for i in range(4)
    ]


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger(make_entries())


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def memory_settings(monkeypatch) -> Settings:
    """
    Settings pointing at the in-memory backend, also served by get_settings().
    """
    monkeypatch.setenv("LEDGER_BACKEND", "memory")
    monkeypatch.setenv("STUDENT_ADDRESS", ALICE)
    monkeypatch.setenv("REVEAL_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


async def settle() -> None:
    """Let every ready callback and task run a few times."""
    for _ in range(5):
        await asyncio.sleep(0)
