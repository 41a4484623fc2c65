"""
Aggregate statistics over the decrypted subset of the records.

Averages use exact integer arithmetic and round half up, so 82.5 becomes 83.
Only DECRYPTED records contribute; a record's score is read from the record
itself, never from an earlier cache, so nothing outside the current record set
can leak into a snapshot.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, Optional, Sequence, Tuple

from gradevault.domain.models import AggregateSnapshot, DecryptionState, GradeRecord

# (owner, score or None) per record, in record order.
_AggregateKey = Tuple[Tuple[str, Optional[int]], ...]


def _round_half_up_mean(scores: Sequence[int]) -> Optional[int]:
    if not scores:
        return None
    total = sum(scores)
    count = len(scores)
    return (2 * total + count) // (2 * count)


def _snapshot_from_key(key: _AggregateKey, owner: Optional[str]) -> AggregateSnapshot:
    decrypted = [(record_owner, score) for record_owner, score in key if score is not None]
    own_scores = [score for record_owner, score in decrypted if owner is not None and record_owner == owner]
    return AggregateSnapshot(
        student_average=_round_half_up_mean(own_scores),
        global_average=_round_half_up_mean([score for _, score in decrypted]),
        decrypted_count=len(decrypted),
        total_count=len(key),
    )


def _key_for(records: Iterable[GradeRecord]) -> _AggregateKey:
    return tuple(
        (
            record.owner,
            record.plaintext_score if record.decryption_state is DecryptionState.DECRYPTED else None,
        )
        for record in records
    )


def compute_aggregates(records: Iterable[GradeRecord], owner: Optional[str] = None) -> AggregateSnapshot:
    """
    Derive averages and counts from `records`.

    Parameters
    ----------
    records : iterable of GradeRecord
        Every record visible to the caller.
    owner : str | None
        The viewing student; `student_average` covers only their records and is
        None when no owner is given.
    """
    return _snapshot_from_key(_key_for(records), owner)


class AggregateEngine:
    """
    Memoized aggregate computation for one viewer.

    Snapshots are cached on the (owner, decrypted score) shape of the record
    set, so recomputing after a change that did not touch any score (for
    instance a record entering REQUESTING) is a cache hit.
    """

    def __init__(self, owner: Optional[str] = None, cache_size: int = 64) -> None:
        self.owner = owner
        self._cached = lru_cache(maxsize=cache_size)(self._compute_key)

    def _compute_key(self, key: _AggregateKey) -> AggregateSnapshot:
        return _snapshot_from_key(key, self.owner)

    def compute(self, records: Iterable[GradeRecord]) -> AggregateSnapshot:
        return self._cached(_key_for(records))

    def cache_info(self):
        return self._cached.cache_info()


__all__ = ["AggregateEngine", "compute_aggregates"]
