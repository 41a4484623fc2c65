"""
Per-record decryption state machine.

Each record moves ENCRYPTED -> REQUESTING -> DECRYPTED | FAILED, and FAILED
re-enters REQUESTING on retry with the attempt number incremented. The claim
(state check, request bookkeeping and the REQUESTING transition) happens
synchronously inside `request_decrypt`, before anything is awaited, so two
calls for the same id can never both reach the oracle. Requests for different
ids are independent tasks.

Oracle failures are absorbed: they end up as a FAILED record with a
FailureReason, never as an exception raised to the caller.

Usage:
    coordinator = DecryptionCoordinator(store, oracle, reveal_timeout=30.0)
    outcome = await coordinator.request_decrypt(record_id, authorization=signature)
"""

from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Dict, Optional, Set, Tuple

from gradevault.collaborators.abstract import RevealOracle
from gradevault.domain.models import (
    MAX_SCORE,
    MIN_SCORE,
    DecryptionOutcome,
    DecryptionRequest,
    DecryptionState,
    FailureReason,
    GradeRecord,
    RequestStatus,
)
from gradevault.errors import CoordinatorClosed, OracleFailure
from gradevault.store import RecordStore
from gradevault.utils.logging import get_logger

log = get_logger(__name__)


def _outcome_for(
    record: GradeRecord, attempt: int, reason: Optional[FailureReason] = None
) -> DecryptionOutcome:
    return DecryptionOutcome(
        record_id=record.id,
        state=record.decryption_state,
        score=record.plaintext_score,
        failure_reason=reason,
        attempt=attempt,
    )


class DecryptionCoordinator:
    """
    Drives reveal requests against the oracle and records their results in
    the store.

    Parameters
    ----------
    store : RecordStore
        Holder of the records; the coordinator never mutates records itself.
    oracle : RevealOracle
        Reveal collaborator.
    reveal_timeout : float | None
        Seconds to wait for a reveal before marking the attempt ORACLE_TIMEOUT.
        The oracle call is not cancelled; a late answer is discarded.
    """

    def __init__(
        self,
        store: RecordStore,
        oracle: RevealOracle,
        reveal_timeout: Optional[float] = 30.0,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._timeout = reveal_timeout
        self._requests: Dict[int, DecryptionRequest] = {}
        self._futures: Dict[int, "asyncio.Future[DecryptionOutcome]"] = {}
        self._attempts: Dict[int, int] = {}
        self._failures: Dict[int, FailureReason] = {}
        self._tasks: Set["asyncio.Future[Any]"] = set()
        self._closed = False

    # --------------- Queries ---------------
    @property
    def closed(self) -> bool:
        return self._closed

    def state(self, record_id: int) -> DecryptionState:
        return self._store.get(record_id).decryption_state

    def attempt(self, record_id: int) -> int:
        """Number of the latest attempt for `record_id` (0 if never requested)."""
        return self._attempts.get(record_id, 0)

    def failure_reason(self, record_id: int) -> Optional[FailureReason]:
        """Reason of the last failure, while the record is FAILED."""
        if self.state(record_id) is not DecryptionState.FAILED:
            return None
        return self._failures.get(record_id)

    def in_flight(self) -> Tuple[DecryptionRequest, ...]:
        return tuple(request.model_copy() for request in self._requests.values())

    # --------------- Commands ---------------
    def request_decrypt(
        self, record_id: int, authorization: Any = None
    ) -> "asyncio.Future[DecryptionOutcome]":
        """
        Start (or join) the reveal of `record_id` and return an awaitable outcome.

        Must be called from a running event loop. Raises UnknownRecord when the
        id is not loaded and CoordinatorClosed when a new request would be
        started after `close()`.
        """
        loop = asyncio.get_running_loop()
        record = self._store.get(record_id)
        state = record.decryption_state

        if state is DecryptionState.DECRYPTED:
            log.debug("Record already decrypted; returning cached score", extra={"record_id": record_id})
            done = loop.create_future()
            done.set_result(_outcome_for(record, self.attempt(record_id)))
            return done

        if state is DecryptionState.REQUESTING:
            pending = self._futures.get(record_id)
            if pending is not None:
                log.debug("Joining in-flight decryption", extra={"record_id": record_id})
                return asyncio.shield(pending)
            # Claimed by a coordinator that has since been torn down.
            return self._wait_for_settlement(record_id, loop)

        if self._closed:
            raise CoordinatorClosed("decryption coordinator is closed")

        attempt = self.attempt(record_id) + 1
        request = DecryptionRequest(record_id=record_id, attempt=attempt)
        future: "asyncio.Future[DecryptionOutcome]" = loop.create_future()
        self._attempts[record_id] = attempt
        self._requests[record_id] = request
        self._futures[record_id] = future
        self._store.mark_requesting(record_id)
        log.info(
            "Decryption requested",
            extra={"record_id": record_id, "attempt": attempt, "retry": state is DecryptionState.FAILED},
        )

        task = loop.create_task(
            self._run(request, record.ciphertext_handle, authorization),
            name=f"reveal-{record_id}-{attempt}",
        )
        self._track(task)
        return asyncio.shield(future)

    def close(self) -> None:
        """
        Stop accepting new requests. In-flight requests still complete and
        still update the store.
        """
        if self._closed:
            return
        self._closed = True
        log.info("Decryption coordinator closed", extra={"in_flight": len(self._requests)})

    async def drain(self) -> None:
        """Wait until every reveal started by this coordinator has finished."""
        while self._tasks:
            await asyncio.wait(set(self._tasks))

    # --------------- Internal ---------------
    def _track(self, task: "asyncio.Future[Any]") -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _wait_for_settlement(
        self, record_id: int, loop: asyncio.AbstractEventLoop
    ) -> "asyncio.Future[DecryptionOutcome]":
        waiter: "asyncio.Future[DecryptionOutcome]" = loop.create_future()

        def _listener(store: RecordStore) -> None:
            record = store.get(record_id)
            if record.decryption_state is DecryptionState.REQUESTING or waiter.done():
                return
            unsubscribe()
            waiter.set_result(_outcome_for(record, self.attempt(record_id)))

        unsubscribe = self._store.subscribe(_listener)
        return waiter

    async def _run(self, request: DecryptionRequest, ciphertext_handle: str, authorization: Any) -> None:
        call = asyncio.ensure_future(self._oracle.reveal(ciphertext_handle, authorization))
        try:
            done, _ = await asyncio.wait({call}, timeout=self._timeout)
        except asyncio.CancelledError:
            call.cancel()
            self._settle(request, failure=FailureReason.ORACLE_ERROR, detail="reveal task cancelled")
            raise

        if not done:
            call.add_done_callback(partial(self._complete, request))
            self._track(call)
            self._settle(
                request,
                failure=FailureReason.ORACLE_TIMEOUT,
                detail=f"no answer within {self._timeout}s",
            )
            return
        self._complete(request, call)

    def _complete(self, request: DecryptionRequest, call: "asyncio.Future[int]") -> None:
        if call.cancelled():
            # the oracle itself gave up; the record must not stay REQUESTING
            self._settle(request, failure=FailureReason.ORACLE_ERROR, detail="reveal cancelled")
            return
        try:
            score = call.result()
        except OracleFailure as exc:
            self._settle(request, failure=exc.reason, detail=str(exc))
        except Exception as exc:  # noqa: BLE001 - any oracle crash is a retryable failure
            log.exception(
                "Oracle raised an unexpected error",
                extra={"record_id": request.record_id, "attempt": request.attempt},
            )
            self._settle(request, failure=FailureReason.ORACLE_ERROR, detail=repr(exc))
        else:
            if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
                self._settle(
                    request,
                    failure=FailureReason.ORACLE_ERROR,
                    detail=f"plaintext out of range: {score!r}",
                )
            else:
                self._settle(request, score=score)

    def _settle(
        self,
        request: DecryptionRequest,
        *,
        score: Optional[int] = None,
        failure: Optional[FailureReason] = None,
        detail: str = "",
    ) -> bool:
        """
        Apply a terminal result if `request` is still the current attempt.

        Returns False when the completion is stale and was discarded.
        """
        record_id = request.record_id
        current = self._requests.get(record_id)
        if (
            current is None
            or current.attempt != request.attempt
            or request.status is not RequestStatus.PENDING
        ):
            log.info(
                "Discarding stale decryption completion",
                extra={
                    "record_id": record_id,
                    "attempt": request.attempt,
                    "current_attempt": current.attempt if current else None,
                },
            )
            return False

        del self._requests[record_id]
        future = self._futures.pop(record_id)

        if failure is None:
            request.status = RequestStatus.SUCCEEDED
            self._failures.pop(record_id, None)
            record = self._store.apply_decryption(record_id, score)  # type: ignore[arg-type]
            log.info("Decryption succeeded", extra={"record_id": record_id, "attempt": request.attempt})
        else:
            request.status = RequestStatus.FAILED
            self._failures[record_id] = failure
            record = self._store.mark_failed(record_id)
            log.warning(
                "Decryption failed",
                extra={
                    "record_id": record_id,
                    "attempt": request.attempt,
                    "reason": failure.value,
                    "detail": detail,
                },
            )

        if not future.done():
            future.set_result(_outcome_for(record, request.attempt, failure))
        return True


__all__ = ["DecryptionCoordinator"]
