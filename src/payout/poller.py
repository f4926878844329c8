"""Confirmation polling.

PENDING -> CONFIRMED   status reached confirmed (or finalized) without an error
PENDING -> FAILED      status carries an on-chain error
PENDING -> TIMED_OUT   attempt budget spent, or the clock says the timeout passed

TIMED_OUT is "unknown", not "failed": the signature is handed back so the
caller can look it up later.
"""
import asyncio
import json
import logging
import math
import time
from typing import Awaitable, Callable

from payout.constants import COMMITMENT_REACHED, POLL_INTERVAL, ConfirmationState
from payout.errors import ConfirmationTimeoutError, OnChainExecutionError
from payout.logging_config import EventSink
from payout.rpc import LedgerClient

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


def attempt_budget(timeout_ms: int, interval: float = POLL_INTERVAL) -> int:
    return max(1, math.ceil(timeout_ms / (interval * 1000)))


async def wait_for_confirmation(
    client: LedgerClient,
    signature: str,
    timeout_ms: int,
    *,
    events: EventSink,
    sleep: Sleep = asyncio.sleep,
    clock: Clock = time.monotonic,
    interval: float = POLL_INTERVAL,
) -> ConfirmationState:
    attempts = attempt_budget(timeout_ms, interval)
    deadline = clock() + timeout_ms / 1000
    last_status: str | None = None
    events.emit("waiting_for_confirmation", signature=signature, attempts=attempts, timeout_ms=timeout_ms)

    for attempt in range(1, attempts + 1):
        status = await client.signature_status(signature)
        if status is not None:
            if status.err is not None:
                err = status.err if isinstance(status.err, str) else json.dumps(status.err)
                events.emit("transaction_failed", level=logging.ERROR, signature=signature, err=err)
                raise OnChainExecutionError(signature, err)
            last_status = status.confirmation_status
            if last_status in COMMITMENT_REACHED:
                events.emit("transaction_confirmed", signature=signature, status=last_status, attempt=attempt)
                return ConfirmationState.CONFIRMED

        events.emit("confirmation_pending", level=logging.DEBUG, attempt=attempt, status=last_status)
        if attempt == attempts or clock() >= deadline:
            break
        await sleep(interval)

    events.emit("confirmation_timeout", level=logging.WARNING, signature=signature, attempts=attempt)
    raise ConfirmationTimeoutError(signature, attempt, last_status)
