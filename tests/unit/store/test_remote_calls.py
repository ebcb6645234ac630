"""Unit tests for remote call timeout and retry handling."""

from __future__ import annotations

import asyncio

import pytest

from core.errors import SheetKVRemoteError
from core.types import ReplicationPolicy
from store.remote_calls import call_remote

_POLICY = ReplicationPolicy(timeout_seconds=0.05, max_attempts=3, backoff_seconds=0.0)


class _FlakyCall:
    def __init__(self, failures: list[BaseException], delay_seconds: float = 0.0) -> None:
        self.failures = failures
        self.delay_seconds = delay_seconds
        self.attempts = 0

    async def __call__(self) -> str:
        self.attempts += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_transient_errors_are_retried() -> None:
    """Transient adapter errors should be retried until success."""
    call = _FlakyCall([SheetKVRemoteError("busy", transient=True)] * 2)

    result = asyncio.run(call_remote(call, action="fetch_all", policy=_POLICY, idempotent=True))

    assert result == "ok"
    assert call.attempts == 3


def test_retries_stop_at_max_attempts() -> None:
    """The last transient failure should propagate once attempts run out."""
    call = _FlakyCall([SheetKVRemoteError("busy", transient=True)] * 5)

    with pytest.raises(SheetKVRemoteError, match="busy"):
        asyncio.run(call_remote(call, action="fetch_all", policy=_POLICY, idempotent=True))

    assert call.attempts == 3


def test_permanent_errors_are_not_retried() -> None:
    """Non-transient errors should fail on the first attempt."""
    call = _FlakyCall([SheetKVRemoteError("forbidden")])

    with pytest.raises(SheetKVRemoteError, match="forbidden"):
        asyncio.run(call_remote(call, action="update_cell", policy=_POLICY, idempotent=True))

    assert call.attempts == 1


@pytest.mark.parametrize(("idempotent", "attempts"), [(True, 3), (False, 1)])
def test_timeouts_retry_only_idempotent_calls(idempotent: bool, attempts: int) -> None:
    """Timed-out calls should be retried only when repeating them is harmless."""
    call = _FlakyCall([], delay_seconds=1.0)

    with pytest.raises(SheetKVRemoteError, match="timed out"):
        asyncio.run(call_remote(call, action="append_row", policy=_POLICY, idempotent=idempotent))

    assert call.attempts == attempts


def test_backoff_delay_is_capped() -> None:
    """Backoff should double per attempt up to the configured cap."""
    policy = ReplicationPolicy(backoff_seconds=1.0, max_backoff_seconds=3.0)

    assert [policy.delay_for(attempt) for attempt in (1, 2, 3)] == [1.0, 2.0, 3.0]
