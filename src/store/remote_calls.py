"""Timeout and bounded retry for remote table calls.

This module wraps each remote call with a per-attempt timeout and
retries transient failures with exponential backoff.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

from core.errors import SheetKVRemoteError
from core.logging_config import get_logger
from core.types import ReplicationPolicy

_LOGGER = get_logger(__name__)

T = TypeVar("T")


async def call_remote(
    operation: Callable[[], Awaitable[T]],
    *,
    action: str,
    policy: ReplicationPolicy,
    idempotent: bool,
) -> T:
    """Run a remote call under the replication policy.

    Adapter errors flagged transient are always retried. Timeouts are
    retried only for idempotent calls, since a timed-out append or row
    deletion may already have been applied remotely.

    Args:
        operation: Factory producing a fresh awaitable per attempt.
        action: Call name used in logs and errors.
        policy: Timeout and retry settings.
        idempotent: Whether repeating the call is harmless.

    Returns:
        The call result.

    Raises:
        SheetKVRemoteError: When attempts are exhausted or the failure
            is not retryable.
    """
    attempt = 1
    while True:
        try:
            return await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
        except asyncio.TimeoutError as error:
            failure = SheetKVRemoteError(
                f"Remote {action} timed out after {policy.timeout_seconds}s.",
                transient=idempotent,
            )
            failure.__cause__ = error
        except SheetKVRemoteError as error:
            failure = error
        if not failure.transient or attempt >= policy.max_attempts:
            raise failure
        delay = policy.delay_for(attempt)
        _LOGGER.warning(
            "remote_call_retry",
            action=action,
            attempt=attempt,
            max_attempts=policy.max_attempts,
            delay_seconds=delay,
            error=str(failure),
        )
        await asyncio.sleep(delay)
        attempt += 1
