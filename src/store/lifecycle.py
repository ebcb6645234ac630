"""Store lifecycle and readiness signal.

This module tracks the authorize-then-hydrate state machine and exposes
a one-shot readiness barrier carrying the hydrated snapshot.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Generator

from core.errors import SheetKVLifecycleError
from core.types import HydrationSnapshot

_TRANSITIONS = {
    "uninitialized": ("authorizing",),
    "authorizing": ("hydrating", "failed"),
    "hydrating": ("ready", "failed"),
    "ready": (),
    "failed": (),
}


class LifecycleState(str, Enum):
    """Store lifecycle states; READY and FAILED are terminal."""

    UNINITIALIZED = "uninitialized"
    AUTHORIZING = "authorizing"
    HYDRATING = "hydrating"
    READY = "ready"
    FAILED = "failed"


class Readiness:
    """One-shot barrier fulfilled with the hydration snapshot.

    The underlying future is created on first use so the barrier can be
    built outside a running event loop. Awaiting the barrier after a
    failed initialization raises the initialization error.
    """

    def __init__(self) -> None:
        self._state = LifecycleState.UNINITIALIZED
        self._future: asyncio.Future[HydrationSnapshot] | None = None

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_fulfilled(self) -> bool:
        """Whether hydration completed."""
        return self._state is LifecycleState.READY

    @property
    def future(self) -> asyncio.Future[HydrationSnapshot]:
        """Future resolving to the hydration snapshot."""
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        return self._future

    def advance(self, state: LifecycleState) -> None:
        """Move to the next non-terminal state.

        Raises:
            SheetKVLifecycleError: If the transition is not allowed.
        """
        if state.value not in _TRANSITIONS[self._state.value]:
            raise SheetKVLifecycleError(
                f"Invalid lifecycle transition {self._state.value} -> {state.value}."
            )
        self._state = state

    def fulfill(self, snapshot: HydrationSnapshot) -> None:
        """Mark the store ready; allowed exactly once."""
        self.advance(LifecycleState.READY)
        self.future.set_result(snapshot)

    def fail(self, error: BaseException) -> None:
        """Mark initialization as failed; readiness never fulfills."""
        self.advance(LifecycleState.FAILED)
        self.future.set_exception(error)

    def __await__(self) -> Generator[Any, None, HydrationSnapshot]:
        return self.future.__await__()
