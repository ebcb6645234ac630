"""Shared typed models.

This module defines immutable data models used by the store, the
remote adapters, and the CLI to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, Union

from core.constants import (
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    MAX_RETRY_BACKOFF_SECONDS,
)

Key = Union[str, int]
Value = Any
PathToken = Union[str, int]
PathSpec = Union[str, Sequence[PathToken]]


@dataclass(frozen=True)
class StoreOptions:
    """Store construction options.

    Attributes:
        name: Remote table (worksheet) name.
        key: Spreadsheet key holding the table.
        save_token: Whether a newly exchanged token is persisted.
    """

    name: str | None
    key: str | None
    save_token: bool = False


@dataclass(frozen=True)
class AuthInfo:
    """Authorization inputs for a store.

    Attributes:
        auth: Already authorized client; skips the auth provider.
        credentials: OAuth client secret as JSON text or mapping.
        token: Previously issued token as JSON text or mapping.
    """

    auth: Any = None
    credentials: str | Mapping[str, Any] | None = None
    token: str | Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ReplicationPolicy:
    """Timeout and retry settings for remote calls.

    Attributes:
        timeout_seconds: Per-attempt timeout; None disables it.
        max_attempts: Total attempts for transient failures.
        backoff_seconds: Delay before the first retry, doubled per retry.
        max_backoff_seconds: Upper bound on a single retry delay.
    """

    timeout_seconds: float | None = DEFAULT_REMOTE_TIMEOUT_SECONDS
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    max_backoff_seconds: float = MAX_RETRY_BACKOFF_SECONDS

    def delay_for(self, attempt: int) -> float:
        """Return the backoff delay after a failed attempt (1-based)."""
        return min(self.backoff_seconds * (2 ** (attempt - 1)), self.max_backoff_seconds)


@dataclass(frozen=True)
class SkippedRow:
    """A remote row that could not be decoded during hydration."""

    row_number: int
    reason: str


@dataclass(frozen=True)
class HydrationReport:
    """Summary of one hydration pass.

    Attributes:
        row_count: Data rows fetched, header excluded.
        loaded_count: Rows decoded into the cache.
        skipped_rows: Rows left out of the cache, in row order.
    """

    row_count: int
    loaded_count: int
    skipped_rows: tuple[SkippedRow, ...] = ()


@dataclass(frozen=True)
class HydrationSnapshot:
    """Value carried by store readiness.

    Attributes:
        keys: Hydrated keys in row order.
        values: Hydrated key to value mapping.
        report: Hydration report.
    """

    keys: tuple[Key, ...]
    values: Mapping[Key, Value] = field(default_factory=dict)
    report: HydrationReport = field(default_factory=lambda: HydrationReport(0, 0))
