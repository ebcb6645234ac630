"""Runtime configuration model for SheetKV.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_TOKEN_PATH,
    FALSY_ENV_VALUES,
    TRUTHY_ENV_VALUES,
)
from core.errors import SheetKVConfigError
from core.types import ReplicationPolicy, StoreOptions


@dataclass(frozen=True)
class SheetKVConfig:
    """Validated runtime configuration.

    Attributes:
        spreadsheet_key: Key of the spreadsheet holding the table.
        table_name: Worksheet name used as the key-value table.
        credentials_path: OAuth client secret JSON file.
        token_path: Token file read at startup and written on save.
        save_token: Whether a newly exchanged token is persisted.
        remote_timeout: Per-call remote timeout in seconds.
        retry_attempts: Total attempts for transient remote failures.
        retry_backoff: Initial retry delay in seconds.
    """

    spreadsheet_key: str | None
    table_name: str | None
    credentials_path: Path | None
    token_path: Path
    save_token: bool
    remote_timeout: float
    retry_attempts: int
    retry_backoff: float

    @classmethod
    def from_env(cls) -> "SheetKVConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            SheetKVConfigError: If environment values are invalid.
        """
        credentials_value = os.getenv("SHEETKV_CREDENTIALS_PATH")
        token_value = os.getenv("SHEETKV_TOKEN_PATH", str(DEFAULT_TOKEN_PATH))
        return cls(
            spreadsheet_key=os.getenv("SHEETKV_SPREADSHEET_KEY") or None,
            table_name=os.getenv("SHEETKV_TABLE_NAME") or None,
            credentials_path=_resolve_path(credentials_value) if credentials_value else None,
            token_path=_resolve_path(token_value),
            save_token=parse_bool(os.getenv("SHEETKV_SAVE_TOKEN", ""), "SHEETKV_SAVE_TOKEN"),
            remote_timeout=parse_positive_float(
                os.getenv("SHEETKV_REMOTE_TIMEOUT", str(DEFAULT_REMOTE_TIMEOUT_SECONDS)),
                "SHEETKV_REMOTE_TIMEOUT",
            ),
            retry_attempts=parse_positive_int(
                os.getenv("SHEETKV_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS)),
                "SHEETKV_RETRY_ATTEMPTS",
            ),
            retry_backoff=parse_positive_float(
                os.getenv("SHEETKV_RETRY_BACKOFF", str(DEFAULT_RETRY_BACKOFF_SECONDS)),
                "SHEETKV_RETRY_BACKOFF",
            ),
        )

    def store_options(self) -> StoreOptions:
        """Return store construction options from this config."""
        return StoreOptions(
            name=self.table_name,
            key=self.spreadsheet_key,
            save_token=self.save_token,
        )

    def replication_policy(self) -> ReplicationPolicy:
        """Return the remote call policy from this config."""
        return ReplicationPolicy(
            timeout_seconds=self.remote_timeout,
            max_attempts=self.retry_attempts,
            backoff_seconds=self.retry_backoff,
        )


def parse_bool(raw_value: str, field_name: str) -> bool:
    """Parse a boolean flag value.

    Args:
        raw_value: Raw string value.
        field_name: Setting name used in error messages.

    Returns:
        Parsed boolean.

    Raises:
        SheetKVConfigError: If value is not a recognized flag.
    """
    normalized = raw_value.strip().lower()
    if normalized in TRUTHY_ENV_VALUES:
        return True
    if normalized in FALSY_ENV_VALUES:
        return False
    raise SheetKVConfigError(
        f"Invalid {field_name} value: expected one of "
        f"{', '.join(TRUTHY_ENV_VALUES + FALSY_ENV_VALUES[:-1])}, got '{raw_value}'."
    )


def parse_positive_int(raw_value: str, field_name: str) -> int:
    """Parse a strictly positive integer setting.

    Raises:
        SheetKVConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise SheetKVConfigError(
            f"Invalid {field_name} value: expected integer, got '{raw_value}'. "
            f"Set {field_name} to a positive whole number."
        ) from error
    if value < 1:
        raise SheetKVConfigError(
            f"Invalid {field_name} value: expected at least 1, got {value}."
        )
    return value


def parse_positive_float(raw_value: str, field_name: str) -> float:
    """Parse a strictly positive number of seconds.

    Raises:
        SheetKVConfigError: If value is not a positive number.
    """
    try:
        value = float(raw_value)
    except ValueError as error:
        raise SheetKVConfigError(
            f"Invalid {field_name} value: expected number, got '{raw_value}'. "
            f"Set {field_name} to a positive number of seconds."
        ) from error
    if value <= 0:
        raise SheetKVConfigError(
            f"Invalid {field_name} value: expected a positive number, got {value}."
        )
    return value


def _resolve_path(raw_value: str) -> Path:
    return Path(raw_value).expanduser().resolve()
