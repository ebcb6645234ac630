"""Core constants used across SheetKV modules.

This module centralizes the remote table layout and runtime defaults.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

HEADER_ROW_COUNT = 1
FIRST_DATA_ROW = HEADER_ROW_COUNT + 1
KEY_COLUMN = 1
VALUE_COLUMN = 2
DEFAULT_TOKEN_PATH = Path("token.json")
DEFAULT_REMOTE_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BACKOFF_SECONDS = 0.5
MAX_RETRY_BACKOFF_SECONDS = 8.0
TRANSIENT_HTTP_STATUSES = (429, 500, 502, 503, 504)
DRIVE_SCOPES = ("https://www.googleapis.com/auth/drive",)
OAUTH_CLIENT_SECTIONS = ("installed", "web")
TRUTHY_ENV_VALUES = ("1", "true", "yes", "on")
FALSY_ENV_VALUES = ("0", "false", "no", "off", "")
