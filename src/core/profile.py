"""YAML store profiles.

This module loads a store profile file and layers it over env config.
It lets the CLI switch between spreadsheets without exporting variables.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Mapping, cast

from core.config import SheetKVConfig, parse_positive_float, parse_positive_int
from core.errors import SheetKVConfigError, SheetKVDependencyError

_STRING_FIELDS = ("spreadsheet_key", "table_name")
_PATH_FIELDS = ("credentials_path", "token_path")
_SUPPORTED_FIELDS = _STRING_FIELDS + _PATH_FIELDS + (
    "save_token",
    "remote_timeout",
    "retry_attempts",
    "retry_backoff",
)


def load_profile(profile_path: str, base: SheetKVConfig) -> SheetKVConfig:
    """Load a YAML profile and apply it over a base config.

    Args:
        profile_path: File path to the YAML profile.
        base: Config providing values the profile omits.

    Returns:
        Config with profile values applied.

    Raises:
        SheetKVDependencyError: If PyYAML is unavailable.
        SheetKVConfigError: If the file is missing, invalid, or has unknown fields.
    """
    payload = _load_yaml_mapping(profile_path)
    unknown_fields = sorted(set(payload) - set(_SUPPORTED_FIELDS))
    if unknown_fields:
        raise SheetKVConfigError(
            f"Unsupported profile fields: {', '.join(unknown_fields)}. "
            f"Supported fields: {', '.join(_SUPPORTED_FIELDS)}."
        )
    overrides: dict[str, object] = {}
    for field_name in _STRING_FIELDS:
        if field_name in payload:
            overrides[field_name] = _expect_string(payload[field_name], field_name)
    for field_name in _PATH_FIELDS:
        if field_name in payload:
            raw_path = _expect_string(payload[field_name], field_name)
            overrides[field_name] = Path(raw_path).expanduser().resolve()
    if "save_token" in payload:
        save_token = payload["save_token"]
        if not isinstance(save_token, bool):
            raise SheetKVConfigError(
                f"Invalid profile field save_token: expected true/false, got {save_token!r}."
            )
        overrides["save_token"] = save_token
    if "remote_timeout" in payload:
        overrides["remote_timeout"] = parse_positive_float(
            str(payload["remote_timeout"]), "remote_timeout"
        )
    if "retry_attempts" in payload:
        overrides["retry_attempts"] = parse_positive_int(
            str(payload["retry_attempts"]), "retry_attempts"
        )
    if "retry_backoff" in payload:
        overrides["retry_backoff"] = parse_positive_float(
            str(payload["retry_backoff"]), "retry_backoff"
        )
    return replace(base, **overrides)


def _load_yaml_mapping(profile_path: str) -> Mapping[str, object]:
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as error:  # pragma: no cover - dependency failure
        raise SheetKVDependencyError(
            "YAML profile support requires PyYAML. Install with 'pip install pyyaml'."
        ) from error
    profile_file = Path(profile_path).expanduser().resolve()
    if not profile_file.exists():
        raise SheetKVConfigError(
            f"Profile file does not exist at {profile_file}. Provide a valid YAML file path."
        )
    try:
        payload = cast(object, yaml.safe_load(profile_file.read_text(encoding="utf-8")))
    except OSError as error:
        raise SheetKVConfigError(
            f"Failed to read profile at {profile_file}: {error}. Check file permissions."
        ) from error
    except yaml.YAMLError as error:
        raise SheetKVConfigError(
            f"Failed to parse YAML profile at {profile_file}: {error}. Fix YAML syntax and retry."
        ) from error
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise SheetKVConfigError(
            f"Invalid profile at {profile_file}: expected a mapping at top level."
        )
    return {str(key): value for key, value in payload.items()}


def _expect_string(value: object, field_name: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    raise SheetKVConfigError(
        f"Invalid profile field {field_name}: expected non-empty string, got {value!r}."
    )
