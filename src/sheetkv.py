"""Public SDK surface for SheetKV.

This module provides a stable import path for store users.
It re-exports the store, its typed options, and the error types.
"""

from __future__ import annotations

from core.config import SheetKVConfig
from core.errors import (
    SheetKVAuthError,
    SheetKVConfigError,
    SheetKVDependencyError,
    SheetKVError,
    SheetKVInvalidOperationError,
    SheetKVInvalidValueError,
    SheetKVLifecycleError,
    SheetKVNotReadyError,
    SheetKVPathError,
    SheetKVRemoteError,
)
from core.types import (
    AuthInfo,
    HydrationReport,
    HydrationSnapshot,
    ReplicationPolicy,
    SkippedRow,
    StoreOptions,
)
from remote.google_auth import GoogleOAuthProvider, TokenFile
from remote.protocols import AuthProvider, RemoteTable, RemoteTableOpener
from remote.sheets_table import GspreadTable, GspreadTableOpener
from store.cloud_store import CloudStore
from store.lifecycle import LifecycleState

__all__ = [
    "AuthInfo",
    "AuthProvider",
    "CloudStore",
    "GoogleOAuthProvider",
    "GspreadTable",
    "GspreadTableOpener",
    "HydrationReport",
    "HydrationSnapshot",
    "LifecycleState",
    "RemoteTable",
    "RemoteTableOpener",
    "ReplicationPolicy",
    "SheetKVAuthError",
    "SheetKVConfig",
    "SheetKVConfigError",
    "SheetKVDependencyError",
    "SheetKVError",
    "SheetKVInvalidOperationError",
    "SheetKVInvalidValueError",
    "SheetKVLifecycleError",
    "SheetKVNotReadyError",
    "SheetKVPathError",
    "SheetKVRemoteError",
    "SkippedRow",
    "StoreOptions",
    "TokenFile",
]
