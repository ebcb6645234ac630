"""SheetKV exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class SheetKVError(Exception):
    """Base exception for all SheetKV failures."""


class SheetKVConfigError(SheetKVError):
    """Raised for missing or invalid store configuration."""


class SheetKVInvalidValueError(SheetKVError):
    """Raised when a value cannot be stored."""


class SheetKVInvalidOperationError(SheetKVError):
    """Raised when an operation does not apply to the stored value."""


class SheetKVPathError(SheetKVError):
    """Raised for malformed value paths."""


class SheetKVNotReadyError(SheetKVError):
    """Raised when the cache is read before hydration completes."""


class SheetKVAuthError(SheetKVError):
    """Raised when an authorized client cannot be produced."""


class SheetKVRemoteError(SheetKVError):
    """Raised for remote table failures.

    Attributes:
        transient: Whether retrying the same call may succeed.
    """

    def __init__(self, message: str, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class SheetKVDependencyError(SheetKVError):
    """Raised when an optional runtime dependency is missing."""


class SheetKVLifecycleError(SheetKVError):
    """Raised for invalid store lifecycle transitions."""
