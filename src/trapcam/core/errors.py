"""
Error taxonomy shared by the reconciliation engine and its collaborators.

Callers at the HTTP edge map these onto status codes; inside the engine the
only exceptions ever swallowed are recoverable daemon errors raised during
best-effort camera updates.
"""

from __future__ import annotations


class TrapcamError(RuntimeError):
    """Base class for all camera trap failures."""


class SettingsValidationError(TrapcamError):
    """Raised when a settings update violates an invariant. Nothing was mutated."""


class ConsistencyError(TrapcamError):
    """Raised when two stores disagree and neither side can be trusted."""


class StoreUnavailable(TrapcamError):
    """Raised when the persisted settings document cannot be read or written."""


class CommandFailed(TrapcamError):
    """Raised when a system command exits non-zero, writes to stderr or times out."""


class UnsupportedOnPlatform(TrapcamError):
    """Raised when the host lacks the command required for an operation."""


class DaemonError(TrapcamError):
    """Failure talking to the camera daemon."""

    recoverable = False

    def is_recoverable(self) -> bool:
        return self.recoverable


class DaemonConnectionRefused(DaemonError):
    """The daemon process is not reachable (not running or timed out)."""

    recoverable = True


class RemoteRejected(DaemonError):
    """The daemon answered but rejected the request or sent garbage."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


__all__ = [
    "CommandFailed",
    "ConsistencyError",
    "DaemonConnectionRefused",
    "DaemonError",
    "RemoteRejected",
    "SettingsValidationError",
    "StoreUnavailable",
    "TrapcamError",
    "UnsupportedOnPlatform",
]
