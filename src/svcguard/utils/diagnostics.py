from enum import Enum
from pathlib import Path
from typing import Optional


class FailureReason(str, Enum):
    """Why a single-service operation could not be carried out."""

    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    STOP_REJECTED = "stop_rejected"
    TIMEOUT = "timeout"


class SvcGuardError(Exception):
    """Base class for every error raised by svcguard."""


class HostQueryError(SvcGuardError):
    """
    Raised when the host's service manager cannot be queried as a whole.
    Aborts the current reconciliation cycle only.
    """
    def __init__(self, message: str, backend: Optional[str] = None):
        self.message = message
        self.backend = backend
        ctx = f" ({backend})" if backend else ""
        super().__init__(f"Host query failed{ctx}: {message}")


class ServiceOperationError(SvcGuardError):
    """
    Raised when an operation on one named service fails. Scoped to that
    service; never aborts a cycle for the others.
    """
    def __init__(self, service_name: str, reason: FailureReason, message: str = ""):
        self.service_name = service_name
        self.reason = reason
        self.message = message or reason.value.replace("_", " ")
        super().__init__(f"Service '{service_name}' {reason.value}: {self.message}")


class ConfigStoreIOError(SvcGuardError):
    """Raised when the keep-stopped list cannot be read or written."""
    def __init__(self, path: Path, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Config store I/O error at {path}: {message}")
