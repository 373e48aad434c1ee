from __future__ import annotations

import subprocess
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.utils.diagnostics import FailureReason, HostQueryError, ServiceOperationError

RunCallable = Callable[..., subprocess.CompletedProcess]


class ServiceManager(ABC):
    """Capability boundary over the host's service subsystem."""

    backend_name = "abstract"

    def __init__(
        self,
        status_poll_seconds: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.status_poll_seconds = status_poll_seconds
        self.clock = clock

    @abstractmethod
    def enumerate_all(self) -> List[ServiceSnapshot]:
        """Return every service with its current status; raises HostQueryError."""

    @abstractmethod
    def query(self, name: str) -> ServiceStatus:
        """Return the current status of one service; raises ServiceOperationError."""

    @abstractmethod
    def stop(self, name: str) -> None:
        """Request a stop; raises ServiceOperationError."""

    def await_status(
        self,
        name: str,
        target: ServiceStatus,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> ServiceStatus:
        """Poll until `target` is reached, `timeout` elapses, or `cancel` is set.

        Returns the last observed status and never raises: a failed query during
        polling counts as ServiceStatus.OTHER.
        """
        waiter = cancel or threading.Event()
        deadline = self.clock() + timeout
        while True:
            status = self._safe_query(name)
            if status == target:
                return status

            remaining = deadline - self.clock()
            if remaining <= 0 or waiter.is_set():
                return status

            if waiter.wait(min(self.status_poll_seconds, remaining)):
                return self._safe_query(name)

    def _safe_query(self, name: str) -> ServiceStatus:
        try:
            return self.query(name)
        except ServiceOperationError:
            return ServiceStatus.OTHER


class CommandServiceManager(ServiceManager):
    """Service manager driven by a host command-line tool."""

    def __init__(
        self,
        run: RunCallable = subprocess.run,
        status_poll_seconds: float = 0.25,
        command_timeout_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(status_poll_seconds=status_poll_seconds, clock=clock)
        self.run = run
        self.command_timeout_seconds = command_timeout_seconds

    def _execute(self, command: Sequence[str]) -> subprocess.CompletedProcess:
        """Run a host command; launch failures surface as HostQueryError."""
        try:
            return self.run(
                list(command),
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
                timeout=self.command_timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise HostQueryError(f"'{command[0]}' is not available: {exc}", backend=self.backend_name) from exc
        except subprocess.TimeoutExpired as exc:
            raise HostQueryError(
                f"'{' '.join(command)}' timed out after {self.command_timeout_seconds}s",
                backend=self.backend_name,
            ) from exc
        except OSError as exc:
            raise HostQueryError(str(exc), backend=self.backend_name) from exc

    def _execute_for_service(
        self,
        name: str,
        command: Sequence[str],
        reason: FailureReason,
    ) -> subprocess.CompletedProcess:
        """Like `_execute`, but failures to launch the tool are scoped to `name`."""
        try:
            return self._execute(command)
        except HostQueryError as exc:
            raise ServiceOperationError(name, reason, exc.message) from exc
