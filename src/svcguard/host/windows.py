from __future__ import annotations

import re
import subprocess
from typing import Dict, List, Optional

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.host.base import CommandServiceManager
from svcguard.utils.diagnostics import FailureReason, HostQueryError, ServiceOperationError

_SERVICE_NAME_PATTERN = re.compile(r"^\s*SERVICE_NAME\s*:\s*(.+?)\s*$")
_STATE_PATTERN = re.compile(r"^\s*STATE\s*:\s*(\d+)")
_FAILED_PATTERN = re.compile(r"FAILED\s+(\d+)")

# Win32 SERVICE_STATUS.dwCurrentState values
_STATE_CODES: Dict[int, ServiceStatus] = {
    1: ServiceStatus.STOPPED,
    4: ServiceStatus.RUNNING,
}

# Any other sc failure code maps to stop_rejected.
ERROR_ACCESS_DENIED = 5
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_NOT_ACTIVE = 1062


def parse_sc_query(output: str) -> List[ServiceSnapshot]:
    """Parse `sc query` output into snapshots (one per SERVICE_NAME block)."""
    snapshots: List[ServiceSnapshot] = []
    current_name: Optional[str] = None

    for line in output.splitlines():
        name_match = _SERVICE_NAME_PATTERN.match(line)
        if name_match:
            current_name = name_match.group(1)
            continue

        state_match = _STATE_PATTERN.match(line)
        if state_match and current_name:
            status = _STATE_CODES.get(int(state_match.group(1)), ServiceStatus.OTHER)
            snapshots.append(ServiceSnapshot(name=current_name, status=status))
            current_name = None

    return snapshots


def sc_error_code(result: subprocess.CompletedProcess) -> int:
    """Return the Win32 error code reported by sc.exe (exit code, or the 'FAILED n' text)."""
    match = _FAILED_PATTERN.search(f"{result.stdout or ''}\n{result.stderr or ''}")
    if match:
        return int(match.group(1))
    return result.returncode


def _failure_reason(code: int) -> FailureReason:
    if code == ERROR_SERVICE_DOES_NOT_EXIST:
        return FailureReason.NOT_FOUND
    if code == ERROR_ACCESS_DENIED:
        return FailureReason.ACCESS_DENIED
    return FailureReason.STOP_REJECTED


def _failure_message(result: subprocess.CompletedProcess) -> str:
    text = (result.stdout or result.stderr or "").strip()
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else f"sc.exe exited with {result.returncode}"


class WindowsServiceManager(CommandServiceManager):
    """Windows Service Control Manager backend driven by sc.exe."""

    backend_name = "windows"
    executable = "sc.exe"

    def enumerate_all(self) -> List[ServiceSnapshot]:
        result = self._execute(
            [self.executable, "query", "type=", "service", "state=", "all", "bufsize=", "262144"]
        )
        if result.returncode != 0:
            raise HostQueryError(_failure_message(result), backend=self.backend_name)
        return parse_sc_query(result.stdout or "")

    def query(self, name: str) -> ServiceStatus:
        result = self._execute_for_service(name, [self.executable, "query", name], FailureReason.NOT_FOUND)
        if result.returncode != 0:
            code = sc_error_code(result)
            reason = FailureReason.ACCESS_DENIED if code == ERROR_ACCESS_DENIED else FailureReason.NOT_FOUND
            raise ServiceOperationError(name, reason, _failure_message(result))

        snapshots = parse_sc_query(result.stdout or "")
        if not snapshots:
            raise ServiceOperationError(name, FailureReason.NOT_FOUND, "no state reported by sc.exe")
        return snapshots[0].status

    def stop(self, name: str) -> None:
        result = self._execute_for_service(name, [self.executable, "stop", name], FailureReason.STOP_REJECTED)
        if result.returncode == 0:
            return

        code = sc_error_code(result)
        if code == ERROR_SERVICE_NOT_ACTIVE:
            # Already stopped between enumeration and the stop request.
            return
        raise ServiceOperationError(name, _failure_reason(code), _failure_message(result))
