from __future__ import annotations

import subprocess
from typing import Dict, List

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.host.base import CommandServiceManager
from svcguard.utils.diagnostics import FailureReason, HostQueryError, ServiceOperationError

_ACTIVE_STATES: Dict[str, ServiceStatus] = {
    "active": ServiceStatus.RUNNING,
    "inactive": ServiceStatus.STOPPED,
    "failed": ServiceStatus.STOPPED,
}

_NOT_FOUND_MARKERS = ("not loaded", "not found", "could not be found", "no such file")
_ACCESS_DENIED_MARKERS = ("access denied", "authentication", "permission denied")


def unit_name(name: str) -> str:
    """Return the systemd unit for a service name (`cron` -> `cron.service`)."""
    return name if name.endswith(".service") else f"{name}.service"


def service_name(unit: str) -> str:
    return unit.removesuffix(".service")


def parse_list_units(output: str) -> List[ServiceSnapshot]:
    """Parse `systemctl list-units --plain --no-legend` rows (UNIT LOAD ACTIVE SUB DESCRIPTION)."""
    snapshots: List[ServiceSnapshot] = []
    for line in output.splitlines():
        fields = line.replace("●", " ").split(None, 4)
        if len(fields) < 3 or not fields[0].endswith(".service"):
            continue
        status = _ACTIVE_STATES.get(fields[2], ServiceStatus.OTHER)
        snapshots.append(ServiceSnapshot(name=service_name(fields[0]), status=status))
    return snapshots


def parse_show_properties(output: str) -> Dict[str, str]:
    """Parse `systemctl show -p ...` KEY=value lines."""
    properties: Dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            properties[key.strip()] = value.strip()
    return properties


def _failure_reason(message: str) -> FailureReason:
    lowered = message.lower()
    if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
        return FailureReason.NOT_FOUND
    if any(marker in lowered for marker in _ACCESS_DENIED_MARKERS):
        return FailureReason.ACCESS_DENIED
    return FailureReason.STOP_REJECTED


def _failure_message(result: subprocess.CompletedProcess) -> str:
    text = (result.stderr or result.stdout or "").strip()
    return text or f"systemctl exited with {result.returncode}"


class SystemdServiceManager(CommandServiceManager):
    """systemd backend driven by systemctl."""

    backend_name = "systemd"
    executable = "systemctl"

    def enumerate_all(self) -> List[ServiceSnapshot]:
        result = self._execute(
            [self.executable, "list-units", "--type=service", "--all", "--no-legend", "--plain", "--no-pager"]
        )
        if result.returncode != 0:
            raise HostQueryError(_failure_message(result), backend=self.backend_name)
        return parse_list_units(result.stdout or "")

    def query(self, name: str) -> ServiceStatus:
        result = self._execute_for_service(
            name,
            [self.executable, "show", unit_name(name), "-p", "LoadState", "-p", "ActiveState", "--no-pager"],
            FailureReason.NOT_FOUND,
        )
        if result.returncode != 0:
            message = _failure_message(result)
            reason = _failure_reason(message)
            if reason == FailureReason.STOP_REJECTED:
                reason = FailureReason.NOT_FOUND
            raise ServiceOperationError(name, reason, message)

        properties = parse_show_properties(result.stdout or "")
        if properties.get("LoadState") == "not-found":
            raise ServiceOperationError(name, FailureReason.NOT_FOUND, f"{unit_name(name)} not found")
        return _ACTIVE_STATES.get(properties.get("ActiveState", ""), ServiceStatus.OTHER)

    def stop(self, name: str) -> None:
        result = self._execute_for_service(
            name,
            [self.executable, "stop", unit_name(name), "--no-ask-password"],
            FailureReason.STOP_REJECTED,
        )
        if result.returncode != 0:
            message = _failure_message(result)
            raise ServiceOperationError(name, _failure_reason(message), message)
