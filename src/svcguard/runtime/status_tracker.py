from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.core.naming import service_key


class StatusTracker:
    """Last-observed status per service, covering every enumerated service.

    Owned by a single reconciliation engine and never shared across threads.
    Entries are never pruned; services that vanish simply stop being updated.
    """

    def __init__(self) -> None:
        self._history: Dict[str, ServiceStatus] = {}

    def previous(self, name: str) -> Optional[ServiceStatus]:
        return self._history.get(service_key(name))

    def record(self, name: str, status: ServiceStatus) -> None:
        self._history[service_key(name)] = status

    def detect_drift(self, snapshot: Iterable[ServiceSnapshot]) -> List[str]:
        """Return names whose previous status was running and current status is not."""
        drifted: List[str] = []
        for entry in snapshot:
            if self.previous(entry.name) == ServiceStatus.RUNNING and not entry.is_running:
                drifted.append(entry.name)
        return drifted

    def update(self, snapshot: Iterable[ServiceSnapshot]) -> None:
        for entry in snapshot:
            self.record(entry.name, entry.status)

    def seed(self, snapshot: Iterable[ServiceSnapshot]) -> None:
        """Record an initial snapshot without reporting drift."""
        self.update(snapshot)

    def __len__(self) -> int:
        return len(self._history)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and service_key(name) in self._history
