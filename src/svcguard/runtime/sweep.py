from __future__ import annotations

import threading
from typing import Optional

from svcguard.core.models import ServiceStatus
from svcguard.host.base import ServiceManager
from svcguard.runtime.contracts import EventKind, GuardianEvent, StopOutcome, SweepReport
from svcguard.runtime.engine import EventCallback, stop_and_verify
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.store.config_store import ConfigStore
from svcguard.utils.diagnostics import ConfigStoreIOError, ServiceOperationError


class StartupSweep:
    """One-shot pass forcing every configured service to stopped before monitoring starts.

    Names that cannot be queried or stopped are removed from the store, the same
    disqualification policy the reconciliation engine applies.
    """

    def __init__(
        self,
        store: ConfigStore,
        manager: ServiceManager,
        tracker: StatusTracker,
        stop_timeout_seconds: float = 10.0,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.store = store
        self.manager = manager
        self.tracker = tracker
        self.stop_timeout_seconds = stop_timeout_seconds
        self.on_event = on_event
        self.cancel = cancel

    def run(self) -> SweepReport:
        report = SweepReport()
        try:
            names = self.store.read_all()
        except ConfigStoreIOError as exc:
            report.error = str(exc)
            self._emit(EventKind.CYCLE_FAILED, f"Startup sweep aborted: {exc}")
            return report

        for name in names:
            if self.cancel is not None and self.cancel.is_set():
                break

            report.checked.append(name)
            try:
                status = self.manager.query(name)
            except ServiceOperationError as exc:
                self._disqualify(StopOutcome.failure(name, exc.reason, exc.message), report)
                continue

            if status != ServiceStatus.RUNNING:
                continue

            self._emit(EventKind.ENFORCING, f"Initial stop: {name}", service_name=name)
            outcome = stop_and_verify(self.manager, name, self.stop_timeout_seconds, cancel=self.cancel)
            if outcome is None:
                break

            if outcome.stopped:
                self.tracker.record(name, ServiceStatus.STOPPED)
                report.stopped.append(name)
                self._emit(EventKind.ENFORCED, f"{name} stopped", service_name=name)
            else:
                self._disqualify(outcome, report)

        return report

    def _disqualify(self, outcome: StopOutcome, report: SweepReport) -> None:
        report.disqualified.append(outcome)
        try:
            self.store.remove_one(outcome.service_name)
        except ConfigStoreIOError as exc:
            report.errors.append(str(exc))
            self._emit(EventKind.CYCLE_FAILED, f"Could not remove {outcome.service_name}: {exc}")
            return

        self._emit(
            EventKind.DISQUALIFIED,
            f"Initial stop of {outcome.service_name} failed ({outcome.detail}); removed from the keep-stopped list",
            service_name=outcome.service_name,
            reason=outcome.reason,
        )

    def _emit(self, kind: EventKind, message: str, **fields) -> None:
        if self.on_event is not None:
            self.on_event(GuardianEvent(kind=kind, message=message, **fields))
