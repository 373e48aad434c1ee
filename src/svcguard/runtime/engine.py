from __future__ import annotations

import threading
from typing import Callable, List, Optional

from svcguard.core.models import ServiceStatus
from svcguard.core.naming import service_key
from svcguard.host.base import ServiceManager
from svcguard.runtime.contracts import CycleReport, EventKind, GuardianEvent, StopOutcome
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.store.config_store import ConfigStore
from svcguard.utils.diagnostics import (
    ConfigStoreIOError,
    FailureReason,
    HostQueryError,
    ServiceOperationError,
)

EventCallback = Callable[[GuardianEvent], None]


def stop_and_verify(
    manager: ServiceManager,
    name: str,
    timeout: float,
    cancel: Optional[threading.Event] = None,
) -> Optional[StopOutcome]:
    """Stop `name` and wait for it to reach STOPPED.

    Returns None when `cancel` interrupted the wait before the service stopped,
    so callers do not mistake a shutdown for an enforcement failure.
    """
    try:
        manager.stop(name)
    except ServiceOperationError as exc:
        return StopOutcome.failure(name, exc.reason, exc.message)

    status = manager.await_status(name, ServiceStatus.STOPPED, timeout, cancel=cancel)
    if status == ServiceStatus.STOPPED:
        return StopOutcome.success(name)

    if cancel is not None and cancel.is_set():
        return None

    return StopOutcome.failure(
        name,
        FailureReason.TIMEOUT,
        f"status is '{status.value}' after {timeout:g}s",
    )


class ReconciliationEngine:
    """Per-cycle drift detection and keep-stopped enforcement.

    Cycle order is fixed and must not be rearranged:
    read targets and snapshot -> detect drift -> update history ->
    append drift to the store -> enforce against the cycle-start targets.
    """

    def __init__(
        self,
        store: ConfigStore,
        manager: ServiceManager,
        tracker: Optional[StatusTracker] = None,
        stop_timeout_seconds: float = 10.0,
        on_event: Optional[EventCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.store = store
        self.manager = manager
        self.tracker = tracker or StatusTracker()
        self.stop_timeout_seconds = stop_timeout_seconds
        self.on_event = on_event
        self.cancel = cancel

    def run_cycle(self) -> CycleReport:
        """Run one reconciliation cycle; cycle-level failures are reported, not raised."""
        report = CycleReport()
        try:
            self._reconcile(report)
        except Exception as exc:
            # Unexpected host or parsing failures end this cycle only; the next interval retries.
            report.error = f"{type(exc).__name__}: {exc}"
            self._emit(EventKind.CYCLE_FAILED, f"Cycle aborted: {report.error}")
        return report

    def _reconcile(self, report: CycleReport) -> None:
        try:
            targets = self.store.read_all()
            snapshot = self.manager.enumerate_all()
        except (HostQueryError, ConfigStoreIOError) as exc:
            report.error = str(exc)
            self._emit(EventKind.CYCLE_FAILED, f"Cycle aborted: {exc}")
            return

        report.drifted = self.tracker.detect_drift(snapshot)
        for name in report.drifted:
            self._emit(EventKind.DRIFT_DETECTED, f"{name} has just stopped", service_name=name)

        self.tracker.update(snapshot)

        if report.drifted:
            try:
                report.appended = self.store.append_missing(report.drifted)
            except ConfigStoreIOError as exc:
                report.errors.append(str(exc))
                self._emit(EventKind.CYCLE_FAILED, f"Could not record stopped services: {exc}")
            if report.appended:
                self._emit(
                    EventKind.SERVICES_ADDED,
                    f"Added {len(report.appended)} service(s) to the keep-stopped list: {', '.join(report.appended)}",
                )

        target_keys = {service_key(name) for name in targets}
        attempted: set[str] = set()
        for entry in snapshot:
            key = service_key(entry.name)
            if not entry.is_running or key not in target_keys or key in attempted:
                continue
            if self._cancelled():
                break

            attempted.add(key)
            self._emit(EventKind.ENFORCING, f"Keeping {entry.name} stopped", service_name=entry.name)
            outcome = stop_and_verify(self.manager, entry.name, self.stop_timeout_seconds, cancel=self.cancel)
            if outcome is None:
                break

            if outcome.stopped:
                report.enforced.append(entry.name)
                self._emit(EventKind.ENFORCED, f"{entry.name} stopped", service_name=entry.name)
                continue

            report.disqualified.append(outcome)
            self._disqualify(outcome, report.errors)

    def _disqualify(self, outcome: StopOutcome, errors: List[str]) -> None:
        try:
            self.store.remove_one(outcome.service_name)
        except ConfigStoreIOError as exc:
            errors.append(str(exc))
            self._emit(
                EventKind.CYCLE_FAILED,
                f"Could not remove {outcome.service_name} from the keep-stopped list: {exc}",
                service_name=outcome.service_name,
            )
            return

        self._emit(
            EventKind.DISQUALIFIED,
            f"Failed to stop {outcome.service_name} ({outcome.detail}); removed from the keep-stopped list",
            service_name=outcome.service_name,
            reason=outcome.reason,
        )

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    def _emit(
        self,
        kind: EventKind,
        message: str,
        service_name: Optional[str] = None,
        reason: Optional[FailureReason] = None,
    ) -> None:
        if self.on_event is None:
            return
        self.on_event(GuardianEvent(kind=kind, message=message, service_name=service_name, reason=reason))
