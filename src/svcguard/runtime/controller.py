from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, List, Optional

from svcguard.core.context import GuardianContext
from svcguard.core.naming import unique_services
from svcguard.host import create_service_manager
from svcguard.host.base import ServiceManager
from svcguard.runtime.contracts import (
    CycleReport,
    EventKind,
    GuardianEvent,
    GuardianState,
    GuardianTrigger,
    SweepReport,
    transition_guardian_state,
)
from svcguard.runtime.engine import EventCallback, ReconciliationEngine
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.runtime.sweep import StartupSweep
from svcguard.store.config_store import ConfigStore


class GuardianController:
    """Owns the guardian lifecycle: store init, startup sweep, and the monitoring loop."""

    def __init__(
        self,
        context: GuardianContext,
        store: Optional[ConfigStore] = None,
        manager: Optional[ServiceManager] = None,
        base_dir: Optional[Path] = None,
        on_event: Optional[EventCallback] = None,
        on_cycle: Optional[Callable[[CycleReport], None]] = None,
    ) -> None:
        self.context = context
        self.store = store or ConfigStore(context.store_path(base_dir))
        self.manager = manager or create_service_manager(context.host)
        self.on_event = on_event
        self.on_cycle = on_cycle

        self.tracker = StatusTracker()
        self.state: GuardianState = GuardianState.IDLE
        self.monitor_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self.engine = ReconciliationEngine(
            store=self.store,
            manager=self.manager,
            tracker=self.tracker,
            stop_timeout_seconds=context.guardian.stop_timeout_seconds,
            on_event=on_event,
            cancel=self._stop_event,
        )

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def initialize(self) -> List[str]:
        """Create the keep-stopped list or merge in missing default services."""
        return self.store.initialize_if_absent(self.context.store.default_services)

    def seed_history(self) -> List[str]:
        """Optionally record a launch snapshot and adopt already-stopped services.

        Returns the names adopted into the store.
        """
        guardian = self.context.guardian
        if not (guardian.seed_history_on_start or guardian.adopt_stopped_on_start):
            return []

        snapshot = self.manager.enumerate_all()
        self.tracker.seed(snapshot)
        if not guardian.adopt_stopped_on_start:
            return []

        stopped = unique_services(entry.name for entry in snapshot if not entry.is_running)
        adopted = self.store.append_missing(stopped)
        if adopted and self.on_event is not None:
            self.on_event(
                GuardianEvent(
                    kind=EventKind.SERVICES_ADDED,
                    message=f"Adopted {len(adopted)} stopped service(s) at startup: {', '.join(adopted)}",
                )
            )
        return adopted

    def run_startup_sweep(self) -> SweepReport:
        """Force every configured service to stopped once, pruning the ones that refuse."""
        self.state = transition_guardian_state(self.state, GuardianTrigger.SWEEP)
        sweep = StartupSweep(
            store=self.store,
            manager=self.manager,
            tracker=self.tracker,
            stop_timeout_seconds=self.context.guardian.stop_timeout_seconds,
            on_event=self.on_event,
            cancel=self._stop_event,
        )
        return sweep.run()

    def run_cycle(self) -> CycleReport:
        """Run one reconciliation cycle and notify the host."""
        report = self.engine.run_cycle()
        if self.on_cycle is not None:
            self.on_cycle(report)
        return report

    def start(self, background: bool = True, sweep: bool = True) -> Optional[SweepReport]:
        """Prepare the store, optionally sweep, then enter monitoring.

        With `background=False` no loop is started; the host drives
        `run_cycle()` itself or calls `run_forever()`. Returns the sweep report
        when a sweep ran.
        """
        if self.state != GuardianState.IDLE:
            return None

        self._stop_event.clear()
        self.initialize()
        self.seed_history()

        sweep_report: Optional[SweepReport] = None
        if sweep:
            sweep_report = self.run_startup_sweep()

        self.state = transition_guardian_state(self.state, GuardianTrigger.MONITOR)

        if background:
            self.monitor_thread = threading.Thread(target=self._monitor_loop, daemon=True)
            self.monitor_thread.start()

        return sweep_report

    def run_forever(self) -> None:
        """Run the monitoring loop on the calling thread until `stop()` is called."""
        self._monitor_loop()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Cancel the loop and any in-flight wait, then join the background thread.

        By default the join waits out one host command plus one stop wait, since a
        running `sc` or `systemctl` call cannot be interrupted. Returns False, leaving
        the state unchanged, when the thread is still busy after `timeout`.
        """
        self._stop_event.set()
        if timeout is None:
            timeout = self.context.host.command_timeout_seconds + self.context.guardian.stop_timeout_seconds

        thread = self.monitor_thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)
            if thread.is_alive():
                return False

        self.monitor_thread = None
        self.state = transition_guardian_state(self.state, GuardianTrigger.STOP)
        return True

    def _monitor_loop(self) -> None:
        interval_seconds = self.context.guardian.poll_interval_seconds
        while not self._stop_event.is_set():
            self.run_cycle()
            self._stop_event.wait(interval_seconds)
