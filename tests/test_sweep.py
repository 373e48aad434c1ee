from svcguard.core.models import ServiceStatus
from svcguard.runtime.contracts import EventKind
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.runtime.sweep import StartupSweep
from svcguard.utils.diagnostics import FailureReason


def _sweep(store, manager, tracker=None, **kwargs) -> StartupSweep:
    return StartupSweep(store=store, manager=manager, tracker=tracker or StatusTracker(), **kwargs)


def test_sweep_stops_running_services_and_records_history(store, fake_manager):
    store.initialize_if_absent(["Spooler", "SENS"])
    fake_manager.set_status("Spooler", ServiceStatus.RUNNING)
    fake_manager.set_status("SENS", ServiceStatus.STOPPED)
    tracker = StatusTracker()

    report = _sweep(store, fake_manager, tracker).run()

    assert report.checked == ["Spooler", "SENS"]
    assert report.stopped == ["Spooler"]
    assert fake_manager.stop_calls == ["Spooler"]
    assert tracker.previous("Spooler") == ServiceStatus.STOPPED
    assert "SENS" not in tracker
    assert store.read_all() == ["Spooler", "SENS"]


def test_sweep_removes_unknown_services(store, fake_manager):
    store.initialize_if_absent(["Ghost", "SENS"])
    fake_manager.set_status("SENS", ServiceStatus.STOPPED)

    report = _sweep(store, fake_manager).run()

    assert store.read_all() == ["SENS"]
    assert report.disqualified[0].reason == FailureReason.NOT_FOUND


def test_sweep_removes_services_that_refuse_to_stop(store, fake_manager):
    store.initialize_if_absent(["Spooler", "DPS"])
    fake_manager.set_status("Spooler", ServiceStatus.RUNNING)
    fake_manager.set_status("DPS", ServiceStatus.RUNNING)
    fake_manager.stop_errors["spooler"] = FailureReason.ACCESS_DENIED
    fake_manager.stuck.add("dps")
    events = []

    report = _sweep(store, fake_manager, on_event=events.append).run()

    assert store.read_all() == []
    assert [outcome.reason for outcome in report.disqualified] == [
        FailureReason.ACCESS_DENIED,
        FailureReason.TIMEOUT,
    ]
    assert [event.kind for event in events].count(EventKind.DISQUALIFIED) == 2


def test_sweep_uses_configured_timeout(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", ServiceStatus.RUNNING)

    _sweep(store, fake_manager, stop_timeout_seconds=3.0).run()

    assert fake_manager.await_calls == [("Spooler", ServiceStatus.STOPPED, 3.0)]


def test_sweep_on_empty_store_does_nothing(store, fake_manager):
    report = _sweep(store, fake_manager).run()

    assert report.checked == []
    assert fake_manager.stop_calls == []
