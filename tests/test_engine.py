import threading

from svcguard.core.models import ServiceStatus
from svcguard.runtime.contracts import EventKind
from svcguard.runtime.engine import ReconciliationEngine, stop_and_verify
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.store.config_store import ConfigStore
from svcguard.utils.diagnostics import ConfigStoreIOError, FailureReason

RUNNING = ServiceStatus.RUNNING
STOPPED = ServiceStatus.STOPPED


def _engine(store, manager, **kwargs) -> ReconciliationEngine:
    return ReconciliationEngine(store=store, manager=manager, **kwargs)


def test_running_target_is_stopped_and_kept(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    engine = _engine(store, fake_manager)

    report = engine.run_cycle()

    assert fake_manager.stop_calls == ["Spooler"]
    assert fake_manager.await_calls == [("Spooler", STOPPED, 10.0)]
    assert report.enforced == ["Spooler"]
    assert report.disqualified == []
    assert store.read_all() == ["Spooler"]


def test_stop_access_denied_disqualifies_service(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.stop_errors["spooler"] = FailureReason.ACCESS_DENIED

    report = _engine(store, fake_manager).run_cycle()

    assert store.read_all() == []
    assert [outcome.reason for outcome in report.disqualified] == [FailureReason.ACCESS_DENIED]


def test_stop_timeout_disqualifies_service(store, fake_manager):
    store.initialize_if_absent(["Spooler", "SENS"])
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.stuck.add("spooler")

    report = _engine(store, fake_manager).run_cycle()

    assert store.read_all() == ["SENS"]
    assert report.disqualified[0].service_name == "Spooler"
    assert report.disqualified[0].reason == FailureReason.TIMEOUT


def test_failure_for_one_service_does_not_abort_others(store, fake_manager):
    store.initialize_if_absent(["A", "B", "C"])
    for name in ("A", "B", "C"):
        fake_manager.set_status(name, RUNNING)
    fake_manager.stop_errors["b"] = FailureReason.STOP_REJECTED

    report = _engine(store, fake_manager).run_cycle()

    assert fake_manager.stop_calls == ["A", "B", "C"]
    assert report.enforced == ["A", "C"]
    assert store.read_all() == ["A", "C"]


def test_drift_is_recorded_into_empty_store(store, fake_manager):
    store.initialize_if_absent([])
    fake_manager.set_status("wuauserv", STOPPED)
    tracker = StatusTracker()
    tracker.record("wuauserv", RUNNING)

    report = _engine(store, fake_manager, tracker=tracker).run_cycle()

    assert report.drifted == ["wuauserv"]
    assert report.appended == ["wuauserv"]
    assert store.read_all() == ["wuauserv"]


def test_drift_is_edge_triggered(store, fake_manager, store_path):
    store.initialize_if_absent([])
    fake_manager.set_status("X", RUNNING)
    engine = _engine(store, fake_manager)

    engine.run_cycle()
    fake_manager.set_status("X", STOPPED)
    first = engine.run_cycle()
    content_after_first = store_path.read_text()
    second = engine.run_cycle()

    assert first.appended == ["X"]
    assert second.drifted == []
    assert second.appended == []
    assert store_path.read_text() == content_after_first


def test_redetecting_listed_service_is_noop(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("SPOOLER", STOPPED)
    tracker = StatusTracker()
    tracker.record("spooler", RUNNING)

    report = _engine(store, fake_manager, tracker=tracker).run_cycle()

    assert report.drifted == ["SPOOLER"]
    assert report.appended == []
    assert store.read_all() == ["Spooler"]


def test_enforcement_uses_cycle_start_targets(store, fake_manager):
    # B drifted and is appended; A is running but was not listed when the cycle began.
    store.initialize_if_absent([])
    fake_manager.set_status("A", RUNNING)
    fake_manager.set_status("B", STOPPED)
    tracker = StatusTracker()
    tracker.record("B", RUNNING)

    _engine(store, fake_manager, tracker=tracker).run_cycle()

    assert fake_manager.stop_calls == []
    assert store.read_all() == ["B"]


def test_own_stop_is_seen_as_drift_next_cycle_without_store_change(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    engine = _engine(store, fake_manager)

    engine.run_cycle()
    # History holds the pre-stop snapshot (running); the next cycle sees the
    # stopped edge, and re-recording an existing entry is a no-op.
    second = engine.run_cycle()

    assert second.drifted == ["Spooler"]
    assert second.appended == []
    assert store.read_all() == ["Spooler"]
    assert fake_manager.stop_calls == ["Spooler"]


def test_stop_attempted_once_per_cycle_for_each_running_target(store, fake_manager):
    store.initialize_if_absent(["A", "a", "B"])
    fake_manager.set_status("A", RUNNING)
    fake_manager.set_status("B", RUNNING)
    fake_manager.set_status("C", RUNNING)
    fake_manager.stuck.update({"a", "b"})
    engine = _engine(store, fake_manager)

    engine.run_cycle()

    assert sorted(fake_manager.stop_calls) == ["A", "B"]


def test_target_matching_is_case_insensitive(store, fake_manager):
    store.initialize_if_absent(["spooler"])
    fake_manager.set_status("Spooler", RUNNING)

    report = _engine(store, fake_manager).run_cycle()

    assert report.enforced == ["Spooler"]


def test_host_query_error_aborts_cycle_without_side_effects(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.enumerate_error = "RPC server unavailable"
    events = []
    engine = _engine(store, fake_manager, on_event=events.append)

    report = engine.run_cycle()

    assert report.aborted is True
    assert "RPC server unavailable" in report.error
    assert len(engine.tracker) == 0
    assert fake_manager.stop_calls == []
    assert store.read_all() == ["Spooler"]
    assert [event.kind for event in events] == [EventKind.CYCLE_FAILED]

    fake_manager.enumerate_error = None
    assert engine.run_cycle().enforced == ["Spooler"]


def test_store_read_error_is_reported_not_raised(tmp_path, fake_manager):
    directory = tmp_path / "services.txt"
    directory.mkdir()

    report = _engine(ConfigStore(directory), fake_manager).run_cycle()

    assert report.aborted is True


def test_store_write_error_during_append_continues_enforcement(store, fake_manager, monkeypatch):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.set_status("X", STOPPED)
    tracker = StatusTracker()
    tracker.record("X", RUNNING)

    def broken_append(candidates):
        raise ConfigStoreIOError(store.path, "disk full")

    monkeypatch.setattr(store, "append_missing", broken_append)

    report = _engine(store, fake_manager, tracker=tracker).run_cycle()

    assert report.aborted is False
    assert any("disk full" in error for error in report.errors)
    assert report.enforced == ["Spooler"]


def test_events_describe_cycle_actions(store, fake_manager):
    store.initialize_if_absent(["Spooler", "SENS"])
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.set_status("SENS", RUNNING)
    fake_manager.set_status("DPS", STOPPED)
    fake_manager.stop_errors["sens"] = FailureReason.NOT_FOUND
    tracker = StatusTracker()
    tracker.record("DPS", RUNNING)
    events = []

    _engine(store, fake_manager, tracker=tracker, on_event=events.append).run_cycle()

    kinds = [event.kind for event in events]
    assert kinds == [
        EventKind.DRIFT_DETECTED,
        EventKind.SERVICES_ADDED,
        EventKind.ENFORCING,
        EventKind.ENFORCED,
        EventKind.ENFORCING,
        EventKind.DISQUALIFIED,
    ]
    assert events[-1].service_name == "SENS"
    assert events[-1].reason == FailureReason.NOT_FOUND


def test_cancelled_engine_skips_enforcement(store, fake_manager):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    cancel = threading.Event()
    cancel.set()

    report = _engine(store, fake_manager, cancel=cancel).run_cycle()

    assert fake_manager.stop_calls == []
    assert report.disqualified == []
    assert store.read_all() == ["Spooler"]


def test_stop_and_verify_interrupted_wait_is_not_a_failure(fake_manager):
    fake_manager.set_status("Spooler", RUNNING)
    fake_manager.stuck.add("spooler")
    cancel = threading.Event()
    cancel.set()

    assert stop_and_verify(fake_manager, "Spooler", 10.0, cancel=cancel) is None


def test_stop_and_verify_reports_success(fake_manager):
    fake_manager.set_status("Spooler", RUNNING)

    outcome = stop_and_verify(fake_manager, "Spooler", 10.0)

    assert outcome.stopped is True
    assert outcome.reason is None


def test_unexpected_host_error_aborts_cycle_and_next_cycle_recovers(store, fake_manager, monkeypatch):
    store.initialize_if_absent(["Spooler"])
    fake_manager.set_status("Spooler", RUNNING)
    events = []
    engine = _engine(store, fake_manager, on_event=events.append)
    original_enumerate = fake_manager.enumerate_all

    def undecodable_output():
        raise UnicodeDecodeError("cp1252", b"\x90", 0, 1, "character maps to <undefined>")

    monkeypatch.setattr(fake_manager, "enumerate_all", undecodable_output)
    report = engine.run_cycle()

    assert report.aborted is True
    assert report.error.startswith("UnicodeDecodeError")
    assert [event.kind for event in events] == [EventKind.CYCLE_FAILED]
    assert fake_manager.stop_calls == []

    monkeypatch.setattr(fake_manager, "enumerate_all", original_enumerate)
    assert engine.run_cycle().enforced == ["Spooler"]
