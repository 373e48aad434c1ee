"""Reconciliation runtime: tracker, engine, startup sweep and controller."""

from svcguard.runtime.contracts import (
	CycleReport,
	EventKind,
	GuardianEvent,
	GuardianState,
	GuardianTrigger,
	StopOutcome,
	SweepReport,
	transition_guardian_state,
)
from svcguard.runtime.controller import GuardianController
from svcguard.runtime.engine import ReconciliationEngine, stop_and_verify
from svcguard.runtime.status_tracker import StatusTracker
from svcguard.runtime.sweep import StartupSweep

__all__ = [
	"CycleReport",
	"EventKind",
	"GuardianController",
	"GuardianEvent",
	"GuardianState",
	"GuardianTrigger",
	"ReconciliationEngine",
	"StartupSweep",
	"StatusTracker",
	"StopOutcome",
	"SweepReport",
	"stop_and_verify",
	"transition_guardian_state",
]
