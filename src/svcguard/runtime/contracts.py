from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from svcguard.utils.diagnostics import FailureReason


class GuardianState(str, Enum):
    """High-level states for the guardian controller lifecycle."""

    IDLE = "idle"
    SWEEPING = "sweeping"
    MONITORING = "monitoring"
    STOPPED = "stopped"


class GuardianTrigger(str, Enum):
    """Triggers that drive guardian state transitions."""

    SWEEP = "sweep"
    MONITOR = "monitor"
    STOP = "stop"


class EventKind(str, Enum):
    """Observable guardian actions, one per log line."""

    DRIFT_DETECTED = "drift_detected"
    SERVICES_ADDED = "services_added"
    ENFORCING = "enforcing"
    ENFORCED = "enforced"
    DISQUALIFIED = "disqualified"
    CYCLE_FAILED = "cycle_failed"


class GuardianEvent(BaseModel):
    """One observable action taken (or failure seen) by the guardian."""

    model_config = ConfigDict(extra="forbid")

    kind: EventKind
    message: str
    service_name: Optional[str] = None
    reason: Optional[FailureReason] = None


class StopOutcome(BaseModel):
    """Result of a stop-then-verify attempt: stopped, or failed with a reason."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    service_name: str
    stopped: bool
    reason: Optional[FailureReason] = None
    detail: str = ""

    @classmethod
    def success(cls, service_name: str) -> "StopOutcome":
        return cls(service_name=service_name, stopped=True)

    @classmethod
    def failure(cls, service_name: str, reason: FailureReason, detail: str = "") -> "StopOutcome":
        return cls(service_name=service_name, stopped=False, reason=reason, detail=detail)


class CycleReport(BaseModel):
    """Summary of one reconciliation cycle."""

    model_config = ConfigDict(extra="forbid")

    drifted: List[str] = Field(default_factory=list)
    appended: List[str] = Field(default_factory=list)
    enforced: List[str] = Field(default_factory=list)
    disqualified: List[StopOutcome] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.error is not None


class SweepReport(BaseModel):
    """Summary of the startup sweep."""

    model_config = ConfigDict(extra="forbid")

    checked: List[str] = Field(default_factory=list)
    stopped: List[str] = Field(default_factory=list)
    disqualified: List[StopOutcome] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    error: Optional[str] = None


def transition_guardian_state(current: GuardianState, trigger: GuardianTrigger) -> GuardianState:
    """Compute the next guardian state for a trigger.

    Invalid transitions raise ValueError.
    """

    if trigger == GuardianTrigger.STOP:
        return GuardianState.STOPPED

    if current == GuardianState.IDLE:
        if trigger == GuardianTrigger.SWEEP:
            return GuardianState.SWEEPING
        if trigger == GuardianTrigger.MONITOR:
            return GuardianState.MONITORING
        raise ValueError(f"Invalid guardian transition: {current} -> {trigger}")

    if current == GuardianState.SWEEPING:
        if trigger == GuardianTrigger.MONITOR:
            return GuardianState.MONITORING
        raise ValueError(f"Invalid guardian transition: {current} -> {trigger}")

    if current in {GuardianState.MONITORING, GuardianState.STOPPED}:
        raise ValueError(f"Invalid guardian transition: {current} -> {trigger}")

    raise ValueError(f"Unknown guardian state: {current}")
