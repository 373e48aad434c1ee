from __future__ import annotations

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.runtime import GuardianController, ReconciliationEngine, StartupSweep, StatusTracker
from svcguard.store.config_store import ConfigStore

__version__ = "0.3.0"

__all__ = [
	"ConfigStore",
	"GuardianController",
	"ReconciliationEngine",
	"ServiceSnapshot",
	"ServiceStatus",
	"StartupSweep",
	"StatusTracker",
	"__version__",
]
