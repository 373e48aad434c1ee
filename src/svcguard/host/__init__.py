"""Service manager backends."""

import os
import subprocess

from svcguard.core.models import HostSettings
from svcguard.host.base import CommandServiceManager, RunCallable, ServiceManager
from svcguard.host.systemd import SystemdServiceManager
from svcguard.host.windows import WindowsServiceManager

BACKENDS = {
	"windows": WindowsServiceManager,
	"systemd": SystemdServiceManager,
}


def resolve_backend(backend: str) -> str:
	"""Resolve 'auto' to the backend native to this host."""
	if backend != "auto":
		return backend
	return "windows" if os.name == "nt" else "systemd"


def create_service_manager(settings: HostSettings, run: RunCallable = subprocess.run) -> ServiceManager:
	"""Build the service manager selected by `settings.backend`."""
	backend = resolve_backend(settings.backend)
	if backend not in BACKENDS:
		raise ValueError(f"Unknown service manager backend: '{settings.backend}'")

	return BACKENDS[backend](
		run=run,
		status_poll_seconds=settings.status_poll_seconds,
		command_timeout_seconds=settings.command_timeout_seconds,
	)


__all__ = [
	"BACKENDS",
	"CommandServiceManager",
	"ServiceManager",
	"SystemdServiceManager",
	"WindowsServiceManager",
	"create_service_manager",
	"resolve_backend",
]
