import pytest
import sys
from pathlib import Path

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from svcguard.core.models import ServiceSnapshot, ServiceStatus
from svcguard.core.naming import service_key
from svcguard.host.base import ServiceManager
from svcguard.store.config_store import ConfigStore
from svcguard.utils.diagnostics import FailureReason, HostQueryError, ServiceOperationError


class FakeServiceManager(ServiceManager):
    """
    In-memory host. Services stop when asked unless listed in `stuck`
    or given a failure in `stop_errors`.
    """
    backend_name = "fake"

    def __init__(self, services=None):
        super().__init__(status_poll_seconds=0.01)
        self.services = dict(services or {})
        self.stop_errors = {}
        self.stuck = set()
        self.enumerate_error = None
        self.stop_calls = []
        self.await_calls = []

    def set_status(self, name, status):
        self.services[self._resolve(name) or name] = status

    def enumerate_all(self):
        if self.enumerate_error is not None:
            raise HostQueryError(self.enumerate_error, backend=self.backend_name)
        return [ServiceSnapshot(name=name, status=status) for name, status in self.services.items()]

    def query(self, name):
        resolved = self._resolve(name)
        if resolved is None:
            raise ServiceOperationError(name, FailureReason.NOT_FOUND)
        return self.services[resolved]

    def stop(self, name):
        self.stop_calls.append(name)
        resolved = self._resolve(name)
        if resolved is None:
            raise ServiceOperationError(name, FailureReason.NOT_FOUND)
        reason = self.stop_errors.get(service_key(name))
        if reason is not None:
            raise ServiceOperationError(name, reason)
        if service_key(name) not in self.stuck:
            self.services[resolved] = ServiceStatus.STOPPED

    def await_status(self, name, target, timeout, cancel=None):
        self.await_calls.append((name, target, timeout))
        return self._safe_query(name)

    def _resolve(self, name):
        for existing in self.services:
            if service_key(existing) == service_key(name):
                return existing
        return None


@pytest.fixture
def fake_manager():
    return FakeServiceManager()


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "services.txt"


@pytest.fixture
def store(store_path):
    return ConfigStore(store_path)
