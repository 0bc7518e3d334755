import threading
from collections import defaultdict

import pytest

from novadrain.models import VM, Node, RemoteService


class FakeNova:
    """
    In-memory stand-in for NovaClient. Scripted failures are consumed in order;
    once a script is empty the call succeeds.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.services = []
        self.service_errors = []
        self.list_services_calls = 0
        self.scheduling_errors = []
        self.scheduling_calls = []
        self.vms = []
        self.vm_list_error = None
        # vm_id -> list of exceptions (or None for "accepted") per request
        self.migration_script = {}
        self.migration_calls = defaultdict(list)
        # vm_id -> list of hostIds (or exceptions) per get_vm; the last entry repeats
        self.hosts = {}
        self.get_vm_calls = defaultdict(int)

    def list_services(self):
        self.list_services_calls += 1
        if self.service_errors:
            raise self.service_errors.pop(0)
        return list(self.services)

    def set_node_scheduling(self, hostname, binary, enable):
        self.scheduling_calls.append((hostname, binary, enable))
        if self.scheduling_errors:
            raise self.scheduling_errors.pop(0)
        return 204

    def list_vms_on_host(self, hostname):
        if self.vm_list_error is not None:
            raise self.vm_list_error
        return list(self.vms)

    def request_live_migration(self, vm_id, block_migration):
        with self._lock:
            self.migration_calls[vm_id].append(block_migration)
            script = self.migration_script.get(vm_id, [])
            outcome = script.pop(0) if script else None
        if outcome is not None:
            raise outcome

    def get_vm(self, vm_id):
        with self._lock:
            self.get_vm_calls[vm_id] += 1
            seq = self.hosts[vm_id]
            host = seq.pop(0) if len(seq) > 1 else seq[0]
        if isinstance(host, BaseException):
            raise host
        return VM(id=vm_id, host_id=host)


class RecordingEvent(threading.Event):
    """Cancel event that records wait() timeouts instead of sleeping."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.is_set()


@pytest.fixture
def nova():
    return FakeNova()


@pytest.fixture
def node():
    return Node(hostname="cmp-01", binary="nova-compute", scheduling_enabled=True)


@pytest.fixture
def make_service():
    def _make(host="cmp-01", binary="nova-compute", status="enabled"):
        return RemoteService(id=1, host=host, binary=binary, status=status, zone="nova", state="up")
    return _make


@pytest.fixture
def recording_event():
    return RecordingEvent()
