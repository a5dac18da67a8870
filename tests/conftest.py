"""Shared fixtures: in-memory store, controllable clock and fake cloud clients."""

import pytest

from autoscale_store.core.config import Settings
from autoscale_store.core.database import Database
from autoscale_store.services.api_cache import ApiCacheStore
from autoscale_store.services.request_cache import RequestCache
from autoscale_store.services.resources import ScaleSetResources
from autoscale_store.services.store import DocumentStoreClient

START_TIME = 1_700_000_000.0
RESOURCE_GROUP = "autoscale-rg"


class FakeClock:
    """Wall clock in epoch seconds that only moves when told to."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeModel:
    """Stands in for an SDK model with ``as_dict``."""

    def __init__(self, **fields):
        self._fields = fields

    def as_dict(self):
        return dict(self._fields)


class FakePager:
    """Async iterable over a fixed page of items."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._items:
            yield item


class FakeScaleSetVMs:
    def __init__(self, vms_by_group):
        self.vms_by_group = vms_by_group
        self.calls = []

    def list(self, resource_group, vmss_name):
        self.calls.append(("list", resource_group, vmss_name))
        return FakePager(self.vms_by_group.get(vmss_name, []))

    async def get(self, resource_group, vmss_name, instance_id, expand=None):
        self.calls.append(("get", resource_group, vmss_name, instance_id, expand))
        for vm in self.vms_by_group.get(vmss_name, []):
            if vm.as_dict()["instance_id"] == instance_id:
                return vm
        return None


class FakeComputeClient:
    def __init__(self, vms_by_group):
        self.virtual_machine_scale_set_vms = FakeScaleSetVMs(vms_by_group)


class FakeNetworkInterfaces:
    def __init__(self, nics_by_instance):
        self.nics_by_instance = nics_by_instance
        self.calls = []

    def list_virtual_machine_scale_set_vm_network_interfaces(self, resource_group, vmss_name, instance_id):
        self.calls.append((resource_group, vmss_name, instance_id))
        return FakePager(self.nics_by_instance.get((vmss_name, instance_id), []))


class FakeNetworkClient:
    def __init__(self, nics_by_instance):
        self.network_interfaces = FakeNetworkInterfaces(nics_by_instance)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite://", log_format="console")


@pytest.fixture
async def database(settings, clock):
    db = Database(settings, clock=clock)
    await db.startup()
    yield db
    await db.shutdown()


@pytest.fixture
def store(database):
    return DocumentStoreClient(database)


@pytest.fixture
def api_cache(store, clock):
    return ApiCacheStore(store, clock=clock)


@pytest.fixture
def request_cache(api_cache):
    return RequestCache(api_cache)


@pytest.fixture
def scale_set_vms():
    return {
        "vmss-A": [
            FakeModel(instance_id="0", vm_id="vm-guid-abc", name="vmss-A_0"),
            FakeModel(instance_id="3", vm_id="vm-guid-xyz", name="vmss-A_3"),
        ],
    }


@pytest.fixture
def compute_client(scale_set_vms):
    return FakeComputeClient(scale_set_vms)


@pytest.fixture
def network_client():
    return FakeNetworkClient({
        ("vmss-A", "3"): [
            FakeModel(name="nic-port1", primary=True),
            FakeModel(name="nic-port2", primary=False),
        ],
    })


@pytest.fixture
def resources(request_cache, compute_client, network_client):
    return ScaleSetResources(request_cache, compute_client, network_client, RESOURCE_GROUP)
