"""Shared pytest fixtures for churn tests."""

import itertools
import sys
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

import fakeredis
import pytest

# Allow running the suite from a checkout without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "lib"))

from churn.client import AdminClient, AdminResponse, RedisCollectionAdmin
from churn.constants import Defaults


@pytest.fixture
def fake_server():
    """One fake Redis server; every client built on it sees the same data."""
    return fakeredis.FakeServer()


@pytest.fixture
def mock_redis(fake_server):
    """Create a fake Redis client for testing."""
    return fakeredis.FakeStrictRedis(server=fake_server, decode_responses=True)


@pytest.fixture
def admin(mock_redis):
    """Redis-backed admin service on fake Redis."""
    return RedisCollectionAdmin(mock_redis)


@pytest.fixture
def admin_factory(fake_server):
    """Factory handing out a fresh admin handle per call, all on one server."""
    created = []

    def factory() -> RedisCollectionAdmin:
        client = RedisCollectionAdmin(
            fakeredis.FakeStrictRedis(server=fake_server, decode_responses=True)
        )
        created.append(client)
        return client

    factory.created = created
    return factory


@pytest.fixture
def config_dir(tmp_path):
    """A minimal config directory to upload."""
    conf = tmp_path / "conf"
    conf.mkdir()
    (conf / "schema.xml").write_text('<schema name="minimal" version="1.6"/>')
    (conf / "solrconfig.xml").write_text("<config/>")
    return conf


@pytest.fixture
def step_clock():
    """Clock that advances by one on every read: 0, 1, 2, ..."""
    return itertools.count().__next__


class FaultPlan:
    """Counts lifecycle calls per (operation, collection) and forces a status on the nth."""

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[Tuple[str, str], int] = {}
        self._faults: Dict[Tuple[str, str, int], int] = {}

    def fail(self, operation: str, name: str, call_number: int, status: int = 500) -> 'FaultPlan':
        self._faults[(operation, name, call_number)] = status
        return self

    def forced_status(self, operation: str, name: str) -> Optional[int]:
        with self._lock:
            count = self._calls.get((operation, name), 0) + 1
            self._calls[(operation, name)] = count
        return self._faults.get((operation, name, count))

    def calls(self, operation: str, name: str) -> int:
        with self._lock:
            return self._calls.get((operation, name), 0)


class FaultInjectingAdmin(AdminClient):
    """Wraps an admin client; a planned fault replaces the real call."""

    def __init__(self, inner: AdminClient, plan: FaultPlan):
        self.inner = inner
        self.plan = plan

    def upload_config(self, config_dir, config_name):
        return self.inner.upload_config(config_dir, config_name)

    def create_collection(self, name, config_name, num_shards=Defaults.NUM_SHARDS,
                          replication_factor=Defaults.REPLICATION_FACTOR):
        status = self.plan.forced_status("create", name)
        if status is not None:
            return AdminResponse(status=status, message="injected fault")
        return self.inner.create_collection(name, config_name, num_shards, replication_factor)

    def delete_collection(self, name):
        status = self.plan.forced_status("delete", name)
        if status is not None:
            return AdminResponse(status=status, message="injected fault")
        return self.inner.delete_collection(name)

    def query(self, name, q="*:*"):
        return self.inner.query(name, q)

    def close(self):
        self.inner.close()


@pytest.fixture
def fault_plan():
    return FaultPlan()


@pytest.fixture
def faulty_admin_factory(admin_factory, fault_plan):
    def factory() -> FaultInjectingAdmin:
        return FaultInjectingAdmin(admin_factory(), fault_plan)
    return factory


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: concurrency tests with real threads"
    )
    config.addinivalue_line(
        "markers", "stress: end-to-end churn scenarios"
    )
    config.addinivalue_line(
        "markers", "slow: marks slow-running tests"
    )


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "stress" in str(item.fspath):
            item.add_marker(pytest.mark.stress)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
