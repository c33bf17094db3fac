"""
Stress Test Fixtures - fake or real Redis

Scenarios run against fakeredis by default. Point CHURN_STRESS_REDIS_URL at
a real Redis to exercise real network round trips; keys are removed after
each test.
"""
import os
from typing import Generator

import fakeredis
import pytest
import redis

from churn.client import RedisCollectionAdmin

STRESS_SECONDS = float(os.environ.get("CHURN_STRESS_SECONDS", "2"))
STRESS_REDIS_URL = os.environ.get("CHURN_STRESS_REDIS_URL")
KEY_PATTERN = "churn:*"


def redis_available(url: str) -> bool:
    try:
        client = redis.from_url(url, socket_timeout=2)
        client.ping()
        client.close()
        return True
    except (redis.ConnectionError, redis.TimeoutError):
        return False


USE_REAL_REDIS = bool(STRESS_REDIS_URL) and redis_available(STRESS_REDIS_URL)


@pytest.fixture
def stress_seconds() -> float:
    return STRESS_SECONDS


@pytest.fixture
def stress_admin_factory(fake_server) -> Generator:
    """Admin handle factory for scenarios; one fresh handle per call."""
    if USE_REAL_REDIS:
        def factory() -> RedisCollectionAdmin:
            return RedisCollectionAdmin(
                redis.from_url(STRESS_REDIS_URL, decode_responses=True, socket_timeout=30)
            )
    else:
        def factory() -> RedisCollectionAdmin:
            return RedisCollectionAdmin(
                fakeredis.FakeStrictRedis(server=fake_server, decode_responses=True)
            )

    yield factory

    if USE_REAL_REDIS:
        cleaner = redis.from_url(STRESS_REDIS_URL, decode_responses=True)
        for key in cleaner.scan_iter(KEY_PATTERN):
            cleaner.delete(key)
        cleaner.close()


@pytest.fixture
def inspector(stress_admin_factory) -> Generator[RedisCollectionAdmin, None, None]:
    """A separate handle for checking service state around a run."""
    admin = stress_admin_factory()
    yield admin
    admin.close()
