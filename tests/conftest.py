"""Shared fixtures for loadtest-core tests."""

import threading

import pytest
from fastapi.testclient import TestClient

from loadtest_core import CheckAggregator, Checks, RunEnvironment
from loadtest_core.target import create_app

BASE_URL = "http://testserver"


class FakeClock:
    """Manual clock shared by the reference target and RunEnvironment.sleep."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []
        self._lock = threading.Lock()

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def target_app(clock):
    return create_app(clock=clock)


@pytest.fixture
def client(target_app):
    with TestClient(target_app) as c:
        yield c


@pytest.fixture
def env(client, clock):
    return RunEnvironment(base_url=BASE_URL, http=client, sleep=clock.sleep)


@pytest.fixture
def aggregator():
    return CheckAggregator()


@pytest.fixture
def checks(aggregator):
    return Checks(aggregator, feature="F", scenario="S", vu_id=1, iteration=0)
