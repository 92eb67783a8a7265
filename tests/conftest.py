from datetime import datetime, timezone

import pytest

from base_service import BaseService, MemoryDocumentStore, MockClock
from base_service.clock import mock_clock
from base_service.clock.mock_time import MOCK_TIME_ENV_VAR


T0 = datetime(2020, 3, 14, 15, 9, 26, tzinfo=timezone.utc)

@pytest.fixture
def t0():
    return T0

@pytest.fixture
def store():
    return MemoryDocumentStore()

@pytest.fixture
def clock():
    clock = MockClock()
    clock.set(T0)
    return clock

@pytest.fixture
def service(store, clock):
    return BaseService(store, "projects", clock=clock)

@pytest.fixture
def mock_time(monkeypatch):
    """ Turns on the process-wide mock clock for one test and resets it afterwards. """
    monkeypatch.setenv(MOCK_TIME_ENV_VAR, "1")
    yield mock_clock
    mock_clock.clear()
