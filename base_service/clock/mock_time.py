import os
from datetime import datetime, timedelta

from .clock import Clock, MockClock, SystemClock
from ..utilities.setup_error import MockTimeDisabledError
from ..utilities.logger import get_logger


MOCK_TIME_ENV_VAR = "BASE_SERVICE_MOCK_TIME"

mock_clock = MockClock()
""" Shared by every service built while mock time is enabled. """

def mock_time_enabled() -> bool:
    """ Mock time is opt-in. Set BASE_SERVICE_MOCK_TIME=1 (or true/yes/on) to turn it on. """
    value = os.environ.get(MOCK_TIME_ENV_VAR, "")
    return value.strip().lower() in ("1", "true", "yes", "on")

def _require_enabled(operation: str) -> None:
    if not mock_time_enabled():
        raise MockTimeDisabledError(f"{operation}() requires mock time. Set {MOCK_TIME_ENV_VAR}=1 in the test environment.")

def default_clock() -> Clock:
    """ Returns the shared mock clock when mock time is enabled, otherwise the real wall clock. """
    if mock_time_enabled():
        return mock_clock
    return SystemClock()

def set_mock_time(instant: datetime) -> None:
    _require_enabled("set_mock_time")
    mock_clock.set(instant)
    get_logger().debug(f"Mock time pinned to {instant.isoformat()}")

def increase_mock_time(duration: timedelta | int) -> datetime:
    """ Advance the mock clock by a timedelta or by an int of milliseconds.
    If no time is pinned yet, this advances from the real current instant and pins the result. """
    _require_enabled("increase_mock_time")
    pinned = mock_clock.advance(duration)
    get_logger().debug(f"Mock time advanced to {pinned.isoformat()}")
    return pinned

def clear_mock_time() -> None:
    _require_enabled("clear_mock_time")
    mock_clock.clear()
