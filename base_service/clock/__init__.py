"""
Time source used to stamp document mutations.

The real clock is the default. Tests can inject a MockClock directly, or, with
BASE_SERVICE_MOCK_TIME set, drive the shared one through set_mock_time(),
increase_mock_time() and clear_mock_time().
"""

from .clock import Clock, SystemClock, MockClock, truncate_to_millis
from .mock_time import mock_clock, mock_time_enabled, default_clock, set_mock_time, increase_mock_time, clear_mock_time
