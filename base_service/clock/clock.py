import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def truncate_to_millis(instant: datetime) -> datetime:
	""" BSON datetimes only hold milliseconds. Truncating up front keeps stored and in-memory values equal. """
	if instant.tzinfo is None:
		instant = instant.replace(tzinfo=timezone.utc)
	else:
		instant = instant.astimezone(timezone.utc)
	return instant.replace(microsecond=instant.microsecond - instant.microsecond % 1000)

def as_timedelta(duration: timedelta | int) -> timedelta:
	""" Integers are read as milliseconds. """
	if isinstance(duration, timedelta):
		return duration
	if isinstance(duration, bool) or not isinstance(duration, int):
		raise TypeError(f"Expected a timedelta or an int of milliseconds, got {type(duration).__name__}.")
	return timedelta(milliseconds=duration)


class Clock(ABC):
	""" Supplies the instant used to stamp date_created and date_modified. """

	@abstractmethod
	def now(self) -> datetime:
		...


class SystemClock(Clock):
	""" The real UTC wall clock. """

	def now(self) -> datetime:
		return truncate_to_millis(datetime.now(timezone.utc))


class MockClock(Clock):
	""" A clock that can be pinned to a fixed instant, for reproducible timestamps in tests.
	When nothing is pinned it reads the real wall clock.
	All reads and writes go through a lock, so tests running operations concurrently see a consistent value. """

	def __init__(self, source: Clock | None = None) -> None:
		self._source = source or SystemClock()
		self._pinned: datetime | None = None
		self._lock = threading.Lock()

	@property
	def is_pinned(self) -> bool:
		with self._lock:
			return self._pinned is not None

	def now(self) -> datetime:
		with self._lock:
			if self._pinned is not None:
				return self._pinned
		return self._source.now()

	def set(self, instant: datetime) -> None:
		""" Pin every subsequent now() call to instant. Naive datetimes are read as UTC. """
		with self._lock:
			self._pinned = truncate_to_millis(instant)

	def advance(self, duration: timedelta | int) -> datetime:
		""" Move the pinned instant forward and return it.
		If nothing is pinned, the real current instant is advanced and then pinned. """
		delta = as_timedelta(duration)
		with self._lock:
			base = self._pinned if self._pinned is not None else self._source.now()
			self._pinned = truncate_to_millis(base + delta)
			return self._pinned

	def clear(self) -> None:
		""" Go back to the real wall clock. """
		with self._lock:
			self._pinned = None
