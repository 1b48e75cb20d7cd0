"""Trusted time sources for timeout evaluation."""
import time


class ClockBase:
    """Base class for a trusted, monotonically non-decreasing clock."""

    def now(self):
        """Get the current time.

        Returns:
            int: Current absolute time (UNIX time, seconds).

        """
        raise NotImplementedError()


class SystemClock(ClockBase):
    """Clock backed by the host system time."""

    def now(self):
        return int(time.time())
