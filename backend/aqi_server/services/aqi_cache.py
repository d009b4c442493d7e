"""
Shared AQI Cache
================

The one place the latest AQI lives.

WHO TOUCHES IT:
--------------
- RefreshCycle writes to it (once per successful refresh)
- The /aqi endpoints read from it (on every request)

Both go through a lock that is only held for the assignment or the read,
never while waiting on the network. So a slow PurpleAir call can't make
/aqi slow, and nobody ever sees half an update.

Author: AQI Server Team
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from aqi_server.models import NO_DATA, AqiSnapshot


class AqiCache:
    """
    Single-slot store for the latest AQI value.

    HOW TO USE:
    ----------
    cache = AqiCache()
    cache.get()          # -1 (NO_DATA) until the first refresh succeeds
    cache.set(56, source_timestamp="1718035200")
    cache.get()          # 56
    cache.snapshot()     # AqiSnapshot(aqi=56, updated_at=..., source_timestamp=...)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = AqiSnapshot()

    def set(self, value: int, source_timestamp: Optional[str] = None) -> None:
        """Store a freshly computed AQI."""
        snapshot = AqiSnapshot(
            aqi=value,
            updated_at=datetime.now(timezone.utc),
            source_timestamp=source_timestamp,
        )
        with self._lock:
            self._snapshot = snapshot

    def get(self) -> int:
        """Return the latest AQI, or NO_DATA if we never got one."""
        with self._lock:
            return self._snapshot.aqi

    def snapshot(self) -> AqiSnapshot:
        """Return value + timestamps together, all from the same write."""
        with self._lock:
            return self._snapshot

    def is_stale(self, max_age: timedelta, now: Optional[datetime] = None) -> bool:
        """
        Is the cached value older than max_age?

        This is just a signal for dashboards and logs - a stale value is still
        served. With no data at all, the cache counts as stale.
        """
        snapshot = self.snapshot()
        if snapshot.updated_at is None:
            return True

        now = now or datetime.now(timezone.utc)
        return now - snapshot.updated_at > max_age
