"""
Refresh Cycle
=============

This is the heartbeat of the whole operation!

WHAT IT DOES:
------------
1. Fetches the sensor's 24 hour PM2.5 average from PurpleAir
2. Converts it to an AQI
3. Writes the AQI into the shared cache

WHEN IT RUNS:
------------
- Once right away when the server starts (so /aqi has data quickly)
- Then every REFRESH_INTERVAL seconds (default: hourly), with the first
  scheduled run on the next whole hour. Start at 14:23 -> runs at 14:23
  (startup), 15:00, 16:00, ...

WHEN THINGS GO WRONG:
--------------------
A failed refresh does NOT take the server down. We log it, keep serving the
last good AQI, and try again at the next scheduled time. The log says how many
refreshes in a row have failed so a single hiccup looks different from an
outage.

Only one refresh runs at a time. If a trigger fires while one is still going
it is dropped, not queued.

Author: AQI Server Team
"""

import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.date import DateTrigger

from aqi_server.exceptions import ConversionError, FetchError
from aqi_server.models import CycleState, RefreshOutcome, RefreshTrigger
from aqi_server.services.aqi_cache import AqiCache
from aqi_server.services.aqi_converter import convert_detailed
from aqi_server.services.purple_air_service import PurpleAirService

logger = logging.getLogger(__name__)


def next_hour_boundary(now: datetime) -> datetime:
    """
    The first whole hour strictly after now.

    14:23:10 -> 15:00:00, and 15:00:00 -> 16:00:00.
    """
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


class RefreshCycle:
    """
    Runs fetch -> convert -> cache on a schedule.

    HOW TO USE:
    ----------
    refresh = RefreshCycle(service, cache, sensor_id="123456", api_key="...")
    refresh.start()              # startup run + hourly runs
    ...
    await refresh.shutdown()     # stop the scheduler, close the HTTP client
    """

    JOB_ID = "aqi_refresh"
    STARTUP_JOB_ID = "aqi_refresh_startup"

    def __init__(
        self,
        service: PurpleAirService,
        cache: AqiCache,
        sensor_id: str,
        api_key: str,
        interval_seconds: int = 3600,
        stale_after: Optional[timedelta] = None,
        shutdown_timeout: float = 30.0,
    ):
        """
        Set up the refresh cycle.

        Args:
            service: Talks to PurpleAir
            cache: Where the AQI goes
            sensor_id: PurpleAir sensor index
            api_key: PurpleAir read key
            interval_seconds: Time between scheduled refreshes. Default is an hour.
            stale_after: Age after which the cached AQI counts as stale.
                         Default is two intervals.
            shutdown_timeout: How long shutdown() waits for a running refresh
        """
        self.service = service
        self.cache = cache
        self.sensor_id = sensor_id
        self.api_key = api_key
        self.interval_seconds = interval_seconds
        self.stale_after = stale_after or timedelta(seconds=2 * interval_seconds)
        self.shutdown_timeout = shutdown_timeout

        # This is the scheduler - it runs jobs on a timer
        self.scheduler = AsyncIOScheduler()

        self._state = CycleState.IDLE
        self._idle = asyncio.Event()
        self._idle.set()

        self._consecutive_failures = 0
        self._last_error: Optional[str] = None
        self._last_success_at: Optional[datetime] = None

    # =========================================================================
    # STATUS
    # =========================================================================

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def last_success_at(self) -> Optional[datetime]:
        return self._last_success_at

    @property
    def next_run_time(self) -> Optional[datetime]:
        """When the next scheduled refresh fires (None before start())."""
        job = self.scheduler.get_job(self.JOB_ID)
        if job is None:
            return None
        # Jobs added before the scheduler starts don't have this yet
        return getattr(job, "next_run_time", None)

    def is_stale(self) -> bool:
        return self.cache.is_stale(self.stale_after)

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def start(self, now: Optional[datetime] = None):
        """
        Schedule the startup refresh and the recurring one, then start the scheduler.

        Must be called with an event loop running (we do it in the app lifespan).
        """
        now = now or datetime.now(timezone.utc)
        first_run = next_hour_boundary(now)

        # Startup refresh: once, right now. misfire_grace_time=None means
        # "run even if the scheduler gets to it a bit late".
        self.scheduler.add_job(
            self.run_once,
            trigger=DateTrigger(run_date=now),
            id=self.STARTUP_JOB_ID,
            args=[RefreshTrigger.STARTUP],
            replace_existing=True,
            misfire_grace_time=None,
        )

        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds, start_date=first_run),
            id=self.JOB_ID,
            args=[RefreshTrigger.SCHEDULED],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info(
            f"[sensor {self.sensor_id}] Refresh scheduled: startup now, "
            f"then every {self.interval_seconds}s from {first_run.isoformat()}"
        )

    async def shutdown(self, timeout: Optional[float] = None):
        """Stop the scheduler, let a running refresh finish (briefly), close the client."""
        timeout = self.shutdown_timeout if timeout is None else timeout

        # Pause first: no new triggers, but a running job is left alone.
        # Shutting the scheduler down cancels whatever it is still running.
        if self.scheduler.running:
            self.scheduler.pause()

        if not self._idle.is_set():
            logger.info(f"[sensor {self.sensor_id}] Waiting up to {timeout}s for the running refresh")
            try:
                await asyncio.wait_for(self._idle.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[sensor {self.sensor_id}] Refresh still running after {timeout}s, abandoning it")

        try:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {e}", exc_info=True)

        await self.service.close()

    # =========================================================================
    # THE CYCLE ITSELF
    # =========================================================================

    async def run_once(self, trigger: RefreshTrigger = RefreshTrigger.SCHEDULED) -> RefreshOutcome:
        """
        One full fetch -> convert -> cache write.

        Never raises. Returns what happened so callers (and tests) can tell.
        """
        # No await between the check and the flip, so this can't race
        if self._state is CycleState.RUNNING:
            logger.warning(
                f"[sensor {self.sensor_id}] {trigger.value} refresh skipped - previous refresh still running"
            )
            return RefreshOutcome.SKIPPED

        self._state = CycleState.RUNNING
        self._idle.clear()

        try:
            reading = await self.service.fetch(self.sensor_id, self.api_key)
            conversion = convert_detailed(reading.pm25_24hr_average)
        except (FetchError, ConversionError) as e:
            self._record_failure(trigger, e.kind, e)
            return RefreshOutcome.FAILED
        except Exception as e:
            self._record_failure(trigger, "unexpected", e, exc_info=True)
            return RefreshOutcome.FAILED
        else:
            self.cache.set(conversion.aqi, source_timestamp=reading.timestamp)
            self._consecutive_failures = 0
            self._last_error = None
            self._last_success_at = datetime.now(timezone.utc)

            logger.info(
                f"[sensor {self.sensor_id}] {trigger.value} refresh ok - "
                f"PM2.5 24h avg {reading.pm25_24hr_average} -> AQI {conversion.aqi} "
                f"(data time {reading.timestamp})"
            )
            if conversion.saturated:
                logger.warning(
                    f"[sensor {self.sensor_id}] PM2.5 {conversion.pm25} is above the top of the "
                    f"AQI table, AQI {conversion.aqi} is past the end of the scale"
                )
            return RefreshOutcome.SUCCESS
        finally:
            self._state = CycleState.IDLE
            self._idle.set()

    def _record_failure(self, trigger: RefreshTrigger, kind: str, error: Exception, exc_info: bool = False):
        self._consecutive_failures += 1
        self._last_error = f"{kind}: {error}"

        streak = self._consecutive_failures
        if streak == 1:
            prefix = f"{trigger.value} refresh failed"
        else:
            prefix = f"{trigger.value} refresh failed ({streak} in a row)"

        logger.error(
            f"[sensor {self.sensor_id}] {prefix} - {kind} error: {error}. "
            f"Still serving AQI {self.cache.get()}",
            exc_info=exc_info,
        )

        if self.is_stale():
            logger.warning(
                f"[sensor {self.sensor_id}] Cached AQI is stale (older than {self.stale_after})"
            )
