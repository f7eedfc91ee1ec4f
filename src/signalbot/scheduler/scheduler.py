"""Daily trigger scheduler -- fires the summary batch at fixed wall-clock times.

Each configured "HH:MM" becomes a cron expression ``"M H * * *"`` evaluated
by croniter in the configured timezone, and runs as its own asyncio task that
sleeps until the next fire time. Triggers are independent: a firing while a
batch is still running is rejected by the orchestrator's single-run guard.

Malformed entries are skipped with a warning; they never stop the other
triggers from registering or the scheduler from starting.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from signalbot.config import ScheduleSettings
from signalbot.exceptions import ConfigurationError
from signalbot.logging import get_logger

if TYPE_CHECKING:
    from signalbot.signals.orchestrator import SignalOrchestrator

logger = get_logger(__name__)

_ERROR_RETRY_SECONDS = 60.0


@dataclass(frozen=True)
class DailyTrigger:
    """One recurring daily fire time."""

    time_str: str
    expression: str

    def next_run(self, now: datetime) -> datetime:
        """First fire time strictly after ``now`` (aware, in now's timezone)."""
        return croniter(self.expression, now).get_next(datetime)


@dataclass
class ScheduleInfo:
    """Read-only snapshot of scheduler state."""

    timezone: str
    configured_times: list[str]
    active_jobs: int
    next_runs: list[datetime] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "timezone": self.timezone,
            "configured_times": list(self.configured_times),
            "active_jobs": self.active_jobs,
            "next_runs": [run.isoformat() for run in self.next_runs],
        }


def resolve_timezone(name: str) -> tuple[tzinfo, str]:
    """Load an IANA zone, falling back to UTC when it cannot be resolved."""
    try:
        return ZoneInfo(name), name
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("timezone_not_found_using_utc", timezone=name)
        return timezone.utc, "UTC"


def parse_trigger(time_str: str) -> DailyTrigger:
    """Turn "HH:MM" into a DailyTrigger.

    Raises:
        ConfigurationError: not two numeric fields, or out of range.
    """
    parts = time_str.split(":")
    if len(parts) != 2 or not all(part.strip().isdigit() for part in parts):
        raise ConfigurationError(f"invalid time format: {time_str!r}, expected HH:MM")

    hour, minute = (int(part) for part in parts)
    expression = f"{minute} {hour} * * *"
    if not croniter.is_valid(expression):
        raise ConfigurationError(f"time out of range: {time_str!r}")
    return DailyTrigger(time_str=time_str, expression=expression)


class TriggerScheduler:
    """Runs the summary batch daily at each configured time.

    Args:
        orchestrator: Target of every firing.
        settings: Trigger times and timezone.
        clock: Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        orchestrator: SignalOrchestrator,
        settings: ScheduleSettings,
        clock: Callable[[tzinfo], datetime] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._configured_times = [t.strip() for t in settings.times]
        self._tz, self._tz_name = resolve_timezone(settings.timezone)
        self._clock = clock or datetime.now
        self._triggers: list[DailyTrigger] = []
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._running = False

    def _now(self) -> datetime:
        return self._clock(self._tz)

    def _register(self) -> list[DailyTrigger]:
        triggers: list[DailyTrigger] = []
        seen: set[str] = set()
        for time_str in self._configured_times:
            if not time_str:
                continue
            try:
                trigger = parse_trigger(time_str)
            except ConfigurationError as e:
                logger.warning("schedule_entry_skipped", entry=time_str, error=str(e))
                continue
            if trigger.expression in seen:
                logger.debug("schedule_entry_duplicate", entry=time_str)
                continue
            seen.add(trigger.expression)
            triggers.append(trigger)
            logger.info(
                "trigger_registered",
                entry=time_str,
                cron=trigger.expression,
                timezone=self._tz_name,
            )
        return triggers

    async def start(self) -> None:
        """Register all valid triggers and start their timers."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._triggers = self._register()
        self._running = True
        for trigger in self._triggers:
            task = asyncio.create_task(
                self._trigger_loop(trigger), name=f"trigger-{trigger.time_str}"
            )
            self._tasks.append(task)

        logger.info(
            "scheduler_started",
            timezone=self._tz_name,
            configured_times=self._configured_times,
            active_jobs=len(self._triggers),
        )

    async def stop(self) -> None:
        """Halt all future firings. In-flight batch runs are left to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.error("trigger_task_failed", task=task.get_name(), exc_info=True)
        self._tasks.clear()
        self._triggers = []
        logger.info("scheduler_stopped")

    async def _trigger_loop(self, trigger: DailyTrigger) -> None:
        next_run: datetime | None = None
        while self._running:
            try:
                if next_run is None:
                    next_run = trigger.next_run(self._now())
                delay = (next_run - self._now()).total_seconds()
                if delay > 0:
                    await asyncio.sleep(delay)
                    continue
                self._fire(trigger)
                next_run = None
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("trigger_loop_error", entry=trigger.time_str, exc_info=True)
                next_run = None
                await asyncio.sleep(_ERROR_RETRY_SECONDS)

    def _fire(self, trigger: DailyTrigger) -> None:
        logger.info(
            "trigger_fired",
            entry=trigger.time_str,
            at=self._now().isoformat(),
            timezone=self._tz_name,
        )
        try:
            started = self._orchestrator.start_batch(deliver_each=False, announce=True)
        except Exception:
            logger.error("trigger_fire_failed", entry=trigger.time_str, exc_info=True)
            return
        if not started:
            logger.warning("trigger_skipped_batch_running", entry=trigger.time_str)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def get_schedule_info(self) -> ScheduleInfo:
        """Snapshot of timezone, raw times, active trigger count and next fire times."""
        now = self._now()
        return ScheduleInfo(
            timezone=self._tz_name,
            configured_times=list(self._configured_times),
            active_jobs=len(self._triggers),
            next_runs=[trigger.next_run(now) for trigger in self._triggers],
        )
