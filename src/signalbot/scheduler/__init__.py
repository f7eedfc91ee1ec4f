"""Daily trigger scheduler for the summary batch."""

from signalbot.scheduler.scheduler import (
    DailyTrigger,
    ScheduleInfo,
    TriggerScheduler,
    parse_trigger,
    resolve_timezone,
)

__all__ = [
    "DailyTrigger",
    "ScheduleInfo",
    "TriggerScheduler",
    "parse_trigger",
    "resolve_timezone",
]
