"""Scheduling: durable deadline reminders, delay-chained timers, startup recovery."""

from league_bot.scheduling.recovery import RecoveryReport
from league_bot.scheduling.registry import ReminderRegistry, startup
from league_bot.scheduling.reminders import Reminder, ReminderKind, ValidationError
from league_bot.scheduling.store import ReminderStore
from league_bot.scheduling.timers import MAX_DELAY, DeliveryError, TimerEngine

__all__ = [
    "MAX_DELAY",
    "DeliveryError",
    "RecoveryReport",
    "Reminder",
    "ReminderKind",
    "ReminderRegistry",
    "ReminderStore",
    "TimerEngine",
    "ValidationError",
    "startup",
]
