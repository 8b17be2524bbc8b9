"""Startup reconciliation of stored reminders against the timer engine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from league_bot.scheduling.store import ReminderStore
from league_bot.scheduling.timers import Deliver, Finalize, TimerEngine
from league_bot.storage import StoreError

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecoveryReport:
    restored: int = 0
    expired: int = 0
    skipped: int = 0


def recover(
    store: ReminderStore,
    engine: TimerEngine,
    *,
    now: Callable[[], datetime],
    on_fire: Deliver,
    on_fired: Finalize,
    on_expired: Finalize,
) -> RecoveryReport:
    """Drop reminders that came due while offline and re-arm the rest.

    Overdue reminders are deleted without delivery. A record that can't be
    parsed or deleted is logged and skipped; only a store that can't be
    listed at all raises.
    """
    scan = store.scan()
    restored = 0
    expired = 0
    skipped = len(scan.corrupt)

    for reminder in scan.reminders:
        if reminder.fire_time() <= now():
            try:
                removed = store.delete(reminder.id)
            except StoreError:
                log.exception("Could not remove expired reminder %s", reminder.id)
                skipped += 1
                continue
            if not removed:
                continue
            log.info("Reminder %s expired while offline (fire_at %s)", reminder.id, reminder.fire_at)
            expired += 1
        elif engine.arm(
            reminder, on_fire=on_fire, on_fired=on_fired, on_expired=on_expired
        ):
            restored += 1
        elif not engine.is_armed(reminder.id):
            # Came due between the check above and arming.
            expired += 1

    log.info("Restored %d reminder(s), removed %d expired.", restored, expired)
    if skipped:
        log.warning("Skipped %d unreadable reminder record(s)", skipped)
    return RecoveryReport(restored=restored, expired=expired, skipped=skipped)
