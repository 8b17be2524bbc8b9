"""Delay-chained reminder timers, one asyncio task per armed reminder.

A single sleep is capped at ``max_delay``. Longer waits are split into
intermediate hops of ``max_delay`` each, recomputing the remaining delay from
the wall clock after every hop. The chain keeps hopping until the wall clock
has reached ``fire_at``, so delivery is never early.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from league_bot.scheduling.reminders import Reminder

log = logging.getLogger(__name__)

# Host setTimeout ceiling the bot was first deployed against: 2**31 - 1 ms.
MAX_DELAY = (2**31 - 1) / 1000
# Terminal hops overshoot by a few ms; only warn past this many seconds.
LATE_WARNING = 1.0

Deliver = Callable[[Reminder], Awaitable[bool | None]]
Finalize = Callable[[str], None]


class DeliveryError(Exception):
    """The delivery callback could not post the reminder."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerEngine:
    def __init__(
        self,
        *,
        max_delay: float = MAX_DELAY,
        now: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_delay <= 0:
            raise ValueError("max_delay must be positive")
        self.max_delay = max_delay
        self._now = now
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task[None]] = {}

    def remaining(self, reminder: Reminder) -> float:
        return (reminder.fire_time() - self._now()).total_seconds()

    def arm(
        self,
        reminder: Reminder,
        *,
        on_fire: Deliver,
        on_fired: Finalize,
        on_expired: Finalize,
    ) -> bool:
        """Start the timer chain. Returns False if already armed or already due.

        A reminder whose fire time has passed is not armed; ``on_expired`` is
        called instead and no delivery happens.
        """
        if reminder.id in self._tasks:
            return False
        if self.remaining(reminder) <= 0:
            on_expired(reminder.id)
            return False
        task = asyncio.get_running_loop().create_task(
            self._chain(reminder, on_fire, on_fired),
            name=f"reminder-{reminder.id}",
        )
        self._tasks[reminder.id] = task
        return True

    def disarm(self, reminder_id: str) -> bool:
        """Cancel a pending chain. A chain already delivering is not interrupted."""
        task = self._tasks.pop(reminder_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    def is_armed(self, reminder_id: str) -> bool:
        return reminder_id in self._tasks

    def armed_ids(self) -> set[str]:
        return set(self._tasks)

    async def close(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _chain(
        self, reminder: Reminder, on_fire: Deliver, on_fired: Finalize
    ) -> None:
        # Sleeps run on the loop's monotonic clock; the wall clock is re-read
        # after every hop so a clock step backwards never fires early.
        delay = self.remaining(reminder)
        while delay > 0:
            await self._sleep(min(delay, self.max_delay))
            delay = self.remaining(reminder)
            if delay > 0:
                log.debug("reminder %s re-armed, %.0fs remaining", reminder.id, delay)
        if delay <= -LATE_WARNING:
            log.warning("reminder %s is %.0fs late, firing now", reminder.id, -delay)

        # Past this point disarm() can no longer cancel the delivery.
        if self._tasks.get(reminder.id) is asyncio.current_task():
            del self._tasks[reminder.id]
        try:
            ok = await on_fire(reminder)
            if ok is False:
                log.warning("Reminder %s delivery reported failure", reminder.id)
        except Exception:
            log.exception("Reminder %s delivery failed", reminder.id)
        finally:
            on_fired(reminder.id)
