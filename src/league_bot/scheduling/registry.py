"""Reminder registry: the only component that creates or deletes records.

Whichever of cancel() and a finishing fire deletes the record first wins;
the loser's delete is a no-op. Both run under one lock together with the
timer-handle cleanup.
"""

from __future__ import annotations

import asyncio
import logging
import re
import threading
from collections.abc import Callable
from datetime import datetime
from typing import Any

from league_bot.scheduling.recovery import RecoveryReport, recover
from league_bot.scheduling.reminders import (
    Reminder,
    ReminderKind,
    ValidationError,
    new_reminder_id,
)
from league_bot.scheduling.store import ReminderStore
from league_bot.scheduling.timers import Deliver, TimerEngine, utcnow
from league_bot.storage import StoreError

log = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[\w-]{1,64}$")
_MAX_ID_ATTEMPTS = 20


class ReminderRegistry:
    def __init__(
        self,
        store: ReminderStore,
        deliver: Deliver,
        *,
        engine: TimerEngine | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self._deliver = deliver
        self._now = now
        self.engine = engine or TimerEngine(now=now)
        self._lock = threading.RLock()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def startup(self) -> RecoveryReport:
        """Reconcile the store with the timer engine. Must run exactly once."""
        if self._started:
            raise RuntimeError("reminder registry already started")
        report = recover(
            self.store,
            self.engine,
            now=self._now,
            on_fire=self._deliver,
            on_fired=self.on_fired,
            on_expired=self._on_expired,
        )
        self._started = True
        return report

    def register(
        self,
        guild_id: str,
        channel_id: str,
        kind: ReminderKind | str,
        deadline: datetime,
        fire_at: datetime,
        payload: dict[str, Any] | None = None,
    ) -> str:
        """Persist and arm a new reminder. Returns its id."""
        self._require_started()
        guild_id, channel_id = str(guild_id), str(channel_id)
        for name, value in (("guild_id", guild_id), ("channel_id", channel_id)):
            if not _ID_RE.match(value):
                raise ValidationError(f"malformed {name}: {value!r}")
        try:
            kind = ReminderKind(kind)
        except ValueError:
            raise ValidationError(f"unknown reminder kind: {kind!r}") from None
        if deadline.tzinfo is None or fire_at.tzinfo is None:
            raise ValidationError("deadline and fire_at must be timezone-aware")
        if fire_at > deadline:
            raise ValidationError("reminder would fire after its deadline")
        now = self._now()
        if fire_at <= now:
            raise ValidationError("reminder time is in the past")
        _require_loop()

        with self._lock:
            reminder = Reminder.new(
                guild_id=guild_id,
                channel_id=channel_id,
                kind=kind,
                deadline=deadline,
                fire_at=fire_at,
                payload=payload,
                reminder_id=self._fresh_id(),
                now=now,
            )
            self.store.put(reminder)
            try:
                self.engine.arm(
                    reminder,
                    on_fire=self._deliver,
                    on_fired=self.on_fired,
                    on_expired=self._on_expired,
                )
            except BaseException:
                self.store.delete(reminder.id)
                raise
        log.info(
            "Reminder %s registered for guild %s (%s, fires %s)",
            reminder.id,
            guild_id,
            kind.value,
            reminder.fire_at,
        )
        return reminder.id

    def cancel(self, guild_id: str, reminder_id: str) -> bool:
        """False when no live reminder with that id exists in the guild."""
        self._require_started()
        _require_loop()
        with self._lock:
            reminder = self.store.get(reminder_id)
            if reminder is None or reminder.guild_id != str(guild_id):
                return False
            self.engine.disarm(reminder_id)
            removed = self.store.delete(reminder_id)
        if removed:
            log.info("Reminder %s cancelled", reminder_id)
        return removed

    def list(self, guild_id: str) -> list[Reminder]:
        """Upcoming reminders for one guild, soonest first."""
        now = self._now()
        return sorted(
            (
                r
                for r in self.store.list_all()
                if r.guild_id == str(guild_id) and r.fire_time() > now
            ),
            key=Reminder.sort_key,
        )

    def get(self, reminder_id: str) -> Reminder | None:
        return self.store.get(reminder_id)

    def on_fired(self, reminder_id: str) -> None:
        """Finalize after a delivery attempt. Safe to call more than once."""
        with self._lock:
            self.engine.disarm(reminder_id)
            try:
                removed = self.store.delete(reminder_id)
            except StoreError:
                log.exception("Could not remove fired reminder %s", reminder_id)
                return
        if removed:
            log.info("Reminder %s fired and removed", reminder_id)

    def _on_expired(self, reminder_id: str) -> None:
        with self._lock:
            try:
                self.store.delete(reminder_id)
            except StoreError:
                log.exception("Could not remove expired reminder %s", reminder_id)
                return
        log.info("Reminder %s expired before it could be armed", reminder_id)

    async def shutdown(self) -> None:
        """Stop pending timers. Records stay in the store for the next startup."""
        await self.engine.close()

    def _require_started(self) -> None:
        if not self._started:
            raise RuntimeError("reminder registry used before startup()")

    def _fresh_id(self) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = new_reminder_id()
            if not self.store.was_issued(candidate) and not self.engine.is_armed(
                candidate
            ):
                return candidate
        raise StoreError("could not generate an unused reminder id")


def _require_loop() -> None:
    """Timer tasks belong to the running loop; worker threads must not arm or disarm."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        raise RuntimeError("reminder registry used outside the event loop") from None


def startup(
    store: ReminderStore,
    deliver: Deliver,
    **kwargs: Any,
) -> tuple[ReminderRegistry, RecoveryReport]:
    """Create a registry over ``store`` and run recovery before handing it out."""
    registry = ReminderRegistry(store, deliver, **kwargs)
    return registry, registry.startup()
