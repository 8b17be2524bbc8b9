"""Shared fixtures for league-bot tests."""

import asyncio
import os
from datetime import datetime, timedelta, timezone

os.environ["LEAGUE_BOT_TIMEZONE"] = "UTC"

import pytest

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    """Redirect all data file paths to a temp directory."""
    import league_bot.guilds as guilds_mod
    import league_bot.main as main_mod
    import league_bot.scheduling.store as store_mod
    import league_bot.storage as storage_mod

    state_dir = tmp_path / "state"
    monkeypatch.setattr(storage_mod, "DATA_DIR", tmp_path)
    monkeypatch.setattr(storage_mod, "STATE_DIR", state_dir)
    monkeypatch.setattr(store_mod, "REMINDERS_DIR", tmp_path / "reminders")
    monkeypatch.setattr(guilds_mod, "GUILDS_FILE", state_dir / "guilds.json")
    monkeypatch.setattr(main_mod, "PID_FILE", state_dir / "bot.pid")
    return tmp_path


async def settle() -> None:
    """Let every ready task run until it blocks again."""
    for _ in range(20):
        await asyncio.sleep(0)


class FakeClock:
    """Wall clock plus sleep() that only returns when the test advances time."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start
        self.sleeps: list[float] = []
        self._waiters: list[tuple[datetime, asyncio.Future[None]]] = []

    def now(self) -> datetime:
        return self.current

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        fut = asyncio.get_running_loop().create_future()
        self._waiters.append((self.current + timedelta(seconds=seconds), fut))
        await fut

    def jump(self, seconds: float) -> None:
        """Move the wall clock without waking any sleeper (host suspend)."""
        self.current += timedelta(seconds=seconds)

    async def advance(self, seconds: float) -> None:
        target = self.current + timedelta(seconds=seconds)
        while True:
            await settle()
            self._waiters = [w for w in self._waiters if not w[1].done()]
            due = [w for w in self._waiters if w[0] <= target]
            if not due:
                break
            when, fut = min(due, key=lambda w: w[0])
            self.current = max(self.current, when)
            fut.set_result(None)
        self.current = target
        await settle()

    @property
    def pending(self) -> int:
        return sum(1 for _, fut in self._waiters if not fut.done())


@pytest.fixture()
def clock():
    return FakeClock()


class Recorder:
    """Delivery callback that records each reminder and the time it fired."""

    def __init__(self, clock: FakeClock, *, fail_ids: set[str] | None = None) -> None:
        self.clock = clock
        self.fail_ids = fail_ids or set()
        self.delivered: list[tuple[str, datetime]] = []

    async def __call__(self, reminder) -> bool:
        self.delivered.append((reminder.id, self.clock.now()))
        if reminder.id in self.fail_ids:
            raise RuntimeError(f"boom {reminder.id}")
        return True

    @property
    def ids(self) -> list[str]:
        return [rid for rid, _ in self.delivered]


@pytest.fixture()
def recorder(clock):
    return Recorder(clock)
