"""Durable reminder store: one YAML file per reminder, keyed by id.

Every put and delete touches exactly one file, so a crash never leaves a
half-written record behind. Ids ever handed out are also appended to an
``.issued`` ledger so a deleted id is never reused.
"""

import logging
from pathlib import Path
from typing import NamedTuple

from league_bot.scheduling.reminders import Reminder
from league_bot.storage import (
    DATA_DIR,
    StoreError,
    atomic_write,
    dump_yaml,
    load_yaml,
    read_yaml_dir,
)

REMINDERS_DIR = DATA_DIR / "reminders"

log = logging.getLogger(__name__)


class ScanResult(NamedTuple):
    reminders: list[Reminder]
    corrupt: list[Path]


def _parse(filepath: Path, data: dict) -> Reminder:
    reminder = Reminder.from_record(data)
    if reminder.id != filepath.stem:
        raise ValueError(f"record id {reminder.id!r} does not match file name")
    return reminder


class ReminderStore:
    def __init__(self, dir_path: Path | None = None) -> None:
        self.dir = dir_path or REMINDERS_DIR
        self._issued: set[str] | None = None

    @property
    def _ledger(self) -> Path:
        return self.dir / ".issued"

    def _path(self, reminder_id: str) -> Path:
        return self.dir / f"{reminder_id}.yaml"

    def put(self, reminder: Reminder) -> None:
        self._record_issued(reminder.id)
        atomic_write(self._path(reminder.id), dump_yaml(reminder.to_record()))

    def delete(self, reminder_id: str) -> bool:
        try:
            self._path(reminder_id).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StoreError(f"could not delete reminder {reminder_id}: {e}") from e
        return True

    def get(self, reminder_id: str) -> Reminder | None:
        filepath = self._path(reminder_id)
        try:
            text = filepath.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"could not read reminder {reminder_id}: {e}") from e
        try:
            return _parse(filepath, load_yaml(text))
        except (ValueError, TypeError) as e:
            raise StoreError(f"corrupt reminder record {filepath}: {e}") from e

    def scan(self) -> ScanResult:
        """All parseable records plus the files that failed to parse."""
        parsed, corrupt = read_yaml_dir(self.dir)
        reminders: list[Reminder] = []
        for filepath, data in parsed:
            try:
                reminder = _parse(filepath, data)
            except (ValueError, TypeError) as e:
                log.warning("Skipping malformed reminder %s: %s", filepath, e)
                corrupt.append(filepath)
                continue
            reminders.append(reminder)
        return ScanResult(reminders, corrupt)

    def list_all(self) -> list[Reminder]:
        return self.scan().reminders

    def was_issued(self, reminder_id: str) -> bool:
        return reminder_id in self._issued_ids() or self._path(reminder_id).exists()

    def _issued_ids(self) -> set[str]:
        if self._issued is None:
            try:
                text = self._ledger.read_text() if self._ledger.exists() else ""
            except OSError as e:
                raise StoreError(f"could not read {self._ledger}: {e}") from e
            self._issued = {line.strip() for line in text.splitlines() if line.strip()}
        return self._issued

    def _record_issued(self, reminder_id: str) -> None:
        issued = self._issued_ids()
        if reminder_id in issued:
            return
        try:
            self.dir.mkdir(parents=True, exist_ok=True)
            with self._ledger.open("a") as f:
                f.write(reminder_id + "\n")
        except OSError as e:
            raise StoreError(f"could not record reminder id {reminder_id}: {e}") from e
        issued.add(reminder_id)
