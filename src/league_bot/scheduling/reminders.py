"""Reminder data model.

A reminder is a one-shot deadline nudge for one guild channel. ``fire_at`` is
fixed at creation; changing it means cancelling and registering a new one.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from jsonschema import Draft7Validator


class ValidationError(ValueError):
    """Registration input rejected; nothing was stored."""


class ReminderKind(str, Enum):
    SUBMISSION = "submission"
    VOTING = "voting"
    BOTH = "both"


def new_reminder_id() -> str:
    """8 hex chars; short enough to type into /cancelreminder."""
    return uuid4().hex[:8]


@dataclass(frozen=True, slots=True)
class Reminder:
    id: str
    guild_id: str
    channel_id: str
    kind: str
    deadline: str  # ISO datetime
    fire_at: str  # ISO datetime
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: str = ""

    @staticmethod
    def new(
        *,
        guild_id: str,
        channel_id: str,
        kind: ReminderKind | str,
        deadline: datetime,
        fire_at: datetime,
        payload: dict[str, Any] | None = None,
        reminder_id: str | None = None,
        now: datetime | None = None,
    ) -> "Reminder":
        created = now or datetime.now(fire_at.tzinfo)
        return Reminder(
            id=reminder_id or new_reminder_id(),
            guild_id=str(guild_id),
            channel_id=str(channel_id),
            kind=ReminderKind(kind).value,
            deadline=deadline.isoformat(),
            fire_at=fire_at.isoformat(),
            payload=dict(payload or {}),
            created_at=created.isoformat(),
        )

    def fire_time(self) -> datetime:
        return datetime.fromisoformat(self.fire_at)

    def deadline_time(self) -> datetime:
        return datetime.fromisoformat(self.deadline)

    def sort_key(self) -> tuple[datetime, str]:
        return (self.fire_time(), self.id)

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Reminder":
        """Build from a stored mapping. Raises ValueError if it is malformed."""
        errors = record_errors(data)
        if errors:
            raise ValueError("; ".join(errors))
        reminder = cls(
            id=data["id"],
            guild_id=str(data["guild_id"]),
            channel_id=str(data["channel_id"]),
            kind=data["kind"],
            deadline=data["deadline"],
            fire_at=data["fire_at"],
            payload=dict(data.get("payload") or {}),
            created_at=data.get("created_at", ""),
        )
        fire, deadline = reminder.fire_time(), reminder.deadline_time()
        if fire.tzinfo is None or deadline.tzinfo is None:
            raise ValueError("timestamps must carry a UTC offset")
        return reminder


RECORD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["id", "guild_id", "channel_id", "kind", "deadline", "fire_at"],
    "properties": {
        "id": {"type": "string", "pattern": "^[0-9a-f]{8}$"},
        "guild_id": {"type": ["string", "integer"]},
        "channel_id": {"type": ["string", "integer"]},
        "kind": {"enum": [k.value for k in ReminderKind]},
        "deadline": {"type": "string", "minLength": 10},
        "fire_at": {"type": "string", "minLength": 10},
        "payload": {"type": ["object", "null"]},
        "created_at": {"type": "string"},
    },
}

_validator = Draft7Validator(RECORD_SCHEMA)


def record_errors(data: Any) -> list[str]:
    """Structural problems with a stored record, empty when well-formed."""
    errors = [err.message for err in _validator.iter_errors(data)]
    if errors:
        return errors
    try:
        datetime.fromisoformat(data["deadline"])
        datetime.fromisoformat(data["fire_at"])
    except ValueError as e:
        return [str(e)]
    return []
