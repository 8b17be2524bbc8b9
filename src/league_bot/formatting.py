"""Date parsing for command input and Discord timestamp markup."""

import re
from datetime import datetime, tzinfo
from typing import Literal

TimestampStyle = Literal["t", "T", "d", "D", "f", "F", "R"]

_SIMPLE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(\d{1,2}:\d{2})$")


def parse_datetime(text: str, tz: tzinfo) -> datetime | None:
    """Accept ISO 8601 or ``YYYY-MM-DD HH:MM``; naive values are read in ``tz``."""
    text = text.strip()
    if not text:
        return None
    if m := _SIMPLE_RE.match(text):
        text = f"{m.group(1)}T{m.group(2).zfill(5)}"
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def discord_timestamp(dt: datetime, style: TimestampStyle = "F") -> str:
    """``<t:unix:style>`` renders in each viewer's own timezone."""
    return f"<t:{int(dt.timestamp())}:{style}>"
