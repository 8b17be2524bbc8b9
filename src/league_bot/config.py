"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        print(f"{name} must be an integer, got {raw!r}", file=sys.stderr)
        raise SystemExit(1) from None


def _detect_local_tz() -> str:
    """Detect the system's IANA timezone name. Falls back to UTC."""
    # Debian/Ubuntu: plain text file with IANA name
    etc_tz = Path("/etc/timezone")
    if etc_tz.exists():
        name = etc_tz.read_text().strip()
        if name:
            return name

    # Most Linux/WSL: /etc/localtime is a symlink into zoneinfo
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        target = str(localtime.resolve())
        marker = "/zoneinfo/"
        idx = target.find(marker)
        if idx != -1:
            return target[idx + len(marker) :]

    return "UTC"


DATA_DIR: Path = Path(
    os.environ.get("LEAGUE_BOT_DATA_DIR") or Path.home() / ".league-bot"
).expanduser()
TZ: ZoneInfo = ZoneInfo(os.environ.get("LEAGUE_BOT_TIMEZONE") or _detect_local_tz())
REMIND_BEFORE_MINUTES: int = _int_env("LEAGUE_BOT_REMIND_BEFORE", 60)
REFRESH_HOURS: int = _int_env("LEAGUE_BOT_REFRESH_HOURS", 6)
ML_COOKIE: str = os.environ.get("ML_COOKIE", "")
