"""Per-guild settings: league URL, notify channel, cached league data."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

from league_bot.storage import STATE_DIR, read_json, write_json

GUILDS_FILE: Path = STATE_DIR / "guilds.json"


@dataclass(frozen=True, slots=True)
class GuildConfig:
    league_url: str | None = None
    notify_channel_id: str | None = None
    league_cache: dict[str, Any] = field(default_factory=dict)
    last_fetched: float | None = None  # epoch seconds


def _read() -> dict[str, dict[str, Any]]:
    return read_json(GUILDS_FILE, {})


def _from_dict(data: dict[str, Any]) -> GuildConfig:
    known = GuildConfig.__dataclass_fields__
    return GuildConfig(**{k: v for k, v in data.items() if k in known})


def get_guild_config(guild_id: str | int) -> GuildConfig | None:
    data = _read().get(str(guild_id))
    return _from_dict(data) if data is not None else None


def all_guild_configs() -> dict[str, GuildConfig]:
    return {gid: _from_dict(data) for gid, data in _read().items()}


def set_guild_config(guild_id: str | int, **updates: Any) -> GuildConfig:
    """Merge updates into the guild's config and persist. Unknown keys raise."""
    configs = _read()
    current = _from_dict(configs.get(str(guild_id), {}))
    updated = replace(current, **updates)
    configs[str(guild_id)] = asdict(updated)
    write_json(GUILDS_FILE, configs)
    return updated
