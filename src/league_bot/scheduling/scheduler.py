"""Periodic league cache refresh via APScheduler.

Every configured guild's league page is re-scraped on an interval so /league
and deadline-less /remind work from fresh data.
"""

from __future__ import annotations

import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from league_bot.guilds import all_guild_configs, set_guild_config
from league_bot.musicleague import LeagueFetchError, fetch_league

log = logging.getLogger(__name__)


async def refresh_leagues() -> int:
    """Re-fetch every configured league. Returns how many refreshed."""
    refreshed = 0
    for guild_id, cfg in all_guild_configs().items():
        if not cfg.league_url:
            continue
        try:
            league = await fetch_league(cfg.league_url)
        except LeagueFetchError as e:
            log.warning("League refresh failed for guild %s: %s", guild_id, e)
            continue
        set_guild_config(guild_id, league_cache=league.to_dict(), last_fetched=time.time())
        refreshed += 1
    log.info("Refreshed %d league(s)", refreshed)
    return refreshed


def setup_scheduler(refresh_hours: int) -> AsyncIOScheduler:
    """No jobs are added when ``refresh_hours`` is 0."""
    scheduler = AsyncIOScheduler(timezone="UTC")
    if refresh_hours > 0:
        scheduler.add_job(
            refresh_leagues,
            IntervalTrigger(hours=refresh_hours),
            id="league_refresh",
            max_instances=1,
            coalesce=True,
        )
    return scheduler
