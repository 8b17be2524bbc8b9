"""Discord bot: slash commands for league info and deadline reminders."""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional

import discord
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from discord import app_commands
from discord.ext import commands

from league_bot import config
from league_bot.delivery import make_deliver
from league_bot.embeds import (
    help_embed,
    league_embed,
    reminder_payload,
    reminder_set_embed,
    reminders_list_embed,
)
from league_bot.formatting import parse_datetime
from league_bot.guilds import GuildConfig, get_guild_config, set_guild_config
from league_bot.musicleague import (
    League,
    LeagueFetchError,
    deadline_descriptors,
    fetch_league,
)
from league_bot.scheduling import (
    ReminderKind,
    ReminderRegistry,
    ReminderStore,
    ValidationError,
)
from league_bot.scheduling.scheduler import setup_scheduler
from league_bot.storage import StoreError

log = logging.getLogger(__name__)

_registry: ReminderRegistry | None = None
_scheduler: AsyncIOScheduler | None = None


def get_registry() -> ReminderRegistry | None:
    """None until the first on_ready has run recovery."""
    return _registry


def cached_deadline(cfg: GuildConfig | None, kind: ReminderKind) -> datetime | None:
    """Deadline for ``kind`` from the cached active round, if the cache has one."""
    if cfg is None or not cfg.league_cache:
        return None
    league = League.from_dict(cfg.league_cache)
    by_kind = {d.kind: d.deadline for d in deadline_descriptors(league)}
    if kind is ReminderKind.BOTH:
        return by_kind.get(ReminderKind.SUBMISSION) or by_kind.get(ReminderKind.VOTING)
    return by_kind.get(kind)


def _fetch_age_minutes(cfg: GuildConfig) -> str:
    if cfg.last_fetched is None:
        return "?"
    return str(round((time.time() - cfg.last_fetched) / 60))


def create_bot() -> commands.Bot:
    intents = discord.Intents.default()
    bot = commands.Bot(command_prefix="!", intents=intents)
    _ready_fired = False

    async def _require_registry(
        interaction: discord.Interaction,
    ) -> ReminderRegistry | None:
        if _registry is None:
            await interaction.response.send_message(
                "⏳ Still starting up, try again in a moment.", ephemeral=True
            )
        return _registry

    @bot.tree.command(name="help", description="Show help for the Music League bot")
    async def slash_help(interaction: discord.Interaction):
        await interaction.response.send_message(embed=help_embed())

    @bot.tree.command(
        name="setchannel",
        description="Set the channel where reminders and league updates are posted",
    )
    @app_commands.describe(channel="The channel to use")
    async def slash_setchannel(
        interaction: discord.Interaction, channel: discord.TextChannel
    ):
        set_guild_config(interaction.guild_id, notify_channel_id=str(channel.id))
        await interaction.response.send_message(
            f"✅ Reminders and updates will be posted in <#{channel.id}>.", ephemeral=True
        )

    async def _fetch_into_cache(guild_id: int, url: str) -> League:
        league = await fetch_league(url)
        set_guild_config(guild_id, league_cache=league.to_dict(), last_fetched=time.time())
        return league

    @bot.tree.command(name="setleague", description="Set the Music League URL for this server")
    @app_commands.describe(url="The Music League URL (e.g. https://app.musicleague.com/l/xxxx/)")
    async def slash_setleague(interaction: discord.Interaction, url: str):
        if "musicleague.com" not in url:
            await interaction.response.send_message(
                "❌ That doesn't look like a Music League URL. "
                "Please use a URL from `musicleague.com`.",
                ephemeral=True,
            )
            return
        set_guild_config(interaction.guild_id, league_url=url)
        await interaction.response.send_message("⏳ League URL saved! Attempting to fetch info...")
        try:
            league = await _fetch_into_cache(interaction.guild_id, url)
        except LeagueFetchError as e:
            await interaction.edit_original_response(
                content=(
                    f"✅ League URL saved, but couldn't auto-fetch data: `{e}`\n\n"
                    "This is expected if your league is private — use `/remind` "
                    "to set deadlines manually."
                )
            )
            return
        await interaction.edit_original_response(content="✅ League set!", embed=league_embed(league))

    @bot.tree.command(name="league", description="Show the current Music League info and active round")
    async def slash_league(interaction: discord.Interaction):
        cfg = get_guild_config(interaction.guild_id)
        if cfg is None or not cfg.league_url:
            await interaction.response.send_message(
                "❌ No league set. Use `/setleague <url>` first.", ephemeral=True
            )
            return
        if cfg.league_cache:
            league = League.from_dict(cfg.league_cache)
            league.url = cfg.league_url
            await interaction.response.send_message(
                f"*Last fetched {_fetch_age_minutes(cfg)} min ago. Use `/fetch` to refresh.*",
                embed=league_embed(league),
            )
            return
        await interaction.response.send_message(
            f"League URL: <{cfg.league_url}>\n\nNo cached data yet — use `/fetch` to load info."
        )

    @bot.tree.command(name="fetch", description="Manually fetch and display the latest round info")
    async def slash_fetch(interaction: discord.Interaction):
        cfg = get_guild_config(interaction.guild_id)
        if cfg is None or not cfg.league_url:
            await interaction.response.send_message(
                "❌ No league set. Use `/setleague <url>` first.", ephemeral=True
            )
            return
        await interaction.response.send_message("⏳ Fetching league data...")
        try:
            league = await _fetch_into_cache(interaction.guild_id, cfg.league_url)
        except LeagueFetchError as e:
            await interaction.edit_original_response(
                content=(
                    f"❌ Failed to fetch: `{e}`\n\nIf your league is private/requires "
                    "login, scraping won't work. Use `/remind` to set deadlines manually."
                )
            )
            return
        await interaction.edit_original_response(content="✅ Fetched!", embed=league_embed(league))

    @bot.tree.command(name="remind", description="Set a reminder for submissions or voting")
    @app_commands.describe(
        type="What to remind about",
        datetime_="When is the deadline? (e.g. \"2024-12-25 18:00\" or ISO format)",
        remind_before="Minutes before the deadline to send the reminder (default: 60)",
    )
    @app_commands.rename(datetime_="datetime")
    @app_commands.choices(
        type=[
            app_commands.Choice(name="Submission deadline", value="submission"),
            app_commands.Choice(name="Voting deadline", value="voting"),
            app_commands.Choice(name="Both", value="both"),
        ]
    )
    async def slash_remind(
        interaction: discord.Interaction,
        type: app_commands.Choice[str],
        datetime_: str | None = None,
        remind_before: Optional[app_commands.Range[int, 0]] = None,
    ):
        registry = await _require_registry(interaction)
        if registry is None:
            return
        kind = ReminderKind(type.value)
        cfg = get_guild_config(interaction.guild_id)

        if datetime_:
            deadline = parse_datetime(datetime_, config.TZ)
            if deadline is None:
                await interaction.response.send_message(
                    "❌ Couldn't parse that date. Try formats like `2024-12-25 18:00` "
                    "or `2024-12-25T18:00:00Z`.",
                    ephemeral=True,
                )
                return
        else:
            deadline = cached_deadline(cfg, kind)
            if deadline is None:
                await interaction.response.send_message(
                    "❌ No deadline known for the active round. Pass a `datetime` "
                    "or use `/fetch` first.",
                    ephemeral=True,
                )
                return

        minutes = config.REMIND_BEFORE_MINUTES if remind_before is None else remind_before
        fire_at = deadline - timedelta(minutes=minutes)
        channel_id = (cfg.notify_channel_id if cfg else None) or interaction.channel_id

        try:
            reminder_id = registry.register(
                str(interaction.guild_id),
                str(channel_id),
                kind,
                deadline,
                fire_at,
                reminder_payload(kind, cfg.league_url if cfg else None),
            )
        except ValidationError as e:
            await interaction.response.send_message(f"❌ {e}", ephemeral=True)
            return
        except StoreError:
            log.exception("Saving reminder failed for guild %s", interaction.guild_id)
            await interaction.response.send_message(
                "❌ Couldn't save that reminder. Try again later.", ephemeral=True
            )
            return

        reminder = registry.get(reminder_id)
        if reminder is None:
            await interaction.response.send_message(
                f"⚠️ Reminder `{reminder_id}` came due immediately and was dropped.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(embed=reminder_set_embed(reminder))

    @bot.tree.command(name="reminders", description="List all active reminders for this server")
    async def slash_reminders(interaction: discord.Interaction):
        registry = await _require_registry(interaction)
        if registry is None:
            return
        reminders = registry.list(str(interaction.guild_id))
        if not reminders:
            await interaction.response.send_message(
                "📋 No active reminders. Use `/remind` to set one.", ephemeral=True
            )
            return
        await interaction.response.send_message(embed=reminders_list_embed(reminders))

    @bot.tree.command(name="cancelreminder", description="Cancel a reminder by its ID")
    @app_commands.describe(id="The reminder ID (from /reminders)")
    async def slash_cancelreminder(interaction: discord.Interaction, id: str):
        registry = await _require_registry(interaction)
        if registry is None:
            return
        try:
            cancelled = registry.cancel(str(interaction.guild_id), id.strip())
        except StoreError:
            log.exception("Cancelling reminder %s failed", id)
            await interaction.response.send_message(
                "❌ Couldn't cancel that reminder. Try again later.", ephemeral=True
            )
            return
        if cancelled:
            await interaction.response.send_message(f"✅ Reminder `{id}` cancelled.")
        else:
            await interaction.response.send_message(
                f"❌ No reminder found with ID `{id}`.", ephemeral=True
            )

    @bot.event
    async def on_ready():
        nonlocal _ready_fired
        global _registry, _scheduler
        log.info("Logged in as %s", bot.user)

        # on_ready fires again on every reconnect; init must only happen once
        if _ready_fired:
            return
        _ready_fired = True

        registry = ReminderRegistry(ReminderStore(), make_deliver(bot))
        try:
            report = registry.startup()
        except StoreError:
            log.exception("Reminder store unavailable, shutting down")
            await bot.close()
            return
        _registry = registry
        log.info(
            "Reminder recovery: %d restored, %d expired, %d skipped",
            report.restored,
            report.expired,
            report.skipped,
        )

        bot.tree.allowed_contexts = app_commands.AppCommandContext(
            guild=True, dm_channel=False, private_channel=False
        )
        synced = await bot.tree.sync()
        log.info("Synced %d slash commands", len(synced))

        _scheduler = setup_scheduler(config.REFRESH_HOURS)
        _scheduler.start()
        log.info("Scheduler started: %d jobs", len(_scheduler.get_jobs()))

    return bot


async def shutdown() -> None:
    """Stop pending reminder timers; stored reminders are re-armed on next start."""
    global _registry, _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
    if _registry is not None:
        await _registry.shutdown()
        _registry = None
