"""Posting fired reminders to their Discord channel."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import discord

from league_bot.embeds import reminder_embed
from league_bot.guilds import get_guild_config
from league_bot.scheduling.reminders import Reminder
from league_bot.scheduling.timers import DeliveryError

log = logging.getLogger(__name__)


def _league_name(guild_id: str) -> str | None:
    config = get_guild_config(guild_id)
    if config is None:
        return None
    return config.league_cache.get("name")


def make_deliver(client: discord.Client) -> Callable[[Reminder], Awaitable[bool]]:
    """Delivery callback for the reminder registry, bound to a connected client."""

    async def deliver(reminder: Reminder) -> bool:
        channel_id = int(reminder.channel_id)
        try:
            channel = client.get_channel(channel_id) or await client.fetch_channel(
                channel_id
            )
        except (discord.NotFound, discord.Forbidden) as e:
            raise DeliveryError(
                f"channel {reminder.channel_id} unavailable for reminder {reminder.id}"
            ) from e
        if not isinstance(channel, discord.abc.Messageable):
            raise DeliveryError(f"channel {reminder.channel_id} cannot receive messages")

        embed = reminder_embed(reminder, _league_name(reminder.guild_id))
        try:
            await channel.send(
                content="@everyone",
                embed=embed,
                allowed_mentions=discord.AllowedMentions(everyone=True),
            )
        except discord.HTTPException as e:
            raise DeliveryError(f"sending reminder {reminder.id} failed: {e}") from e
        log.info("Reminder %s delivered to channel %s", reminder.id, reminder.channel_id)
        return True

    return deliver
