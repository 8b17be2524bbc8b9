"""Embed builders for reminders, league info, and help."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone

import discord

from league_bot.formatting import discord_timestamp
from league_bot.musicleague import League, parse_iso
from league_bot.scheduling.reminders import Reminder, ReminderKind

LEAGUE_PURPLE = discord.Color(0x9E00C4)

KIND_LABELS: dict[ReminderKind, str] = {
    ReminderKind.SUBMISSION: "Submission",
    ReminderKind.VOTING: "Voting",
    ReminderKind.BOTH: "Submission & Voting",
}

KIND_EMOJI: dict[ReminderKind, str] = {
    ReminderKind.SUBMISSION: "📤",
    ReminderKind.VOTING: "🗳️",
    ReminderKind.BOTH: "📤🗳️",
}

_KIND_TIPS: dict[ReminderKind, str] = {
    ReminderKind.SUBMISSION: "🎵 Make sure you've submitted your song before the deadline!",
    ReminderKind.VOTING: "🗳️ Don't forget to listen and vote for your favorites!",
    ReminderKind.BOTH: "🎵 Submit your song AND vote before the deadline!",
}

_KIND_COLORS: dict[ReminderKind, discord.Color] = {
    ReminderKind.SUBMISSION: discord.Color(0xFEE75C),
    ReminderKind.VOTING: discord.Color(0xEB459E),
    ReminderKind.BOTH: discord.Color(0xFEE75C),
}

_MEDALS = ("🥇", "🥈", "🥉")


def _when(dt: datetime) -> str:
    return f"{discord_timestamp(dt, 'F')} ({discord_timestamp(dt, 'R')})"


def reminder_payload(kind: ReminderKind, league_url: str | None) -> dict[str, str]:
    """Delivery data stored with a reminder so firing never needs a lookup."""
    payload = {"label": KIND_LABELS[kind], "emoji": KIND_EMOJI[kind]}
    if league_url:
        payload["league_url"] = league_url
    return payload


def reminder_embed(reminder: Reminder, league_name: str | None = None) -> discord.Embed:
    """The message posted when a reminder fires."""
    kind = ReminderKind(reminder.kind)
    label = reminder.payload.get("label", KIND_LABELS[kind])
    emoji = reminder.payload.get("emoji", KIND_EMOJI[kind])
    embed = discord.Embed(
        title=f"{emoji} {label} Deadline Reminder!",
        description=(
            f"⏰ The **{label}** deadline for **{league_name or 'your Music League'}** "
            "is coming up!"
        ),
        color=_KIND_COLORS[kind],
        timestamp=datetime.now(timezone.utc),
    )
    embed.add_field(name="📅 Deadline", value=_when(reminder.deadline_time()), inline=False)
    if url := reminder.payload.get("league_url"):
        embed.add_field(name="🔗 League Link", value=url, inline=False)
    embed.add_field(name="💡 Tip", value=_KIND_TIPS[kind], inline=False)
    embed.set_footer(
        text=f"Reminder ID: {reminder.id} • Cancel with /cancelreminder {reminder.id}"
    )
    return embed


def reminder_set_embed(reminder: Reminder) -> discord.Embed:
    kind = ReminderKind(reminder.kind)
    embed = discord.Embed(title="⏰ Reminder Set!", color=discord.Color(0x57F287))
    embed.add_field(name="Type", value=f"{KIND_EMOJI[kind]} {KIND_LABELS[kind]}")
    embed.add_field(name="ID", value=f"`{reminder.id}`")
    embed.add_field(
        name="Deadline", value=discord_timestamp(reminder.deadline_time()), inline=False
    )
    embed.add_field(
        name="Reminder Fires",
        value=discord_timestamp(reminder.fire_time(), "R"),
        inline=False,
    )
    embed.add_field(name="Channel", value=f"<#{reminder.channel_id}>")
    embed.set_footer(text=f"Cancel with /cancelreminder {reminder.id}")
    return embed


def reminders_list_embed(reminders: Sequence[Reminder]) -> discord.Embed:
    lines = []
    for r in reminders:
        kind = ReminderKind(r.kind)
        lines.append(
            f"**ID:** `{r.id}` • {KIND_EMOJI[kind]} {KIND_LABELS[kind]}\n"
            f"📅 Deadline: {discord_timestamp(r.deadline_time())}\n"
            f"🔔 Fires: {discord_timestamp(r.fire_time(), 'R')}\n"
            f"📢 <#{r.channel_id}>"
        )
    return discord.Embed(
        title="⏰ Active Reminders",
        description="\n\n".join(lines),
        color=discord.Color.blurple(),
    )


def _deadline_value(value: str) -> str:
    parsed = parse_iso(value)
    return _when(parsed) if parsed and parsed.tzinfo else value


def league_embed(league: League) -> discord.Embed:
    embed = discord.Embed(
        title=f"🎵 {league.name or 'Music League'}",
        url=league.url,
        color=LEAGUE_PURPLE,
        timestamp=datetime.now(timezone.utc),
    )

    stats = []
    if league.total_rounds:
        stats.append(f"{league.total_rounds} rounds")
    if league.songs_per_round:
        stats.append(f"{league.songs_per_round} song/round")
    if league.current_players:
        stats.append(f"{league.current_players}/{league.max_players or '?'} players")
    if league.privacy:
        stats.append(league.privacy)
    if league.speed:
        stats.append(f"⚡ {league.speed}")
    if stats:
        embed.description = " • ".join(stats)

    active = league.active_round
    if active:
        parts = []
        if active.name:
            parts.append(f"**{active.name}**")
        if active.theme:
            parts.append(f"🎨 {active.theme}")
        if active.status:
            parts.append(active.status)
        if parts:
            embed.add_field(name="🎧 Active Round", value="\n".join(parts), inline=False)
        if active.submission_deadline:
            embed.add_field(
                name="📤 Submission Deadline",
                value=_deadline_value(active.submission_deadline),
                inline=False,
            )
        if active.voting_deadline:
            embed.add_field(
                name="🗳️ Voting Deadline",
                value=_deadline_value(active.voting_deadline),
                inline=False,
            )
    elif league.rounds:
        embed.add_field(
            name="📋 Rounds",
            value=f"{len(league.rounds)} round(s) found, none currently active",
            inline=False,
        )

    if league.standings:
        top = []
        for i, s in enumerate(league.standings[:3]):
            pts = f" — {s.points} pts" if s.points is not None else ""
            top.append(f"{_MEDALS[i]} **{s.name}**{pts}")
        embed.add_field(name="🏆 Standings (Top 3)", value="\n".join(top), inline=False)

    admins = ", ".join(m.name for m in league.members if m.is_admin and m.name)
    if admins:
        embed.add_field(name="👑 Admin", value=admins)

    embed.set_footer(text="Music League Bot • musicleague.com")
    return embed


_HELP_COMMANDS = (
    ("/setleague <url>", "Set the Music League URL for this server."),
    ("/league", "Show current league info and round."),
    ("/fetch", "Re-fetch the latest data from the league page."),
    ("/setchannel <#channel>", "Set where reminders and updates are posted."),
    (
        "/remind <type> [datetime] [remind_before]",
        "Schedule a reminder for submissions or voting. Datetime format: "
        "`2024-12-25 18:00` or ISO 8601. Leave it out to use the active round's deadline.",
    ),
    ("/reminders", "List all active reminders."),
    ("/cancelreminder <id>", "Cancel a reminder by ID."),
)


def help_embed() -> discord.Embed:
    embed = discord.Embed(
        title="🎵 Music League Bot — Help",
        description=(
            "Integrate Music League with your Discord server. Since Music League "
            "has no public API, this bot scrapes the league page for info."
        ),
        color=discord.Color.blurple(),
    )
    for name, value in _HELP_COMMANDS:
        embed.add_field(name=name, value=value, inline=False)
    embed.add_field(
        name="⚠️ Note on Scraping",
        value=(
            "Music League requires login to view league details. If your league is "
            "private, the bot may only show limited public info. You can manually "
            "set deadlines using `/remind`."
        ),
        inline=False,
    )
    embed.set_footer(text="Music League Bot")
    return embed
