"""CLI handler for `league-bot reminder` subcommand.

Read-only: the running bot owns the store, so the CLI never writes to it.
"""

import argparse
import sys
from datetime import datetime

from league_bot.config import TZ
from league_bot.scheduling.reminders import Reminder
from league_bot.scheduling.store import ReminderStore


def _fmt(r: Reminder, now: datetime) -> str:
    fire = r.fire_time().astimezone(TZ)
    state = "due" if r.fire_time() <= now else "pending"
    return (
        f"  {r.id}  guild {r.guild_id}  {r.kind:10s}  "
        f"fires {fire:%Y-%m-%d %H:%M}  [{state}]"
    )


def run_reminder_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="league-bot reminder")
    sub = parser.add_subparsers(dest="action")

    list_p = sub.add_parser("list", help="Show stored reminders")
    list_p.add_argument("--guild", default=None, help="Only this guild ID")

    args = parser.parse_args(argv)

    if args.action == "list":
        _handle_list(args.guild)
    else:
        parser.print_help()
        sys.exit(1)


def _handle_list(guild_id: str | None) -> None:
    scan = ReminderStore().scan()
    reminders = sorted(
        (r for r in scan.reminders if guild_id is None or r.guild_id == guild_id),
        key=Reminder.sort_key,
    )
    if not reminders:
        print("no pending reminders")
    now = datetime.now(TZ)
    for r in reminders:
        print(_fmt(r, now))
    if scan.corrupt:
        print(f"{len(scan.corrupt)} unreadable record(s):")
        for path in scan.corrupt:
            print(f"  {path}")
