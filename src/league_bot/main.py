"""Entry point for league-bot."""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from discord.ext.commands import Bot

from league_bot.storage import STATE_DIR

PID_FILE = STATE_DIR / "bot.pid"


HELP = """\
league-bot -- Music League deadline reminders for Discord

commands:
  league-bot                  Run the Discord bot
  league-bot reminder list    Show stored reminders (read-only)
  league-bot help             Show this help message

examples:
  league-bot reminder list
  league-bot reminder list --guild 123456789012345678
"""

log = logging.getLogger(__name__)


def _check_already_running() -> None:
    """Only one process may own the reminder store."""
    PID_FILE.parent.mkdir(parents=True, exist_ok=True)
    if PID_FILE.exists():
        pid = int(PID_FILE.read_text().strip())
        proc_cmdline = Path(f"/proc/{pid}/cmdline")
        if proc_cmdline.exists() and "league-bot" in proc_cmdline.read_bytes().decode(errors="replace"):
            print(f"league-bot is already running (pid {pid})")
            raise SystemExit(1)
    PID_FILE.write_text(str(os.getpid()))
    atexit.register(PID_FILE.unlink, missing_ok=True)


def _dispatch_subcommand() -> bool:
    """Route CLI subcommands. Returns True if handled."""
    if len(sys.argv) < 2:
        return False
    cmd = sys.argv[1]
    rest = sys.argv[2:]
    if cmd in ("help", "--help", "-h"):
        print(HELP)
        return True
    if cmd == "reminder":
        from league_bot.scheduling.reminder_cmd import run_reminder_command

        run_reminder_command(rest)
        return True
    return False


async def _run(bot: Bot, token: str) -> None:
    """Run the bot until a signal or a fatal error, then stop reminder timers."""
    from league_bot.bot import shutdown

    loop = asyncio.get_running_loop()
    _background_tasks: set[asyncio.Task[None]] = set()

    def _on_signal(sig_name: str) -> None:
        async def _shutdown() -> None:
            log.info("received %s, shutting down", sig_name)
            if not bot.is_closed():
                await bot.close()

        task = loop.create_task(_shutdown())
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    loop.add_signal_handler(signal.SIGTERM, _on_signal, "SIGTERM")
    loop.add_signal_handler(signal.SIGINT, _on_signal, "SIGINT")

    try:
        await bot.start(token)
    except asyncio.CancelledError:
        pass  # Signal handler already closed the bot
    finally:
        await shutdown()
        if not bot.is_closed():
            await bot.close()


def main() -> None:
    if _dispatch_subcommand():
        return

    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        print("Set DISCORD_TOKEN in .env")
        raise SystemExit(1)

    _check_already_running()
    discord.utils.setup_logging()

    from league_bot.bot import create_bot

    bot = create_bot()
    asyncio.run(_run(bot, token))


if __name__ == "__main__":
    main()
