"""Music League page scraping.

Music League has no public API. The league page is server-rendered HTML;
rounds and standings are HTMX fragments fetched with an ``HX-Request``
header. Member data sits in Alpine.js ``x-data`` attributes as HTML-encoded
JSON. Private and unlisted leagues need a session cookie (``ML_COOKIE``).
"""

from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

import aiohttp

from league_bot import config
from league_bot.scheduling.reminders import ReminderKind

log = logging.getLogger(__name__)

BASE_URL = "https://app.musicleague.com"
REQUEST_TIMEOUT = 12  # seconds

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": f"{BASE_URL}/",
}


class LeagueFetchError(Exception):
    pass


@dataclass(slots=True)
class Round:
    url: str | None = None
    round_id: str | None = None
    name: str | None = None
    theme: str | None = None
    status: str | None = None
    submission_deadline: str | None = None
    voting_deadline: str | None = None

    @property
    def is_active(self) -> bool:
        return bool(self.status) and ("Open" in self.status or "Upcoming" in self.status)


@dataclass(frozen=True, slots=True)
class Standing:
    name: str
    points: int | None = None
    rank: int | None = None


@dataclass(frozen=True, slots=True)
class Member:
    id: str | None
    name: str | None
    is_admin: bool = False
    joined_at: str | None = None


@dataclass(slots=True)
class League:
    url: str
    league_id: str | None = None
    name: str | None = None
    total_rounds: int | None = None
    songs_per_round: int | None = None
    current_players: int | None = None
    max_players: int | None = None
    privacy: str = "Public"
    speed: str | None = None
    members: list[Member] = field(default_factory=list)
    rounds: list[Round] = field(default_factory=list)
    standings: list[Standing] = field(default_factory=list)
    rounds_error: str | None = None
    standings_error: str | None = None

    @property
    def active_round(self) -> Round | None:
        return next((r for r in self.rounds if r.is_active), None)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> League:
        data = dict(data)
        data["members"] = [Member(**m) for m in data.get("members", [])]
        data["rounds"] = [Round(**r) for r in data.get("rounds", [])]
        data["standings"] = [Standing(**s) for s in data.get("standings", [])]
        known = cls.__dataclass_fields__
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True, slots=True)
class DeadlineDescriptor:
    kind: ReminderKind
    deadline: datetime


# --- Parsing ---

_LEAGUE_ID_RE = re.compile(r"/l/([a-f0-9]{32})/")
_TITLE_RE = re.compile(r"<title>Music League \| ([^<]+)</title>")
_ROUNDS_RE = re.compile(r"<strong[^>]*>(\d+)</strong>\s*<span[^>]*>ROUNDS</span>")
_SONGS_RE = re.compile(r"<strong[^>]*>(\d+)</strong>\s*<span[^>]*>SONG/ROUND</span>")
_PLAYERS_RE = re.compile(
    r"<strong[^>]*>(\d+)\s*/\s*(\d+)</strong>\s*<span[^>]*>PLAYERS</span>"
)
_ROUND_LINK_RE = re.compile(r'href="(/l/[a-f0-9]{32}/r/([a-f0-9]{32})/[^"]*)"')
_THEME_RE = re.compile(
    r'class="[^"]*text-(?:body-secondary|muted|secondary)[^"]*"[^>]*>\s*([^<]{3,100})\s*</'
)
_ISO_RE = re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z?)")
_HUMAN_DATE_RE = re.compile(
    r"(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]* \d{1,2}"
    r"(?:,? \d{4})?(?:,? (?:at )?\d{1,2}:\d{2} ?(?:AM|PM))?",
    re.IGNORECASE,
)
_STANDING_SPLIT_RE = re.compile(r'(?=class="[^"]*league-standing-item)')
_STANDING_NAME_RE = re.compile(r'class="[^"]*fw-semibold[^"]*"[^>]*>\s*([^<]{2,60})\s*</')
_POINTS_RE = re.compile(r"(\d+)\s*(?:pts?|points?)", re.IGNORECASE)
_RANK_RE = re.compile(r"(?:^|\D)(\d{1,2})(?:\.|:|\)|\s).*?(?:rank|position)", re.IGNORECASE)


def extract_league_id(url: str) -> str | None:
    match = _LEAGUE_ID_RE.search(url if url.endswith("/") else url + "/")
    return match.group(1) if match else None


def _members_json(page: str) -> str | None:
    """Slice the bracket-balanced members array out of the page."""
    marker = page.find('"members":')
    if marker == -1:
        marker = page.find("members: [")
    if marker == -1:
        return None
    start = page.find("[", marker)
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(page)):
        if page[i] == "[":
            depth += 1
        elif page[i] == "]":
            depth -= 1
            if depth == 0:
                return page[start : i + 1]
    return None


def _parse_members(page: str) -> list[Member]:
    raw = _members_json(page)
    if raw is None:
        return []
    try:
        decoded = json.loads(html.unescape(raw).replace("\\u0026", "&"))
    except json.JSONDecodeError:
        log.debug("members array not parseable")
        return []
    members = []
    for m in decoded:
        user = m.get("user") or {}
        members.append(
            Member(
                id=user.get("id"),
                name=user.get("name"),
                is_admin=bool(m.get("isAdmin")),
                joined_at=m.get("created"),
            )
        )
    return members


def parse_league_page(page: str, url: str) -> League:
    league = League(url=url, league_id=extract_league_id(url))
    if m := _TITLE_RE.search(page):
        league.name = m.group(1).strip()
    if m := _ROUNDS_RE.search(page):
        league.total_rounds = int(m.group(1))
    if m := _SONGS_RE.search(page):
        league.songs_per_round = int(m.group(1))
    if m := _PLAYERS_RE.search(page):
        league.current_players = int(m.group(1))
        league.max_players = int(m.group(2))
    if "UNLISTED" in page:
        league.privacy = "Unlisted"
    elif "PRIVATE" in page:
        league.privacy = "Private"
    if "SPEEDY" in page:
        league.speed = "Speedy"
    league.members = _parse_members(page)
    return league


def _round_status(block: str) -> str | None:
    if re.search(r"submissions?\s+open", block, re.IGNORECASE):
        return "📤 Submissions Open"
    if re.search(r"voting\s+open", block, re.IGNORECASE):
        return "🗳️ Voting Open"
    if re.search(r"complet", block, re.IGNORECASE):
        return "✅ Complete"
    if re.search(r"upcoming", block, re.IGNORECASE):
        return "⏳ Upcoming"
    return None


def parse_rounds_fragment(fragment: str) -> list[Round]:
    links: list[tuple[str, str, int]] = []
    seen: set[str] = set()
    for m in _ROUND_LINK_RE.finditer(fragment):
        if m.group(2) not in seen:
            seen.add(m.group(2))
            links.append((m.group(1), m.group(2), m.start()))

    rounds: list[Round] = []
    for i, (path, round_id, idx) in enumerate(links):
        end = links[i + 1][2] if i + 1 < len(links) else len(fragment)
        block = fragment[max(0, idx - 200) : end]
        rnd = Round(url=f"{BASE_URL}{path}", round_id=round_id)

        name_re = re.compile(rf'href="{re.escape(path)}"[^>]*>([^<]{{2,80}})</a>')
        if m := name_re.search(block):
            rnd.name = m.group(1).strip()
        if m := _THEME_RE.search(block):
            rnd.theme = m.group(1).strip()
        rnd.status = _round_status(block)

        iso_dates = _ISO_RE.findall(block)
        if iso_dates:
            rnd.submission_deadline = iso_dates[0]
        if len(iso_dates) >= 2:
            rnd.voting_deadline = iso_dates[1]
        if not rnd.submission_deadline and (m := _HUMAN_DATE_RE.search(block)):
            rnd.submission_deadline = m.group(0)

        rounds.append(rnd)
    return rounds


def parse_standings(fragment: str) -> list[Standing]:
    standings = []
    for block in _STANDING_SPLIT_RE.split(fragment):
        if "league-standing-item" not in block:
            continue
        name = _STANDING_NAME_RE.search(block)
        if not name:
            continue
        points = _POINTS_RE.search(block)
        rank = _RANK_RE.search(block)
        standings.append(
            Standing(
                name=name.group(1).strip(),
                points=int(points.group(1)) if points else None,
                rank=int(rank.group(1)) if rank else None,
            )
        )
    return standings


def parse_iso(value: str | None) -> datetime | None:
    """Parse a scraped ISO timestamp; None for human-readable or missing values."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def deadline_descriptors(league: League) -> list[DeadlineDescriptor]:
    """Deadlines of the active round that a reminder can be registered for."""
    rnd = league.active_round
    if rnd is None:
        return []
    descriptors = []
    for kind, value in (
        (ReminderKind.SUBMISSION, rnd.submission_deadline),
        (ReminderKind.VOTING, rnd.voting_deadline),
    ):
        deadline = parse_iso(value)
        if deadline is not None and deadline.tzinfo is not None:
            descriptors.append(DeadlineDescriptor(kind=kind, deadline=deadline))
    return descriptors


# --- Fetching ---


def _is_login_page(resp: aiohttp.ClientResponse, body: str) -> bool:
    return (
        resp.url.path.startswith("/login")
        or 'action="/login/"' in body
        or "/login/?next=" in body
    )


async def _get(
    session: aiohttp.ClientSession, url: str, extra: dict[str, str] | None = None
) -> tuple[aiohttp.ClientResponse, str]:
    async with session.get(url, headers=extra) as resp:
        return resp, await resp.text()


def _session_headers() -> dict[str, str]:
    headers = dict(_HEADERS)
    if config.ML_COOKIE:
        headers["Cookie"] = config.ML_COOKIE
    return headers


def _session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        headers=_session_headers(),
        timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
    )


async def fetch_league(url: str) -> League:
    """Scrape the league page plus its rounds and standings fragments."""
    if not url.endswith("/"):
        url += "/"
    league_id = extract_league_id(url)
    if not league_id:
        raise LeagueFetchError("Could not extract league ID from URL.")
    base = f"{BASE_URL}/l/{league_id}"

    async with _session() as session:
        try:
            resp, page = await _get(session, f"{base}/")
        except (aiohttp.ClientError, TimeoutError) as e:
            raise LeagueFetchError(f"Request failed: {e}") from e

        if _is_login_page(resp, page):
            raise LeagueFetchError(
                "Login required. Set ML_COOKIE in your .env file with your session cookie."
            )
        if resp.status == 404:
            raise LeagueFetchError("League not found (404). Check the URL.")
        if resp.status >= 400:
            raise LeagueFetchError(f"HTTP {resp.status} fetching league page.")

        league = parse_league_page(page, url)
        if not league.name:
            raise LeagueFetchError("Could not parse league name from page.")

        try:
            _, fragment = await _get(
                session,
                f"{base}/-/rounds",
                {"HX-Request": "true", "HX-Current-URL": f"{base}/", "HX-Target": "body"},
            )
            league.rounds = parse_rounds_fragment(fragment)
        except (aiohttp.ClientError, TimeoutError) as e:
            log.warning("rounds fragment failed for %s: %s", league_id, e)
            league.rounds_error = str(e)

        try:
            _, fragment = await _get(
                session,
                f"{base}/-/standings",
                {"HX-Request": "true", "HX-Current-URL": f"{base}/standings/"},
            )
            league.standings = parse_standings(fragment)
        except (aiohttp.ClientError, TimeoutError) as e:
            log.warning("standings fragment failed for %s: %s", league_id, e)
            league.standings_error = str(e)

    return league
