"""Tests for musicleague.py — page parsing, deadline extraction, fetch errors."""

from datetime import datetime, timezone
from types import SimpleNamespace

import aiohttp
import pytest

import league_bot.musicleague as ml
from league_bot.musicleague import (
    League,
    LeagueFetchError,
    Round,
    deadline_descriptors,
    extract_league_id,
    parse_iso,
    parse_league_page,
    parse_rounds_fragment,
    parse_standings,
)
from league_bot.scheduling.reminders import ReminderKind

LID = "0123456789abcdef0123456789abcdef"
R1 = "b" * 32
R2 = "c" * 32
URL = f"https://app.musicleague.com/l/{LID}/"

PAGE = (
    "<html><head><title>Music League | Friday Tunes</title></head><body>"
    '<strong class="fs-4">8</strong> <span class="small">ROUNDS</span>'
    '<strong class="fs-4">2</strong> <span class="small">SONG/ROUND</span>'
    '<strong class="fs-4">10 / 12</strong> <span class="small">PLAYERS</span>'
    "<span>PRIVATE</span>"
    '<div x-data="{ members: [{&quot;user&quot;: {&quot;id&quot;: &quot;u1&quot;, '
    "&quot;name&quot;: &quot;Ana&quot;}, &quot;isAdmin&quot;: true, "
    "&quot;created&quot;: &quot;2026-01-01&quot;}, {&quot;user&quot;: "
    "{&quot;id&quot;: &quot;u2&quot;, &quot;name&quot;: &quot;Ben&quot;}}] }\"></div>"
    "</body></html>"
)

ROUNDS = (
    f'<div><a href="/l/{LID}/r/{R1}/">Covers</a>'
    '<p class="text-body-secondary small">Songs that are covers</p>'
    "<span>Submissions Open</span>"
    "<time>2026-03-05T18:00:00Z</time><time>2026-03-07T18:00:00Z</time></div>"
    + "<!-- " + "-" * 240 + " -->"
    + f'<div><a href="/l/{LID}/r/{R2}/">Opening Round</a>'
    '<p class="text-muted">Start strong</p>'
    "<span>Complete</span> Feb 20, 2026</div>"
)

STANDINGS = (
    '<div class="league-standing-item"><span>1.</span> '
    '<span class="fw-semibold">Ana</span> <span>40 pts</span></div>'
    '<div class="league-standing-item"><span class="fw-semibold">Ben</span></div>'
)


def test_extract_league_id():
    assert extract_league_id(URL) == LID
    assert extract_league_id(URL.rstrip("/")) == LID
    assert extract_league_id("https://example.com/l/short/") is None


def test_parse_league_page():
    league = parse_league_page(PAGE, URL)

    assert league.league_id == LID
    assert league.name == "Friday Tunes"
    assert league.total_rounds == 8
    assert league.songs_per_round == 2
    assert (league.current_players, league.max_players) == (10, 12)
    assert league.privacy == "Private"
    assert league.speed is None
    assert [m.name for m in league.members] == ["Ana", "Ben"]
    assert league.members[0].is_admin
    assert not league.members[1].is_admin


def test_parse_league_page_without_members():
    league = parse_league_page("<title>Music League | Solo</title>", URL)

    assert league.name == "Solo"
    assert league.members == []
    assert league.privacy == "Public"


def test_parse_rounds_fragment():
    rounds = parse_rounds_fragment(ROUNDS)

    assert [r.round_id for r in rounds] == [R1, R2]
    first, second = rounds
    assert first.name == "Covers"
    assert first.theme == "Songs that are covers"
    assert first.status == "📤 Submissions Open"
    assert first.submission_deadline == "2026-03-05T18:00:00Z"
    assert first.voting_deadline == "2026-03-07T18:00:00Z"
    assert first.is_active
    assert second.name == "Opening Round"
    assert second.status == "✅ Complete"
    assert second.submission_deadline == "Feb 20, 2026"
    assert not second.is_active


def test_parse_standings():
    standings = parse_standings(STANDINGS)

    assert [(s.name, s.points) for s in standings] == [("Ana", 40), ("Ben", None)]


def test_parse_iso():
    assert parse_iso("2026-03-05T18:00:00Z") == datetime(
        2026, 3, 5, 18, 0, tzinfo=timezone.utc
    )
    assert parse_iso("Feb 20, 2026") is None
    assert parse_iso(None) is None


def test_deadline_descriptors_for_active_round():
    league = League(url=URL, rounds=parse_rounds_fragment(ROUNDS))

    descriptors = deadline_descriptors(league)

    assert [(d.kind, d.deadline.day) for d in descriptors] == [
        (ReminderKind.SUBMISSION, 5),
        (ReminderKind.VOTING, 7),
    ]


def test_deadline_descriptors_skip_unparseable_and_inactive():
    human = League(
        url=URL,
        rounds=[Round(status="🗳️ Voting Open", submission_deadline="Mar 7")],
    )
    done = League(url=URL, rounds=[Round(status="✅ Complete")])

    assert deadline_descriptors(human) == []
    assert deadline_descriptors(done) == []


def test_league_dict_round_trip():
    league = parse_league_page(PAGE, URL)
    league.rounds = parse_rounds_fragment(ROUNDS)
    league.standings = parse_standings(STANDINGS)

    restored = League.from_dict(league.to_dict())

    assert restored == league
    assert restored.active_round.name == "Covers"


# --- fetch_league ---


def _resp(status: int = 200, path: str = f"/l/{LID}/"):
    return SimpleNamespace(status=status, url=SimpleNamespace(path=path))


def _fake_get(responses: dict):
    calls = []

    async def fake(session, url, extra=None):
        calls.append((url, extra))
        for suffix, result in responses.items():
            if url.endswith(suffix):
                if isinstance(result, Exception):
                    raise result
                return result
        raise AssertionError(f"unexpected url {url}")

    fake.calls = calls
    return fake


@pytest.mark.asyncio
async def test_fetch_league_assembles_fragments(monkeypatch):
    fake = _fake_get(
        {
            "/-/rounds": (_resp(), ROUNDS),
            "/-/standings": (_resp(), STANDINGS),
            f"{LID}/": (_resp(), PAGE),
        }
    )
    monkeypatch.setattr(ml, "_get", fake)

    league = await ml.fetch_league(URL.rstrip("/"))

    assert league.url == URL
    assert league.name == "Friday Tunes"
    assert len(league.rounds) == 2
    assert league.standings[0].name == "Ana"
    assert fake.calls[1][1]["HX-Request"] == "true"


@pytest.mark.asyncio
async def test_fetch_league_fragment_failure_is_recorded(monkeypatch):
    fake = _fake_get(
        {
            "/-/rounds": aiohttp.ClientError("rounds down"),
            "/-/standings": (_resp(), STANDINGS),
            f"{LID}/": (_resp(), PAGE),
        }
    )
    monkeypatch.setattr(ml, "_get", fake)

    league = await ml.fetch_league(URL)

    assert league.rounds == []
    assert league.rounds_error == "rounds down"
    assert league.standings


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response, message",
    [
        ((_resp(path="/login/"), ""), "Login required"),
        ((_resp(), 'form action="/login/"'), "Login required"),
        ((_resp(404), ""), "404"),
        ((_resp(500), ""), "HTTP 500"),
        ((_resp(), "<html>no title</html>"), "league name"),
        (aiohttp.ClientError("boom"), "Request failed"),
    ],
)
async def test_fetch_league_errors(monkeypatch, response, message):
    monkeypatch.setattr(ml, "_get", _fake_get({f"{LID}/": response}))

    with pytest.raises(LeagueFetchError, match=message):
        await ml.fetch_league(URL)


@pytest.mark.asyncio
async def test_fetch_league_rejects_bad_url():
    with pytest.raises(LeagueFetchError, match="league ID"):
        await ml.fetch_league("https://app.musicleague.com/nope")


def test_session_sends_cookie(monkeypatch):
    monkeypatch.setattr(ml.config, "ML_COOKIE", "sessionid=abc")

    headers = ml._session_headers()

    assert headers["Cookie"] == "sessionid=abc"
    assert headers["Referer"] == "https://app.musicleague.com/"
