"""Shared fixtures: settings without a .env, an in-memory store, mocked feeds."""

import asyncio
import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

import httpx
import pytest

from pickem.config.settings import AppSettings
from pickem.feeds.base_feed import FeedClient
from pickem.ingestion.current_week import parse_kickoff
from pickem.models.game import GameRecord, ScheduleRow, ScoreUpdate, WeekRecord
from pickem.storage.supabase_client import StoreError

SCHEDULE_URL = "https://feeds.test/games.csv"
SCORE_URL = "https://feeds.test/results.csv"
ESPN_URL = "https://espn.test/scoreboard"


def run(coro):
    return asyncio.run(coro)


class FakeStore:
    """In-memory GameStore with the same upsert/update semantics as the Supabase tables."""

    def __init__(self):
        self.weeks: Dict[Tuple[int, int], Dict[str, Any]] = {}
        self.games: Dict[Tuple[int, int, str, str], Dict[str, Any]] = {}
        self.calls: Dict[str, int] = {}
        self.fail_on: Optional[str] = None
        self.fail_after: int = 0
        self.closed = False
        self._next_id = 1

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _record(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        if self.fail_on == op and self.calls[op] > self.fail_after:
            raise StoreError(f"{op} rejected")

    def add_game(self, season, week, home, away, kickoff=None, **fields) -> Dict[str, Any]:
        game = {
            "id": self._next_id,
            "season": season,
            "week": week,
            "home": home,
            "away": away,
            "kickoff": kickoff,
            "home_score": None,
            "away_score": None,
            "winner": None,
            "is_tiebreaker": False,
        }
        game.update(fields)
        self._next_id += 1
        self.games[(season, week, home, away)] = game
        return game

    def games_for(self, season: int, week: int) -> List[Dict[str, Any]]:
        return [g for g in self.games.values() if g["season"] == season and g["week"] == week]

    def tiebreakers(self, season: int, week: int) -> List[Dict[str, Any]]:
        return [g for g in self.games_for(season, week) if g["is_tiebreaker"]]

    async def upsert_weeks(self, weeks: List[WeekRecord]) -> None:
        self._record("upsert_weeks")
        for w in weeks:
            key = (w.season, w.week)
            if w.starts_on is None:
                self.weeks.setdefault(key, {"season": w.season, "week": w.week, "starts_on": None})
            else:
                self.weeks[key] = {"season": w.season, "week": w.week, "starts_on": w.starts_on}

    async def upsert_game(self, row: ScheduleRow) -> None:
        self._record("upsert_game")
        existing = self.games.get(row.game_key)
        if existing:
            existing["kickoff"] = row.kickoff
        else:
            self.add_game(row.season, row.week, row.home, row.away, row.kickoff)

    async def week_numbers(self, season: int) -> List[int]:
        self._record("week_numbers")
        weeks = {w for (s, w) in self.weeks if s == season}
        weeks |= {g["week"] for g in self.games.values() if g["season"] == season}
        return sorted(weeks)

    async def has_tiebreaker(self, season: int, week: int) -> bool:
        self._record("has_tiebreaker")
        return bool(self.tiebreakers(season, week))

    async def games_in_week(self, season: int, week: int) -> List[GameRecord]:
        self._record("games_in_week")
        return [GameRecord.model_validate(g) for g in sorted(self.games_for(season, week), key=lambda g: g["id"])]

    async def clear_tiebreakers(self, season: int, week: int) -> None:
        self._record("clear_tiebreakers")
        for g in self.games_for(season, week):
            g["is_tiebreaker"] = False

    async def set_tiebreaker(self, game_id: Any) -> None:
        self._record("set_tiebreaker")
        for g in self.games.values():
            if g["id"] == game_id:
                g["is_tiebreaker"] = True

    async def game_pairs(self, season: int, week: int) -> Set[Tuple[str, str]]:
        self._record("game_pairs")
        return {(g["home"], g["away"]) for g in self.games_for(season, week)}

    async def apply_score(self, update: ScoreUpdate) -> int:
        self._record("apply_score")
        game = self.games.get((update.season, update.week, update.home, update.away))
        if game is None:
            return 0
        game.update(update.to_patch())
        return 1

    async def pending_weeks(self, season: int, now: datetime) -> List[int]:
        self._record("pending_weeks")
        weeks = set()
        for g in self.games.values():
            kickoff = parse_kickoff(g["kickoff"])
            if g["season"] == season and g["winner"] is None and kickoff and kickoff < now:
                weeks.add(g["week"])
        return sorted(weeks)

    async def find_game(self, season, week, home, away) -> Optional[GameRecord]:
        self._record("find_game")
        game = self.games.get((season, week, home, away))
        return GameRecord.model_validate(game) if game else None

    async def kickoffs(self, season: int) -> List[Tuple[int, Optional[str]]]:
        self._record("kickoffs")
        return [(g["week"], g["kickoff"]) for g in self.games.values() if g["season"] == season]


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        _env_file=None,
        cron_secret="cron-secret-value",
        webhook_secret="hook-secret-value",
        schedule_feed_url=SCHEDULE_URL,
        score_feed_url=SCORE_URL,
        espn_scoreboard_url=ESPN_URL,
        schedule_season=2025,
    )


def mock_feed(settings: AppSettings, responder: Callable[[httpx.Request], httpx.Response]) -> FeedClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(responder))
    return FeedClient(settings, client=client)


def routes(mapping: Dict[str, Any]) -> Callable[[httpx.Request], httpx.Response]:
    """Responder serving str bodies as CSV, dicts as JSON, ints as bare status codes, keyed by URL path."""
    requests: List[httpx.Request] = []

    def responder(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        body = mapping.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        if isinstance(body, int):
            return httpx.Response(body, text="upstream error")
        if callable(body):
            body = body(request)
        if isinstance(body, (dict, list)):
            return httpx.Response(200, content=json.dumps(body), headers={"content-type": "application/json"})
        return httpx.Response(200, text=body)

    responder.requests = requests
    return responder


def csv_text(header: str, *lines: str) -> str:
    return "\n".join((header,) + lines) + "\n"


WEEK1_2025 = [
    ("KC", "BAL"), ("BUF", "NE"), ("PHI", "DAL"), ("SF", "LAR"),
    ("GB", "CHI"), ("DET", "MIN"), ("NYJ", "MIA"), ("HOU", "IND"),
    ("PIT", "CLE"), ("CIN", "TEN"), ("JAX", "CAR"), ("ATL", "TB"),
    ("NO", "ARI"), ("SEA", "LV"), ("LAC", "DEN"), ("WAS", "NYG"),
]


def week1_feed(season: int = 2025) -> str:
    lines = [
        f"{season},1,{home},{away},2025-09-{7 + (i % 2):02d},{13 + (i % 8):02d}:00"
        for i, (home, away) in enumerate(WEEK1_2025)
    ]
    return csv_text("season,week,home_team,away_team,gameday,gametime", *lines)


def espn_event(home, away, home_score, away_score, state, date="2025-09-07T17:00Z", season=2025, week=1):
    return {
        "date": date,
        "season": {"year": season},
        "week": {"number": week},
        "competitions": [
            {
                "date": date,
                "status": {"type": {"state": state}},
                "competitors": [
                    {"homeAway": "home", "score": str(home_score), "team": {"abbreviation": home}},
                    {"homeAway": "away", "score": str(away_score), "team": {"abbreviation": away}},
                ],
            }
        ],
    }


def scoreboard(events, season=2025, week=1):
    return {"season": {"year": season}, "week": {"number": week}, "events": events}
