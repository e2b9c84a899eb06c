"""ESPN public scoreboard: fetching and turning events into schedule/score rows.

Only ``events[].competitions[0]`` is read. Competitors are told apart by their
``homeAway`` tag and the game state comes from ``status.type.state``
("pre", "in" or "post").
"""

from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from pickem.feeds.base_feed import FeedClient
from pickem.models.enums import EspnGameState
from pickem.models.game import ScheduleRow, ScoreUpdate, compute_winner
from pickem.normalization.resolver import DATE_PREFIX, parse_int
from pickem.normalization.teams import normalize_team

REGULAR_SEASON = 2


async def fetch_scoreboard(
    feed: FeedClient,
    url: str,
    season: Optional[int] = None,
    week: Optional[int] = None,
    seasontype: int = REGULAR_SEASON,
) -> Dict[str, Any]:
    """Fetches the scoreboard, optionally for a given season and week."""
    params: Dict[str, Any] = {"seasontype": seasontype}
    if season is not None:
        params["season"] = season
    if week is not None:
        params["week"] = week
    data = await feed.fetch_json(url, params=params)
    if not isinstance(data, dict):
        logger.warning(f"Unexpected scoreboard payload type: {type(data).__name__}")
        return {}
    logger.info(
        f"Fetched ESPN scoreboard ({len(data.get('events') or [])} events) params={params}"
    )
    return data


def _scoreboard_season_week(data: Dict[str, Any]) -> Tuple[Optional[int], Optional[int]]:
    leagues = data.get("leagues") or [{}]
    season = (data.get("season") or {}).get("year") or (
        leagues[0].get("season") or {}
    ).get("year")
    week = (data.get("week") or {}).get("number") or (
        (leagues[0].get("calendar") or {}).get("current") or {}
    ).get("week")
    return parse_int(season), parse_int(week)


def _competition(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    competitions = event.get("competitions") or []
    return competitions[0] if competitions else None


def _competitors(competition: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    home: Dict[str, Any] = {}
    away: Dict[str, Any] = {}
    for competitor in competition.get("competitors") or []:
        if competitor.get("homeAway") == "home":
            home = competitor
        elif competitor.get("homeAway") == "away":
            away = competitor
    return home, away


def _team_code(competitor: Dict[str, Any]) -> str:
    team = competitor.get("team") or {}
    return normalize_team(
        team.get("abbreviation") or team.get("shortDisplayName") or team.get("name")
    )


def _state(event: Dict[str, Any], competition: Dict[str, Any]) -> str:
    status = competition.get("status") or event.get("status") or {}
    return str((status.get("type") or {}).get("state") or "").lower()


def _event_season_week(
    event: Dict[str, Any], season: Optional[int], week: Optional[int]
) -> Tuple[Optional[int], Optional[int]]:
    return (
        parse_int((event.get("season") or {}).get("year")) or season,
        parse_int((event.get("week") or {}).get("number")) or week,
    )


def parse_scoreboard_scores(
    data: Dict[str, Any], season: Optional[int] = None, week: Optional[int] = None
) -> List[ScoreUpdate]:
    """Score updates for every started game on the scoreboard.

    Live games carry their current score without a winner; a winner is only
    set once the game state is "post".
    """
    default_season, default_week = _scoreboard_season_week(data)
    season = season or default_season
    week = week or default_week

    updates: List[ScoreUpdate] = []
    for event in data.get("events") or []:
        competition = _competition(event)
        if not competition:
            continue
        state = _state(event, competition)
        if state == EspnGameState.PRE.value:
            continue

        home_c, away_c = _competitors(competition)
        home, away = _team_code(home_c), _team_code(away_c)
        home_score = parse_int(home_c.get("score"))
        away_score = parse_int(away_c.get("score"))
        ev_season, ev_week = _event_season_week(event, season, week)
        if not home or not away or home_score is None or away_score is None:
            continue
        if ev_season is None or ev_week is None:
            continue

        winner = None
        if state == EspnGameState.POST.value:
            winner = compute_winner(home_score, away_score)
        updates.append(
            ScoreUpdate(
                season=ev_season,
                week=ev_week,
                home=home,
                away=away,
                home_score=home_score,
                away_score=away_score,
                winner=winner,
            )
        )
    return updates


def parse_scoreboard_schedule(data: Dict[str, Any]) -> List[ScheduleRow]:
    """Canonical schedule rows (teams, kickoff) for every scoreboard event."""
    season, week = _scoreboard_season_week(data)

    rows: List[ScheduleRow] = []
    for event in data.get("events") or []:
        competition = _competition(event)
        if not competition:
            continue
        home_c, away_c = _competitors(competition)
        home, away = _team_code(home_c), _team_code(away_c)
        ev_season, ev_week = _event_season_week(event, season, week)
        if not home or not away or ev_season is None or not ev_week:
            continue
        kickoff = str(event.get("date") or competition.get("date") or "").strip()
        rows.append(
            ScheduleRow(
                season=ev_season,
                week=ev_week,
                home=home,
                away=away,
                kickoff=kickoff if DATE_PREFIX.match(kickoff) else None,
            )
        )
    return rows
