import random
from typing import Dict, List, Optional, Tuple

from loguru import logger

from pickem.config.settings import AppSettings
from pickem.feeds.base_feed import FeedClient
from pickem.feeds.nflverse_feed import fetch_feed_records
from pickem.ingestion.tiebreaker import ensure_tiebreakers
from pickem.models.game import ScheduleRow, WeekRecord
from pickem.models.results import ScheduleIngestResult
from pickem.normalization.resolver import accept_schedule_rows, starts_on
from pickem.storage.supabase_client import GameStore


class EmptyFeedError(Exception):
    """The feed parsed, but no row was usable for the requested season."""

    pass


def build_weeks(rows: List[ScheduleRow]) -> List[WeekRecord]:
    """One WeekRecord per distinct (season, week), in first-seen order.

    starts_on is the earliest kickoff date seen for the week, or None when no
    row of the week has a dated kickoff.
    """
    weeks: Dict[Tuple[int, int], WeekRecord] = {}
    for row in rows:
        key = (row.season, row.week)
        week = weeks.setdefault(key, WeekRecord(season=row.season, week=row.week))
        day = starts_on(row.kickoff)
        if day and (week.starts_on is None or day < week.starts_on):
            week.starts_on = day
    return list(weeks.values())


def dedupe_games(rows: List[ScheduleRow]) -> List[ScheduleRow]:
    """Collapses rows sharing a natural key; the last occurrence wins."""
    games: Dict[Tuple[int, int, str, str], ScheduleRow] = {}
    for row in rows:
        games[row.game_key] = row
    if len(games) < len(rows):
        logger.debug(f"Collapsed {len(rows) - len(games)} duplicate schedule rows")
    return list(games.values())


async def reconcile_schedule(
    rows: List[ScheduleRow], store: GameStore, season: int
) -> ScheduleIngestResult:
    """Upserts weeks, then games, keyed by their natural keys.

    The first store error propagates as StoreError; writes made before it
    stay in place.
    """
    weeks = build_weeks(rows)
    if weeks:
        await store.upsert_weeks(weeks)
    logger.info(f"Upserted {len(weeks)} weeks for season {season}")

    count = 0
    for row in dedupe_games(rows):
        await store.upsert_game(row)
        count += 1
    logger.success(f"Upserted {count} games for season {season}")
    return ScheduleIngestResult(season=season, weeks=len(weeks), games=count)


async def run_schedule_ingestion(
    settings: AppSettings,
    store: GameStore,
    feed: FeedClient,
    season: Optional[int] = None,
    feed_url: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> ScheduleIngestResult:
    """Fetches the schedule feed, writes weeks and games, then assigns tiebreakers.

    Raises:
        FeedError: the feed could not be fetched or was empty.
        EmptyFeedError: no row survived normalization for the season.
        StoreError: a store write failed.
    """
    season = season or settings.season
    location = feed_url or settings.schedule_feed_url
    logger.info(f"Schedule ingestion for season {season} from {location}")

    records = await fetch_feed_records(feed, location)
    rows = accept_schedule_rows(records, season)
    if not rows:
        raise EmptyFeedError(f"no valid rows for season {season}")
    logger.info(f"Normalized {len(rows)} of {len(records)} feed rows for season {season}")

    result = await reconcile_schedule(rows, store, season)
    result.tiebreakers = await ensure_tiebreakers(store, season, rng=rng)
    return result
