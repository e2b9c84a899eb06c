"""Re-exposes the upstream feeds in the canonical schedule CSV shape.

Output header: ``season,week,kickoff,home,away,is_tiebreaker``. This is the
format the schedule importer reads directly, so tooling can point
SCHEDULE_FEED_URL at the adapter instead of the raw feed. ``is_tiebreaker``
is always ``false``; tiebreakers are chosen after import.
"""

import csv
import io
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from pickem.config.settings import AppSettings
from pickem.feeds.base_feed import FeedClient
from pickem.feeds.espn_feed import fetch_scoreboard, parse_scoreboard_schedule
from pickem.feeds.nflverse_feed import fetch_feed_records
from pickem.ingestion.schedule import EmptyFeedError
from pickem.models.enums import FeedKind
from pickem.models.game import ScheduleRow
from pickem.normalization.csv_parser import FeedRecord
from pickem.normalization.resolver import accept_schedule_rows

CANONICAL_HEADER = ["season", "week", "kickoff", "home", "away", "is_tiebreaker"]


def canonical_rows_from_nflverse(
    records: Sequence[FeedRecord], season: int
) -> List[ScheduleRow]:
    return accept_schedule_rows(records, season)


def canonical_rows_from_espn(
    scoreboard: Dict[str, Any], season: Optional[int] = None
) -> List[ScheduleRow]:
    rows = parse_scoreboard_schedule(scoreboard)
    if season is not None:
        rows = [r for r in rows if r.season == season]
    return rows


def to_canonical_csv(rows: Sequence[ScheduleRow]) -> str:
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CANONICAL_HEADER)
    for r in rows:
        writer.writerow([r.season, r.week, r.kickoff or "", r.home, r.away, "false"])
    return out.getvalue()


async def build_canonical_csv(
    settings: AppSettings,
    feed: FeedClient,
    kind: FeedKind,
    season: Optional[int] = None,
    week: Optional[int] = None,
) -> str:
    """Fetches one upstream feed and renders it as canonical CSV.

    Raises:
        FeedError: the upstream feed could not be fetched.
        EmptyFeedError: no usable row for the season.
    """
    season = season or settings.season
    if kind == FeedKind.ESPN:
        data = await fetch_scoreboard(
            feed, settings.espn_scoreboard_url, season=season, week=week
        )
        rows = canonical_rows_from_espn(data, season)
    else:
        records = await fetch_feed_records(feed, settings.schedule_feed_url)
        rows = canonical_rows_from_nflverse(records, season)
        if week is not None:
            rows = [r for r in rows if r.week == week]

    if not rows:
        raise EmptyFeedError(f"no rows for season {season}")
    logger.info(f"Adapter {kind.value}: {len(rows)} canonical rows for season {season}")
    return to_canonical_csv(rows)
