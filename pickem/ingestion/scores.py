"""Applying final (or live) scores from a results feed to existing games.

Only games that already exist for the week are touched: a feed row whose
(home, away) pair is unknown to the store is skipped, so a mismatched feed
can never create games. A tie writes the scores but leaves ``winner`` as it
was.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from pickem.config.settings import AppSettings
from pickem.feeds.base_feed import FeedClient
from pickem.feeds.espn_feed import fetch_scoreboard, parse_scoreboard_scores
from pickem.feeds.nflverse_feed import fetch_feed_records
from pickem.models.enums import ScoreSource, WeekSelection
from pickem.models.game import GameRecord, ScoreUpdate, compute_winner
from pickem.models.results import ScoreIngestResult
from pickem.normalization.csv_parser import FeedRecord
from pickem.normalization.resolver import FieldResolver
from pickem.normalization.teams import normalize_team
from pickem.storage.supabase_client import GameStore


def week_selection(week: Optional[int], all_weeks: bool) -> WeekSelection:
    if week is not None:
        return WeekSelection.EXPLICIT
    if all_weeks:
        return WeekSelection.ALL
    return WeekSelection.PENDING


def feed_weeks(records: Sequence[FeedRecord], season: int) -> List[int]:
    """Every week that appears in the feed for the season, ascending."""
    resolver = FieldResolver.for_records(records)
    weeks = set()
    for record in records:
        resolved = resolver.resolve(record)
        if resolved.season == season and resolved.week is not None:
            weeks.add(resolved.week)
    return sorted(weeks)


def score_updates_from_records(
    records: Sequence[FeedRecord], season: int, weeks: Optional[Iterable[int]] = None
) -> List[ScoreUpdate]:
    """Builds score updates for the season (and target weeks, when given).

    Rows missing a week, a team or a numeric score are skipped.
    """
    resolver = FieldResolver.for_records(records)
    target = set(weeks) if weeks is not None else None
    updates: List[ScoreUpdate] = []
    for record in records:
        r = resolver.resolve(record)
        if r.season != season:
            continue
        if target is not None and r.week not in target:
            continue
        if not r.has_game_key or not r.has_scores:
            continue
        updates.append(
            ScoreUpdate(
                season=season,
                week=r.week,
                home=r.home,
                away=r.away,
                home_score=r.home_score,
                away_score=r.away_score,
                winner=compute_winner(r.home_score, r.away_score),
            )
        )
    return updates


async def apply_score_updates(
    store: GameStore, season: int, updates: List[ScoreUpdate]
) -> Dict[int, int]:
    """Applies updates week by week; returns {week: rows updated}.

    A StoreError aborts the run; updates already applied remain.
    """
    applied: Dict[int, int] = {}
    for week in sorted({u.week for u in updates}):
        batch = [u for u in updates if u.week == week]
        present = await store.game_pairs(season, week)

        count = 0
        for update in batch:
            if update.pair not in present:
                logger.debug(
                    f"No game {update.away} @ {update.home} in {season} week {week}; skipped"
                )
                continue
            count += await store.apply_score(update)
        applied[week] = count
        logger.info(f"Week {week}: applied {count} of {len(batch)} score rows")
    return applied


async def _target_weeks(
    store: GameStore,
    season: int,
    selection: WeekSelection,
    week: Optional[int],
    records: Optional[Sequence[FeedRecord]],
    now: datetime,
) -> List[int]:
    if selection == WeekSelection.EXPLICIT:
        return [week]
    if selection == WeekSelection.ALL:
        if records is not None:
            return feed_weeks(records, season)
        return await store.week_numbers(season)
    return await store.pending_weeks(season, now)


async def run_score_ingestion(
    settings: AppSettings,
    store: GameStore,
    feed: FeedClient,
    season: Optional[int] = None,
    week: Optional[int] = None,
    all_weeks: bool = False,
    source: ScoreSource = ScoreSource.NFLVERSE,
    now: Optional[datetime] = None,
    feed_url: Optional[str] = None,
) -> ScoreIngestResult:
    """Fetches results and applies them to the selected weeks.

    Args:
        season: Target season (defaults to the configured season).
        week: Score only this week.
        all_weeks: Score every week present (in the CSV feed, or in the store
            for ESPN). Ignored when `week` is given.
        source: nflverse CSV results feed, or the ESPN scoreboard per week.
        now: Reference time for the default "kicked off, no winner" policy.

    Raises:
        FeedError, StoreError: the run is aborted on the first failure.
    """
    season = season or settings.season
    now = now or datetime.now(timezone.utc)
    selection = week_selection(week, all_weeks)
    result = ScoreIngestResult(season=season, source=source, selection=selection)
    logger.info(
        f"Score ingestion for season {season} from {source.value} ({selection.value})"
    )

    if source == ScoreSource.ESPN:
        weeks = await _target_weeks(store, season, selection, week, None, now)
        updates: List[ScoreUpdate] = []
        for wk in weeks:
            data = await fetch_scoreboard(
                feed, settings.espn_scoreboard_url, season=season, week=wk
            )
            updates.extend(
                u
                for u in parse_scoreboard_scores(data, season, wk)
                if u.season == season and u.week == wk
            )
    else:
        records = await fetch_feed_records(feed, feed_url or settings.score_feed_url)
        weeks = await _target_weeks(store, season, selection, week, records, now)
        updates = score_updates_from_records(records, season, weeks)

    result.weeks = weeks
    if not updates:
        result.note = "no score rows found"
        logger.warning(f"No score rows for season {season} weeks {weeks}")
        return result

    result.applied_by_week = await apply_score_updates(store, season, updates)
    result.updated = sum(result.applied_by_week.values())
    logger.success(f"Applied {result.updated} score updates for season {season}")
    return result


class UnknownGameError(Exception):
    """A single-game score was posted for a game the store does not have."""

    pass


class ScoreWebhookPayload(BaseModel):
    """Body of the single-game score webhook."""

    season: int
    week: int = Field(..., ge=1)
    home: str = Field(..., min_length=1)
    away: str = Field(..., min_length=1)
    home_score: int = Field(..., ge=0)
    away_score: int = Field(..., ge=0)

    def to_update(self) -> ScoreUpdate:
        return ScoreUpdate(
            season=self.season,
            week=self.week,
            home=normalize_team(self.home),
            away=normalize_team(self.away),
            home_score=self.home_score,
            away_score=self.away_score,
            winner=compute_winner(self.home_score, self.away_score),
        )


async def apply_score_webhook(store: GameStore, payload: Dict[str, Any]) -> GameRecord:
    """Applies one pushed score and returns the updated game.

    Raises:
        pydantic.ValidationError: the payload is missing or has malformed fields.
        UnknownGameError: no game matches (season, week, home, away).
    """
    update = ScoreWebhookPayload.model_validate(payload).to_update()
    existing = await store.find_game(update.season, update.week, update.home, update.away)
    if existing is None:
        raise UnknownGameError(
            f"no game {update.away} @ {update.home} in {update.season} week {update.week}"
        )
    await store.apply_score(update)
    game = await store.find_game(update.season, update.week, update.home, update.away)
    logger.info(
        f"Webhook score {update.away_score}-{update.home_score} applied to {game.description}"
    )
    return game
