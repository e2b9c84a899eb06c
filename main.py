import sys
import asyncio
import random
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from rich import print
from rich.panel import Panel

from pickem.api.server import run
from pickem.config.settings import AppSettings, ConfigurationError, load_settings
from pickem.logging.setup import setup_logging
from pickem.feeds.base_feed import FeedClient, FeedError
from pickem.ingestion.adapters import build_canonical_csv
from pickem.ingestion.current_week import compute_default_week
from pickem.ingestion.schedule import EmptyFeedError, run_schedule_ingestion
from pickem.ingestion.scores import run_score_ingestion
from pickem.ingestion.tiebreaker import ensure_tiebreakers
from pickem.models.enums import FeedKind, ScoreSource
from pickem.storage.supabase_client import StoreError, SupabaseStore

EXPECTED_ERRORS = (FeedError, EmptyFeedError, StoreError, ConfigurationError)


def _run(coro) -> None:
    """Runs one ingestion coroutine, turning failures into a non-zero exit."""
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        logger.info("Execution interrupted by user (KeyboardInterrupt).")
        sys.exit(130)
    except EXPECTED_ERRORS as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unhandled exception in main execution: {e}")
        sys.exit(1)


def _rng(seed: Optional[int]) -> random.Random:
    return random.Random(seed) if seed is not None else random.Random()


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this run.")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """NFL pick'em schedule and score ingestion."""
    overrides = {"log_level": log_level} if log_level else {}
    settings = load_settings(**overrides)
    setup_logging(settings)
    ctx.obj = settings


async def _import_schedule(
    settings: AppSettings, season: Optional[int], feed_url: Optional[str], seed: Optional[int]
) -> None:
    async with await SupabaseStore.connect(settings) as store, FeedClient(settings) as feed:
        result = await run_schedule_ingestion(
            settings, store, feed, season=season, feed_url=feed_url, rng=_rng(seed)
        )
    print(
        Panel(
            f"season {result.season}: {result.weeks} weeks, {result.games} games, "
            f"{len(result.tiebreakers)} new tiebreakers",
            title="Schedule imported",
        )
    )


@cli.command("import-schedule")
@click.option("--season", type=int, default=None, help="Season to import (default: SCHEDULE_SEASON or current year).")
@click.option("--feed-url", default=None, help="CSV URL or local file (default: SCHEDULE_FEED_URL).")
@click.option("--seed", type=int, default=None, help="Seed for tiebreaker selection.")
@click.pass_obj
def import_schedule(settings: AppSettings, season, feed_url, seed) -> None:
    """Import weeks and games, then assign one tiebreaker per week."""
    _run(_import_schedule(settings, season, feed_url, seed))


async def _score(
    settings: AppSettings,
    season: Optional[int],
    week: Optional[int],
    all_weeks: bool,
    source: ScoreSource,
    feed_url: Optional[str],
) -> None:
    async with await SupabaseStore.connect(settings) as store, FeedClient(settings) as feed:
        result = await run_score_ingestion(
            settings,
            store,
            feed,
            season=season,
            week=week,
            all_weeks=all_weeks,
            source=source,
            feed_url=feed_url,
        )
    lines = [f"week {w}: {n}" for w, n in sorted(result.applied_by_week.items())]
    print(
        Panel(
            "\n".join(lines) or (result.note or "nothing to apply"),
            title=f"{result.updated} scores applied ({result.season}, {result.source.value})",
        )
    )


@cli.command()
@click.option("--season", type=int, default=None)
@click.option("--week", type=click.IntRange(min=1), default=None, help="Score a single week.")
@click.option("--all-weeks", is_flag=True, default=False, help="Score every week of the season.")
@click.option(
    "--source",
    type=click.Choice([s.value for s in ScoreSource]),
    default=ScoreSource.NFLVERSE.value,
    show_default=True,
)
@click.option("--feed-url", default=None, help="Results CSV URL or file (default: SCORE_FEED_URL).")
@click.pass_obj
def score(settings: AppSettings, season, week, all_weeks, source, feed_url) -> None:
    """Apply scores and winners to existing games."""
    _run(_score(settings, season, week, all_weeks, ScoreSource(source), feed_url))


async def _tiebreakers(settings: AppSettings, season: Optional[int], seed: Optional[int]) -> None:
    season = season or settings.season
    async with await SupabaseStore.connect(settings) as store:
        assigned = await ensure_tiebreakers(store, season, rng=_rng(seed))
    lines = [f"week {w}: game {g}" for w, g in sorted(assigned.items())]
    print(Panel("\n".join(lines) or "every week already has one", title=f"Tiebreakers {season}"))


@cli.command()
@click.option("--season", type=int, default=None)
@click.option("--seed", type=int, default=None, help="Seed for tiebreaker selection.")
@click.pass_obj
def tiebreakers(settings: AppSettings, season, seed) -> None:
    """Ensure exactly one tiebreaker game per week."""
    _run(_tiebreakers(settings, season, seed))


async def _backfill(settings: AppSettings, season: Optional[int], seed: Optional[int]) -> None:
    await _import_schedule(settings, season, None, seed)
    await _score(settings, season, None, True, ScoreSource.NFLVERSE, None)
    logger.success("Backfill complete.")


@cli.command()
@click.option("--season", type=int, default=None)
@click.option("--seed", type=int, default=None)
@click.pass_obj
def backfill(settings: AppSettings, season, seed) -> None:
    """Import the schedule, assign tiebreakers and score every week."""
    _run(_backfill(settings, season, seed))


async def _adapter(
    settings: AppSettings, kind: FeedKind, season: Optional[int], week: Optional[int], output: Optional[Path]
) -> None:
    async with FeedClient(settings) as feed:
        csv_text = await build_canonical_csv(settings, feed, kind, season=season, week=week)
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(csv_text, encoding="utf-8")
        logger.success(f"Wrote canonical schedule to {output}")
    else:
        click.echo(csv_text, nl=False)


@cli.command()
@click.option(
    "--kind",
    type=click.Choice([k.value for k in FeedKind]),
    default=FeedKind.NFLVERSE.value,
    show_default=True,
)
@click.option("--season", type=int, default=None)
@click.option("--week", type=click.IntRange(min=1), default=None)
@click.option("--output", type=click.Path(path_type=Path), default=None, help="Write CSV here instead of stdout.")
@click.pass_obj
def adapter(settings: AppSettings, kind, season, week, output) -> None:
    """Print a feed in the canonical season,week,kickoff,home,away,is_tiebreaker CSV."""
    _run(_adapter(settings, FeedKind(kind), season, week, output))


async def _current_week(settings: AppSettings, season: Optional[int]) -> None:
    season = season or settings.season
    async with await SupabaseStore.connect(settings) as store:
        week = await compute_default_week(store, season)
    click.echo(str(week))


@cli.command("current-week")
@click.option("--season", type=int, default=None)
@click.pass_obj
def current_week(settings: AppSettings, season) -> None:
    """Print the default week to show for a season."""
    _run(_current_week(settings, season))


@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST).")
@click.option("--port", type=int, default=None, help="Port (default: API_PORT).")
@click.pass_obj
def serve(settings: AppSettings, host, port) -> None:
    """Serve the cron/webhook/adapter HTTP endpoints."""
    if host:
        settings.api_host = host
    if port:
        settings.api_port = port
    run(settings)


if __name__ == "__main__":
    cli()
