"""Keeps exactly one tiebreaker game per (season, week).

Runs against whatever is in the store, so it can be invoked on its own at any
time. A week that already has a tiebreaker is left alone. Otherwise a game is
drawn at random (games with a known kickoff first), every game of the week is
cleared and the drawn game is flagged. The clear and the set are two separate
writes: two selectors running at once for the same week can both see "no
tiebreaker" and leave two flagged games behind; nothing guards against that.
"""

import random
from typing import Dict, Optional

from loguru import logger

from pickem.storage.supabase_client import GameStore


async def ensure_tiebreaker_for_week(
    store: GameStore, season: int, week: int, rng: random.Random
) -> Optional[str]:
    """Assigns a tiebreaker for one week if it has none; returns the new game id."""
    if await store.has_tiebreaker(season, week):
        return None

    candidates = await store.games_in_week(season, week)
    if not candidates:
        return None

    with_time = [g for g in candidates if g.kickoff]
    pool = with_time or candidates
    chosen = rng.choice(pool)

    await store.clear_tiebreakers(season, week)
    await store.set_tiebreaker(chosen.id)
    logger.info(f"Tiebreaker for {season} week {week}: {chosen.description}")
    return str(chosen.id)


async def ensure_tiebreakers(
    store: GameStore, season: int, rng: Optional[random.Random] = None
) -> Dict[int, str]:
    """Walks the season's weeks in order; returns {week: game id} for new assignments."""
    rng = rng or random.Random()
    assigned: Dict[int, str] = {}
    weeks = await store.week_numbers(season)
    for week in weeks:
        game_id = await ensure_tiebreaker_for_week(store, season, week, rng)
        if game_id is not None:
            assigned[week] = game_id
    logger.success(
        f"Tiebreakers checked for {len(weeks)} weeks of {season}; {len(assigned)} newly assigned"
    )
    return assigned
