from datetime import datetime, timezone
from typing import Dict, Optional

from loguru import logger

from pickem.storage.supabase_client import GameStore


def parse_kickoff(value: Optional[str]) -> Optional[datetime]:
    """Timezone-aware datetime for an ISO-8601 kickoff; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def compute_default_week(
    store: GameStore, season: int, now: Optional[datetime] = None
) -> int:
    """The most sensible "current" week.

    The smallest week whose earliest kickoff is still ahead of `now`; if all
    weeks have started, the largest week; 1 when the season has no dated games.
    """
    now = now or datetime.now(timezone.utc)
    earliest: Dict[int, datetime] = {}
    for week, kickoff in await store.kickoffs(season):
        k = parse_kickoff(kickoff)
        if k is None:
            continue
        if week not in earliest or k < earliest[week]:
            earliest[week] = k

    if not earliest:
        logger.debug(f"No dated games for {season}; defaulting to week 1")
        return 1
    for week in sorted(earliest):
        if earliest[week] > now:
            return week
    return max(earliest)
