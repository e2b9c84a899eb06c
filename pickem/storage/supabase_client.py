# pickem/storage/supabase_client.py
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

from loguru import logger
from postgrest import APIResponse, AsyncPostgrestClient
from postgrest.exceptions import APIError
from supabase import AsyncClient, create_async_client

from pickem.config.settings import AppSettings
from pickem.models.game import GameRecord, ScheduleRow, ScoreUpdate, WeekRecord

WEEKS_CONFLICT = "season,week"
GAMES_CONFLICT = "season,week,home,away"


class StoreError(Exception):
    """A store operation failed; the message is the store's own."""

    pass


class GameStore(Protocol):
    """Operations ingestion needs from the weeks/games tables."""

    async def upsert_weeks(self, weeks: List[WeekRecord]) -> None: ...

    async def upsert_game(self, row: ScheduleRow) -> None: ...

    async def week_numbers(self, season: int) -> List[int]: ...

    async def has_tiebreaker(self, season: int, week: int) -> bool: ...

    async def games_in_week(self, season: int, week: int) -> List[GameRecord]: ...

    async def clear_tiebreakers(self, season: int, week: int) -> None: ...

    async def set_tiebreaker(self, game_id: Any) -> None: ...

    async def game_pairs(self, season: int, week: int) -> Set[Tuple[str, str]]: ...

    async def apply_score(self, update: ScoreUpdate) -> int: ...

    async def pending_weeks(self, season: int, now: datetime) -> List[int]: ...

    async def find_game(
        self, season: int, week: int, home: str, away: str
    ) -> Optional[GameRecord]: ...

    async def kickoffs(self, season: int) -> List[Tuple[int, Optional[str]]]: ...

    async def close(self) -> None: ...

    async def __aenter__(self) -> "GameStore": ...

    async def __aexit__(self, *exc_info) -> None: ...


async def initialize_supabase(settings: AppSettings) -> AsyncClient:
    """Creates an async Supabase client with the service role key (bypasses RLS)."""
    url, key = settings.require_supabase()
    logger.debug(f"Initializing async Supabase client for {url}")
    try:
        client: AsyncClient = await create_async_client(url, key)
    except Exception as e:
        logger.exception(f"Failed to initialize Async Supabase client: {e}")
        raise StoreError(f"supabase init failed: {e}") from e
    logger.debug("Async Supabase client initialized.")
    return client


class SupabaseStore:
    """GameStore backed by the Supabase `weeks` and `games` tables."""

    def __init__(self, client: AsyncPostgrestClient):
        self.client = client

    @classmethod
    async def connect(cls, settings: AppSettings) -> "SupabaseStore":
        """Opens a store on the project's REST endpoint; close it when the run ends."""
        supabase = await initialize_supabase(settings)
        return cls(supabase.postgrest)

    async def close(self) -> None:
        await self.client.aclose()
        logger.debug("Closed Supabase REST session")

    async def __aenter__(self) -> "SupabaseStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _execute(self, query, action: str) -> APIResponse:
        try:
            return await query.execute()
        except APIError as e:
            logger.error(f"Store error during {action}: {e.message}")
            logger.debug(f"Full APIError details: {e}")
            raise StoreError(e.message or str(e)) from e

    # --- weeks -----------------------------------------------------------

    async def upsert_weeks(self, weeks: List[WeekRecord]) -> None:
        """Upserts weeks on (season, week).

        Dated weeks overwrite starts_on. Undated weeks are only inserted when
        missing, so a known starts_on is never replaced by null.
        """
        dated = [w.to_store() for w in weeks if w.starts_on is not None]
        undated = [w.to_store() for w in weeks if w.starts_on is None]
        if dated:
            await self._execute(
                self.client.table("weeks").upsert(dated, on_conflict=WEEKS_CONFLICT),
                "weeks upsert",
            )
        if undated:
            await self._execute(
                self.client.table("weeks").upsert(
                    undated, on_conflict=WEEKS_CONFLICT, ignore_duplicates=True
                ),
                "weeks insert",
            )
        logger.debug(f"Upserted {len(dated)} dated and {len(undated)} undated weeks")

    async def week_numbers(self, season: int) -> List[int]:
        """Every week of the season known to either table, ascending."""
        weeks = await self._execute(
            self.client.table("weeks").select("week").eq("season", season),
            "weeks select",
        )
        games = await self._execute(
            self.client.table("games").select("week").eq("season", season),
            "games select",
        )
        found = {int(r["week"]) for r in (weeks.data or []) + (games.data or [])}
        return sorted(found)

    # --- games -----------------------------------------------------------

    async def upsert_game(self, row: ScheduleRow) -> None:
        # Only key + kickoff are sent: the table defaults is_tiebreaker to false
        # for new rows and existing scores/winner/tiebreaker stay as they are.
        await self._execute(
            self.client.table("games").upsert(
                row.to_store(), on_conflict=GAMES_CONFLICT
            ),
            "games upsert",
        )

    async def has_tiebreaker(self, season: int, week: int) -> bool:
        response = await self._execute(
            self.client.table("games")
            .select("id")
            .eq("season", season)
            .eq("week", week)
            .eq("is_tiebreaker", True)
            .limit(1),
            "tiebreaker check",
        )
        return bool(response.data)

    async def games_in_week(self, season: int, week: int) -> List[GameRecord]:
        response = await self._execute(
            self.client.table("games").select("*").eq("season", season).eq("week", week),
            "games select",
        )
        return [GameRecord.model_validate(r) for r in response.data or []]

    async def clear_tiebreakers(self, season: int, week: int) -> None:
        await self._execute(
            self.client.table("games")
            .update({"is_tiebreaker": False})
            .eq("season", season)
            .eq("week", week),
            "tiebreaker clear",
        )

    async def set_tiebreaker(self, game_id: Any) -> None:
        await self._execute(
            self.client.table("games").update({"is_tiebreaker": True}).eq("id", game_id),
            "tiebreaker set",
        )

    async def game_pairs(self, season: int, week: int) -> Set[Tuple[str, str]]:
        response = await self._execute(
            self.client.table("games")
            .select("home,away")
            .eq("season", season)
            .eq("week", week),
            "game pairs select",
        )
        return {(r["home"], r["away"]) for r in response.data or []}

    async def apply_score(self, update: ScoreUpdate) -> int:
        """Patches one game's score; returns the number of rows changed."""
        response = await self._execute(
            self.client.table("games")
            .update(update.to_patch())
            .eq("season", update.season)
            .eq("week", update.week)
            .eq("home", update.home)
            .eq("away", update.away),
            "score update",
        )
        return len(response.data or [])

    async def pending_weeks(self, season: int, now: datetime) -> List[int]:
        """Weeks with a game that has kicked off before `now` but has no winner."""
        response = await self._execute(
            self.client.table("games")
            .select("week")
            .eq("season", season)
            .is_("winner", "null")
            .lt("kickoff", now.isoformat())
            .order("week"),
            "pending weeks select",
        )
        return sorted({int(r["week"]) for r in response.data or []})

    async def find_game(
        self, season: int, week: int, home: str, away: str
    ) -> Optional[GameRecord]:
        response = await self._execute(
            self.client.table("games")
            .select("*")
            .eq("season", season)
            .eq("week", week)
            .eq("home", home)
            .eq("away", away)
            .limit(1),
            "game lookup",
        )
        rows: List[Dict[str, Any]] = response.data or []
        return GameRecord.model_validate(rows[0]) if rows else None

    async def kickoffs(self, season: int) -> List[Tuple[int, Optional[str]]]:
        response = await self._execute(
            self.client.table("games")
            .select("week,kickoff")
            .eq("season", season)
            .order("kickoff"),
            "kickoff select",
        )
        return [(int(r["week"]), r.get("kickoff")) for r in response.data or []]
