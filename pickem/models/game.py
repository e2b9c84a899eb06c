from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, computed_field

from .enums import Winner


def compute_winner(home_score: int, away_score: int) -> Optional[Winner]:
    """HOME or AWAY for the higher score; None on a tie."""
    if home_score > away_score:
        return Winner.HOME
    if home_score < away_score:
        return Winner.AWAY
    return None


class ScheduleRow(BaseModel):
    """One accepted schedule entry: a game between two canonical teams."""

    model_config = ConfigDict(frozen=True)

    season: int
    week: int
    home: str
    away: str
    kickoff: Optional[str] = None  # ISO-8601, usually UTC ("...Z")

    @property
    def game_key(self) -> Tuple[int, int, str, str]:
        return (self.season, self.week, self.home, self.away)

    def to_store(self) -> Dict[str, Any]:
        """Payload for the games upsert. Scores, winner and tiebreaker are never sent."""
        return {
            "season": self.season,
            "week": self.week,
            "home": self.home,
            "away": self.away,
            "kickoff": self.kickoff,
        }


class WeekRecord(BaseModel):
    """A (season, week) row of the weeks table."""

    season: int
    week: int
    starts_on: Optional[str] = None  # YYYY-MM-DD

    def to_store(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"season": self.season, "week": self.week}
        if self.starts_on is not None:
            data["starts_on"] = self.starts_on
        return data


class GameRecord(BaseModel):
    """A row of the games table as read back from the store."""

    model_config = ConfigDict(extra="ignore")

    id: Union[int, str]
    season: int
    week: int
    home: str
    away: str
    kickoff: Optional[str] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    winner: Optional[Winner] = None
    is_tiebreaker: bool = False

    @computed_field  # type: ignore[misc]
    @property
    def description(self) -> str:
        """A human-readable description of the game."""
        return f"{self.season} wk{self.week}: {self.away} @ {self.home}"


class ScoreUpdate(BaseModel):
    """A score (and maybe winner) to apply to an existing game."""

    model_config = ConfigDict(frozen=True)

    season: int
    week: int
    home: str
    away: str
    home_score: int
    away_score: int
    winner: Optional[Winner] = None

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.home, self.away)

    def to_patch(self) -> Dict[str, Any]:
        """Update payload; winner is left out when unset so a tie never clears it."""
        patch: Dict[str, Any] = {
            "home_score": self.home_score,
            "away_score": self.away_score,
        }
        if self.winner is not None:
            patch["winner"] = self.winner.value
        return patch
