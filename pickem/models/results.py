from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .enums import ScoreSource, WeekSelection


class ScheduleIngestResult(BaseModel):
    """Outcome of one schedule ingestion run."""

    season: int
    weeks: int = 0  # Distinct weeks upserted
    games: int = 0  # Games upserted
    tiebreakers: Dict[int, str] = Field(default_factory=dict)  # week -> game id


class ScoreIngestResult(BaseModel):
    """Outcome of one score ingestion run."""

    season: int
    source: ScoreSource = ScoreSource.NFLVERSE
    selection: WeekSelection = WeekSelection.PENDING
    weeks: List[int] = Field(default_factory=list)
    updated: int = 0
    applied_by_week: Dict[int, int] = Field(default_factory=dict)
    note: Optional[str] = None
