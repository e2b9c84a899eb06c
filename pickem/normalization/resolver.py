"""Locating schedule and score fields in feed records whose column names vary.

Each logical field has a priority-ordered alias list; the first alias that is
present in the feed header and non-empty in the record wins. Aliases are
matched against lower-cased header names (see ``csv_parser``).
"""

import math
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from pickem.models.game import ScheduleRow
from pickem.normalization.csv_parser import FeedRecord
from pickem.normalization.teams import is_canonical_team, normalize_team

SEASON_ALIASES = ("season", "year")
WEEK_ALIASES = ("week", "game_week")
HOME_ALIASES = ("home_team", "home", "team_home", "team_h")
AWAY_ALIASES = ("away_team", "away", "team_away", "team_a")
KICKOFF_ALIASES = (
    "kickoff",
    "start_time",
    "game_datetime",
    "gamedatetime",
    "game_time_eastern",
    "starttime",
)
KICKOFF_DATE_ALIASES = ("gameday", "date", "game_date")
KICKOFF_TIME_ALIASES = ("gametime", "time", "game_time", "game_time_eastern")
HOME_SCORE_ALIASES = ("home_score", "home_pts", "home_points", "home_score_total")
AWAY_SCORE_ALIASES = ("away_score", "away_pts", "away_points", "away_score_total")

DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
HH_MM = re.compile(r"^\d{2}:\d{2}$")

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "season": SEASON_ALIASES,
    "week": WEEK_ALIASES,
    "home": HOME_ALIASES,
    "away": AWAY_ALIASES,
    "kickoff": KICKOFF_ALIASES,
    "kickoff_date": KICKOFF_DATE_ALIASES,
    "kickoff_time": KICKOFF_TIME_ALIASES,
    "home_score": HOME_SCORE_ALIASES,
    "away_score": AWAY_SCORE_ALIASES,
}


@dataclass(frozen=True)
class ResolvedRow:
    """Fields found in one record; None means "could not resolve"."""

    season: Optional[int]
    week: Optional[int]
    home: Optional[str]
    away: Optional[str]
    kickoff: Optional[str]
    home_score: Optional[int] = None
    away_score: Optional[int] = None

    @property
    def has_game_key(self) -> bool:
        if None in (self.season, self.week, self.home, self.away):
            return False
        return self.week > 0

    @property
    def has_scores(self) -> bool:
        return self.home_score is not None and self.away_score is not None


def parse_int(value: Optional[str]) -> Optional[int]:
    """Integer from "7" or "7.0"; None for blanks, "NA", fractions and junk."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or not number.is_integer():
        return None
    return int(number)


def compose_kickoff(date_value: Optional[str], time_value: Optional[str]) -> Optional[str]:
    """Joins a date and a time into ``YYYY-MM-DDTHH:MM:SSZ``.

    A bare ``HH:MM`` time gets ``:00`` seconds. Returns None if either part is
    missing.
    """
    d = (date_value or "").strip()
    t = (time_value or "").strip()
    if not d or not t:
        return None
    if HH_MM.match(t):
        t = f"{t}:00"
    return f"{d}T{t}Z"


def starts_on(kickoff: Optional[str]) -> Optional[str]:
    """Calendar date of a kickoff when it begins with ``YYYY-MM-DD``."""
    k = (kickoff or "").strip()
    return k[:10] if DATE_PREFIX.match(k) else None


class FieldResolver:
    """Resolves logical fields for records of one feed.

    The alias lists are narrowed once to the names present in the feed
    header, so per-row work is a handful of dict lookups.
    """

    def __init__(self, headers: Iterable[str]):
        present = {h.strip().lower() for h in headers}
        self.columns: Dict[str, List[str]] = {
            field: [a for a in aliases if a in present]
            for field, aliases in FIELD_ALIASES.items()
        }
        missing = [
            f for f in ("season", "week", "home", "away") if not self.columns[f]
        ]
        if missing:
            logger.warning(f"Feed header has no column for: {', '.join(missing)}")
        logger.debug(f"Resolved feed columns: {self.columns}")

    @classmethod
    def for_records(cls, records: Sequence[FeedRecord]) -> "FieldResolver":
        return cls(records[0].keys() if records else [])

    def pick(self, record: FeedRecord, field: str) -> Optional[str]:
        """First present, non-empty value among the field's aliases."""
        for name in self.columns[field]:
            value = record.get(name)
            if value is not None and str(value).strip() != "":
                return str(value).strip()
        return None

    def kickoff(self, record: FeedRecord) -> Optional[str]:
        direct = self.pick(record, "kickoff")
        if direct and DATE_PREFIX.match(direct):
            return direct
        composed = compose_kickoff(
            self.pick(record, "kickoff_date"), self.pick(record, "kickoff_time")
        )
        if composed and DATE_PREFIX.match(composed):
            return composed
        return None

    def team(self, record: FeedRecord, field: str) -> Optional[str]:
        code = normalize_team(self.pick(record, field))
        if not code:
            return None
        if not is_canonical_team(code):
            logger.debug(f"Unrecognised team code '{code}' passed through")
        return code

    def resolve(self, record: FeedRecord) -> ResolvedRow:
        return ResolvedRow(
            season=parse_int(self.pick(record, "season")),
            week=parse_int(self.pick(record, "week")),
            home=self.team(record, "home"),
            away=self.team(record, "away"),
            kickoff=self.kickoff(record),
            home_score=parse_int(self.pick(record, "home_score")),
            away_score=parse_int(self.pick(record, "away_score")),
        )


def accept_schedule_rows(records: Sequence[FeedRecord], season: int) -> List[ScheduleRow]:
    """Keeps rows with season, week, home and away resolved, for the target season only."""
    resolver = FieldResolver.for_records(records)
    rows: List[ScheduleRow] = []
    dropped = 0
    for record in records:
        resolved = resolver.resolve(record)
        if resolved.season != season:
            continue
        if not resolved.has_game_key:
            dropped += 1
            continue
        rows.append(
            ScheduleRow(
                season=resolved.season,
                week=resolved.week,
                home=resolved.home,
                away=resolved.away,
                kickoff=resolved.kickoff,
            )
        )
    if dropped:
        logger.debug(f"Dropped {dropped} season {season} rows missing week or teams")
    return rows
