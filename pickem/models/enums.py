from enum import Enum


class Winner(str, Enum):
    HOME = "HOME"
    AWAY = "AWAY"
    # Ties have no member: winner stays unset


class FeedKind(str, Enum):
    NFLVERSE = "nflverse"
    ESPN = "espn"


class ScoreSource(str, Enum):
    NFLVERSE = "nflverse"  # CSV results feed (SCORE_FEED_URL)
    ESPN = "espn"  # Scoreboard JSON, fetched per week


class WeekSelection(str, Enum):
    EXPLICIT = "explicit"  # A single week given by the caller
    ALL = "all"  # Every week present for the season
    PENDING = "pending"  # Weeks with kicked-off games that have no winner yet


class EspnGameState(str, Enum):
    PRE = "pre"
    IN = "in"
    POST = "post"
