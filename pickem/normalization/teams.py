from typing import Dict, Optional

# Canonical abbreviations used by the games table
CANONICAL_TEAMS = frozenset(
    {
        "ARI", "ATL", "BAL", "BUF", "CAR", "CHI", "CIN", "CLE",
        "DAL", "DEN", "DET", "GB", "HOU", "IND", "JAX", "KC",
        "LAC", "LAR", "LV", "MIA", "MIN", "NE", "NO", "NYG",
        "NYJ", "PHI", "PIT", "SEA", "SF", "TB", "TEN", "WAS",
    }
)

# Alternate spellings (PFR-style codes, ESPN codes, relocated franchises)
TEAM_ALIASES: Dict[str, str] = {
    "GNB": "GB",
    "JAC": "JAX",
    "KAN": "KC",
    "LVR": "LV",
    "OAK": "LV",
    "NWE": "NE",
    "NOR": "NO",
    "SFO": "SF",
    "TAM": "TB",
    "WSH": "WAS",
    "SD": "LAC",
    "SDG": "LAC",
    "STL": "LAR",
    "LA": "LAR",  # nflverse spells the Rams "LA"
}


def normalize_team(code: Optional[str]) -> str:
    """Maps any known team abbreviation to its canonical code.

    Unknown codes are returned upper-cased; empty input gives "".
    """
    if not code:
        return ""
    key = str(code).strip().upper()
    return TEAM_ALIASES.get(key, key)


def is_canonical_team(code: str) -> bool:
    return code in CANONICAL_TEAMS
