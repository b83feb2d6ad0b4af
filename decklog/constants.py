"""
decklog Constants that cannot be changed and are hardcoded intentionally
"""

import os
import pathlib
from typing import Dict, FrozenSet, Tuple

TOP_LEVEL_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
RESOURCE_PATH: pathlib.Path = TOP_LEVEL_DIR.joinpath("decklog").joinpath("resources")
CONFIG_PATH: pathlib.Path = pathlib.Path(
    os.environ.get(
        "DECKLOG_CONFIG_PATH", str(RESOURCE_PATH.joinpath("decklog.properties"))
    )
)
USER_DATA_PATH: pathlib.Path = (
    pathlib.Path(os.environ.get("DECKLOG_HOME", "~/.decklog")).expanduser().resolve()
)
LOG_PATH: pathlib.Path = USER_DATA_PATH.joinpath("logs")
PREFERENCES_PATH: pathlib.Path = USER_DATA_PATH.joinpath("preferences.json")

DEFAULT_API_BASE_URL: str = "http://localhost:3001"

# Machine readable codes carried in the JSON body of 401 responses
AUTH_EXPIRED_CODE: str = "auth_expired"
AUTH_REQUIRED_CODE: str = "auth_required"

# Fallback messages
UNEXPECTED_RESPONSE_MESSAGE: str = "Unexpected response from server."
NETWORK_ERROR_MESSAGE: str = "Unable to reach the server."
SESSION_EXPIRED_MESSAGE: str = "Session expired. Please sign in again."
GOOGLE_LOGIN_FAILED_MESSAGE: str = "Google login failed. Please try again."
GOOGLE_UNAVAILABLE_MESSAGE: str = "Google sign-in is unavailable."

COLOR_SYMBOLS: Tuple[str, ...] = ("W", "U", "B", "R", "G")
MAX_COMMANDERS: int = 2

SORT_DIRECTIONS: FrozenSet[str] = frozenset({"asc", "desc"})
DECK_SORT_KEYS: Tuple[str, ...] = ("name", "commander", "color")
GAME_LOG_SORT_KEYS: Tuple[str, ...] = (
    "playedAt",
    "deckName",
    "result",
    "durationMinutes",
    "turns",
)
DEFAULT_SORTS: Dict[str, Tuple[str, str]] = {
    "decks": ("name", "asc"),
    "game-logs": ("playedAt", "desc"),
}
