"""
Sort preferences for the deck and game log lists, persisted between runs.

This is the only state decklog keeps on disk. It never holds collection data.
"""

import datetime
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import orjson

from . import constants
from .decklog_config import DecklogConfig
from .models import DeckEntry, GameLogEntry

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SORT_KEYS_BY_LIST: Dict[str, Tuple[str, ...]] = {
    "decks": constants.DECK_SORT_KEYS,
    "game-logs": constants.GAME_LOG_SORT_KEYS,
}
RESULT_RANK = {"win": 2, "loss": 1}


@dataclass(frozen=True)
class SortPreference:
    """Sort key and direction of one list."""

    key: str
    dir: str = "asc"

    @property
    def descending(self) -> bool:
        return self.dir == "desc"

    def to_json(self) -> Dict[str, str]:
        return {"key": self.key, "dir": self.dir}


def default_preference(list_name: str) -> SortPreference:
    key, direction = constants.DEFAULT_SORTS[list_name]
    return SortPreference(key=key, dir=direction)


def parse_preference(list_name: str, raw: Any) -> SortPreference:
    """
    Read a stored preference, falling back to the list's default on
    anything unexpected
    :param list_name: "decks" or "game-logs"
    :param raw: Decoded JSON value
    """
    default = default_preference(list_name)
    if not isinstance(raw, dict):
        return default
    key = raw.get("key")
    if key not in SORT_KEYS_BY_LIST[list_name]:
        return default
    direction = raw.get("dir")
    if direction not in constants.SORT_DIRECTIONS:
        direction = default.dir
    return SortPreference(key=key, dir=direction)


class SortPreferenceCache:
    """
    {list name: {key, dir}} stored as one JSON file
    """

    path: pathlib.Path
    _preferences: Dict[str, SortPreference]

    def __init__(self, path: Optional[pathlib.Path] = None) -> None:
        self.path = path or DecklogConfig().preferences_path
        self._preferences = {}
        self.load()

    def load(self) -> None:
        """Read the preference file; unreadable content is ignored."""
        self._preferences = {}
        if not self.path.is_file():
            return
        try:
            stored = orjson.loads(self.path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as error:
            LOGGER.warning(f"Ignoring unreadable preferences at {self.path}: {error}")
            return
        if not isinstance(stored, dict):
            LOGGER.warning(f"Ignoring malformed preferences at {self.path}")
            return
        for list_name in SORT_KEYS_BY_LIST:
            if list_name in stored:
                self._preferences[list_name] = parse_preference(
                    list_name, stored[list_name]
                )

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(
            orjson.dumps(
                {name: pref.to_json() for name, pref in self._preferences.items()},
                option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
            )
        )

    def get(self, list_name: str) -> SortPreference:
        if list_name not in SORT_KEYS_BY_LIST:
            raise KeyError(f"Unknown list {list_name}")
        return self._preferences.get(list_name) or default_preference(list_name)

    def set(self, list_name: str, key: str, direction: Optional[str] = None) -> SortPreference:
        """
        Store a preference and write the file
        :param list_name: "decks" or "game-logs"
        :param key: Sort key, one of the list's keys
        :param direction: "asc" or "desc"; keeps the current direction when unset
        :raises ValueError: on an unknown key or direction
        """
        if key not in SORT_KEYS_BY_LIST.get(list_name, ()):
            raise ValueError(f"Cannot sort {list_name} by {key}")
        if direction is None:
            direction = self.get(list_name).dir
        if direction not in constants.SORT_DIRECTIONS:
            raise ValueError(f"Unknown sort direction {direction}")

        preference = SortPreference(key=key, dir=direction)
        self._preferences[list_name] = preference
        try:
            self.save()
        except OSError as error:
            LOGGER.warning(f"Unable to save preferences to {self.path}: {error}")
        return preference

    def toggle_direction(self, list_name: str) -> SortPreference:
        current = self.get(list_name)
        return self.set(list_name, current.key, "asc" if current.descending else "desc")


def _sort_with_missing_last(
    items: Sequence[T],
    value: Callable[[T], Any],
    descending: bool,
) -> List[T]:
    present = [item for item in items if value(item) is not None]
    missing = [item for item in items if value(item) is None]
    return sorted(present, key=value, reverse=descending) + missing


def _color_value(deck: DeckEntry) -> str:
    if not deck.color_identity:
        return ""
    return "".join(
        color for color in constants.COLOR_SYMBOLS if color in deck.color_identity
    )


def sort_decks(
    decks: Sequence[DeckEntry], preference: Optional[SortPreference] = None
) -> List[DeckEntry]:
    """
    Return decks ordered case-insensitively by name, commanders or colors
    """
    preference = preference or default_preference("decks")
    if preference.key == "commander":
        def value(deck: DeckEntry) -> str:
            return ", ".join(deck.commander_names).casefold()
    elif preference.key == "color":
        value = _color_value
    else:
        def value(deck: DeckEntry) -> str:
            return deck.name.casefold()
    return sorted(decks, key=value, reverse=preference.descending)


def _played_at_value(log: GameLogEntry) -> Optional[datetime.datetime]:
    try:
        played_at = datetime.datetime.fromisoformat(log.played_at.replace("Z", "+00:00"))
    except ValueError:
        return None
    if played_at.tzinfo is None:
        played_at = played_at.replace(tzinfo=datetime.timezone.utc)
    return played_at


def sort_game_logs(
    logs: Sequence[GameLogEntry], preference: Optional[SortPreference] = None
) -> List[GameLogEntry]:
    """
    Return game logs ordered by the preference.
    Logs missing the sorted value (no length, no turns, bad date) go last
    whichever the direction.
    """
    preference = preference or default_preference("game-logs")
    descending = preference.descending

    if preference.key == "deckName":
        return sorted(logs, key=lambda log: log.deck_name.casefold(), reverse=descending)
    if preference.key == "result":
        # Pending games rank below losses
        return sorted(
            logs, key=lambda log: RESULT_RANK.get(log.result or "", 0), reverse=descending
        )
    if preference.key == "durationMinutes":
        return _sort_with_missing_last(logs, lambda log: log.duration_minutes, descending)
    if preference.key == "turns":
        return _sort_with_missing_last(logs, lambda log: log.turns, descending)
    return _sort_with_missing_last(logs, _played_at_value, descending)
