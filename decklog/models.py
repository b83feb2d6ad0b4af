"""Pydantic models for deck tracker API payloads."""

import datetime
import enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from . import constants
from .errors import ValidationError
from .utils import clean_string_list, get_str_or_none

DeckSource = Literal["archidekt", "moxfield", "manual"]
GameResult = Literal["win", "loss"]
SharedLogStatus = Literal["pending", "accepted", "rejected"]


class SessionStatus(str, enum.Enum):
    """Where the current user stands with the session service."""

    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"
    EXPIRED = "expired"


class DecklogModel(BaseModel):
    """
    Base for all decklog models: snake_case attributes, camelCase on the wire.
    """

    def to_json(self, exclude_none: bool = False) -> Dict[str, Any]:
        """Serialize using the API's camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=exclude_none, mode="json")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


def _check_color_identity(colors: Optional[List[str]]) -> Optional[List[str]]:
    """
    Normalize a color identity, keeping None (unknown) apart from [] (colorless)
    """
    if colors is None:
        return None
    normalized = [color.strip().upper() for color in colors if color.strip()]
    if any(color not in constants.COLOR_SYMBOLS for color in normalized):
        raise ValidationError("Color identity must only use W, U, B, R and G.")
    return [color for color in constants.COLOR_SYMBOLS if color in normalized]


class User(DecklogModel):
    """Authenticated account as reported by the session service."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    picture: Optional[str] = None


class DeckStats(DecklogModel):
    """Server computed results for one deck."""

    total_games: int = 0
    wins: int = 0
    losses: int = 0
    win_rate: Optional[float] = None
    last_played: Optional[str] = None


class DeckEntry(DecklogModel):
    """Single deck in the user's collection."""

    id: str
    name: str
    url: Optional[str] = None
    format: Optional[str] = None
    commander_names: List[str] = Field(default_factory=list)
    commander_links: List[Optional[str]] = Field(default_factory=list)
    color_identity: Optional[List[str]] = None
    source: DeckSource = "manual"
    added_at: str = ""
    stats: Optional[DeckStats] = None


class OpponentRecord(DecklogModel):
    """One opponent of a logged game, matched to an account or not."""

    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    deck_id: Optional[str] = None
    deck_name: Optional[str] = None
    deck_url: Optional[str] = None
    commander_names: List[str] = Field(default_factory=list)
    commander_links: List[Optional[str]] = Field(default_factory=list)
    color_identity: Optional[List[str]] = None

    @property
    def is_matched(self) -> bool:
        return self.user_id is not None


class GameLogEntry(DecklogModel):
    """Single logged game."""

    id: str
    deck_id: str
    deck_name: str
    commander_names: List[str] = Field(default_factory=list)
    commander_links: List[Optional[str]] = Field(default_factory=list)
    played_at: str
    turns: Optional[int] = None
    duration_minutes: Optional[int] = None
    opponents_count: int = 0
    opponents: List[OpponentRecord] = Field(default_factory=list)
    result: Optional[GameResult] = None
    tags: List[str] = Field(default_factory=list)
    created_at: str = ""

    @property
    def is_pending(self) -> bool:
        """A game without a result is still being decided, not broken."""
        return self.result is None


class SharedGameLogEntry(GameLogEntry):
    """A game log another user shared with the current user."""

    deck_id: Optional[str] = None  # type: ignore[assignment]
    deck_name: Optional[str] = None  # type: ignore[assignment]
    deck_url: Optional[str] = None
    recipient_user_id: str = ""
    shared_by_user_id: str = ""
    source_log_id: str = ""
    status: SharedLogStatus = "pending"
    updated_at: str = ""


class OpponentUser(DecklogModel):
    """Registered account that can be picked as an opponent."""

    id: str
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id


class OpponentDeck(DecklogModel):
    """Deck owned by an opponent account."""

    id: str
    name: str
    url: Optional[str] = None
    commander_names: List[str] = Field(default_factory=list)
    commander_links: List[Optional[str]] = Field(default_factory=list)
    color_identity: Optional[List[str]] = None


class DeckPreview(DecklogModel):
    """Normalized result of a single deck URL lookup."""

    name: str = ""
    url: Optional[str] = None
    format: Optional[str] = None
    commander_names: List[str] = Field(default_factory=list)
    color_identity: Optional[List[str]] = None
    source: Optional[str] = None


class BulkImportCandidate(DecklogModel):
    """Deck found on a remote profile, offered for bulk import."""

    id: str
    name: str
    format: Optional[str] = None
    url: str
    source: str


class ImportFailure(DecklogModel):
    """One deck of a bulk import the server could not import."""

    url: str
    error: str = ""


class CardLookup(DecklogModel):
    """Canonical card name and link."""

    name: str
    scryfall_url: Optional[str] = None


class ManualDeckInput(DecklogModel):
    """
    Deck entered by hand, or edited.
    Unset fields are left out of the request body.
    """

    name: str
    url: Optional[str] = None
    format: Optional[str] = None
    commander_names: Optional[List[str]] = None
    commander_links: Optional[List[Optional[str]]] = None
    color_identity: Optional[List[str]] = None

    def validated(self) -> "ManualDeckInput":
        """
        Return a cleaned copy of this input
        :raises ValidationError: on missing or malformed fields
        """
        name = get_str_or_none(self.name)
        if not name:
            raise ValidationError("Deck name is required.")

        commander_names = self.commander_names
        commander_links = self.commander_links
        if commander_names is not None:
            commander_names = clean_string_list(commander_names)
            if len(commander_names) > constants.MAX_COMMANDERS:
                raise ValidationError("A deck can have at most two commanders.")
            if commander_links is not None:
                commander_links = [
                    get_str_or_none(link) for link in commander_links
                ][: len(commander_names)]
                commander_links += [None] * (len(commander_names) - len(commander_links))

        return self.model_copy(
            update={
                "name": name,
                "url": get_str_or_none(self.url),
                "commander_names": commander_names,
                "commander_links": commander_links,
                "color_identity": _check_color_identity(self.color_identity),
            }
        )


class GameLogUpdate(DecklogModel):
    """Editable fields of a game log."""

    date_played: str
    turns: Optional[int] = None
    duration_minutes: Optional[int] = None
    opponents_count: int = 0
    opponents: List[OpponentRecord] = Field(default_factory=list)
    result: Optional[GameResult] = None
    tags: List[str] = Field(default_factory=list)

    def _validated_fields(self) -> Dict[str, Any]:
        date_played = get_str_or_none(self.date_played)
        try:
            datetime.date.fromisoformat((date_played or "")[:10])
        except ValueError as error:
            raise ValidationError("Enter the date the game was played.") from error

        if self.turns is not None and self.turns <= 0:
            raise ValidationError("Turns must be a positive number.")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValidationError("Game length must be a positive number of minutes.")
        if self.opponents_count < len(self.opponents):
            raise ValidationError(
                "Opponent count cannot be less than the number of opponents listed."
            )

        opponents = []
        for opponent in self.opponents:
            opponents.append(
                opponent.model_copy(
                    update={"color_identity": _check_color_identity(opponent.color_identity)}
                )
            )

        return {
            "date_played": date_played,
            "opponents": opponents,
            "tags": clean_string_list(self.tags),
        }

    def validated(self) -> "GameLogUpdate":
        """
        Return a cleaned copy of this input
        :raises ValidationError: on missing or malformed fields
        """
        return self.model_copy(update=self._validated_fields())


class GameLogInput(GameLogUpdate):
    """New game log for one of the user's decks."""

    deck_id: str

    def validated(self) -> "GameLogInput":
        deck_id = get_str_or_none(self.deck_id)
        if not deck_id:
            raise ValidationError("Select a deck to log.")
        return self.model_copy(update={**self._validated_fields(), "deck_id": deck_id})


class SharedGameLogUpdate(GameLogUpdate):
    """Edit of a shared log before accepting it; the deck may be left unset."""

    deck_id: Optional[str] = None
