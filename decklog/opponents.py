"""
Opponent resolution: free-text names to registered accounts, their decks,
and commander names to canonical card names and links.

Each opponent row of the game log form has one panel, showing either the
recent opponents or the results of a search. Opening one mode closes the
other, and a search answer arriving after its panel moved on is dropped.
"""

import asyncio
import dataclasses
import itertools
import logging
import uuid
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import pydantic

from . import constants
from .abstract_component import AbstractRemoteComponent
from .collection_store import DeckPreviewResult
from .errors import TransportError
from .models import (
    CardLookup,
    OpponentDeck,
    OpponentRecord,
    OpponentUser,
    SessionStatus,
)
from .utils import get_str_or_none

LOGGER = logging.getLogger(__name__)

NO_MATCHING_USERS_MESSAGE = "No matching users found."
PANEL_RECENT = "recent"
PANEL_SEARCH = "search"

_USER_LIST = pydantic.TypeAdapter(List[OpponentUser])
_DECK_LIST = pydantic.TypeAdapter(List[OpponentDeck])


@dataclasses.dataclass
class OpponentRow:
    """
    Form state of one opponent. row_id only tells rows apart while editing
    and is never sent to the server.
    """

    name: str = ""
    email: Optional[str] = None
    user_id: Optional[str] = None
    deck_id: Optional[str] = None
    deck_name: Optional[str] = None
    deck_url: Optional[str] = None
    commander_names: List[str] = dataclasses.field(default_factory=list)
    commander_links: List[Optional[str]] = dataclasses.field(default_factory=list)
    color_identity: Optional[List[str]] = None
    row_id: str = dataclasses.field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def from_record(cls, record: OpponentRecord) -> "OpponentRow":
        return cls(
            name=record.name or "",
            email=record.email,
            user_id=record.user_id,
            deck_id=record.deck_id,
            deck_name=record.deck_name,
            deck_url=record.deck_url,
            commander_names=list(record.commander_names),
            commander_links=list(record.commander_links),
            color_identity=(
                list(record.color_identity) if record.color_identity is not None else None
            ),
        )

    def apply_user(self, user: OpponentUser) -> None:
        """Match this row to an account; any deck picked for the old one goes."""
        if user.id != self.user_id:
            self.clear_deck()
        self.user_id = user.id
        self.name = user.display_name
        self.email = user.email

    def clear_deck(self) -> None:
        self.deck_id = None
        self.deck_name = None
        self.deck_url = None
        self.commander_names = []
        self.commander_links = []
        self.color_identity = None

    def to_record(self) -> OpponentRecord:
        return OpponentRecord(
            user_id=self.user_id,
            name=get_str_or_none(self.name),
            email=self.email,
            deck_id=self.deck_id,
            deck_name=self.deck_name,
            deck_url=self.deck_url,
            commander_names=list(self.commander_names),
            commander_links=list(self.commander_links),
            color_identity=self.color_identity,
        )


@dataclasses.dataclass
class RowPanel:
    """What the lookup panel of one row currently shows."""

    mode: Optional[str] = None
    results: List[OpponentUser] = dataclasses.field(default_factory=list)
    message: Optional[str] = None
    token: int = 0


class OpponentResolver(AbstractRemoteComponent):
    """
    Recent opponents, user search, opponent decks and commander lookups
    """

    recent_opponents: List[OpponentUser]
    recent_error: Optional[str]
    search_error: Optional[str]
    lookup_error: Optional[str]
    decks_by_user_id: Dict[str, List[OpponentDeck]]
    deck_errors: Dict[str, Optional[str]]
    panels: Dict[str, RowPanel]

    def __init__(self, *args: Any, deck_store: Any = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.deck_store = deck_store
        self._tokens = itertools.count(1)
        self.reset()

    def reset(self) -> None:
        self._invalidate_requests()
        self.recent_opponents = []
        self._recent_loaded = False
        self.recent_error = None
        self.search_error = None
        self.lookup_error = None
        self.decks_by_user_id = {}
        self.deck_errors = {}
        self.panels = {}

    async def _fetch_list(
        self,
        path: str,
        list_key: str,
        fallback: str,
        set_message: Any,
        params: Optional[Dict[str, str]] = None,
    ) -> Optional[List[Any]]:
        """
        GET a list endpoint
        :return The raw list, or None after reporting the failure
        """
        generation = self._generation
        with self._in_flight():
            try:
                response = await self.api.get(path, params=params)
            except TransportError as error:
                if not self._is_stale(generation):
                    set_message(str(error))
                return None
        if self._is_stale(generation):
            return None
        if self._handle_auth_failure(response, fallback, set_message):
            return None
        if not response.success:
            set_message(response.error or fallback)
            return None
        raw_items = response.payload.get(list_key)
        return raw_items if isinstance(raw_items, list) else []

    def _set_recent_error(self, message: str) -> None:
        self.recent_error = message

    def _set_lookup_error(self, message: str) -> None:
        self.lookup_error = message

    # Users
    async def load_recent_opponents(self, force: bool = False) -> List[OpponentUser]:
        """
        Opponents the user recently logged games against, fetched once per session
        :param force: Fetch again even if already loaded
        """
        if self.auth_status == SessionStatus.UNAUTHENTICATED:
            self.recent_opponents = []
            self._recent_loaded = False
            return []
        if not self.is_authenticated:
            return self.recent_opponents
        if self._recent_loaded and not force:
            return self.recent_opponents

        self.recent_error = None
        raw_users = await self._fetch_list(
            "/api/opponents/recent",
            "opponents",
            "Unable to load recent opponents.",
            self._set_recent_error,
        )
        if raw_users is None:
            return self.recent_opponents
        try:
            self.recent_opponents = _USER_LIST.validate_python(raw_users)
        except pydantic.ValidationError:
            self.recent_error = constants.UNEXPECTED_RESPONSE_MESSAGE
            return self.recent_opponents

        self._recent_loaded = True
        return self.recent_opponents

    async def _search(self, query: str) -> Tuple[List[OpponentUser], Optional[str]]:
        """
        One user search, touching no shared state
        :return Matches and the error of this search alone
        """
        trimmed = query.strip()
        if not self.is_authenticated or not trimmed:
            return [], None

        errors: List[str] = []
        raw_users = await self._fetch_list(
            "/api/users/search",
            "users",
            "Unable to search users.",
            errors.append,
            params={"query": trimmed},
        )
        if raw_users is None:
            return [], errors[-1] if errors else None
        try:
            return _USER_LIST.validate_python(raw_users), None
        except pydantic.ValidationError:
            return [], constants.UNEXPECTED_RESPONSE_MESSAGE

    async def search_opponents(self, query: str) -> List[OpponentUser]:
        """
        Free-text user search. Never picks a match on its own.
        :param query: Name or email fragment
        :return Every match, possibly none
        """
        self.search_error = None
        matches, self.search_error = await self._search(query)
        return matches

    # Row panels
    def panel_for(self, row: OpponentRow) -> RowPanel:
        return self.panels.setdefault(row.row_id, RowPanel())

    def _switch_panel(self, row: OpponentRow, mode: Optional[str]) -> RowPanel:
        # A new token makes any answer still in flight for this row stale
        panel = RowPanel(mode=mode, token=next(self._tokens))
        self.panels[row.row_id] = panel
        return panel

    async def open_recent(self, row: OpponentRow) -> List[OpponentUser]:
        """Show recent opponents for row, closing its search results."""
        panel = self._switch_panel(row, PANEL_RECENT)
        recent = await self.load_recent_opponents()
        if self.panels.get(row.row_id) is panel:
            panel.results = list(recent)
            panel.message = self.recent_error
        return recent

    async def search_for_row(self, row: OpponentRow, query: str) -> List[OpponentUser]:
        """
        Search on behalf of row. One match is applied straight away;
        none shows a message; several are listed for the user to pick.
        :return Matches, or [] if the answer arrived too late to be used
        """
        panel = self._switch_panel(row, PANEL_SEARCH)
        matches, error = await self._search(query)

        if self.panels.get(row.row_id) is not panel:
            LOGGER.debug(f"Dropping stale search results for row {row.row_id}")
            return []

        self.search_error = error
        if error:
            panel.message = error
        elif len(matches) == 1:
            self.select_opponent(row, matches[0])
        elif not matches:
            panel.message = NO_MATCHING_USERS_MESSAGE
        else:
            panel.results = matches
        return matches

    def select_opponent(self, row: OpponentRow, user: OpponentUser) -> OpponentRow:
        row.apply_user(user)
        self.close_panel(row)
        return row

    def close_panel(self, row: OpponentRow) -> None:
        self._switch_panel(row, None)

    # Decks
    async def load_opponent_decks(
        self, user_id: str, force: bool = False
    ) -> List[OpponentDeck]:
        """
        Decks of a matched opponent, cached per user id
        :param user_id: Opponent account id
        :param force: Bypass the cache after the decks may have changed
        """
        user_id = user_id.strip()
        if not self.is_authenticated or not user_id:
            return []
        if not force and user_id in self.decks_by_user_id:
            return self.decks_by_user_id[user_id]

        self.deck_errors[user_id] = None

        def set_deck_error(message: str) -> None:
            self.deck_errors[user_id] = message

        raw_decks = await self._fetch_list(
            f"/api/opponents/{quote(user_id, safe='')}/decks",
            "decks",
            "Unable to load opponent decks.",
            set_deck_error,
        )
        if raw_decks is None:
            return []
        try:
            decks = _DECK_LIST.validate_python(raw_decks)
        except pydantic.ValidationError:
            set_deck_error(constants.UNEXPECTED_RESPONSE_MESSAGE)
            return []

        self.decks_by_user_id[user_id] = decks
        return decks

    # Commanders
    async def lookup_card(self, name: str) -> Optional[CardLookup]:
        """
        Exact name lookup of a card
        :param name: Card name as typed
        :return Canonical card, or None if there is no such card
        """
        name = name.strip()
        if not name:
            return None

        fallback = "Unable to look up that card."
        generation = self._generation
        with self._in_flight():
            try:
                response = await self.api.post("/api/scryfall/lookup", json={"name": name})
            except TransportError as error:
                if not self._is_stale(generation):
                    self.lookup_error = str(error)
                return None
        if self._is_stale(generation):
            return None
        if self._handle_auth_failure(response, fallback, self._set_lookup_error):
            return None
        if response.status == 404:
            return None
        if not response.success:
            self.lookup_error = response.error or fallback
            return None

        raw_card = response.payload.get("card")
        if not isinstance(raw_card, dict):
            return None
        try:
            return CardLookup.model_validate(raw_card)
        except pydantic.ValidationError:
            LOGGER.warning(f"Malformed card lookup for {name}")
            return None

    async def resolve_commander(self, name: str) -> Tuple[str, Optional[str]]:
        """
        :return Canonical name and link, or the name as typed and no link
        """
        card = await self.lookup_card(name)
        if card is None:
            return name.strip(), None
        return card.name, card.scryfall_url

    async def resolve_commander_field(
        self, row: OpponentRow, index: int, name: str
    ) -> None:
        """Resolve one commander field of row after the user edited it."""
        if index < 0 or index >= constants.MAX_COMMANDERS:
            raise IndexError(f"Commander index {index} out of range")

        resolved_name, link = await self.resolve_commander(name)
        while len(row.commander_names) <= index:
            row.commander_names.append("")
        while len(row.commander_links) < len(row.commander_names):
            row.commander_links.append(None)
        row.commander_names[index] = resolved_name
        row.commander_links[index] = link

    async def _resolve_all(
        self, names: List[str], known_links: List[Optional[str]]
    ) -> Tuple[List[str], List[Optional[str]]]:
        links = known_links + [None] * (len(names) - len(known_links))
        pairs = [(name, link) for name, link in zip(names, links) if name.strip()]
        pairs = pairs[: constants.MAX_COMMANDERS]
        resolved = await asyncio.gather(
            *(self.resolve_commander(name) for name, _ in pairs)
        )
        resolved_names = [name for name, _ in resolved]
        resolved_links = [
            link or known_link for (_, link), (_, known_link) in zip(resolved, pairs)
        ]
        return resolved_names, resolved_links

    async def select_opponent_deck(self, row: OpponentRow, deck: OpponentDeck) -> None:
        """
        Fill row from one of its opponent's decks, resolving every
        commander of the deck concurrently.
        """
        row.deck_id = deck.id
        row.deck_name = deck.name
        row.deck_url = deck.url
        row.color_identity = (
            list(deck.color_identity) if deck.color_identity is not None else None
        )
        row.commander_names, row.commander_links = await self._resolve_all(
            list(deck.commander_names), list(deck.commander_links)
        )

    async def preview_opponent_deck(
        self, row: OpponentRow, deck_url: str
    ) -> DeckPreviewResult:
        """
        Fill row from a deck link, for opponents playing a deck that is
        not in their collection (or who have no account).
        """
        if self.deck_store is None:
            return DeckPreviewResult(url=deck_url, error="Deck preview is unavailable.")

        result = await self.deck_store.preview(deck_url)
        if not result.success:
            return result

        preview = result.preview
        row.deck_id = None
        row.deck_name = preview.name or None
        row.deck_url = preview.url
        row.color_identity = (
            list(preview.color_identity) if preview.color_identity is not None else None
        )
        row.commander_names, row.commander_links = await self._resolve_all(
            list(preview.commander_names), []
        )
        return result
