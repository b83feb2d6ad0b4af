"""
Remote collection stores for decks, game logs and shared game logs.

Every mutating call replaces the whole local list with the list embedded in
the server's response. There is no client-side merge: the server list is
authoritative and a later response simply replaces an earlier one.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar
from urllib.parse import quote

import pydantic

from . import constants
from .abstract_component import AbstractRemoteComponent
from .errors import TransportError, ValidationError
from .http_client import ApiResponse
from .models import (
    DecklogModel,
    DeckEntry,
    DeckPreview,
    GameLogEntry,
    GameLogInput,
    GameLogUpdate,
    ManualDeckInput,
    SharedGameLogEntry,
    SharedGameLogUpdate,
)

LOGGER = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=DecklogModel)
InputT = TypeVar("InputT", bound=DecklogModel)
UpdateT = TypeVar("UpdateT", bound=DecklogModel)


@dataclass(frozen=True)
class StoreMessages:
    """User facing messages of one store."""

    load_failed: str
    sign_in: str
    create_failed: str = ""
    created: str = ""
    update_failed: str = ""
    updated: str = ""
    remove_failed: str = ""
    removed: str = ""


@dataclass
class DeckPreviewResult:
    """Result of looking up a single deck URL."""

    url: str
    preview: Optional[DeckPreview] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        """Return True if the lookup produced a preview."""
        return self.preview is not None


@dataclass
class ShareResult:
    """Result of sharing a game log with other users."""

    shared: bool
    needs_confirm: bool = False
    message: Optional[str] = None


class RemoteListStore(AbstractRemoteComponent, Generic[ItemT]):
    """
    Mirror of one remote list.
    Owns items, error and status_message; loading is shared by all operations.
    """

    resource_path: str
    list_key: str
    item_model: Type[ItemT]
    messages: StoreMessages

    items: List[ItemT]
    error: Optional[str]
    status_message: Optional[str]

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.items = []
        self.error = None
        self.status_message = None
        self._list_adapter = pydantic.TypeAdapter(List[self.item_model])

    def reset(self) -> None:
        self._invalidate_requests()
        self.items = []
        self.error = None
        self.status_message = None

    def _set_error(self, message: str) -> None:
        self.error = message

    def _clear_messages(self) -> None:
        self.error = None
        self.status_message = None

    def _item_path(self, item_id: str, *suffix: str) -> str:
        parts = [self.resource_path, quote(item_id, safe=""), *suffix]
        return "/".join(parts)

    def replace_items(self, raw_items: Any) -> List[ItemT]:
        """
        Replace the entire local list with a list sent by the server.
        A missing list means the server holds nothing.
        :param raw_items: Decoded JSON list
        :raises TransportError: when the list does not match the expected shape
        """
        try:
            items = self._list_adapter.validate_python(
                raw_items if isinstance(raw_items, list) else []
            )
        except pydantic.ValidationError as error:
            LOGGER.warning(f"Malformed {self.list_key} list from server: {error}")
            raise TransportError(constants.UNEXPECTED_RESPONSE_MESSAGE) from error

        self.items = items
        return items

    def apply_list(self, raw_items: Any) -> bool:
        """
        Replace the list from a response fetched by someone else,
        reporting a malformed list in error
        :return True if the list was replaced
        """
        try:
            self.replace_items(raw_items)
        except TransportError as error:
            self.error = str(error)
            return False
        return True

    async def load(self, surface_auth_errors: bool = False) -> bool:
        """
        Fetch the full current list and replace the local one.
        On an auth failure the previous list is kept.
        :param surface_auth_errors: Report a plain 401 in error
        :return True if the list was replaced
        """
        generation = self._generation
        with self._in_flight():
            self.error = None
            try:
                response = await self.api.get(self.resource_path)
            except TransportError as error:
                if not self._is_stale(generation):
                    self.error = str(error)
                return False
        if self._is_stale(generation):
            return False

        if self._handle_auth_failure(
            response,
            self.messages.load_failed,
            self._set_error,
            surface=surface_auth_errors,
        ):
            return False
        if not response.success:
            self.error = response.error or self.messages.load_failed
            return False
        if not self.apply_list(response.payload.get(self.list_key)):
            return False

        LOGGER.debug(f"Loaded {len(self.items)} {self.list_key}")
        return True

    async def _mutate(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]],
        failure_message: str,
        success_message: Optional[str],
        require_list: bool = True,
    ) -> Optional[ApiResponse]:
        """
        Issue one mutating call and apply the list from its response.
        :return The response on success, None on any failure
        """
        if not self.is_authenticated:
            self.error = self.messages.sign_in
            return None

        generation = self._generation
        with self._in_flight():
            self._clear_messages()
            try:
                response = await self.api.request(method, path, json=body)
            except TransportError as error:
                if not self._is_stale(generation):
                    self.error = str(error)
                return None
        if self._is_stale(generation):
            return None

        if self._handle_auth_failure(response, failure_message, self._set_error):
            return None
        if not response.success:
            self.error = response.error or failure_message
            return None
        if require_list or self.list_key in response.payload:
            if not self.apply_list(response.payload.get(self.list_key)):
                return None

        if success_message:
            self.status_message = success_message
        return response


class RemoteCollectionStore(RemoteListStore[ItemT], Generic[ItemT, InputT, UpdateT]):
    """
    Remote list with create, update and remove.
    """

    create_path: str
    update_method: str = "PATCH"

    def _prepare(self, payload: DecklogModel) -> Dict[str, Any]:
        """
        Validate and serialize an input model
        :raises ValidationError: when a mandatory field is missing
        """
        return payload.validated().to_json()  # type: ignore[attr-defined]

    def _prepare_or_report(self, payload: DecklogModel) -> Optional[Dict[str, Any]]:
        try:
            return self._prepare(payload)
        except ValidationError as error:
            self.status_message = None
            self.error = str(error)
            return None

    async def create(self, payload: InputT) -> bool:
        """
        Create an item; the list becomes the server's list.
        :return True on success
        """
        body = self._prepare_or_report(payload)
        if body is None:
            return False
        response = await self._mutate(
            "POST",
            self.create_path,
            body,
            self.messages.create_failed,
            self.messages.created,
        )
        return response is not None

    async def update(self, item_id: str, payload: UpdateT) -> bool:
        """
        Update an item; the list becomes the server's list.
        :return True on success
        """
        body = self._prepare_or_report(payload)
        if body is None:
            return False
        response = await self._mutate(
            self.update_method,
            self._item_path(item_id),
            body,
            self.messages.update_failed,
            self.messages.updated,
        )
        return response is not None

    async def remove(self, item_id: str) -> bool:
        """
        Delete an item unconditionally; confirmation is the caller's concern.
        :return True on success
        """
        response = await self._mutate(
            "DELETE",
            self._item_path(item_id),
            None,
            self.messages.remove_failed,
            self.messages.removed,
        )
        return response is not None


class DeckStore(RemoteCollectionStore[DeckEntry, ManualDeckInput, ManualDeckInput]):
    """The current user's deck collection."""

    resource_path = "/api/decks"
    create_path = "/api/decks/manual"
    update_method = "PUT"
    list_key = "decks"
    item_model = DeckEntry
    messages = StoreMessages(
        load_failed="Unable to load your decks.",
        sign_in="Sign in with Google to manage decks.",
        create_failed="Unable to add deck.",
        created="Deck saved.",
        update_failed="Unable to update deck.",
        updated="Deck updated.",
        remove_failed="Unable to remove deck.",
        removed="Deck removed.",
    )

    def _prepare(self, payload: DecklogModel) -> Dict[str, Any]:
        # Unset optional fields are omitted; [] (colorless) survives
        return payload.validated().to_json(exclude_none=True)  # type: ignore[attr-defined]

    def get(self, deck_id: str) -> Optional[DeckEntry]:
        return next((deck for deck in self.items if deck.id == deck_id), None)

    async def import_deck(self, deck_url: str) -> bool:
        """
        Add one deck from a deck building site.
        :param deck_url: Archidekt or Moxfield deck link
        :return True on success
        """
        deck_url = deck_url.strip()
        if not deck_url:
            self.error = "Enter a deck URL."
            return False
        response = await self._mutate(
            "POST",
            self.resource_path,
            {"deckUrl": deck_url},
            self.messages.create_failed,
            "Deck added.",
        )
        return response is not None

    async def preview(self, deck_url: str) -> DeckPreviewResult:
        """
        Look up a deck URL without touching the stored list.
        "Not found" and "unsupported URL" errors are kept verbatim.
        :param deck_url: Deck link to look up
        :return Preview or error
        """
        deck_url = deck_url.strip()
        result = DeckPreviewResult(url=deck_url)
        if not deck_url:
            result.error = self.error = "Enter a deck URL."
            return result

        fallback = "Unable to preview deck."
        with self._in_flight():
            self._clear_messages()
            try:
                response = await self.api.post(
                    "/api/decks/preview", json={"deckUrl": deck_url}
                )
                if self._handle_auth_failure(response, fallback, self._set_error):
                    result.error = self.error
                    return result
                if not response.success:
                    result.error = self.error = response.error or fallback
                    return result
                result.preview = DeckPreview.model_validate(
                    response.payload.get("deck") or {}
                )
            except pydantic.ValidationError:
                result.error = self.error = constants.UNEXPECTED_RESPONSE_MESSAGE
            except TransportError as error:
                result.error = self.error = str(error)

        if result.preview is not None and not result.preview.url:
            result.preview.url = deck_url
        return result


class GameLogStore(RemoteCollectionStore[GameLogEntry, GameLogInput, GameLogUpdate]):
    """The current user's game logs."""

    resource_path = "/api/game-logs"
    create_path = "/api/game-logs"
    update_method = "PATCH"
    list_key = "logs"
    item_model = GameLogEntry
    messages = StoreMessages(
        load_failed="Unable to load game logs.",
        sign_in="Sign in with Google to manage game logs.",
        create_failed="Unable to add game log.",
        created="Game log saved.",
        update_failed="Unable to update game log.",
        updated="Game log updated.",
        remove_failed="Unable to remove game log.",
        removed="Game log removed.",
    )

    async def share(
        self,
        log_id: str,
        recipient_user_ids: Sequence[str],
        confirm: bool = False,
    ) -> ShareResult:
        """
        Share a game log with other registered users.
        When some recipients already have it the server asks for
        confirmation; call again with confirm=True to reshare.
        :param log_id: Log to share
        :param recipient_user_ids: Opponents' account ids
        :param confirm: Reshare to recipients that already received it
        """
        recipients = list(dict.fromkeys(uid for uid in recipient_user_ids if uid))
        if not recipients:
            self.error = "Pick at least one player to share with."
            return ShareResult(shared=False)

        response = await self._mutate(
            "POST",
            self._item_path(log_id, "share"),
            {"recipientUserIds": recipients, "confirm": confirm},
            "Unable to share game log.",
            None,
            require_list=False,
        )
        if response is None:
            return ShareResult(shared=False, message=self.error)

        if response.payload.get("needsConfirm") is True:
            message = (
                response.error
                or "This game was already shared with some of these players. Share it again?"
            )
            self.status_message = message
            return ShareResult(shared=False, needs_confirm=True, message=message)

        self.status_message = "Game log shared."
        return ShareResult(shared=True, message=self.status_message)


class SharedGameLogStore(RemoteListStore[SharedGameLogEntry]):
    """Game logs other users shared with the current user."""

    resource_path = "/api/game-logs/shared"
    list_key = "sharedLogs"
    item_model = SharedGameLogEntry
    messages = StoreMessages(
        load_failed="Unable to load shared game logs.",
        sign_in="Sign in with Google to manage shared logs.",
        update_failed="Unable to update shared game log.",
        updated="Shared log updated.",
    )

    @property
    def pending(self) -> List[SharedGameLogEntry]:
        return [log for log in self.items if log.status == "pending"]

    async def update(self, log_id: str, payload: SharedGameLogUpdate) -> bool:
        try:
            body = payload.validated().to_json()
        except ValidationError as error:
            self.error = str(error)
            return False
        response = await self._mutate(
            "PATCH",
            self._item_path(log_id),
            body,
            self.messages.update_failed,
            self.messages.updated,
        )
        return response is not None

    async def accept(self, log_id: str) -> bool:
        """Copy a shared log into the user's own logs."""
        response = await self._mutate(
            "POST",
            self._item_path(log_id, "accept"),
            None,
            "Unable to accept shared game log.",
            "Shared log accepted.",
        )
        return response is not None

    async def reject(self, log_id: str) -> bool:
        response = await self._mutate(
            "POST",
            self._item_path(log_id, "reject"),
            None,
            "Unable to reject shared game log.",
            "Shared log rejected.",
        )
        return response is not None
