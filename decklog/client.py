"""
decklog client: every component wired around one session
"""

import asyncio
import logging
from typing import List, Optional

from .abstract_component import AbstractRemoteComponent
from .auth import AuthSessionController, CredentialProvider
from .bulk_import import BulkImportCoordinator
from .collection_store import DeckStore, GameLogStore, SharedGameLogStore
from .decklog_config import DecklogConfig
from .http_client import ApiClient
from .opponents import OpponentResolver
from .preferences import SortPreferenceCache

LOGGER = logging.getLogger(__name__)


class DecklogClient:
    """
    Owns the API client and the components sharing it.

    Every component reports an expired session to the auth controller, and
    every component is reset when the user signs out.
    """

    api: ApiClient
    auth: AuthSessionController
    decks: DeckStore
    game_logs: GameLogStore
    shared_logs: SharedGameLogStore
    opponents: OpponentResolver
    bulk_import: BulkImportCoordinator
    preferences: SortPreferenceCache

    def __init__(
        self,
        api: Optional[ApiClient] = None,
        credential_provider: Optional[CredentialProvider] = None,
        preferences: Optional[SortPreferenceCache] = None,
    ) -> None:
        config = DecklogConfig()
        self.api = api or ApiClient(config.api_base_url, config.request_timeout)
        self.auth = AuthSessionController(
            self.api, credential_provider, config.google_client_id
        )

        wiring = (self.api, self.auth.current_status, self.auth.mark_expired)
        self.decks = DeckStore(*wiring)
        self.game_logs = GameLogStore(*wiring)
        self.shared_logs = SharedGameLogStore(*wiring)
        self.opponents = OpponentResolver(*wiring, deck_store=self.decks)
        self.bulk_import = BulkImportCoordinator(*wiring, deck_store=self.decks)
        self.preferences = preferences or SortPreferenceCache(config.preferences_path)

        self.auth.bind_deck_store(self.decks)
        for component in self.components:
            self.auth.register(component)

    @property
    def components(self) -> List[AbstractRemoteComponent]:
        return [
            self.decks,
            self.game_logs,
            self.shared_logs,
            self.opponents,
            self.bulk_import,
        ]

    async def __aenter__(self) -> "DecklogClient":
        self.api.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.api.close()

    async def start(self) -> bool:
        """
        Probe the session once at startup, filling the deck list
        :return True if already signed in
        """
        authenticated = await self.auth.probe_session()
        LOGGER.info(f"Session is {self.auth.status.value}")
        return authenticated

    async def refresh(self) -> None:
        """
        Reload the lists that are not fetched by the session probe
        """
        if not self.auth.session.is_authenticated:
            return
        await asyncio.gather(
            self.game_logs.load(),
            self.shared_logs.load(),
            self.opponents.load_recent_opponents(force=True),
        )
