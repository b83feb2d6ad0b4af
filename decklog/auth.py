"""
Authentication session lifecycle.

The controller is the only owner of the session state. Transitions are
driven by remote call outcomes:

    unknown -> authenticated               probe or credential exchange succeeded
    unknown/unauthenticated/expired
            -> unauthenticated             probe failed without the expiry code,
                                           or sign out (from any state)
    any     -> expired                     a call failed with code auth_expired
    expired/unauthenticated
            -> authenticated               credential exchange succeeded
"""

import abc
import dataclasses
import logging
from typing import Any, Awaitable, Callable, List, Optional

import pydantic

from . import constants
from .abstract_component import AbstractRemoteComponent
from .decklog_config import DecklogConfig
from .errors import CredentialProviderError, TransportError
from .http_client import ApiClient, ApiResponse
from .models import SessionStatus, User

LOGGER = logging.getLogger(__name__)

CredentialCallback = Callable[[Optional[str]], Awaitable[bool]]
SessionListener = Callable[["AuthSession"], None]


@dataclasses.dataclass
class AuthSession:
    """Process wide session value. user is only set while authenticated."""

    status: SessionStatus = SessionStatus.UNKNOWN
    user: Optional[User] = None
    auth_error: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.status == SessionStatus.AUTHENTICATED


class CredentialProvider(abc.ABC):
    """
    Identity provider sign-in widget, issuing raw credentials
    """

    @abc.abstractmethod
    def initialize(self, client_id: str) -> None:
        """
        Prepare the widget for a client id
        :raises CredentialProviderError: when the widget is unavailable
        """

    @abc.abstractmethod
    def render_button(self, target: Any = None) -> None:
        """
        Draw the sign-in button into target
        :raises CredentialProviderError: when the widget is unavailable
        """

    @abc.abstractmethod
    def on_credential(self, callback: CredentialCallback) -> None:
        """
        Register the coroutine function awaited with each issued credential
        """


class AuthSessionController(AbstractRemoteComponent):
    """
    Single source of truth for whether protected endpoints may be called.
    """

    session: AuthSession
    status_message: Optional[str]

    def __init__(
        self,
        api: ApiClient,
        credential_provider: Optional[CredentialProvider] = None,
        google_client_id: Optional[str] = None,
    ) -> None:
        super().__init__(api, self.current_status)
        self._on_auth_expired = self.mark_expired
        self.session = AuthSession()
        self.status_message = None
        self.google_client_id = (
            google_client_id
            if google_client_id is not None
            else DecklogConfig().google_client_id
        )
        self._credential_provider = credential_provider
        self._provider_initialized = False
        self._deck_store: Optional[Any] = None
        self._collaborators: List[AbstractRemoteComponent] = []
        self._listeners: List[SessionListener] = []

    def current_status(self) -> SessionStatus:
        return self.session.status

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def user(self) -> Optional[User]:
        return self.session.user

    @property
    def auth_error(self) -> Optional[str]:
        return self.session.auth_error

    # Wiring
    def bind_deck_store(self, deck_store: Any) -> None:
        """
        The deck list doubles as the session probe, so the probe feeds it directly
        :param deck_store: Store exposing apply_list(), load() and reset()
        """
        self._deck_store = deck_store
        self.register(deck_store)

    def register(self, component: AbstractRemoteComponent) -> None:
        """
        Reset component along with the session on sign out
        """
        if component is not self and component not in self._collaborators:
            self._collaborators.append(component)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Call listener with a snapshot after every session change
        :return Function removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_credential_provider(self, provider: CredentialProvider) -> None:
        self._credential_provider = provider
        self._provider_initialized = False

    # State changes
    def _update(
        self,
        status: Optional[SessionStatus] = None,
        user: Optional[User] = None,
        auth_error: Optional[str] = None,
    ) -> None:
        previous = self.session.status
        new_status = status or previous
        self.session = AuthSession(
            status=new_status,
            user=user if new_status == SessionStatus.AUTHENTICATED else None,
            auth_error=auth_error,
        )
        if new_status != previous:
            LOGGER.info(f"Session {previous.value} -> {new_status.value}")

        snapshot = dataclasses.replace(self.session)
        for listener in list(self._listeners):
            listener(snapshot)

    def reset(self) -> None:
        self._invalidate_requests()
        self._update(SessionStatus.UNAUTHENTICATED)

    def mark_expired(self, message: Optional[str] = None) -> None:
        """
        Flip to expired without waiting for another call to fail.
        Collections are kept so in-progress work survives re-authentication.
        :param message: Explanation shown to the user
        """
        self._update(
            SessionStatus.EXPIRED,
            auth_error=message or constants.SESSION_EXPIRED_MESSAGE,
        )

    def _user_from(self, response: ApiResponse) -> Optional[User]:
        raw_user = response.payload.get("user")
        if not isinstance(raw_user, dict):
            return None
        try:
            return User.model_validate(raw_user)
        except pydantic.ValidationError:
            LOGGER.warning("Session service sent a malformed user")
            return None

    # Operations
    async def probe_session(self, surface_errors: bool = False) -> bool:
        """
        Load the deck list as an "am I signed in" check, filling the deck
        store from the same round trip.
        :param surface_errors: Report a plain 401 in auth_error
        :return True if the session is authenticated
        """
        fallback = "Unable to load your decks."
        generation = self._generation
        with self._in_flight():
            try:
                response = await self.api.get("/api/decks")
            except TransportError as error:
                if not self._is_stale(generation):
                    self._probe_failed(str(error))
                return False
        if self._is_stale(generation):
            return False

        user = self._user_from(response) if response.success else None
        if user is not None:
            self._update(SessionStatus.AUTHENTICATED, user=user)
            if self._deck_store is not None:
                self._deck_store.apply_list(response.payload.get("decks"))
            return True

        if response.is_auth_expired:
            self.mark_expired(response.error)
            return False

        if response.is_auth_failure:
            message = (response.error or fallback) if surface_errors else None
            if self.session.is_authenticated:
                # Keep showing the last good state
                self._update(user=self.session.user, auth_error=message)
            else:
                self._update(SessionStatus.UNAUTHENTICATED, auth_error=message)
            return False

        if response.success:
            self._probe_failed(constants.UNEXPECTED_RESPONSE_MESSAGE)
        else:
            self._probe_failed(response.error or fallback)
        return False

    def _probe_failed(self, message: str) -> None:
        if self.session.is_authenticated:
            self._update(user=self.session.user, auth_error=message)
        else:
            self._update(SessionStatus.UNAUTHENTICATED, auth_error=message)

    async def exchange_credential(self, raw_credential: Optional[str]) -> bool:
        """
        Trade an identity provider credential for a server session,
        then reload the deck list.
        :param raw_credential: Token issued by the identity provider
        :return True if the session is now authenticated
        """
        credential = (raw_credential or "").strip()
        if not credential:
            self._update(
                SessionStatus.UNAUTHENTICATED,
                auth_error=constants.GOOGLE_LOGIN_FAILED_MESSAGE,
            )
            return False

        fallback = "Unable to sign in with Google."
        generation = self._generation
        with self._in_flight():
            self.status_message = None
            try:
                response = await self.api.post(
                    "/api/auth/google", json={"credential": credential}
                )
            except TransportError as error:
                if not self._is_stale(generation):
                    self._update(SessionStatus.UNAUTHENTICATED, auth_error=str(error))
                return False
        if self._is_stale(generation):
            return False

        user = self._user_from(response) if response.success else None
        if user is None:
            message = response.error or (
                constants.UNEXPECTED_RESPONSE_MESSAGE if response.success else fallback
            )
            self._update(SessionStatus.UNAUTHENTICATED, auth_error=message)
            return False

        self._update(SessionStatus.AUTHENTICATED, user=user)
        if self._deck_store is not None:
            await self._deck_store.load(surface_auth_errors=True)
        return True

    async def sign_out(self) -> None:
        """
        Sign out locally first, then ask the server to drop the session.
        The remote call is best effort: its failure is only logged.
        """
        self.status_message = "Signed out."
        self.reset()
        for component in self._collaborators:
            component.reset()

        with self._in_flight():
            try:
                response = await self.api.post("/api/auth/logout")
            except TransportError as error:
                LOGGER.warning(f"Remote sign out failed: {error}")
                return
        if not response.success:
            LOGGER.warning(
                f"Remote sign out failed ({response.status}): {response.error}"
            )

    def start_sign_in(self, target: Any = None) -> bool:
        """
        Initialize the credential provider once and render its button.
        Issued credentials are routed to exchange_credential().
        :param target: Where the provider should draw its button
        :return True if the button was rendered
        """
        provider = self._credential_provider
        if provider is None or not self.google_client_id:
            self._update(auth_error=constants.GOOGLE_UNAVAILABLE_MESSAGE, user=self.user)
            return False

        try:
            if not self._provider_initialized:
                provider.initialize(self.google_client_id)
                provider.on_credential(self.exchange_credential)
                self._provider_initialized = True
            provider.render_button(target)
        except CredentialProviderError as error:
            LOGGER.warning(f"Credential provider unavailable: {error}")
            self._update(
                auth_error=str(error) or constants.GOOGLE_UNAVAILABLE_MESSAGE,
                user=self.user,
            )
            return False
        return True
