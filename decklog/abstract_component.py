"""
API for how remote-backed components interact with the session
"""

import abc
import contextlib
import logging
from typing import Callable, Iterator, Optional

from .http_client import ApiClient, ApiResponse
from .models import SessionStatus

LOGGER = logging.getLogger(__name__)

StatusGetter = Callable[[], SessionStatus]
AuthExpiredCallback = Callable[[Optional[str]], None]


class AbstractRemoteComponent(abc.ABC):
    """
    Abstract class for every component that owns state mirrored from the API.
    Components only ever mutate their own fields.
    """

    api: ApiClient
    _pending: int
    _generation: int

    def __init__(
        self,
        api: ApiClient,
        auth_status: StatusGetter,
        on_auth_expired: Optional[AuthExpiredCallback] = None,
    ) -> None:
        super().__init__()
        self.api = api
        self._auth_status = auth_status
        self._on_auth_expired = on_auth_expired
        self._pending = 0
        self._generation = 0

    # Abstract Methods
    @abc.abstractmethod
    def reset(self) -> None:
        """
        Drop every piece of in-memory state, used on sign out.
        Implementations call _invalidate_requests() so late answers are dropped.
        """

    @property
    def auth_status(self) -> SessionStatus:
        return self._auth_status()

    @property
    def is_authenticated(self) -> bool:
        return self.auth_status == SessionStatus.AUTHENTICATED

    @property
    def loading(self) -> bool:
        """True while at least one request of this component is in flight"""
        return self._pending > 0

    def _invalidate_requests(self) -> None:
        """Make the answer of every request still in flight stale"""
        self._generation += 1

    def _is_stale(self, generation: int) -> bool:
        """
        Check an answer against the state it was requested for
        :param generation: Value of _generation when the request was sent
        :return True if the component was reset since
        """
        if generation == self._generation:
            return False
        LOGGER.debug(f"{type(self).__name__} dropped an answer that arrived after a reset")
        return True

    @contextlib.contextmanager
    def _in_flight(self) -> Iterator[None]:
        self._pending += 1
        try:
            yield
        finally:
            self._pending -= 1

    def _handle_auth_failure(
        self,
        response: ApiResponse,
        fallback_message: str,
        set_message: Callable[[str], None],
        surface: bool = True,
    ) -> bool:
        """
        Route a 401 through the session owner.
        An expired session is always reported; a missing one only when asked.
        :param response: Response to classify
        :param fallback_message: Message when the server sent none
        :param set_message: Where to surface the message
        :param surface: Report a plain 401 too
        :return True if the response was an auth failure and has been handled
        """
        if not response.is_auth_failure:
            return False

        message = response.error or fallback_message
        if response.is_auth_expired:
            LOGGER.info(f"{type(self).__name__} observed an expired session")
            if self._on_auth_expired is not None:
                self._on_auth_expired(message)
            set_message(message)
        elif surface:
            set_message(message)
        return True
