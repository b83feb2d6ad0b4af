"""Async JSON client for the deck tracker API."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
import orjson

from . import constants
from .decklog_config import DecklogConfig
from .errors import TransportError

LOGGER = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


@dataclass
class ApiResponse:
    """Status and decoded JSON body of one API call."""

    status: int
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Return True for a 2xx status."""
        return 200 <= self.status < 300

    @property
    def success(self) -> bool:
        """Return True if both the HTTP status and the body report success."""
        return self.ok and self.payload.get("success") is True

    @property
    def error(self) -> Optional[str]:
        """Human readable error sent by the server, if any."""
        error = self.payload.get("error")
        return error if isinstance(error, str) and error else None

    @property
    def code(self) -> Optional[str]:
        """Machine readable error code sent by the server, if any."""
        code = self.payload.get("code")
        return code if isinstance(code, str) and code else None

    @property
    def is_auth_failure(self) -> bool:
        return self.status == 401

    @property
    def is_auth_expired(self) -> bool:
        return self.is_auth_failure and self.code == constants.AUTH_EXPIRED_CODE


class ApiClient:
    """
    Async HTTP client for the deck tracker API.

    Handles:
    - Base URL resolution (once, at construction)
    - Session cookie persistence between calls
    - JSON decoding, including malformed bodies
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        if base_url is None:
            config = DecklogConfig()
            base_url = config.api_base_url
            timeout = timeout if timeout is not None else config.request_timeout
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or DEFAULT_HEADERS
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ApiClient":
        self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    def open(self) -> aiohttp.ClientSession:
        """
        Create the underlying session if needed.
        Must be called from inside a running event loop.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.headers,
                # Keep cookies set by IP hosts such as a LAN dev server
                cookie_jar=aiohttp.CookieJar(unsafe=True),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def build_api_url(self, path: str) -> str:
        """Return full URL for an API path."""
        normalized_path = path if path.startswith("/") else f"/{path}"
        if not self.base_url:
            return normalized_path
        return f"{self.base_url}{normalized_path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """
        Execute one request and decode its JSON body.

        Every HTTP status is returned as an ApiResponse; only transport
        and decoding problems raise.
        :raises TransportError: network failure or non-object body
        """
        session = self.open()
        url = self.build_api_url(path)
        data = orjson.dumps(json) if json is not None else None

        try:
            async with session.request(method, url, data=data, params=params) as resp:
                text = await resp.text()
                status = resp.status
        except (asyncio.TimeoutError, aiohttp.ClientError) as error:
            LOGGER.warning(f"{method} {url} failed: {error}")
            raise TransportError(constants.NETWORK_ERROR_MESSAGE) from error

        LOGGER.debug(f"{method} {url} -> {status}")

        try:
            payload = orjson.loads(text)
        except orjson.JSONDecodeError as error:
            LOGGER.warning(f"{method} {url} returned a non-JSON body ({status})")
            raise TransportError(constants.UNEXPECTED_RESPONSE_MESSAGE) from error

        if not isinstance(payload, dict):
            LOGGER.warning(f"{method} {url} returned a non-object body ({status})")
            raise TransportError(constants.UNEXPECTED_RESPONSE_MESSAGE)

        return ApiResponse(status=status, payload=payload)

    async def get(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> ApiResponse:
        """Execute GET request."""
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, json: Optional[Dict[str, Any]] = None
    ) -> ApiResponse:
        """Execute POST request."""
        return await self.request("POST", path, json=json)
