"""Pytest configuration and fixtures for decklog tests."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import pytest

from decklog.decklog_config import DecklogConfig
from decklog.http_client import ApiResponse
from decklog.models import SessionStatus

Handler = Callable[[Optional[Dict[str, Any]], Optional[Dict[str, str]]], ApiResponse]
Reply = Union[ApiResponse, Exception, Handler]


@dataclass
class RecordedCall:
    method: str
    path: str
    json: Optional[Dict[str, Any]] = None
    params: Optional[Dict[str, str]] = None


class FakeApi:
    """
    Stand-in for ApiClient answering from queued replies.
    The last reply queued for a route is repeated once the queue runs dry.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Tuple[Reply, Optional[asyncio.Event]]]] = {}
        self.calls: List[RecordedCall] = []

    def add(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        status: int = 200,
        reply: Optional[Reply] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        """
        Queue a reply for a route
        :param payload: JSON body of the response
        :param status: HTTP status of the response
        :param reply: Exception to raise or handler to call instead of a body
        :param gate: Event the reply waits for
        """
        if reply is None:
            reply = ApiResponse(status=status, payload=payload or {})
        self.routes.setdefault((method, path), []).append((reply, gate))

    def calls_to(self, method: str, path: str) -> List[RecordedCall]:
        return [call for call in self.calls if (call.method, call.path) == (method, path)]

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        self.calls.append(RecordedCall(method, path, json, params))
        queue = self.routes.get((method, path))
        if not queue:
            raise AssertionError(f"Unexpected request {method} {path}")
        reply, gate = queue.pop(0) if len(queue) > 1 else queue[0]

        if gate is not None:
            await gate.wait()
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(json, params)
        return reply

    async def get(self, path: str, params: Optional[Dict[str, str]] = None) -> ApiResponse:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return await self.request("POST", path, json=json)


class SessionState:
    """Mutable auth status for components tested without a controller."""

    def __init__(self, status: SessionStatus = SessionStatus.AUTHENTICATED) -> None:
        self.status = status
        self.expired_messages: List[Optional[str]] = []

    def __call__(self) -> SessionStatus:
        return self.status

    def on_auth_expired(self, message: Optional[str] = None) -> None:
        self.status = SessionStatus.EXPIRED
        self.expired_messages.append(message)


@pytest.fixture(autouse=True)
def reset_decklog_config(monkeypatch):
    """Reset the DecklogConfig singleton and its environment between tests."""
    for variable in (
        "DECKLOG_API_BASE_URL",
        "DECKLOG_GOOGLE_CLIENT_ID",
        "DECKLOG_CREDENTIAL",
        "DECKLOG_DEBUG",
    ):
        monkeypatch.delenv(variable, raising=False)

    DecklogConfig._instance = None
    yield
    DecklogConfig._instance = None


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def session_state() -> SessionState:
    return SessionState()


def deck_payload(deck_id: str, name: str, **extra: Any) -> Dict[str, Any]:
    """Build a deck as the server sends it."""
    deck = {
        "id": deck_id,
        "name": name,
        "url": None,
        "format": None,
        "commanderNames": [],
        "commanderLinks": [],
        "colorIdentity": None,
        "source": "manual",
        "addedAt": "2026-01-04T12:00:00.000Z",
        "stats": None,
    }
    deck.update(extra)
    return deck


def log_payload(log_id: str, deck_id: str = "deck-1", **extra: Any) -> Dict[str, Any]:
    """Build a game log as the server sends it."""
    log = {
        "id": log_id,
        "deckId": deck_id,
        "deckName": "Atraxa Superfriends",
        "commanderNames": ["Atraxa, Praetors' Voice"],
        "commanderLinks": [None],
        "playedAt": "2026-02-01T00:00:00.000Z",
        "turns": None,
        "durationMinutes": None,
        "opponentsCount": 0,
        "opponents": [],
        "result": None,
        "tags": [],
        "createdAt": "2026-02-01T00:00:00.000Z",
    }
    log.update(extra)
    return log
