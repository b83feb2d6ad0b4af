"""
Tests for opponent and commander resolution
"""

import asyncio

import pytest

from decklog.collection_store import DeckStore
from decklog.http_client import ApiResponse
from decklog.models import OpponentDeck, OpponentRecord, OpponentUser, SessionStatus
from decklog.opponents import (
    NO_MATCHING_USERS_MESSAGE,
    PANEL_RECENT,
    PANEL_SEARCH,
    OpponentResolver,
    OpponentRow,
)

ALICE = {"id": "user-2", "name": "Alice", "email": "alice@example.com"}
ALEX = {"id": "user-3", "name": "Alex", "email": None}
SAM = {"id": "user-4", "name": "Sam", "email": "sam@example.com"}

CARDS = {
    "atraxa, praetors' voice": {
        "name": "Atraxa, Praetors' Voice",
        "scryfallUrl": "https://scryfall.com/card/2xm/190/atraxa-praetors-voice",
    },
    "tymna the weaver": {
        "name": "Tymna the Weaver",
        "scryfallUrl": "https://scryfall.com/card/c16/48/tymna-the-weaver",
    },
}


def card_lookup(json, params) -> ApiResponse:
    card = CARDS.get(json["name"].lower())
    if card is None:
        return ApiResponse(404, {"success": False, "error": "Card not found."})
    return ApiResponse(200, {"success": True, "card": card})


class TestOpponentSearch:
    """Recent opponents, search and per-row panels"""

    @pytest.fixture(autouse=True)
    def build_resolver(self, fake_api, session_state):
        self.api = fake_api
        self.session = session_state
        self.resolver = OpponentResolver(
            fake_api, session_state, session_state.on_auth_expired
        )

    @pytest.mark.asyncio
    async def test_recent_opponents_are_cached(self):
        self.api.add("GET", "/api/opponents/recent", {"success": True, "opponents": [ALICE]})

        first = await self.resolver.load_recent_opponents()
        second = await self.resolver.load_recent_opponents()
        assert [user.id for user in first] == ["user-2"]
        assert second == first
        assert len(self.api.calls) == 1

        await self.resolver.load_recent_opponents(force=True)
        assert len(self.api.calls) == 2

    @pytest.mark.asyncio
    async def test_recent_opponents_cleared_when_signed_out(self):
        self.api.add("GET", "/api/opponents/recent", {"success": True, "opponents": [ALICE]})
        await self.resolver.load_recent_opponents()

        self.session.status = SessionStatus.UNAUTHENTICATED
        assert await self.resolver.load_recent_opponents() == []
        assert self.resolver.recent_opponents == []

    @pytest.mark.asyncio
    async def test_search_never_guesses(self):
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE, ALEX]})

        matches = await self.resolver.search_opponents("  al ")

        assert [user.id for user in matches] == ["user-2", "user-3"]
        assert self.api.calls[0].params == {"query": "al"}

    @pytest.mark.asyncio
    async def test_blank_search_is_skipped(self):
        assert await self.resolver.search_opponents("   ") == []
        assert self.api.calls == []

    @pytest.mark.asyncio
    async def test_single_match_is_applied(self):
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE]})
        row = OpponentRow(name="alice")

        await self.resolver.search_for_row(row, "alice")

        assert row.user_id == "user-2"
        assert row.name == "Alice"
        assert row.email == "alice@example.com"
        panel = self.resolver.panel_for(row)
        assert panel.mode is None
        assert panel.results == []
        assert panel.message is None

    @pytest.mark.asyncio
    async def test_no_match(self):
        self.api.add("GET", "/api/users/search", {"success": True, "users": []})
        row = OpponentRow(name="zed")

        await self.resolver.search_for_row(row, "zed")

        assert row.user_id is None
        assert self.resolver.panel_for(row).message == NO_MATCHING_USERS_MESSAGE

    @pytest.mark.asyncio
    async def test_several_matches_are_listed(self):
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE, ALEX]})
        row = OpponentRow(name="al")

        await self.resolver.search_for_row(row, "al")

        panel = self.resolver.panel_for(row)
        assert panel.mode == PANEL_SEARCH
        assert [user.id for user in panel.results] == ["user-2", "user-3"]
        assert row.user_id is None

        self.resolver.select_opponent(row, panel.results[1])
        assert row.user_id == "user-3"
        assert self.resolver.panel_for(row).mode is None

    @pytest.mark.asyncio
    async def test_late_search_does_not_override_recent_pick(self):
        gate = asyncio.Event()
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE]}, gate=gate)
        self.api.add("GET", "/api/opponents/recent", {"success": True, "opponents": [SAM]})
        row = OpponentRow(name="ali")

        search = asyncio.ensure_future(self.resolver.search_for_row(row, "ali"))
        await asyncio.sleep(0)

        recent = await self.resolver.open_recent(row)
        assert self.resolver.panel_for(row).mode == PANEL_RECENT
        self.resolver.select_opponent(row, recent[0])

        gate.set()
        assert await search == []
        assert row.user_id == "user-4"
        assert self.resolver.panel_for(row).mode is None

    @pytest.mark.asyncio
    async def test_panels_are_per_row(self):
        self.api.add("GET", "/api/opponents/recent", {"success": True, "opponents": [SAM]})
        first, second = OpponentRow(), OpponentRow()

        await self.resolver.open_recent(first)

        assert self.resolver.panel_for(first).mode == PANEL_RECENT
        assert [user.id for user in self.resolver.panel_for(first).results] == ["user-4"]
        assert self.resolver.panel_for(second).mode is None

    @pytest.mark.asyncio
    async def test_search_error_is_shown_in_panel(self):
        self.api.add(
            "GET", "/api/users/search", {"success": False, "error": "Search is down."}, 500
        )
        row = OpponentRow(name="al")

        assert await self.resolver.search_for_row(row, "al") == []
        assert self.resolver.search_error == "Search is down."
        assert self.resolver.panel_for(row).message == "Search is down."

    @pytest.mark.asyncio
    async def test_failed_older_search_does_not_hide_newer_match(self):
        failing, matching = asyncio.Event(), asyncio.Event()
        self.api.add(
            "GET",
            "/api/users/search",
            {"success": False, "error": "Search is down."},
            500,
            gate=failing,
        )
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE]}, gate=matching)
        row = OpponentRow(name="al")

        older = asyncio.ensure_future(self.resolver.search_for_row(row, "al"))
        await asyncio.sleep(0)
        newer = asyncio.ensure_future(self.resolver.search_for_row(row, "alice"))
        await asyncio.sleep(0)

        failing.set()
        assert await older == []
        matching.set()
        assert [user.id for user in await newer] == ["user-2"]

        assert row.user_id == "user-2"
        assert self.resolver.panel_for(row).message is None
        assert self.resolver.search_error is None

    @pytest.mark.asyncio
    async def test_failed_search_stays_on_its_own_row(self):
        failing, matching = asyncio.Event(), asyncio.Event()
        self.api.add(
            "GET",
            "/api/users/search",
            {"success": False, "error": "Search is down."},
            500,
            gate=failing,
        )
        self.api.add("GET", "/api/users/search", {"success": True, "users": [ALICE]}, gate=matching)
        first, second = OpponentRow(name="al"), OpponentRow(name="alice")

        first_search = asyncio.ensure_future(self.resolver.search_for_row(first, "al"))
        await asyncio.sleep(0)
        second_search = asyncio.ensure_future(self.resolver.search_for_row(second, "alice"))
        await asyncio.sleep(0)

        failing.set()
        await first_search
        matching.set()
        await second_search

        assert self.resolver.panel_for(first).message == "Search is down."
        assert first.user_id is None
        assert second.user_id == "user-2"


class TestOpponentRow:
    """Form rows and the records they submit"""

    def test_to_record_drops_row_id(self):
        row = OpponentRow(name=" Sam ", color_identity=["R"])
        record = row.to_record()

        assert isinstance(record, OpponentRecord)
        assert record.name == "Sam"
        assert "rowId" not in record.to_json()
        assert not record.is_matched

    def test_row_ids_are_unique(self):
        assert OpponentRow().row_id != OpponentRow().row_id

    def test_from_record(self):
        record = OpponentRecord(user_id="user-2", name="Alice", deck_id="deck-5")
        row = OpponentRow.from_record(record)
        assert row.to_record() == record

    def test_matching_another_user_clears_deck(self):
        row = OpponentRow(user_id="user-2", deck_id="deck-5", deck_name="Atraxa")
        row.apply_user(OpponentUser.model_validate(ALICE))
        assert row.deck_id == "deck-5"

        row.apply_user(OpponentUser.model_validate(SAM))
        assert row.deck_id is None
        assert row.deck_name is None


class TestOpponentDecksAndCommanders:
    """Opponent decks and commander name resolution"""

    @pytest.fixture(autouse=True)
    def build_resolver(self, fake_api, session_state):
        self.api = fake_api
        self.decks = DeckStore(fake_api, session_state, session_state.on_auth_expired)
        self.resolver = OpponentResolver(
            fake_api, session_state, session_state.on_auth_expired, deck_store=self.decks
        )
        self.api.add("POST", "/api/scryfall/lookup", reply=card_lookup)

    @pytest.mark.asyncio
    async def test_opponent_decks_cached_per_user(self):
        decks = [{"id": "deck-5", "name": "Atraxa", "commanderNames": []}]
        self.api.add("GET", "/api/opponents/user-2/decks", {"success": True, "decks": decks})
        self.api.add("GET", "/api/opponents/user-3/decks", {"success": True, "decks": []})

        assert [deck.id for deck in await self.resolver.load_opponent_decks("user-2")] == [
            "deck-5"
        ]
        await self.resolver.load_opponent_decks("user-2")
        assert await self.resolver.load_opponent_decks("user-3") == []
        assert len(self.api.calls) == 2

        await self.resolver.load_opponent_decks("user-2", force=True)
        assert len(self.api.calls_to("GET", "/api/opponents/user-2/decks")) == 2

    @pytest.mark.asyncio
    async def test_opponent_decks_error(self):
        self.api.add(
            "GET",
            "/api/opponents/user-2/decks",
            {"success": False, "error": "User not found."},
            404,
        )

        assert await self.resolver.load_opponent_decks("user-2") == []
        assert self.resolver.deck_errors["user-2"] == "User not found."
        assert "user-2" not in self.resolver.decks_by_user_id

    @pytest.mark.asyncio
    async def test_resolve_commander(self):
        assert await self.resolver.resolve_commander("atraxa, praetors' voice") == (
            "Atraxa, Praetors' Voice",
            CARDS["atraxa, praetors' voice"]["scryfallUrl"],
        )

    @pytest.mark.asyncio
    async def test_unknown_commander_is_not_an_error(self):
        assert await self.resolver.resolve_commander(" Homebrew Legend ") == (
            "Homebrew Legend",
            None,
        )
        assert self.resolver.lookup_error is None

    @pytest.mark.asyncio
    async def test_resolve_commander_field(self):
        row = OpponentRow(name="Sam")

        await self.resolver.resolve_commander_field(row, 1, "tymna the weaver")

        assert row.commander_names == ["", "Tymna the Weaver"]
        assert row.commander_links == [None, CARDS["tymna the weaver"]["scryfallUrl"]]

        with pytest.raises(IndexError):
            await self.resolver.resolve_commander_field(row, 2, "Thrasios")

    @pytest.mark.asyncio
    async def test_select_opponent_deck_resolves_every_commander(self):
        row = OpponentRow(name="Alice", user_id="user-2")
        deck = OpponentDeck(
            id="deck-5",
            name="Partners",
            url="https://moxfield.com/decks/xyz",
            commander_names=["tymna the weaver", "Kraum, Ludevic's Opus"],
            commander_links=[None, "https://scryfall.com/card/c16/38/kraum"],
            color_identity=["U", "R", "W", "B"],
        )

        await self.resolver.select_opponent_deck(row, deck)

        lookups = self.api.calls_to("POST", "/api/scryfall/lookup")
        assert [call.json["name"] for call in lookups] == [
            "tymna the weaver",
            "Kraum, Ludevic's Opus",
        ]
        assert row.deck_id == "deck-5"
        assert row.commander_names == ["Tymna the Weaver", "Kraum, Ludevic's Opus"]
        assert row.commander_links == [
            CARDS["tymna the weaver"]["scryfallUrl"],
            "https://scryfall.com/card/c16/38/kraum",
        ]
        assert row.to_record().deck_url == "https://moxfield.com/decks/xyz"

    @pytest.mark.asyncio
    async def test_preview_opponent_deck(self):
        url = "https://archidekt.com/decks/77"
        self.api.add(
            "POST",
            "/api/decks/preview",
            {
                "success": True,
                "deck": {
                    "name": "Superfriends",
                    "commanderNames": ["atraxa, praetors' voice"],
                    "colorIdentity": ["W", "U", "B", "G"],
                },
            },
        )
        row = OpponentRow(name="Guest", deck_id="old-deck")

        result = await self.resolver.preview_opponent_deck(row, url)

        assert result.success
        assert row.deck_id is None
        assert row.deck_name == "Superfriends"
        assert row.deck_url == url
        assert row.commander_names == ["Atraxa, Praetors' Voice"]
        assert row.color_identity == ["W", "U", "B", "G"]

    @pytest.mark.asyncio
    async def test_preview_opponent_deck_failure_leaves_row(self):
        self.api.add(
            "POST", "/api/decks/preview", {"success": False, "error": "Deck not found."}, 404
        )
        row = OpponentRow(name="Guest", deck_name="Typed by hand")

        result = await self.resolver.preview_opponent_deck(row, "https://archidekt.com/decks/0")

        assert result.error == "Deck not found."
        assert row.deck_name == "Typed by hand"

    @pytest.mark.asyncio
    async def test_blank_commander_keeps_links_aligned(self):
        row = OpponentRow(name="Alice", user_id="user-2")
        deck = OpponentDeck(
            id="deck-6",
            name="Kraum",
            commander_names=["", "Kraum, Ludevic's Opus"],
            commander_links=[None, "https://scryfall.com/card/c16/38/kraum"],
        )

        await self.resolver.select_opponent_deck(row, deck)

        assert row.commander_names == ["Kraum, Ludevic's Opus"]
        assert row.commander_links == ["https://scryfall.com/card/c16/38/kraum"]

    @pytest.mark.asyncio
    async def test_decks_arriving_after_reset_are_dropped(self):
        gate = asyncio.Event()
        self.api.add(
            "GET",
            "/api/opponents/user-2/decks",
            {"success": True, "decks": [{"id": "deck-5", "name": "Partners"}]},
            gate=gate,
        )

        pending = asyncio.ensure_future(self.resolver.load_opponent_decks("user-2"))
        await asyncio.sleep(0)
        self.resolver.reset()
        gate.set()

        assert await pending == []
        assert self.resolver.decks_by_user_id == {}

    def test_reset(self):
        self.resolver.decks_by_user_id["user-2"] = []
        self.resolver.panel_for(OpponentRow())
        self.resolver.reset()
        assert self.resolver.decks_by_user_id == {}
        assert self.resolver.panels == {}
