"""
Tests for the API payload models and input validation
"""

import pytest

from decklog.errors import ValidationError
from decklog.models import (
    DeckEntry,
    GameLogEntry,
    GameLogInput,
    GameLogUpdate,
    ManualDeckInput,
    OpponentRecord,
    OpponentUser,
)


class TestWireModels:
    """Parsing and serializing server payloads"""

    def test_color_identity_unknown_and_colorless_stay_apart(self):
        unknown = DeckEntry.model_validate({"id": "1", "name": "A", "colorIdentity": None})
        colorless = DeckEntry.model_validate({"id": "2", "name": "B", "colorIdentity": []})

        assert unknown.color_identity is None
        assert colorless.color_identity == []
        assert unknown.to_json()["colorIdentity"] is None
        assert colorless.to_json()["colorIdentity"] == []
        assert "colorIdentity" in colorless.to_json(exclude_none=True)

    def test_camel_case_round_trip(self):
        deck = DeckEntry.model_validate(
            {
                "id": "deck-1",
                "name": "Atraxa",
                "commanderNames": ["Atraxa, Praetors' Voice"],
                "commanderLinks": [None],
                "source": "archidekt",
                "addedAt": "2026-01-04",
                "stats": {"totalGames": 3, "wins": 2, "losses": 1, "winRate": 0.66},
                "somethingNew": True,
            }
        )
        assert deck.commander_names == ["Atraxa, Praetors' Voice"]
        assert deck.stats.total_games == 3
        assert deck.to_json()["addedAt"] == "2026-01-04"

    def test_numeric_ids_become_strings(self):
        log = GameLogEntry.model_validate(
            {"id": 7, "deckId": 3, "deckName": "A", "playedAt": "2026-02-01"}
        )
        assert log.id == "7"
        assert log.deck_id == "3"

    def test_pending_result(self):
        log = GameLogEntry.model_validate(
            {"id": "1", "deckId": "d", "deckName": "A", "playedAt": "2026-02-01"}
        )
        assert log.is_pending
        assert log.opponents_count == 0

    def test_opponent_matching(self):
        assert not OpponentRecord(name="Sam").is_matched
        assert OpponentRecord(user_id="user-9", name="Sam").is_matched

    def test_opponent_user_display_name(self):
        assert OpponentUser(id="u", name="Alice").display_name == "Alice"
        assert OpponentUser(id="u", email="a@example.com").display_name == "a@example.com"
        assert OpponentUser(id="u").display_name == "u"


class TestManualDeckInput:
    """Local checks on decks entered by hand"""

    def test_name_only_body(self):
        body = ManualDeckInput(name="  My custom deck ").validated().to_json(exclude_none=True)
        assert body == {"name": "My custom deck"}

    def test_name_required(self):
        with pytest.raises(ValidationError, match="Deck name is required."):
            ManualDeckInput(name="   ").validated()

    def test_at_most_two_commanders(self):
        with pytest.raises(ValidationError, match="at most two commanders"):
            ManualDeckInput(name="Deck", commander_names=["A", "B", "C"]).validated()

    def test_links_follow_names(self):
        deck = ManualDeckInput(
            name="Partners",
            commander_names=["Thrasios", " ", "Tymna"],
            commander_links=["https://scryfall.com/card/c16/46"],
        ).validated()
        assert deck.commander_names == ["Thrasios", "Tymna"]
        assert deck.commander_links == ["https://scryfall.com/card/c16/46", None]

    def test_color_identity_ordering(self):
        deck = ManualDeckInput(name="Deck", color_identity=["g", "W", "u"]).validated()
        assert deck.color_identity == ["W", "U", "G"]

    def test_color_identity_rejects_unknown(self):
        with pytest.raises(ValidationError):
            ManualDeckInput(name="Deck", color_identity=["X"]).validated()


class TestGameLogInput:
    """Local checks on logged games"""

    def test_valid_log(self):
        log = GameLogInput(
            deck_id="deck-1",
            date_played="2026-02-01",
            turns=9,
            opponents_count=3,
            opponents=[OpponentRecord(name="Sam", color_identity=["r", "b"])],
            tags=[" cedh ", ""],
        ).validated()
        body = log.to_json()

        assert body["deckId"] == "deck-1"
        assert body["datePlayed"] == "2026-02-01"
        assert body["tags"] == ["cedh"]
        assert body["opponents"][0]["colorIdentity"] == ["B", "R"]

    def test_deck_required(self):
        with pytest.raises(ValidationError, match="Select a deck to log."):
            GameLogInput(deck_id=" ", date_played="2026-02-01").validated()

    @pytest.mark.parametrize("date_played", ["", "yesterday", "2026-13-01"])
    def test_date_required(self, date_played):
        with pytest.raises(ValidationError, match="Enter the date the game was played."):
            GameLogUpdate(date_played=date_played).validated()

    def test_positive_numbers(self):
        with pytest.raises(ValidationError):
            GameLogUpdate(date_played="2026-02-01", turns=0).validated()
        with pytest.raises(ValidationError):
            GameLogUpdate(date_played="2026-02-01", duration_minutes=-5).validated()

    def test_opponent_count_covers_listed_opponents(self):
        with pytest.raises(ValidationError):
            GameLogUpdate(
                date_played="2026-02-01",
                opponents_count=1,
                opponents=[OpponentRecord(name="A"), OpponentRecord(name="B")],
            ).validated()
