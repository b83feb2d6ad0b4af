"""
decklog, a deck collection and game log client
MIT License (c) 2025-2026
"""

from ._version import __version__
from .client import DecklogClient
from .models import DeckEntry, GameLogEntry, OpponentRecord

__all__ = [
    "__version__",
    "DecklogClient",
    "DeckEntry",
    "GameLogEntry",
    "OpponentRecord",
]
