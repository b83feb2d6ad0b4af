"""
Exceptions raised inside decklog
"""


class DecklogError(Exception):
    """Base class for decklog failures"""


class TransportError(DecklogError):
    """Raised when the server cannot be reached or returns something other than a JSON object"""


class ValidationError(DecklogError):
    """Raised when user input fails a local check, before any network call"""


class CredentialProviderError(DecklogError):
    """Raised when the identity provider widget cannot be initialized"""
