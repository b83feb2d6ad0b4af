"""
Two phase import of every public deck on a deck building site profile.

Preview a profile URL, let the user deselect decks, submit the rest. The
server reports per-deck failures as data alongside the authoritative deck
list; after an import only the failed decks stay selected so they can be
retried on their own.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import pydantic

from . import constants
from .abstract_component import AbstractRemoteComponent
from .errors import TransportError
from .models import BulkImportCandidate, ImportFailure

LOGGER = logging.getLogger(__name__)

PROFILE_PATTERNS: Dict[str, re.Pattern] = {
    "archidekt": re.compile(r"^/(?:u|user)/(?P<username>[^/]+)/?$", re.IGNORECASE),
    "moxfield": re.compile(r"^/users/(?P<username>[^/]+)/?$", re.IGNORECASE),
}
DECK_PATTERN: re.Pattern = re.compile(r"^/decks/[^/]+", re.IGNORECASE)

NO_DECKS_FOUND_MESSAGE = "No decks found for that profile."
SINGLE_DECK_URL_MESSAGE = (
    "That is a link to a single deck. Use a profile URL to import several decks."
)
UNSUPPORTED_PROFILE_MESSAGE = (
    "Unsupported profile URL. Use an Archidekt or Moxfield profile link."
)


@dataclass(frozen=True)
class ProfileUrl:
    """A recognized deck building site profile."""

    source: str
    username: str
    url: str


def _site_for_host(host: str) -> Optional[str]:
    host = host.lower().split(":")[0]
    for site in PROFILE_PATTERNS:
        if host == f"{site}.com" or host.endswith(f".{site}.com"):
            return site
    return None


def classify_profile_url(url: str) -> ProfileUrl:
    """
    Check a URL against the supported profile shapes
    :param url: URL typed by the user
    :return Recognized profile
    :raises ValueError: with the message to show the user
    """
    candidate = url.strip()
    if candidate and "://" not in candidate:
        candidate = f"https://{candidate}"

    parsed = urlparse(candidate)
    site = _site_for_host(parsed.netloc) if parsed.scheme in ("http", "https") else None
    if site is None:
        raise ValueError(UNSUPPORTED_PROFILE_MESSAGE)

    if DECK_PATTERN.match(parsed.path):
        raise ValueError(SINGLE_DECK_URL_MESSAGE)

    match = PROFILE_PATTERNS[site].match(parsed.path)
    if not match:
        raise ValueError(UNSUPPORTED_PROFILE_MESSAGE)

    return ProfileUrl(source=site, username=match.group("username"), url=candidate)


@dataclass
class BulkImportResult:
    """Outcome of one bulk import submission."""

    submitted: List[str]
    failures: List[ImportFailure] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.submitted) - len(self.failures)

    @property
    def success(self) -> bool:
        """Return True if every submitted deck was imported."""
        return not self.failures


class BulkImportCoordinator(AbstractRemoteComponent):
    """
    Owns one bulk import session: candidates, selection and messages.
    """

    candidates: List[BulkImportCandidate]
    selection: Dict[str, bool]
    profile: Optional[ProfileUrl]
    failures: List[ImportFailure]
    error: Optional[str]
    status_message: Optional[str]

    def __init__(self, *args: Any, deck_store: Any = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.deck_store = deck_store
        self.reset()

    def reset(self) -> None:
        self._invalidate_requests()
        self.candidates = []
        self.selection = {}
        self.profile = None
        self.failures = []
        self.error = None
        self.status_message = None

    def close(self) -> None:
        """Discard the import session."""
        self.reset()

    def _set_error(self, message: str) -> None:
        self.error = message

    @property
    def selected_urls(self) -> List[str]:
        """Selected candidate URLs, in candidate order."""
        return [url for url, selected in self.selection.items() if selected]

    def toggle(self, url: str, selected: Optional[bool] = None) -> None:
        if url not in self.selection:
            return
        self.selection[url] = (not self.selection[url]) if selected is None else selected

    def set_all(self, selected: bool) -> None:
        self.selection = {url: selected for url in self.selection}

    async def preview_profile(self, url: str) -> bool:
        """
        List the importable decks of a profile; all start selected.
        :param url: Profile URL
        :return True if at least one deck was found
        """
        self.reset()
        try:
            profile = classify_profile_url(url)
        except ValueError as error:
            self.error = str(error)
            return False

        fallback = "Unable to preview that profile."
        generation = self._generation
        with self._in_flight():
            try:
                response = await self.api.post(
                    "/api/decks/bulk/preview", json={"profileUrl": profile.url}
                )
                if self._is_stale(generation):
                    return False
                if self._handle_auth_failure(response, fallback, self._set_error):
                    return False
                if not response.success:
                    self.error = response.error or fallback
                    return False
                raw_decks = response.payload.get("decks")
                candidates = pydantic.TypeAdapter(
                    List[BulkImportCandidate]
                ).validate_python(raw_decks if isinstance(raw_decks, list) else [])
            except pydantic.ValidationError:
                self.error = constants.UNEXPECTED_RESPONSE_MESSAGE
                return False
            except TransportError as error:
                if not self._is_stale(generation):
                    self.error = str(error)
                return False

        self.profile = profile
        if not candidates:
            self.error = NO_DECKS_FOUND_MESSAGE
            return False

        self.candidates = candidates
        self.selection = {candidate.url: True for candidate in candidates}
        LOGGER.info(f"Found {len(candidates)} decks on {profile.source} for {profile.username}")
        return True

    async def import_selected(
        self, urls: Optional[Sequence[str]] = None
    ) -> Optional[BulkImportResult]:
        """
        Submit the selected decks. The returned deck list replaces the deck
        store's list; per-deck failures are reported, not raised.
        :param urls: Decks to import, defaulting to the current selection
        :return Result, or None if nothing was imported at all
        """
        submitted = list(dict.fromkeys(urls if urls is not None else self.selected_urls))
        if not submitted:
            self.error = "Select at least one deck to import."
            return None
        if not self.is_authenticated:
            self.error = "Sign in with Google to import decks."
            return None

        fallback = "Unable to import decks."
        generation = self._generation
        with self._in_flight():
            self.error = None
            self.status_message = None
            try:
                response = await self.api.post(
                    "/api/decks/bulk", json={"deckUrls": submitted}
                )
                if self._is_stale(generation):
                    return None
                if self._handle_auth_failure(response, fallback, self._set_error):
                    return None
                if not response.success:
                    self.error = response.error or fallback
                    return None
                if self.deck_store is not None:
                    self.deck_store.replace_items(response.payload.get("decks"))
                raw_failures = response.payload.get("failures")
                failures = pydantic.TypeAdapter(List[ImportFailure]).validate_python(
                    raw_failures if isinstance(raw_failures, list) else []
                )
            except pydantic.ValidationError:
                self.error = constants.UNEXPECTED_RESPONSE_MESSAGE
                return None
            except TransportError as error:
                if not self._is_stale(generation):
                    self.error = str(error)
                return None

        result = BulkImportResult(submitted=submitted, failures=failures)
        self.failures = failures
        failed_urls = {failure.url for failure in failures}
        # Only the failed decks stay selected, ready for a retry
        self.selection = {url: url in failed_urls for url in self.selection}
        for url in failed_urls:
            self.selection.setdefault(url, True)

        if failures:
            self.error = (
                f"{len(failures)} of {len(submitted)} decks could not be imported."
            )
            LOGGER.warning(f"Bulk import finished with {len(failures)} failures")
        self.status_message = (
            f"Imported {result.imported_count} deck"
            f"{'' if result.imported_count == 1 else 's'}."
        )
        return result
