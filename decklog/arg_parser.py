"""
decklog Arg Parser to determine what actions to take
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import constants

LOGGER = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments from user to determine what to fetch
    :param argv: Arguments to parse, defaulting to sys.argv
    :return: Namespace of requests
    """
    parser = argparse.ArgumentParser("decklog")

    parser.add_argument(
        "--credential",
        metavar="TOKEN",
        default=None,
        help="Google identity token to sign in with. Falls back to $DECKLOG_CREDENTIAL.",
    )

    # What to show
    parser.add_argument(
        "--list-decks",
        action="store_true",
        help="Print the signed in user's decks.",
    )
    parser.add_argument(
        "--list-logs",
        action="store_true",
        help="Print the signed in user's game logs.",
    )
    parser.add_argument(
        "--preview-deck",
        metavar="URL",
        help="Look up an Archidekt or Moxfield deck without adding it.",
    )
    parser.add_argument(
        "--bulk-preview",
        metavar="URL",
        help="List the decks of an Archidekt or Moxfield profile.",
    )

    # How to show it
    parser.add_argument(
        "--sort",
        metavar="KEY",
        choices=sorted(set(constants.DECK_SORT_KEYS + constants.GAME_LOG_SORT_KEYS)),
        help="Sort listed decks or game logs by KEY and remember the choice.",
    )
    parser.add_argument(
        "--descending",
        action="store_true",
        help="Sort in descending order.",
    )

    # Show help menu if no arguments are passed
    if argv is None and len(sys.argv) == 1:
        parser.print_help()
        parser.exit()

    parsed_args = parser.parse_args(argv)

    if not parsed_args.credential:
        parsed_args.credential = os.environ.get("DECKLOG_CREDENTIAL") or None
        if parsed_args.credential:
            LOGGER.info("Using credential from environment")

    return parsed_args
