"""
decklog Main Executor
"""

import argparse
import asyncio
import logging
import sys
import traceback
from typing import Any, Dict, List, Optional

import orjson

from . import constants
from .client import DecklogClient
from .decklog_config import DecklogConfig
from .preferences import SortPreference, sort_decks, sort_game_logs
from .utils import init_logger

LOGGER: logging.Logger = logging.getLogger(__name__)


def print_json(contents: Any) -> None:
    sys.stdout.buffer.write(orjson.dumps(contents, option=orjson.OPT_INDENT_2))
    sys.stdout.buffer.write(b"\n")
    sys.stdout.flush()


def resolve_sort(
    client: DecklogClient, list_name: str, args: argparse.Namespace
) -> SortPreference:
    """
    Use --sort for the list it applies to and remember it.
    --descending alone sorts each listed list by its stored key, descending.
    :param client: Client holding the preference cache
    :param list_name: "decks" or "game-logs"
    :param args: Parsed arguments
    """
    keys = constants.DECK_SORT_KEYS if list_name == "decks" else constants.GAME_LOG_SORT_KEYS
    if args.sort in keys:
        return client.preferences.set(
            list_name, args.sort, "desc" if args.descending else "asc"
        )
    if args.sort is None and args.descending:
        stored = client.preferences.get(list_name)
        return client.preferences.set(list_name, stored.key, "desc")
    return client.preferences.get(list_name)


async def dispatcher(args: argparse.Namespace) -> int:
    """
    decklog Dispatcher
    :return Exit code
    """
    output: Dict[str, Any] = {}
    errors: List[str] = []

    async with DecklogClient() as client:
        if args.credential:
            signed_in = await client.auth.exchange_credential(args.credential)
        else:
            signed_in = await client.start()

        output["session"] = {
            "status": client.auth.status.value,
            "user": client.auth.user.to_json() if client.auth.user else None,
        }
        if client.auth.auth_error:
            errors.append(client.auth.auth_error)

        if args.list_decks:
            if client.decks.error:
                errors.append(client.decks.error)
            decks = sort_decks(client.decks.items, resolve_sort(client, "decks", args))
            output["decks"] = [deck.to_json() for deck in decks]

        if args.list_logs and signed_in:
            if not await client.game_logs.load(surface_auth_errors=True):
                errors.append(client.game_logs.error or "Unable to load game logs.")
            logs = sort_game_logs(
                client.game_logs.items, resolve_sort(client, "game-logs", args)
            )
            output["gameLogs"] = [log.to_json() for log in logs]

        if args.preview_deck:
            result = await client.decks.preview(args.preview_deck)
            if result.success:
                output["preview"] = result.preview.to_json()
            else:
                errors.append(result.error or "Unable to preview deck.")

        if args.bulk_preview:
            if await client.bulk_import.preview_profile(args.bulk_preview):
                output["bulkPreview"] = [
                    candidate.to_json() for candidate in client.bulk_import.candidates
                ]
            else:
                errors.append(client.bulk_import.error or "Unable to preview that profile.")

    if errors:
        output["errors"] = errors
    print_json(output)
    return 1 if errors else 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    decklog safe main call
    """
    from .arg_parser import parse_args

    init_logger()
    args = parse_args(argv)
    LOGGER.info(f"Starting decklog {DecklogConfig().decklog_version}")

    try:
        return asyncio.run(dispatcher(args))
    except Exception as error:
        LOGGER.fatal(f"Exception caught: {error} {traceback.format_exc()}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
