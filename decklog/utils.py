"""
decklog simple utilities
"""

import logging
import time
from typing import Any, Iterable, List, Optional

from . import constants
from .decklog_config import DecklogConfig

LOGGER = logging.getLogger(__name__)


def init_logger() -> None:
    """
    Initialize the main system logger
    """
    constants.LOG_PATH.mkdir(parents=True, exist_ok=True)

    start_time = time.strftime("%Y-%m-%d_%H.%M.%S")

    logging.basicConfig(
        level=(
            logging.DEBUG if DecklogConfig().debug_logging else logging.INFO
        ),
        format="[%(levelname)s] %(asctime)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(
                str(constants.LOG_PATH.joinpath(f"decklog_{start_time}.log"))
            ),
        ],
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def get_str_or_none(value: Any) -> Optional[str]:
    """
    Given a value, get its stripped string representation
    or None object
    :param value: Input value
    :return String value of input or None
    """
    if not isinstance(value, str):
        return None

    stripped = value.strip()
    return stripped or None


def clean_string_list(values: Optional[Iterable[Any]]) -> List[str]:
    """
    Strip every string and drop blanks and non-strings
    :param values: Raw list
    :return Cleaned list, order preserved
    """
    if not values:
        return []
    return [value.strip() for value in values if get_str_or_none(value)]
