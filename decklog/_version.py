"""Dynamic version read from decklog.properties."""

import configparser
import pathlib

_config = configparser.ConfigParser()
_config.read(pathlib.Path(__file__).parent / "resources" / "decklog.properties")
__version__ = _config.get("DECKLOG", "version", fallback="0.4.0+fallback")
