"""
decklog Configuration Service
"""

import configparser
import logging
import os
import pathlib
from typing import Optional

from singleton_decorator import singleton

from . import constants


@singleton
class DecklogConfig:
    """
    Configuration Class that loads in the appropriate configuration file
    and provides the contents for the running program
    """

    logger: logging.Logger
    config_parser: configparser.ConfigParser
    decklog_version: str
    api_base_url: str
    request_timeout: Optional[float]
    google_client_id: str
    preferences_path: pathlib.Path
    debug_logging: bool

    def __init__(self, config_path: Optional[pathlib.Path] = None):
        self.logger = logging.getLogger(__name__)
        self.config_parser = configparser.ConfigParser()
        self.__load_config_from_local_file(config_path or constants.CONFIG_PATH)

        self.decklog_version = self.get("DECKLOG", "version", "0.0.0+unknown")
        self.api_base_url = self.__resolve_api_base_url()
        self.request_timeout = self.get_float("API", "timeout", None)
        self.google_client_id = (
            os.environ.get("DECKLOG_GOOGLE_CLIENT_ID", "").strip()
            or self.get("Auth", "google_client_id").strip()
        )

        preferences_path = self.get("Preferences", "path")
        self.preferences_path = (
            pathlib.Path(preferences_path).expanduser()
            if preferences_path
            else constants.PREFERENCES_PATH
        )

        debug_env = os.environ.get("DECKLOG_DEBUG", "").strip().lower()
        self.debug_logging = (
            debug_env in ["true", "1"]
            if debug_env
            else self.get_boolean("Logging", "debug")
        )

    def __load_config_from_local_file(self, file_path: pathlib.Path) -> None:
        """
        Load local file from resources as decklog configuration file
        :param file_path: Path to Configuration file
        """
        if not file_path.is_file():
            self.logger.warning(
                f"{file_path} was not found, falling back to built-in defaults"
            )
            return
        self.logger.debug(f"Loading configuration from {file_path}")
        self.config_parser.read(str(file_path))

    def __resolve_api_base_url(self) -> str:
        """
        The base URL is resolved once, environment first
        :return Base URL without trailing slashes
        """
        base_url = (
            os.environ.get("DECKLOG_API_BASE_URL", "").strip()
            or self.get("API", "base_url").strip()
            or constants.DEFAULT_API_BASE_URL
        )
        return base_url.rstrip("/")

    def get(self, section: str, option: str, fallback: str = "") -> str:
        """
        Get a specific value from configuration
        :param section: Section header
        :param option: Key in section
        :param fallback: Default value to use if key not found in section
        :returns Configuration value to use
        """
        if self.has_option(section, option):
            return self.config_parser.get(section, option, fallback=fallback)
        return fallback

    def get_boolean(self, section: str, option: str, fallback: bool = False) -> bool:
        """
        Get a specific value from configuration
        :param section: Section header
        :param option: Key in section
        :param fallback: Default value to use if key not found in section
        :returns Configuration value to use (as a Boolean)
        """
        if self.has_option(section, option):
            return self.config_parser.getboolean(section, option, fallback=fallback)
        return fallback

    def get_float(
        self, section: str, option: str, fallback: Optional[float] = None
    ) -> Optional[float]:
        """
        Get a specific value from configuration
        :param section: Section header
        :param option: Key in section
        :param fallback: Default value to use if key not found or not a number
        :returns Configuration value to use (as a Float)
        """
        if not self.has_option(section, option):
            return fallback
        try:
            return self.config_parser.getfloat(section, option)
        except ValueError:
            self.logger.warning(
                f"Key '{option}' in Section '{section}' is not a number, ignoring"
            )
            return fallback

    def has_section(self, section: str) -> bool:
        """
        Check if Configuration has a specific section
        :param section: Section header to find
        :return Does Section header exist
        """
        return self.config_parser.has_section(section)

    def has_option(self, section: str, option: str) -> bool:
        """
        Check if Configuration has a specific option in a specific section
        and has a defined value (ala not VAR=)
        :param section: Section header to find
        :param option: Option to find in section
        :return Does option exist in section
        """
        return (
            self.config_parser.has_option(section, option)
            and len(str(self.config_parser.get(section, option))) > 0
        )
