"""Configuration for pyrmbackup.

Values are read from ``RMBACKUP_*`` environment variables first and fall back
to a ``KEY=value`` file stored in ``~/.config/pyrmbackup/config``.
"""

import logging
from pathlib import Path
from typing import Optional

from dotenv import set_key
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError
from .utils import (
    DEFAULT_CONCURRENT_REQUESTS,
    DEFAULT_FILE_EXTENSION,
    DEFAULT_HOST,
    DEFAULT_LISTING_TIMEOUT,
    DEFAULT_PROBE_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "RMBACKUP_"
HOST_KEY = f"{ENV_PREFIX}HOST"
LISTING_TIMEOUT_KEY = f"{ENV_PREFIX}LISTING_TIMEOUT"
PROBE_TIMEOUT_KEY = f"{ENV_PREFIX}PROBE_TIMEOUT"
FILE_EXTENSION_KEY = f"{ENV_PREFIX}FILE_EXTENSION"
CONCURRENCY_KEY = f"{ENV_PREFIX}CONCURRENCY"


class Settings(BaseSettings):
    """Validated settings, from the environment and the config file."""

    host: str = DEFAULT_HOST
    listing_timeout: float = Field(DEFAULT_LISTING_TIMEOUT, gt=0)
    probe_timeout: float = Field(DEFAULT_PROBE_TIMEOUT, gt=0)
    file_extension: str = DEFAULT_FILE_EXTENSION
    concurrency: int = Field(DEFAULT_CONCURRENT_REQUESTS, ge=1)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("file_extension")
    @classmethod
    def leading_dot(cls, value: str) -> str:
        return value if value.startswith(".") else f".{value}"


class Config:
    """Configuration manager for pyrmbackup.

    Settings are loaded again on every access, so changes to the environment
    or to the config file are picked up by the module-level ``config``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/pyrmbackup/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pyrmbackup"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_file

    def load(self) -> Settings:
        """Load and validate the current settings.

        Raises:
            ConfigError: If a value does not validate
        """
        try:
            return Settings(_env_file=self.config_file)
        except ValidationError as e:
            errors = "; ".join(
                f"{ENV_PREFIX}{'.'.join(str(p) for p in err['loc']).upper()}: "
                f"{err['msg']}"
                for err in e.errors()
            )
            raise ConfigError(f"Invalid configuration: {errors}") from e

    @property
    def host(self) -> str:
        """Base URL of the device web interface."""
        return self.load().host

    @property
    def listing_timeout(self) -> float:
        """Timeout (seconds) for each document listing request."""
        return self.load().listing_timeout

    @property
    def probe_timeout(self) -> float:
        """Timeout (seconds) for the liveness probe."""
        return self.load().probe_timeout

    @property
    def file_extension(self) -> str:
        """Extension appended to document names when mirrored."""
        return self.load().file_extension

    @property
    def concurrency(self) -> int:
        """Default number of concurrent requests in async mode."""
        return self.load().concurrency

    def save_value(self, key: str, value: str) -> None:
        """Persist ``key=value`` to the config file, keeping other entries."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.touch(exist_ok=True)
        set_key(self.config_file, key, value, quote_mode="never")
        logger.debug(f"Saved {key} to {self.config_file}")


config = Config()
