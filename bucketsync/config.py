"""Configuration management for bucketsync.

Settings are read from ``~/.config/bucketsync/config`` (``KEY=value`` lines)
and can be overridden by environment variables of the same name.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .exceptions import ConfigError
from .utils import DEFAULT_CONCURRENCY, MAX_CONCURRENCY

logger = logging.getLogger(__name__)

ENV_REGION = "BUCKETSYNC_REGION"
ENV_ENDPOINT_URL = "BUCKETSYNC_ENDPOINT_URL"
ENV_PROFILE = "BUCKETSYNC_PROFILE"
ENV_CONCURRENCY = "BUCKETSYNC_CONCURRENCY"
ENV_DEFAULT_BUCKET = "BUCKETSYNC_DEFAULT_BUCKET"
ENV_COMPARATOR = "BUCKETSYNC_COMPARATOR"

KNOWN_KEYS = (
    ENV_REGION,
    ENV_ENDPOINT_URL,
    ENV_PROFILE,
    ENV_CONCURRENCY,
    ENV_DEFAULT_BUCKET,
    ENV_COMPARATOR,
)


class Config:
    """Layered configuration: config file first, environment on top."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/bucketsync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "bucketsync"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"

    def _read_file(self) -> dict[str, str]:
        """Parse the config file into a dictionary."""
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values

        try:
            text = self.config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read config file {self.config_file}: {e}") from e

        for line_no, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                logger.warning(
                    "Ignoring malformed line %d in %s", line_no, self.config_file
                )
                continue
            key, _, value = line.partition("=")
            values[key.strip()] = value.strip().strip('"').strip("'")
        return values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a setting, environment first."""
        value = os.environ.get(key)
        if value:
            return value
        return self._read_file().get(key, default)

    @property
    def region(self) -> Optional[str]:
        """AWS region for the S3 client."""
        return self.get(ENV_REGION)

    @property
    def endpoint_url(self) -> Optional[str]:
        """Custom endpoint (MinIO, LocalStack...)."""
        return self.get(ENV_ENDPOINT_URL)

    @property
    def profile(self) -> Optional[str]:
        """Named credentials profile."""
        return self.get(ENV_PROFILE)

    @property
    def default_bucket(self) -> Optional[str]:
        """Bucket used when a destination has no s3:// scheme."""
        return self.get(ENV_DEFAULT_BUCKET)

    @property
    def comparator(self) -> str:
        """Name of the default comparator."""
        return self.get(ENV_COMPARATOR) or "smart"

    @property
    def concurrency(self) -> int:
        """Default number of concurrent transfers."""
        raw = self.get(ENV_CONCURRENCY)
        if raw is None:
            return DEFAULT_CONCURRENCY
        try:
            value = int(raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_CONCURRENCY} must be an integer, got {raw!r}") from e
        if value <= 0 or value > MAX_CONCURRENCY:
            raise ConfigError(
                f"{ENV_CONCURRENCY} must be between 1 and {MAX_CONCURRENCY}, got {value}"
            )
        return value

    def is_configured(self) -> bool:
        """Check whether a config file exists."""
        return self.config_file.exists()

    def save_settings(self, **values: Optional[str]) -> Path:
        """Merge settings into the config file.

        Args:
            **values: Keys from KNOWN_KEYS; None values are left untouched

        Returns:
            Path of the written config file
        """
        unknown = [key for key in values if key not in KNOWN_KEYS]
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        current = self._read_file()
        for key, value in values.items():
            if value is not None:
                current[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        lines = [f"{key}={value}" for key, value in sorted(current.items())]
        self.config_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        # Owner read/write only
        self.config_file.chmod(0o600)
        return self.config_file


config = Config()
