"""Configuration management for kavita-annotations.

Handles loading and saving configuration from ~/.kavita-annotations/config.toml,
with environment variables taking precedence over the file.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

import tomli_w

from kavita_annotations.errors import ConfigError
from kavita_annotations.models import FormatOptions


CONFIG_DIR = Path.home() / ".kavita-annotations"
CONFIG_FILE = CONFIG_DIR / "config.toml"

DEFAULT_KAVITA_URL = "http://localhost:5000"
DEFAULT_OUTPUT_PATH = "kavita-annotations.md"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


@dataclass
class RetryConfig:
    """Retry behavior for Kavita API requests."""

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0

    def get_delay(self, attempt: int) -> float:
        """Delay before the next attempt (attempt is 1-based)."""
        delay = self.initial_delay * (self.backoff_factor ** (attempt - 1))
        return min(delay, self.max_delay)


@dataclass
class SyncConfig:
    """Complete sync configuration."""

    kavita_url: str = DEFAULT_KAVITA_URL
    api_key: str = ""
    vault_path: str = "."
    output_path: str = DEFAULT_OUTPUT_PATH
    timeout: float = 30.0
    format: FormatOptions = field(default_factory=FormatOptions)
    retry: RetryConfig = field(default_factory=RetryConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None,
             environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Load configuration from TOML file, then apply environment overrides.

        Args:
            config_path: Path to config file. Defaults to ~/.kavita-annotations/config.toml
            environ: Environment mapping (defaults to os.environ)

        Returns:
            SyncConfig with values from file and environment, or defaults

        Raises:
            ConfigError: If the file is not valid TOML or an override is malformed
        """
        path = config_path or CONFIG_FILE
        config = cls()

        if path.exists():
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid config file {path}: {e}") from e

            config.kavita_url = data.get("kavita_url", DEFAULT_KAVITA_URL)
            config.api_key = data.get("api_key", "")
            config.vault_path = data.get("vault_path", ".")
            config.output_path = data.get("output_path", DEFAULT_OUTPUT_PATH)
            config.timeout = data.get("timeout", 30.0)

            # Load format options
            if "format" in data:
                format_data = data["format"]
                config.format = FormatOptions(
                    include_comments=format_data.get("include_comments", True),
                    include_spoilers=format_data.get("include_spoilers", False),
                    include_tags=format_data.get("include_tags", True),
                    tag_prefix=format_data.get("tag_prefix", ""),
                    include_wikilinks=format_data.get("include_wikilinks", True),
                )

            # Load retry config
            if "retry" in data:
                retry_data = data["retry"]
                config.retry = RetryConfig(
                    max_attempts=retry_data.get("max_attempts", 3),
                    initial_delay=retry_data.get("initial_delay", 1.0),
                    max_delay=retry_data.get("max_delay", 30.0),
                    backoff_factor=retry_data.get("backoff_factor", 2.0),
                )

        config.apply_env(os.environ if environ is None else environ)
        return config

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Override settings from KAVITA_URL, KAVITA_API_KEY, OUTPUT_PATH, etc."""
        if "KAVITA_URL" in environ:
            self.kavita_url = environ["KAVITA_URL"]
        if "KAVITA_API_KEY" in environ:
            self.api_key = environ["KAVITA_API_KEY"]
        if "VAULT_PATH" in environ:
            self.vault_path = environ["VAULT_PATH"]
        if "OUTPUT_PATH" in environ:
            self.output_path = environ["OUTPUT_PATH"]

        overrides: Dict[str, object] = {}
        for name, attr in (
            ("INCLUDE_COMMENTS", "include_comments"),
            ("INCLUDE_SPOILERS", "include_spoilers"),
            ("INCLUDE_TAGS", "include_tags"),
            ("INCLUDE_WIKILINKS", "include_wikilinks"),
        ):
            if name in environ:
                overrides[attr] = parse_bool(environ[name], name)
        if "TAG_PREFIX" in environ:
            overrides["tag_prefix"] = environ["TAG_PREFIX"]
        if overrides:
            self.format = replace(self.format, **overrides)

    def validate(self) -> None:
        """Check the settings a sync cannot run without.

        Raises:
            ConfigError: If the server URL or API key is missing
        """
        if not self.kavita_url:
            raise ConfigError("Please configure the Kavita server URL")
        if not self.kavita_url.startswith(("http://", "https://")):
            raise ConfigError(f"Kavita URL must start with http:// or https://: {self.kavita_url}")
        if not self.api_key:
            raise ConfigError("Please configure the Kavita API key")

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save configuration to TOML file.

        Args:
            config_path: Path to config file. Defaults to ~/.kavita-annotations/config.toml
        """
        path = config_path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "kavita_url": self.kavita_url,
            "api_key": self.api_key,
            "vault_path": self.vault_path,
            "output_path": self.output_path,
            "timeout": self.timeout,
            "format": {
                "include_comments": self.format.include_comments,
                "include_spoilers": self.format.include_spoilers,
                "include_tags": self.format.include_tags,
                "tag_prefix": self.format.tag_prefix,
                "include_wikilinks": self.format.include_wikilinks,
            },
            "retry": {
                "max_attempts": self.retry.max_attempts,
                "initial_delay": self.retry.initial_delay,
                "max_delay": self.retry.max_delay,
                "backoff_factor": self.retry.backoff_factor,
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)


def parse_bool(value: str, name: str) -> bool:
    """Parse a boolean environment value.

    Raises:
        ConfigError: If the value is not a recognised boolean
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def create_default_config(config_path: Optional[Path] = None) -> SyncConfig:
    """Create and save a default configuration file.

    Returns:
        The created SyncConfig
    """
    config = SyncConfig()
    config.save(config_path)
    return config
