"""Tests for the configuration module."""

import pytest

from kavita_annotations.config import (
    DEFAULT_KAVITA_URL,
    DEFAULT_OUTPUT_PATH,
    RetryConfig,
    SyncConfig,
    create_default_config,
    parse_bool,
)
from kavita_annotations.errors import ConfigError
from kavita_annotations.models import FormatOptions


class TestRetryConfig:
    """Tests for RetryConfig."""

    def test_default_values(self):
        """Default retry config values."""
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.initial_delay == 1.0
        assert config.max_delay == 30.0
        assert config.backoff_factor == 2.0

    def test_get_delay_exponential(self):
        """Delay increases exponentially."""
        config = RetryConfig(initial_delay=1.0, backoff_factor=2.0, max_delay=100.0)

        assert config.get_delay(1) == 1.0
        assert config.get_delay(2) == 2.0
        assert config.get_delay(3) == 4.0
        assert config.get_delay(4) == 8.0

    def test_get_delay_capped(self):
        """Delay is capped at max_delay."""
        config = RetryConfig(initial_delay=1.0, backoff_factor=10.0, max_delay=5.0)

        assert config.get_delay(1) == 1.0
        assert config.get_delay(2) == 5.0
        assert config.get_delay(3) == 5.0


class TestSyncConfigDefaults:
    """Tests for SyncConfig defaults."""

    def test_defaults(self):
        config = SyncConfig()
        assert config.kavita_url == DEFAULT_KAVITA_URL
        assert config.api_key == ""
        assert config.vault_path == "."
        assert config.output_path == DEFAULT_OUTPUT_PATH
        assert config.format == FormatOptions()

    def test_load_missing_file(self, tmp_path):
        """Missing config file gives defaults."""
        config = SyncConfig.load(tmp_path / "missing.toml", environ={})
        assert config.kavita_url == DEFAULT_KAVITA_URL
        assert config.api_key == ""


class TestSyncConfigFile:
    """Tests for loading and saving TOML config."""

    def test_load_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'kavita_url = "https://kavita.example.com"\n'
            'api_key = "secret"\n'
            'output_path = "Reading/kavita.md"\n'
            "\n"
            "[format]\n"
            "include_spoilers = true\n"
            'tag_prefix = "genre/"\n'
            "\n"
            "[retry]\n"
            "max_attempts = 5\n"
        )

        config = SyncConfig.load(path, environ={})

        assert config.kavita_url == "https://kavita.example.com"
        assert config.api_key == "secret"
        assert config.output_path == "Reading/kavita.md"
        assert config.format.include_spoilers is True
        assert config.format.include_comments is True
        assert config.format.tag_prefix == "genre/"
        assert config.retry.max_attempts == 5
        assert config.retry.initial_delay == 1.0

    def test_save_and_load_round_trip(self, tmp_path):
        path = tmp_path / "nested" / "config.toml"
        config = SyncConfig(
            kavita_url="http://nas:5000",
            api_key="abc",
            vault_path="~/Notes",
            format=FormatOptions(include_tags=False, tag_prefix="books/"),
            retry=RetryConfig(max_attempts=2),
        )

        config.save(path)
        loaded = SyncConfig.load(path, environ={})

        assert path.exists()
        assert loaded == config

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("kavita_url = [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid config file"):
            SyncConfig.load(path, environ={})

    def test_create_default_config(self, tmp_path):
        path = tmp_path / "config.toml"
        config = create_default_config(path)

        assert path.exists()
        assert SyncConfig.load(path, environ={}) == config


class TestEnvironmentOverrides:
    """Tests for environment variable overrides."""

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('kavita_url = "http://from-file:5000"\napi_key = "file-key"\n')

        config = SyncConfig.load(path, environ={
            "KAVITA_URL": "http://from-env:5000",
            "KAVITA_API_KEY": "env-key",
        })

        assert config.kavita_url == "http://from-env:5000"
        assert config.api_key == "env-key"

    def test_env_paths(self):
        config = SyncConfig()
        config.apply_env({"VAULT_PATH": "/vault", "OUTPUT_PATH": "kavita.md"})
        assert config.vault_path == "/vault"
        assert config.output_path == "kavita.md"

    def test_env_format_flags(self):
        config = SyncConfig()
        config.apply_env({
            "INCLUDE_COMMENTS": "false",
            "INCLUDE_SPOILERS": "yes",
            "INCLUDE_TAGS": "0",
            "INCLUDE_WIKILINKS": "Off",
            "TAG_PREFIX": "genre/",
        })
        assert config.format == FormatOptions(
            include_comments=False,
            include_spoilers=True,
            include_tags=False,
            tag_prefix="genre/",
            include_wikilinks=False,
        )

    def test_env_bad_boolean(self):
        with pytest.raises(ConfigError, match="INCLUDE_TAGS"):
            SyncConfig().apply_env({"INCLUDE_TAGS": "maybe"})

    def test_empty_env_changes_nothing(self):
        config = SyncConfig()
        config.apply_env({})
        assert config == SyncConfig()


class TestParseBool:
    """Tests for parse_bool."""

    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "on", " True "])
    def test_true(self, value):
        assert parse_bool(value, "X") is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "OFF"])
    def test_false(self, value):
        assert parse_bool(value, "X") is False

    def test_invalid(self):
        with pytest.raises(ConfigError):
            parse_bool("", "X")


class TestValidate:
    """Tests for SyncConfig.validate."""

    def test_valid(self):
        SyncConfig(api_key="key").validate()

    def test_missing_url(self):
        with pytest.raises(ConfigError, match="server URL"):
            SyncConfig(kavita_url="", api_key="key").validate()

    def test_bad_scheme(self):
        with pytest.raises(ConfigError, match="http"):
            SyncConfig(kavita_url="kavita.local", api_key="key").validate()

    def test_missing_api_key(self):
        with pytest.raises(ConfigError, match="API key"):
            SyncConfig().validate()
