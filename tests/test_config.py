"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from ua_fingerprint.config import (
    DEFAULT_CACHE_SIZE,
    Settings,
    env_bool,
    env_int,
    resolve_rules_path,
)
from ua_fingerprint.utils.hashing import FamilyHashPolicy

SETTINGS_ENV = (
    "USER_AGENT_PATH",
    "UA_FAMILY_HASH_POLICY",
    "UA_VERBOSE",
    "UA_PROGRESS",
    "UA_INPUT_FILE",
    "UA_OUTPUT_FILE",
    "UA_AGENT_COLUMN",
    "UA_ADDRESS_COLUMN",
    "UA_CACHE_SIZE",
    "UA_DUCKDB_THREADS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run from an empty directory with no settings in the environment."""
    monkeypatch.chdir(tmp_path)
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)


class TestResolveRulesPath:
    def test_bundled_rules_by_default(self):
        assert resolve_rules_path() is None

    def test_default_location_when_present(self, tmp_path):
        (tmp_path / "assets").mkdir()
        (tmp_path / "assets" / "regexes.yaml").write_text("{}", encoding="utf-8")
        assert resolve_rules_path() == Path("./assets/regexes.yaml")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("USER_AGENT_PATH", "/etc/ua/regexes.yaml")
        assert resolve_rules_path() == Path("/etc/ua/regexes.yaml")


class TestEnvHelpers:
    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_env_bool_true(self, monkeypatch, value):
        monkeypatch.setenv("UA_VERBOSE", value)
        assert env_bool("UA_VERBOSE", False) is True

    def test_env_bool_default(self):
        assert env_bool("UA_VERBOSE", True) is True

    def test_env_int_invalid_falls_back(self, monkeypatch):
        monkeypatch.setenv("UA_CACHE_SIZE", "lots")
        assert env_int("UA_CACHE_SIZE", 7) == 7


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env()

        assert settings.rules_path is None
        assert settings.family_hash_policy is FamilyHashPolicy.CANONICAL
        assert settings.verbose is False
        assert settings.progress is False
        assert settings.input_path == Path("requests.tsv")
        assert settings.output_path == Path("fingerprints.tsv")
        assert settings.agent_column == "user_agent"
        assert settings.address_column == "ip"
        assert settings.cache_size == DEFAULT_CACHE_SIZE
        assert settings.threads is None

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("UA_FAMILY_HASH_POLICY", "prefixed")
        monkeypatch.setenv("UA_AGENT_COLUMN", "useragent")
        monkeypatch.setenv("UA_ADDRESS_COLUMN", "IP")
        monkeypatch.setenv("UA_CACHE_SIZE", "128")
        monkeypatch.setenv("UA_DUCKDB_THREADS", "2")

        settings = Settings.from_env()

        assert settings.family_hash_policy is FamilyHashPolicy.PREFIXED
        assert settings.agent_column == "useragent"
        assert settings.address_column == "IP"
        assert settings.cache_size == 128
        assert settings.threads == 2

    def test_unknown_policy(self, monkeypatch):
        monkeypatch.setenv("UA_FAMILY_HASH_POLICY", "md5")
        with pytest.raises(ValueError):
            Settings.from_env()
