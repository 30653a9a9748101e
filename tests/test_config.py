"""Tests for settings and the release mapping."""

import json
from pathlib import Path

import pytest

from hodor.core.config import ReleaseConfig, Settings
from hodor.core.exceptions import ConfigurationError


def test_load_json(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"entries": {"svcA": str(tmp_path / "www")}}))

    config = ReleaseConfig.load(path)

    assert config.target_for("svcA") == str(tmp_path / "www")
    assert config.target_for("svcB") is None


def test_load_yaml(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(f"entries:\n  svcA: {tmp_path / 'www'}\n  svcB: {tmp_path / 'docs'}\n")

    config = ReleaseConfig.load(path)

    assert sorted(config.entries) == ["svcA", "svcB"]


def test_relative_targets_become_absolute(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = ReleaseConfig(entries={"svcA": "www/site"})
    assert config.target_for("svcA") == str(tmp_path / "www" / "site")


def test_empty_file_has_no_entries(tmp_path: Path):
    path = tmp_path / "config.yml"
    path.write_text("")
    assert ReleaseConfig.load(path).entries == {}


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigurationError, match="failed to open file"):
        ReleaseConfig.load(tmp_path / "nope.json")


def test_malformed_json(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text("{entries: ")
    with pytest.raises(ConfigurationError, match="failed to decode file"):
        ReleaseConfig.load(path)


def test_top_level_must_be_a_mapping(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigurationError):
        ReleaseConfig.load(path)


def test_empty_target_rejected(tmp_path: Path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"entries": {"svcA": ""}}))
    with pytest.raises(ConfigurationError, match="invalid release config"):
        ReleaseConfig.load(path)


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.port == 3333
    assert settings.queue_size == 50
    assert settings.listen == "0.0.0.0:3333"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("HODOR_PORT", "4444")
    monkeypatch.setenv("HODOR_DB_PATH", "/var/lib/hodor/hodor.db")
    settings = Settings(_env_file=None)
    assert settings.port == 4444
    assert settings.db_path == "/var/lib/hodor/hodor.db"
