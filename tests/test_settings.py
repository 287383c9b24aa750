"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path

import pytest

from summarybridge.services.settings import Settings, SettingsStore


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    assert store.load() == Settings()


def test_defaults_match_service_contract() -> None:
    settings = Settings()

    assert settings.poll_max_attempts == 30
    assert settings.poll_interval == 10.0
    assert settings.poll_request_timeout == 30.0
    assert settings.poll_retryable_statuses == [404, 202, 425]
    assert settings.upload_retries == 2
    assert settings.upload_timeout == 120.0
    assert settings.initial_poll_delay == 60.0
    assert settings.language == "NL"


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    original = Settings(
        upload_url="https://hooks.example/upload",
        language="FR",
        poll_max_attempts=10,
        poll_retryable_statuses=[202],
        default_headers={"X-Test": "1"},
        state_path=str(tmp_path / "state.json"),
    )

    SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert reloaded == original
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert not path.with_suffix(".tmp").exists()


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_are_ignored_and_payload_migrated(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"poll_interval": 3.0, "legacy_field": True}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings.poll_interval == 3.0
    migrated = json.loads(path.read_text(encoding="utf-8"))
    assert migrated["version"] == 1
    assert "legacy_field" not in migrated


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUMMARYBRIDGE_STATUS_URL", "https://env.example/status")
    monkeypatch.setenv("SUMMARYBRIDGE_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("SUMMARYBRIDGE_POLL_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("SUMMARYBRIDGE_POLL_INTERVAL", "0.5")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.status_url == "https://env.example/status"
    assert settings.debug_logging is True
    assert settings.poll_max_attempts == 7
    assert settings.poll_interval == 0.5


def test_invalid_numeric_environment_override_is_skipped(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUMMARYBRIDGE_UPLOAD_RETRIES", "many")

    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.upload_retries == 2


def test_environment_wins_over_cli_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUMMARYBRIDGE_LANGUAGE", "FR")

    settings = SettingsStore(tmp_path / "settings.json").load(
        overrides={"language": "NL", "chat_timeout": 5.0, "unknown": 1}
    )

    assert settings.language == "FR"
    assert settings.chat_timeout == 5.0


def test_resolved_state_path(tmp_path: Path) -> None:
    default = Settings()
    custom = replace(default, state_path=str(tmp_path / "kv.json"))

    assert default.resolved_state_path().name == "state.json"
    assert custom.resolved_state_path() == tmp_path / "kv.json"
