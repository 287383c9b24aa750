"""Tests covering the command-line entry point."""

from __future__ import annotations

import io
import json
import logging
from dataclasses import replace
from pathlib import Path

import httpx
import pytest

from summarybridge import app
from summarybridge.services.settings import Settings, SettingsStore


@pytest.fixture
def cli_settings(settings: Settings, tmp_path: Path) -> Settings:
    return replace(
        settings,
        state_path=str(tmp_path / "state.json"),
        initial_poll_delay=0.0,
        poll_interval=0.0,
        upload_retry_backoff=0.0,
    )


def _service(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/upload":
        return httpx.Response(200, json={"id": 808})
    if request.url.path == "/status":
        return httpx.Response(200, json={"summary": "## Resultaat"})
    if request.url.path == "/chat":
        return httpx.Response(200, json={"output": "Antwoord"})
    return httpx.Response(404)


async def _run(argv: list[str], settings: Settings) -> tuple[int, str, str]:
    out, err = io.StringIO(), io.StringIO()
    args = app._parse_cli_args(argv)
    code = await app.run_command(args, settings, transport=httpx.MockTransport(_service), stdout=out, stderr=err)
    return code, out.getvalue(), err.getvalue()


def test_coerce_cli_overrides_casts_types() -> None:
    overrides = app._coerce_cli_overrides(
        [
            "upload_url=https://cli",
            "debug_logging=true",
            "poll_max_attempts=12",
            "poll_interval=2.5",
            "poll_retryable_statuses=[404, 202]",
            "state_path=none",
            "default_headers={\"X-Test\": \"1\"}",
        ]
    )

    assert overrides["upload_url"] == "https://cli"
    assert overrides["debug_logging"] is True
    assert overrides["poll_max_attempts"] == 12
    assert overrides["poll_interval"] == pytest.approx(2.5)
    assert overrides["poll_retryable_statuses"] == [404, 202]
    assert overrides["state_path"] is None
    assert overrides["default_headers"] == {"X-Test": "1"}


def test_coerce_cli_overrides_rejects_unknown_field() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["not_a_setting=value"])


def test_coerce_cli_overrides_rejects_missing_equals() -> None:
    with pytest.raises(ValueError):
        app._coerce_cli_overrides(["poll_interval"])


def test_dump_settings_redacts_auth_headers(tmp_path: Path) -> None:
    settings = Settings(default_headers={"Authorization": "Bearer super-secret", "X-Trace": "on"})
    store = SettingsStore(tmp_path / "settings.json")
    buffer = io.StringIO()

    app._dump_settings(settings, store, overrides={"upload_url": "https://cli"}, stream=buffer)

    payload = json.loads(buffer.getvalue())
    headers = payload["settings"]["default_headers"]
    assert "super-secret" not in headers["Authorization"]
    assert headers["X-Trace"] == "on"
    assert payload["meta"]["path"] == str(tmp_path / "settings.json")
    assert "upload_url" in payload["meta"]["cli_overrides"]


def test_main_dump_settings_applies_cli_overrides(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "settings.json"

    app.main(["--settings-path", str(path), "--set", "poll_max_attempts=3", "--dump-settings"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["settings"]["poll_max_attempts"] == 3
    assert payload["meta"]["cli_overrides"] == ["poll_max_attempts"]


def test_main_rejects_bad_override(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "bogus=1", "--dump-settings"])

    assert excinfo.value.code == 2


@pytest.mark.asyncio
async def test_upload_command_prints_rendered_summary(cli_settings: Settings, tmp_path: Path) -> None:
    document = tmp_path / "balans.pdf"
    document.write_bytes(b"%PDF-1.4")

    code, out, _ = await _run(["upload", str(document)], cli_settings)

    assert code == 0
    assert "<h2>Resultaat</h2>" in out
    state = json.loads(Path(cli_settings.state_path).read_text(encoding="utf-8"))
    assert state["nn_summary_id"] == "808"


@pytest.mark.asyncio
async def test_upload_command_reports_unreadable_file(cli_settings: Settings, tmp_path: Path) -> None:
    code, _, err = await _run(["upload", str(tmp_path / "missing.pdf")], cli_settings)

    assert code == 2
    assert "Cannot read" in err


@pytest.mark.asyncio
async def test_resume_without_saved_job(cli_settings: Settings) -> None:
    code, out, err = await _run(["resume"], cli_settings)

    assert code == 1
    assert out == ""
    assert "No job identifier available" in err


@pytest.mark.asyncio
async def test_chat_command_prints_answer(cli_settings: Settings) -> None:
    Path(cli_settings.state_path).write_text(json.dumps({"nn_summary_id": "808"}), encoding="utf-8")

    code, out, _ = await _run(["chat", "Hoeveel personeel?"], cli_settings)

    assert code == 0
    assert out.strip() == "Antwoord"


@pytest.mark.asyncio
async def test_language_and_clear_commands_update_state(cli_settings: Settings) -> None:
    Path(cli_settings.state_path).write_text(json.dumps({"nn_summary_id": "808"}), encoding="utf-8")

    code, out, _ = await _run(["language", "fr"], cli_settings)
    assert code == 0
    assert out.strip() == "FR"

    code, _, _ = await _run(["clear"], cli_settings)
    assert code == 0

    state = json.loads(Path(cli_settings.state_path).read_text(encoding="utf-8"))
    assert state == {"selectedLanguage": "FR"}


@pytest.mark.asyncio
async def test_lookup_with_invalid_vat_fails(cli_settings: Settings) -> None:
    code, out, err = await _run(["lookup", "BE12"], cli_settings)

    assert code == 1
    assert out == ""
    assert "Invalid VAT number" in err


@pytest.mark.usefixtures("restore_root_logging")
def test_main_logs_beside_state_file(tmp_path: Path) -> None:
    state = tmp_path / "state" / "state.json"
    settings_path = tmp_path / "settings.json"

    app.main(["--settings-path", str(settings_path), "--set", f"state_path={state}", "--debug", "clear"])

    for handler in logging.getLogger().handlers:
        handler.flush()
    log_path = tmp_path / "state" / "logs" / "summarybridge.log"
    assert "Logging to" in log_path.read_text(encoding="utf-8")


def test_dump_settings_reports_log_path(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = tmp_path / "state.json"

    app.main(["--settings-path", str(tmp_path / "s.json"), "--set", f"state_path={state}", "--dump-settings"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["meta"]["log_path"] == str(tmp_path / "logs" / "summarybridge.log")
