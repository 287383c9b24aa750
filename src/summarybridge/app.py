"""Command-line entry point for the summarybridge client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

import httpx

from .core.models import DocumentFile, PollOutcome
from .net.errors import MissingJobId, SummaryBridgeError
from .services.kv_store import JsonFileKeyValueStore
from .services.settings import ENV_PREFIX, Settings, SettingsStore
from .session import SummarySession
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_SECRET_HEADERS = {"authorization", "x-api-key", "cookie"}


def configure_logging(settings: Settings, *, debug: bool = False) -> Path:
    """Configure logging for the command-line client from ``settings``."""

    log_path = logging_utils.configure_from_settings(settings, debug=debug)
    _LOGGER.debug("Logging to %s", log_path)
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `summarybridge` console script."""

    args = _parse_cli_args(argv)

    settings_path = args.settings_path or os.environ.get(f"{ENV_PREFIX}SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if args.command is None:
        print("No command given; see --help.", file=sys.stderr)
        raise SystemExit(2)

    configure_logging(settings, debug=args.debug)

    try:
        exit_code = asyncio.run(run_command(args, settings))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        exit_code = 130
    if exit_code:
        raise SystemExit(exit_code)


async def run_command(
    args: argparse.Namespace,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    """Run one CLI command against a fresh session and return the exit code."""

    out = stdout or sys.stdout
    err = stderr or sys.stderr
    store = JsonFileKeyValueStore(settings.resolved_state_path())
    async with httpx.AsyncClient(transport=transport) as client:
        session = SummarySession(client, settings, store)
        try:
            return await _dispatch(session, args, out, err)
        except SummaryBridgeError as exc:
            _LOGGER.debug("Command %s failed: %s", args.command, exc.to_dict())
            print(exc.message, file=err)
            return 1
        finally:
            session.close()


async def _dispatch(session: SummarySession, args: argparse.Namespace, out: TextIO, err: TextIO) -> int:
    command = args.command
    if command == "upload":
        try:
            document = DocumentFile.from_path(args.file)
        except OSError as exc:
            print(f"Cannot read {args.file}: {exc.strerror or exc}", file=err)
            return 2
        outcome = await session.upload(document)
        print(session.view.html, file=out)
        return _poll_exit_code(outcome)
    if command == "resume":
        outcome = await session.resume()
        if outcome is None:
            print(MissingJobId().message, file=err)
            return 1
        print(session.view.html, file=out)
        return _poll_exit_code(outcome)
    if command == "chat":
        entry = await session.ask(args.question)
        if entry is None:
            print("Question is empty.", file=err)
            return 2
        print(entry.answer, file=out)
        return 0
    if command == "clear":
        session.clear_saved_id()
        return 0
    if command == "lookup":
        record = await session.lookup_company(args.vat)
        json.dump(record.to_dict(), out, indent=2, ensure_ascii=False)
        out.write("\n")
        return 0
    if command == "language":
        resolved = session.set_language(args.language)
        print(resolved.value, file=out)
        return 0
    raise ValueError(f"Unknown command {command!r}")


def _poll_exit_code(outcome: PollOutcome | None) -> int:
    return 0 if outcome is not None and outcome.resolved else 1


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="summarybridge",
        add_help=True,
        description="Submit a document for summarization, fetch the result, and ask follow-up questions.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.summarybridge/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this run (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    upload = commands.add_parser("upload", help="Upload a document and wait for its summary.")
    upload.add_argument("file", metavar="FILE")
    commands.add_parser("resume", help="Poll again for the saved job.")
    chat = commands.add_parser("chat", help="Ask a question about the saved job.")
    chat.add_argument("question", metavar="QUESTION")
    commands.add_parser("clear", help="Forget the saved job id.")
    lookup = commands.add_parser("lookup", help="Look up a company by Belgian VAT number.")
    lookup.add_argument("vat", metavar="VAT")
    language = commands.add_parser("language", help="Set the preferred language.")
    language.add_argument("language", choices=["NL", "FR", "nl", "fr"])
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    if target is list:
        try:
            return json.loads(normalized or "[]")
        except json.JSONDecodeError as exc:
            raise ValueError("List overrides must be valid JSON arrays") from exc
    if target is dict:
        try:
            return json.loads(normalized or "{}")
        except json.JSONDecodeError as exc:
            raise ValueError("Dict overrides must be valid JSON objects") from exc
    return normalized


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return _resolve_annotation(args[0])


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["default_headers"] = {
        name: _redact_secret(value) if name.lower() in _SECRET_HEADERS else value
        for name, value in settings.default_headers.items()
    }
    metadata = {
        "path": str(store.path),
        "state_path": str(settings.resolved_state_path()),
        "log_path": str(logging_utils.log_path_for(settings)),
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _redact_secret(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith(ENV_PREFIX))


if __name__ == "__main__":  # pragma: no cover
    main()
