"""Tests covering the utilities modules."""

from __future__ import annotations

import logging
import logging.handlers
from dataclasses import replace
from pathlib import Path

import pytest

from summarybridge.services.settings import Settings
from summarybridge.utils import logging as logging_utils

pytestmark = pytest.mark.usefixtures("restore_root_logging")


def _settings(tmp_path: Path, **changes: object) -> Settings:
    return replace(Settings(), state_path=str(tmp_path / "state" / "state.json"), **changes)


def test_log_file_sits_beside_state_file(tmp_path: Path) -> None:
    settings = _settings(tmp_path)

    log_path = logging_utils.configure_from_settings(settings)

    assert log_path == tmp_path / "state" / "logs" / logging_utils.LOG_FILENAME
    assert log_path == logging_utils.log_path_for(settings)
    assert log_path.parent.is_dir()


def test_default_level_keeps_only_warnings(tmp_path: Path) -> None:
    log_path = logging_utils.configure_from_settings(_settings(tmp_path))

    logging.getLogger("summarybridge.tests").info("quiet detail")
    logging.getLogger("summarybridge.tests").warning("loud problem")
    for handler in logging.getLogger().handlers:
        handler.flush()

    written = log_path.read_text(encoding="utf-8")
    assert "loud problem" in written
    assert "quiet detail" not in written
    assert logging.getLogger().level == logging.WARNING


@pytest.mark.parametrize(("debug_logging", "debug"), [(True, False), (False, True)])
def test_debug_comes_from_settings_or_flag(tmp_path: Path, debug_logging: bool, debug: bool) -> None:
    log_path = logging_utils.configure_from_settings(_settings(tmp_path, debug_logging=debug_logging), debug=debug)

    logging.getLogger("summarybridge.tests").debug("fine detail")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "fine detail" in log_path.read_text(encoding="utf-8")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_reconfiguring_replaces_own_handlers_only(tmp_path: Path) -> None:
    foreign = logging.NullHandler()
    root = logging.getLogger()
    root.addHandler(foreign)
    try:
        logging_utils.configure_from_settings(_settings(tmp_path / "a"))
        second = logging_utils.configure_from_settings(_settings(tmp_path / "b"))

        rotating = [h for h in root.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert [Path(h.baseFilename) for h in rotating] == [second]
        assert foreign in root.handlers
    finally:
        root.removeHandler(foreign)
