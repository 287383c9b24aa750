"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from typing import Iterator

import pytest

from summarybridge.events import EventBus
from summarybridge.services.job_store import JobStore
from summarybridge.services.kv_store import MemoryKeyValueStore
from summarybridge.services.settings import Settings

from tests.helpers import FakeClock


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("SUMMARYBRIDGE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        upload_url="https://hooks.test/upload",
        status_url="https://hooks.test/status",
        chat_url="https://hooks.test/chat",
        company_api_url="https://registry.test/api/companies",
        poll_max_attempts=5,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def job_store(kv: MemoryKeyValueStore, bus: EventBus, clock: FakeClock) -> JobStore:
    return JobStore(kv, bus, clock)
