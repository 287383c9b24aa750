"""Shared test helpers and stub classes.

This module contains reusable test stubs that are used across multiple test files.
Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterable

import httpx

from summarybridge.core.cancellation import CancellationToken
from summarybridge.events import Event, EventBus

Step = Callable[[httpx.Request], Any]


class FakeClock:
    """Clock stub that records requested sleeps and returns immediately.

    Cancellation is still honoured: a tripped token raises ``Cancelled``
    before and after the (zero-length) sleep. ``on_sleep`` runs after each
    recorded sleep, which lets a test cancel or supersede an operation
    exactly between two attempts.

    Example:
        clock = FakeClock()
        await clock.sleep(10)
        assert clock.sleeps == [10]
    """

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.sleeps: list[float] = []
        self.on_sleep: Callable[[float], None] | None = None
        self._ns = 0

    def now(self) -> datetime:
        return self.current

    def monotonic_ns(self) -> int:
        self._ns += 1_000
        return self._ns

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        if token is not None:
            token.raise_if_cancelled()
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)
        await asyncio.sleep(0)
        if token is not None:
            token.raise_if_cancelled()


class ScriptedHandler:
    """``httpx.MockTransport`` handler that replays scripted steps in order.

    Each step is either a callable taking the request and returning a
    response (or an awaitable of one), or an exception instance to raise.
    The last step repeats once the script is exhausted.
    """

    def __init__(self, *steps: Step | BaseException) -> None:
        if not steps:
            raise ValueError("ScriptedHandler needs at least one step")
        self._steps = list(steps)
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, BaseException):
            raise step
        return step(request)


def make_client(handler: Callable[[httpx.Request], Any]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def respond_json(payload: Any, status: int = 200) -> Step:
    return lambda request: httpx.Response(status, json=payload)


def respond_text(text: str, status: int = 200, content_type: str = "text/plain") -> Step:
    return lambda request: httpx.Response(status, content=text.encode("utf-8"), headers={"content-type": content_type})


def respond_status(status: int) -> Step:
    return lambda request: httpx.Response(status)


def connect_error(message: str = "connection refused") -> httpx.ConnectError:
    return httpx.ConnectError(message)


class EventRecorder:
    """Subscribes to the given event types and keeps every event it sees."""

    def __init__(self, bus: EventBus, event_types: Iterable[type[Event]]) -> None:
        self.events: list[Event] = []
        for event_type in event_types:
            bus.subscribe(event_type, self.events.append)

    def of_type(self, event_type: type[Event]) -> list[Any]:
        return [event for event in self.events if isinstance(event, event_type)]
