"""Cancellation handles for supersedable async operations."""

from __future__ import annotations

import asyncio
import logging

from ..net.errors import Cancelled

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal owned by a single operation.

    A token is created for each invocation of a long-lived operation and is
    never reused: restarting the operation replaces the token, tripping the
    previous one.
    """

    __slots__ = ("_event", "_reason", "label")

    def __init__(self, label: str = "") -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self.label = label

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        LOGGER.debug("Cancellation token %s tripped: %s", self.label or id(self), reason)

    async def wait(self) -> None:
        """Block until the token is cancelled."""

        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled(details={"reason": self._reason or "cancelled"})

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken(label={self.label!r}, state={state})"
