"""Clock and scheduler abstraction injected into every time-dependent component."""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone
from typing import Protocol

from ..net.errors import Cancelled
from .cancellation import CancellationToken


class Clock(Protocol):
    """Source of wall time, monotonic time, and interruptible delays."""

    def now(self) -> datetime:
        """Return the current UTC time."""

    def monotonic_ns(self) -> int:
        """Return a monotonic timestamp in nanoseconds."""

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        """Suspend for ``seconds``, raising :class:`Cancelled` if ``token`` fires first."""


class SystemClock:
    """Clock backed by the running asyncio loop."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic_ns(self) -> int:
        return time.monotonic_ns()

    async def sleep(self, seconds: float, token: CancellationToken | None = None) -> None:
        if token is None:
            await asyncio.sleep(max(0.0, seconds))
            return
        token.raise_if_cancelled()
        waiter = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait({waiter}, timeout=max(0.0, seconds))
        finally:
            if not waiter.done():
                waiter.cancel()
                await asyncio.gather(waiter, return_exceptions=True)
        if done:
            raise Cancelled(details={"reason": token.reason or "cancelled"})
