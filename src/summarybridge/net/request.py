"""Deadline-bound HTTP requests that also honour an external cancellation token."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx

from .errors import Cancelled, TimedOut, TransientNetworkError

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..core.cancellation import CancellationToken

LOGGER = logging.getLogger(__name__)


async def send_with_deadline(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    token: CancellationToken | None = None,
    **kwargs: Any,
) -> httpx.Response:
    """Issue a request that fails with ``TimedOut``, ``Cancelled`` or ``TransientNetworkError``.

    The response body is read before returning, so the deadline covers the
    full exchange. The same deadline is handed to httpx as the per-request
    timeout, replacing whatever default the client was built with. When both
    the deadline and ``token`` are responsible for an abort, the token wins
    and the outcome is ``Cancelled``. The deadline timer and the cancellation
    waiter are always torn down before this returns.
    """

    if token is not None and token.cancelled:
        raise Cancelled(details={"url": url, "reason": token.reason or "cancelled"})

    kwargs["timeout"] = httpx.Timeout(timeout)
    request_task = asyncio.ensure_future(client.request(method, url, **kwargs))
    waiters: set[asyncio.Future[Any]] = {request_task}
    cancel_waiter: asyncio.Future[Any] | None = None
    if token is not None:
        cancel_waiter = asyncio.ensure_future(token.wait())
        waiters.add(cancel_waiter)

    try:
        done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in waiters if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    if token is not None and token.cancelled:
        if request_task in done and not request_task.cancelled():
            # Retrieve the outcome so an exception is not reported as unhandled.
            request_task.exception()
        LOGGER.debug("%s %s aborted by cancellation token", method, url)
        raise Cancelled(details={"url": url, "reason": token.reason or "cancelled"})

    if request_task not in done:
        LOGGER.debug("%s %s timed out after %.1fs", method, url, timeout)
        raise TimedOut(message="Request timed out", details={"url": url, "timeout": timeout})

    try:
        return request_task.result()
    except httpx.TimeoutException as exc:
        raise TimedOut(message="Request timed out", details={"url": url, "timeout": timeout}) from exc
    except httpx.TransportError as exc:
        raise TransientNetworkError(
            message=str(exc) or exc.__class__.__name__,
            details={"url": url},
        ) from exc
