"""Bounded, cancellable polling of the status endpoint.

Each call to :meth:`ResultPoller.poll_until_ready` becomes the single active
poll of its poller. Starting another trips the previous invocation's
cancellation token and bumps a generation counter. Every state mutation that
follows an ``await`` first checks that its generation is still current, so a
superseded poll whose request resolves late changes nothing.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

import httpx

from ..events import EventBus, PollAttempted, PollStarted, ResultReady, ResultUnavailable
from ..net.errors import (
    Cancelled,
    NoResultProduced,
    NotReadyYet,
    ServerError,
    SummaryBridgeError,
    TransientNetworkError,
)
from ..net.request import send_with_deadline
from . import messages
from .cancellation import CancellationToken
from .models import Job, JobState, PollOutcome, PollStatus
from .normalizer import is_blank_payload, normalize, read_payload, select_answer_field
from .renderer import render, render_message

if TYPE_CHECKING:  # pragma: no cover
    from ..services.job_store import JobStore
    from ..services.settings import Settings
    from .clock import Clock

LOGGER = logging.getLogger(__name__)


class PollState(Enum):
    IDLE = "idle"
    POLLING = "polling"
    RESOLVED = "resolved"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ResultPoller:
    """Queries the status endpoint until a result appears or attempts run out.

    Events Emitted:
        - PollStarted: When an invocation becomes active
        - PollAttempted: After every status request
        - ResultReady: On a usable result
        - ResultUnavailable: On a terminal status or exhausted attempts
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        job_store: JobStore,
        event_bus: EventBus,
        clock: Clock,
    ) -> None:
        self._client = client
        self._settings = settings
        self._job_store = job_store
        self._bus = event_bus
        self._clock = clock
        self._generation = 0
        self._token: CancellationToken | None = None
        self._state = PollState.IDLE
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    def is_polling(self) -> bool:
        return self._state is PollState.POLLING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cancel(self, reason: str = "cancelled") -> None:
        """Abandon the active poll, if any, without reporting an outcome."""

        if self._token is not None:
            self._token.cancel(reason)
            self._token = None
        self._generation += 1
        if self._state is PollState.POLLING:
            self._state = PollState.CANCELLED

    def close(self) -> None:
        """Tear down: cancel outstanding work and refuse new polls."""

        self.cancel("torn down")
        self._closed = True

    async def poll_until_ready(self, job_id: int, *, job: Job | None = None) -> PollOutcome:
        """Poll for ``job_id`` and return how it ended.

        Exhausted attempts and terminal statuses are reported as an
        ``UNAVAILABLE`` outcome carrying a user-facing message; they are not
        raised. A superseded or torn-down invocation returns ``CANCELLED``
        and leaves all shared state untouched.
        """

        if self._closed:
            LOGGER.debug("ResultPoller closed; ignoring poll for job %s", job_id)
            return PollOutcome(status=PollStatus.CANCELLED, job_id=job_id)

        generation, token = self._begin(job_id)
        if job is not None and job.state is JobState.SUBMITTED:
            job.mark_polling()

        max_attempts = max(1, self._settings.poll_max_attempts)
        failure_message = messages.NO_SUMMARY_PRODUCED
        attempts = 0
        try:
            for attempt in range(1, max_attempts + 1):
                if not self._is_current(generation, token):
                    return self._abandon(job_id, attempts)
                attempts = attempt
                try:
                    payload = await self._attempt(job_id, token)
                except Cancelled:
                    return self._abandon(job_id, attempts)
                except NotReadyYet as exc:
                    failure_message = exc.message
                    self._note_attempt(generation, token, job_id, attempt, "not_ready", exc.details.get("status"))
                except TransientNetworkError as exc:
                    LOGGER.debug("Poll attempt %d for job %s failed: %s", attempt, job_id, exc)
                    failure_message = messages.COULD_NOT_FETCH
                    self._note_attempt(generation, token, job_id, attempt, "error", None)
                except ServerError as exc:
                    self._note_attempt(generation, token, job_id, attempt, "terminal", exc.status)
                    aborted = ServerError(
                        status=exc.status,
                        message=messages.server_aborted(exc.status),
                        details={"job_id": job_id},
                    )
                    return self._fail(generation, token, job, job_id, attempts, aborted)
                else:
                    self._note_attempt(generation, token, job_id, attempt, "resolved", 200)
                    return self._resolve(generation, token, job, job_id, attempts, payload)

                if attempt < max_attempts:
                    try:
                        await self._clock.sleep(self._settings.poll_interval, token)
                    except Cancelled:
                        return self._abandon(job_id, attempts)

            exhausted = NoResultProduced(message=failure_message, details={"job_id": job_id, "attempts": attempts})
            return self._fail(generation, token, job, job_id, attempts, exhausted)
        finally:
            if self._token is token and self._generation == generation:
                self._token = None

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    async def _attempt(self, job_id: int, token: CancellationToken) -> Any:
        """Issue one status request and return a non-blank payload.

        Raises:
            NotReadyYet: Retryable status, blank body, or unparseable JSON.
            ServerError: Any other non-success status.
        """

        response = await send_with_deadline(
            self._client,
            "GET",
            self._settings.status_url,
            timeout=self._settings.poll_request_timeout,
            token=token,
            params={"id": str(job_id)},
            headers=self._settings.default_headers or None,
        )
        status = response.status_code
        if not response.is_success:
            if status in self._settings.poll_retryable_statuses:
                raise NotReadyYet(message=messages.NO_SUMMARY_PRODUCED, details={"status": status})
            raise ServerError(status=status)

        try:
            payload = select_answer_field(read_payload(response))
        except ValueError:
            LOGGER.debug("Status response for job %s claimed JSON but did not parse", job_id)
            raise NotReadyYet(message=messages.COULD_NOT_PARSE, details={"status": status}) from None

        if is_blank_payload(payload):
            raise NotReadyYet(message=messages.NO_SUMMARY_PRODUCED, details={"status": status})
        return payload

    # ------------------------------------------------------------------
    # Guarded state transitions
    # ------------------------------------------------------------------

    def _begin(self, job_id: int) -> tuple[int, CancellationToken]:
        if self._token is not None:
            LOGGER.debug("Superseding active poll (generation %d)", self._generation)
            self._token.cancel("superseded")
        self._generation += 1
        generation = self._generation
        token = CancellationToken(label=f"poll-{job_id}-{generation}")
        self._token = token
        self._state = PollState.POLLING
        self._bus.publish(PollStarted(job_id=job_id, generation=generation))
        return generation, token

    def _is_current(self, generation: int, token: CancellationToken) -> bool:
        return not self._closed and generation == self._generation and not token.cancelled

    def _note_attempt(
        self,
        generation: int,
        token: CancellationToken,
        job_id: int,
        attempt: int,
        outcome: str,
        status: int | None,
    ) -> None:
        if self._is_current(generation, token):
            self._bus.publish(PollAttempted(job_id=job_id, attempt=attempt, outcome=outcome, status=status))

    def _resolve(
        self,
        generation: int,
        token: CancellationToken,
        job: Job | None,
        job_id: int,
        attempts: int,
        payload: Any,
    ) -> PollOutcome:
        if not self._is_current(generation, token):
            return self._abandon(job_id, attempts)

        content = normalize(payload, max_depth=self._settings.unwrap_depth)
        html = render(content)
        if job is not None and not job.is_terminal:
            job.mark_resolved()
        self._state = PollState.RESOLVED
        self._job_store.reaffirm(job_id)
        self._bus.publish(ResultReady(job_id=job_id, content=content, html=html))
        LOGGER.info("Result for job %s ready after %d attempt(s)", job_id, attempts)
        return PollOutcome(status=PollStatus.RESOLVED, job_id=job_id, attempts=attempts, content=content, html=html)

    def _fail(
        self,
        generation: int,
        token: CancellationToken,
        job: Job | None,
        job_id: int,
        attempts: int,
        error: SummaryBridgeError,
    ) -> PollOutcome:
        if not self._is_current(generation, token):
            return self._abandon(job_id, attempts)

        if job is not None and not job.is_terminal:
            job.mark_failed()
        self._state = PollState.FAILED
        self._bus.publish(ResultUnavailable(job_id=job_id, message=error.message, error_code=error.error_code))
        LOGGER.warning("No result for job %s after %d attempt(s): %s", job_id, attempts, error.message)
        return PollOutcome(
            status=PollStatus.UNAVAILABLE,
            job_id=job_id,
            attempts=attempts,
            html=render_message(error.message),
        )

    def _abandon(self, job_id: int, attempts: int) -> PollOutcome:
        LOGGER.debug("Poll for job %s abandoned after %d attempt(s)", job_id, attempts)
        return PollOutcome(status=PollStatus.CANCELLED, job_id=job_id, attempts=attempts)


__all__ = ["PollState", "ResultPoller"]
