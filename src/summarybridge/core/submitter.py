"""Document upload with bounded retries and job identifier extraction."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..events import EventBus, JobSubmitted, SubmissionFailed, UploadStarted
from ..net.errors import (
    Cancelled,
    NoFileSelected,
    NoIdentifierReturned,
    ServerError,
    SummaryBridgeError,
    TransientNetworkError,
)
from ..net.request import send_with_deadline
from .messages import Language
from .models import DocumentFile, Job
from .normalizer import extract_id, read_payload

if TYPE_CHECKING:  # pragma: no cover
    from ..services.job_store import JobStore
    from ..services.settings import Settings
    from .cancellation import CancellationToken
    from .clock import Clock

LOGGER = logging.getLogger(__name__)

UPLOAD_FIELD = "data"


class JobSubmitter:
    """Uploads a document and turns the acknowledgement into a persisted job id.

    Transport failures and non-success statuses are retried
    ``settings.upload_retries`` more times with a fixed backoff. A successful
    response without an identifier is terminal.
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

    async def submit(
        self,
        document: DocumentFile | None,
        *,
        language: Language | str | None = None,
        token: CancellationToken | None = None,
    ) -> int:
        """Upload ``document`` and return the job identifier."""

        job = await self.submit_job(document, language=language, token=token)
        return job.require_id()

    async def submit_job(
        self,
        document: DocumentFile | None,
        *,
        language: Language | str | None = None,
        token: CancellationToken | None = None,
    ) -> Job:
        """Upload ``document`` and return the submitted :class:`Job`.

        Raises:
            NoFileSelected: ``document`` is missing; no request is made.
            ServerError: The last attempt returned a non-success status.
            TransientNetworkError: The last attempt failed in transport.
            NoIdentifierReturned: The upload succeeded without an identifier.
            Cancelled: ``token`` fired while uploading.
        """

        if document is None:
            raise NoFileSelected()

        resolved_language = Language.coerce(language or self._settings.language)
        job = Job(created_at=self._clock.now())
        self._job_store.clear()
        self._bus.publish(UploadStarted(filename=document.name, language=resolved_language.value))

        try:
            response = await self._upload_with_retries(document, resolved_language, token)
        except Cancelled:
            LOGGER.debug("Upload of %s cancelled", document.name)
            raise
        except SummaryBridgeError as exc:
            job.mark_failed()
            LOGGER.warning("Upload of %s failed after retries: %s", document.name, exc)
            self._bus.publish(SubmissionFailed(error_code=exc.error_code, message=exc.message))
            raise

        job_id = extract_id(self._decode(response), max_depth=self._settings.unwrap_depth)
        if job_id is None:
            job.mark_failed()
            error = NoIdentifierReturned(details={"status": response.status_code})
            LOGGER.warning("Upload of %s returned no job identifier", document.name)
            self._bus.publish(SubmissionFailed(error_code=error.error_code, message=error.message))
            raise error

        job.mark_submitted(job_id)
        self._job_store.save(job_id)
        self._bus.publish(JobSubmitted(job_id=job_id))
        LOGGER.info("Document %s submitted as job %s", document.name, job_id)
        return job

    async def _upload_with_retries(
        self,
        document: DocumentFile,
        language: Language,
        token: CancellationToken | None,
    ) -> httpx.Response:
        async for attempt in self._retrying(token):
            with attempt:
                return await self._upload_once(document, language, token)
        raise RuntimeError("upload retry loop ended without an outcome")

    async def _upload_once(
        self,
        document: DocumentFile,
        language: Language,
        token: CancellationToken | None,
    ) -> httpx.Response:
        response = await send_with_deadline(
            self._client,
            "POST",
            self._settings.upload_url,
            timeout=self._settings.upload_timeout,
            token=token,
            params={"lang": language.value},
            files={UPLOAD_FIELD: document.as_multipart()},
            headers=self._settings.default_headers or None,
        )
        if not response.is_success:
            raise ServerError(status=response.status_code)
        return response

    def _retrying(self, token: CancellationToken | None) -> AsyncRetrying:
        async def _sleep(seconds: float) -> None:
            await self._clock.sleep(seconds, token)

        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.upload_retries + 1)),
            wait=wait_fixed(self._settings.upload_retry_backoff),
            retry=retry_if_exception_type((TransientNetworkError, ServerError)),
            sleep=_sleep,
            before_sleep=_log_retry,
        )

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return read_payload(response)
        except ValueError:
            LOGGER.debug("Upload response claimed JSON but did not parse; using raw text")
            return response.text


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    LOGGER.debug("Upload attempt %d failed (%s); retrying", retry_state.attempt_number, error)
