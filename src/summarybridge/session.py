"""Upload → wait → poll → render workflow for one user session.

:class:`SummarySession` wires the submitter, poller, chat dispatcher, and
company lookup onto one event bus and one key-value store, and turns their
outcomes into :class:`ViewState` snapshots for the presentation layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

import httpx

from .core import messages
from .core.cancellation import CancellationToken
from .core.chat import ChatTurnDispatcher
from .core.clock import Clock, SystemClock
from .core.messages import Language
from .core.models import ChatEntry, DocumentFile, Job, PollOutcome, PollStatus
from .core.poller import ResultPoller
from .core.renderer import render_message
from .core.submitter import JobSubmitter
from .events import EventBus, ViewStateChanged
from .net.errors import Cancelled, NoIdentifierReturned, SummaryBridgeError
from .services.company_lookup import CompanyLookup, CompanyRecord
from .services.job_store import JobStore, LanguagePreference
from .services.kv_store import KeyValueStore
from .services.settings import Settings

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ViewState:
    """What the upload view should display.

    Attributes:
        loading: Whether a spinner is shown.
        html: Sanitized markup for the content slot.
        show_result: Whether the content slot is visible.
        show_chat: Whether the chat panel is offered; only after a result.
    """

    loading: bool = False
    html: str = ""
    show_result: bool = False
    show_chat: bool = False


class SummarySession:
    """Owns every long-running operation of one session.

    Only one upload or resume workflow is active at a time; starting another
    cancels the previous one, including its initial delay and any poll it
    started. :meth:`close` cancels everything that is still outstanding.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        store: KeyValueStore,
        *,
        event_bus: EventBus | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings
        self.event_bus = event_bus or EventBus()
        self.clock: Clock = clock or SystemClock()
        self.job_store = JobStore(store, self.event_bus, self.clock)
        self.language = LanguagePreference(store, self.event_bus, default=settings.language)
        self.submitter = JobSubmitter(client, settings, self.job_store, self.event_bus, self.clock)
        self.poller = ResultPoller(client, settings, self.job_store, self.event_bus, self.clock)
        self.chat = ChatTurnDispatcher(
            client,
            settings,
            self.job_store,
            self.event_bus,
            self.clock,
            language=self.language.get(),
        )
        self.company_lookup = CompanyLookup(client, settings)
        self._view = ViewState()
        self._workflow_token: CancellationToken | None = None
        self._closed = False
        self.job_store.announce()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def saved_job_id(self) -> int | None:
        return self.job_store.current_id()

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def upload(self, document: DocumentFile | None) -> PollOutcome | None:
        """Submit ``document``, wait for processing, then poll for the result.

        Returns the poll outcome, or ``None`` when the workflow ended before
        polling (validation failure, upload failure, or cancellation).
        """

        language = self.language.get()
        if document is None:
            self._update_view(
                show_result=True,
                html=render_message(messages.localized("select_file_first", language)),
            )
            return None

        token = self._begin_workflow("upload")
        self._update_view(loading=True, show_result=False, show_chat=False, html="")

        try:
            job = await self.submitter.submit_job(document, language=language, token=token)
        except Cancelled:
            return None
        except NoIdentifierReturned as exc:
            self._finish_with_message(exc.message)
            return None
        except SummaryBridgeError as exc:
            self._finish_with_message(messages.error_message(exc.message))
            return None

        self._update_view(
            show_result=True,
            html=render_message(messages.localized("upload_succeeded", language)),
        )
        try:
            await self.clock.sleep(self.settings.initial_poll_delay, token)
        except Cancelled:
            LOGGER.debug("Initial delay for job %s interrupted", job.id)
            return None

        return await self._poll(job.require_id(), job)

    async def resume(self) -> PollOutcome | None:
        """Poll again for the persisted job identifier, if there is one."""

        job_id = self.job_store.current_id()
        if job_id is None:
            LOGGER.debug("Nothing to resume; no saved job id")
            return None

        self._begin_workflow("resume")
        self._update_view(loading=True, show_result=False, html="")
        job = Job.restored(job_id, self.job_store.created_at())
        return await self._poll(job_id, job)

    def clear_saved_id(self) -> None:
        self.job_store.clear()

    def set_language(self, language: Language | str) -> Language:
        resolved = self.language.set(language)
        self.chat.language = resolved
        return resolved

    async def ask(self, question: str) -> ChatEntry | None:
        return await self.chat.ask(question)

    async def lookup_company(self, vat: str) -> CompanyRecord:
        return await self.company_lookup.lookup(vat)

    def close(self) -> None:
        """Cancel outstanding work and detach from the event bus."""

        if self._closed:
            return
        self._closed = True
        if self._workflow_token is not None:
            self._workflow_token.cancel("session closed")
            self._workflow_token = None
        self.poller.close()
        self.chat.close()
        LOGGER.debug("SummarySession closed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _poll(self, job_id: int, job: Job) -> PollOutcome:
        outcome = await self.poller.poll_until_ready(job_id, job=job)
        if outcome.status is PollStatus.RESOLVED:
            self._update_view(loading=False, show_result=True, show_chat=True, html=outcome.html)
        elif outcome.status is PollStatus.UNAVAILABLE:
            self._update_view(loading=False, show_result=True, html=outcome.html)
        return outcome

    def _begin_workflow(self, label: str) -> CancellationToken:
        if self._workflow_token is not None:
            self._workflow_token.cancel(f"superseded by {label}")
        self.poller.cancel("superseded")
        token = CancellationToken(label=label)
        self._workflow_token = token
        return token

    def _finish_with_message(self, message: str) -> None:
        self._update_view(loading=False, show_result=True, html=render_message(message))

    def _update_view(self, **changes: Any) -> None:
        self._view = replace(self._view, **changes)
        view = self._view
        self.event_bus.publish(
            ViewStateChanged(
                loading=view.loading,
                html=view.html,
                show_result=view.show_result,
                show_chat=view.show_chat,
            )
        )


__all__ = ["SummarySession", "ViewState"]
