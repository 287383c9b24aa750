"""Single-shot follow-up questions about the current job."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterator

import httpx

from ..events import ChatEntryAdded, ChatEntryAnswered, EventBus, JobIdChanged
from ..net.errors import Cancelled, SummaryBridgeError
from ..net.request import send_with_deadline
from . import messages
from .messages import Language
from .models import ChatEntry
from .normalizer import normalize

if TYPE_CHECKING:  # pragma: no cover
    from ..services.job_store import JobStore
    from ..services.settings import Settings
    from .cancellation import CancellationToken
    from .clock import Clock

LOGGER = logging.getLogger(__name__)


class ChatHistory:
    """Ordered, append-only list of chat entries keyed by creation time."""

    def __init__(self) -> None:
        self._entries: list[ChatEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ChatEntry]:
        return iter(self._entries)

    def append(self, entry: ChatEntry) -> None:
        if any(existing.id == entry.id for existing in self._entries):
            raise ValueError(f"Duplicate chat entry id {entry.id}")
        self._entries.append(entry)

    def get(self, entry_id: int) -> ChatEntry | None:
        for entry in self._entries:
            if entry.id == entry_id:
                return entry
        return None

    def resolve(self, entry_id: int, answer: str) -> ChatEntry | None:
        """Replace the pending marker of ``entry_id`` with ``answer``."""

        entry = self.get(entry_id)
        if entry is None or not entry.is_pending:
            return None
        entry.answer = answer
        return entry

    def entries(self) -> list[ChatEntry]:
        return list(self._entries)


class ChatTurnDispatcher:
    """Sends one question per turn, tied to the current job identifier.

    The dispatcher tracks the identifier through :class:`JobIdChanged`
    broadcasts rather than reading the store on every turn.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        job_store: JobStore,
        event_bus: EventBus,
        clock: Clock,
        *,
        language: Language | str | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._bus = event_bus
        self._clock = clock
        self.language = Language.coerce(language or settings.language)
        self.history = ChatHistory()
        self._job_id: int | None = job_store.current_id()
        self._last_entry_id = 0
        self._closed = False
        self._bus.subscribe(JobIdChanged, self._on_job_id_changed)

    @property
    def job_id(self) -> int | None:
        return self._job_id

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(JobIdChanged, self._on_job_id_changed)

    async def send_turn(
        self,
        job_id: int | None,
        question: str,
        *,
        token: CancellationToken | None = None,
    ) -> str:
        """Return the answer to ``question`` for ``job_id``.

        Without an identifier no request is made and the localized
        "select a file first" message is returned. Transport failures come
        back as ``"Error: ..."`` answers; only :class:`Cancelled` propagates.
        """

        if not job_id:
            return messages.localized("select_file_first", self.language)

        form = {
            "chatInput": question,
            "messages[0][role]": "user",
            "messages[0][content]": question,
            "executionId": str(job_id),
        }
        try:
            response = await send_with_deadline(
                self._client,
                "POST",
                self._settings.chat_url,
                timeout=self._settings.chat_timeout,
                token=token,
                data=form,
                headers=self._settings.default_headers or None,
            )
        except Cancelled:
            raise
        except SummaryBridgeError as exc:
            LOGGER.warning("Chat turn for job %s failed: %s", job_id, exc)
            return messages.error_message(exc.message)

        payload = _read_json(response)
        if payload is None:
            LOGGER.debug("Chat response for job %s was not JSON (status %s)", job_id, response.status_code)
            return messages.NO_JSON_RETURNED
        return normalize(payload, max_depth=self._settings.unwrap_depth)

    async def ask(self, question: str, *, token: CancellationToken | None = None) -> ChatEntry | None:
        """Append a pending entry for ``question`` and fill in its answer.

        Blank questions are ignored. When the turn is cancelled the entry
        keeps its pending marker.
        """

        text = (question or "").strip()
        if not text:
            return None

        entry = ChatEntry(id=self._next_entry_id(), question=text)
        self.history.append(entry)
        self._bus.publish(ChatEntryAdded(entry_id=entry.id, question=text))

        answer = await self.send_turn(self._job_id, text, token=token)
        self.history.resolve(entry.id, answer)
        self._bus.publish(ChatEntryAnswered(entry_id=entry.id, answer=answer))
        return entry

    def _next_entry_id(self) -> int:
        candidate = self._clock.monotonic_ns()
        if candidate <= self._last_entry_id:
            candidate = self._last_entry_id + 1
        self._last_entry_id = candidate
        return candidate

    def _on_job_id_changed(self, event: JobIdChanged) -> None:
        self._job_id = event.job_id


def _read_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


__all__ = ["ChatHistory", "ChatTurnDispatcher"]
