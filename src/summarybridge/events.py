"""In-process publish/subscribe bus and the events the client broadcasts.

Upload, polling, and chat are independent observers of one shared job
identifier. Instead of reading the store directly, each subscribes to the
events below and converges on the same state.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for every broadcast event."""


# Event types published once per poll attempt; kept out of the debug log.
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Job identifier
# =============================================================================


@dataclass(slots=True)
class JobIdChanged(Event):
    """The persisted job identifier was set, re-affirmed, or cleared.

    Attributes:
        job_id: The current identifier, or ``None`` when cleared.
    """

    job_id: int | None


@dataclass(slots=True)
class LanguageChanged(Event):
    language: str


# =============================================================================
# Submission
# =============================================================================


@dataclass(slots=True)
class UploadStarted(Event):
    """Emitted right before the upload request is issued.

    Attributes:
        filename: Name of the uploaded document.
        language: Locale requested for the response.
    """

    filename: str
    language: str


@dataclass(slots=True)
class JobSubmitted(Event):
    job_id: int


@dataclass(slots=True)
class SubmissionFailed(Event):
    """Emitted when an upload ends without a job identifier.

    Attributes:
        error_code: Machine-readable code from the error taxonomy.
        message: Text shown to the user.
    """

    error_code: str
    message: str


# =============================================================================
# Polling
# =============================================================================


@dataclass(slots=True)
class PollStarted(Event):
    """Emitted when a poll invocation becomes the active one.

    Attributes:
        job_id: The job being polled.
        generation: Monotonic counter identifying the invocation.
    """

    job_id: int
    generation: int


@dataclass(slots=True)
class PollAttempted(Event):
    """Emitted after each status request.

    Attributes:
        job_id: The job being polled.
        attempt: One-based attempt number.
        outcome: ``"not_ready"``, ``"error"``, ``"resolved"`` or ``"terminal"``.
        status: HTTP status code when a response was received.
    """

    job_id: int
    attempt: int
    outcome: str
    status: int | None = None


_QUIET_EVENT_TYPES.add(PollAttempted)


@dataclass(slots=True)
class ResultReady(Event):
    """A usable result was obtained and rendered.

    Attributes:
        job_id: The resolved job.
        content: Normalized result text.
        html: Sanitized markup for display.
    """

    job_id: int
    content: str
    html: str


@dataclass(slots=True)
class ResultUnavailable(Event):
    """Polling ended without a result; ``message`` is user-facing."""

    job_id: int
    message: str
    error_code: str = ""


# =============================================================================
# Presentation
# =============================================================================


@dataclass(slots=True)
class ViewStateChanged(Event):
    """Snapshot of what the upload view should display.

    Attributes:
        loading: Whether a spinner should be shown.
        html: Markup for the content slot (result or message).
        show_result: Whether the content slot is visible.
        show_chat: Whether the chat panel is available.
    """

    loading: bool
    html: str
    show_result: bool
    show_chat: bool


@dataclass(slots=True)
class ChatEntryAdded(Event):
    entry_id: int
    question: str


@dataclass(slots=True)
class ChatEntryAnswered(Event):
    entry_id: int
    answer: str


class EventBus(Generic[E]):
    """Typed publish/subscribe bus.

    Handlers run synchronously in subscription order. Bound methods are held
    through weak references so that a torn-down observer drops out of the bus
    on its own; plain functions and lambdas are held strongly.

    Example::

        bus = EventBus()
        bus.subscribe(JobIdChanged, lambda event: print(event.job_id))
        bus.publish(JobIdChanged(job_id=42))

    The bus is not thread-safe; publish from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register ``handler`` for ``event_type``.

        Subscribing the same handler twice results in two invocations.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to every handler of its exact type.

        A handler that raises is logged and skipped; the remaining handlers
        still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead: list[_HandlerRef] = []
        # Iterate over a copy: handlers may subscribe or unsubscribe while running.
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for everything else."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "JobIdChanged",
    "LanguageChanged",
    "UploadStarted",
    "JobSubmitted",
    "SubmissionFailed",
    "PollStarted",
    "PollAttempted",
    "ResultReady",
    "ResultUnavailable",
    "ViewStateChanged",
    "ChatEntryAdded",
    "ChatEntryAnswered",
]
