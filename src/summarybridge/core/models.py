"""Job, chat, and poll outcome models.

These dataclasses carry the state the engine shares with the presentation
layer. ``Job`` enforces its own forward-only lifecycle.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

PENDING_MARKER = "…"


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class JobState(Enum):
    """Lifecycle of a submitted document.

    Values:
        SUBMITTING: Upload request in flight.
        SUBMITTED: Remote service acknowledged the upload with an identifier.
        POLLING: Status endpoint is being queried.
        RESOLVED: A usable result was obtained.
        FAILED: Submission or polling ended without a result.
    """

    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    POLLING = "polling"
    RESOLVED = "resolved"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.SUBMITTING: frozenset({JobState.SUBMITTED, JobState.FAILED}),
    JobState.SUBMITTED: frozenset({JobState.POLLING, JobState.FAILED}),
    JobState.POLLING: frozenset({JobState.RESOLVED, JobState.FAILED}),
    JobState.RESOLVED: frozenset(),
    JobState.FAILED: frozenset(),
}


class InvalidJobTransition(ValueError):
    """Raised when a job is moved backwards or out of a terminal state."""


@dataclass(slots=True)
class Job:
    """One submitted document-processing request.

    Attributes:
        id: Remote-assigned numeric identifier, ``None`` until acknowledged.
        created_at: When the job was created locally.
        state: Current lifecycle state.
    """

    id: int | None = None
    created_at: datetime = field(default_factory=_utcnow)
    state: JobState = JobState.SUBMITTING

    @classmethod
    def restored(cls, job_id: int, created_at: datetime | None = None) -> "Job":
        """Build a job from a persisted identifier, already past submission."""
        return cls(id=job_id, created_at=created_at or _utcnow(), state=JobState.SUBMITTED)

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.RESOLVED, JobState.FAILED)

    def require_id(self) -> int:
        """Return the acknowledged identifier; raise if the job was never acknowledged."""
        if self.id is None:
            raise InvalidJobTransition(f"Job in state {self.state.value} has no identifier yet")
        return self.id

    def advance(self, target: JobState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidJobTransition(
                f"Job {self.id} cannot move from {self.state.value} to {target.value}"
            )
        self.state = target

    def mark_submitted(self, job_id: int) -> None:
        self.advance(JobState.SUBMITTED)
        self.id = job_id

    def mark_polling(self) -> None:
        self.advance(JobState.POLLING)

    def mark_resolved(self) -> None:
        self.advance(JobState.RESOLVED)

    def mark_failed(self) -> None:
        self.advance(JobState.FAILED)


@dataclass(slots=True)
class DocumentFile:
    """In-memory document ready for a multipart upload."""

    name: str
    content: bytes
    content_type: str = "application/pdf"

    @classmethod
    def from_path(cls, path: Path | str) -> "DocumentFile":
        source = Path(path).expanduser()
        guessed, _ = mimetypes.guess_type(source.name)
        return cls(
            name=source.name,
            content=source.read_bytes(),
            content_type=guessed or "application/octet-stream",
        )

    def as_multipart(self) -> tuple[str, bytes, str]:
        return (self.name, self.content, self.content_type)


@dataclass(slots=True)
class ChatEntry:
    """A question and its (possibly pending) answer.

    ``id`` is a monotonic timestamp in nanoseconds and is unique per process.
    """

    id: int
    question: str
    answer: str = PENDING_MARKER

    @property
    def is_pending(self) -> bool:
        return self.answer == PENDING_MARKER


class PollStatus(Enum):
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class PollOutcome:
    """Final result of one ``poll_until_ready`` invocation.

    Attributes:
        status: How the poll ended.
        job_id: The job that was polled.
        attempts: Number of status requests issued.
        content: Normalized result text when resolved, else ``None``.
        html: Rendered markup for the content slot (result or user-facing message).
    """

    status: PollStatus
    job_id: int
    attempts: int = 0
    content: str | None = None
    html: str = ""

    @property
    def resolved(self) -> bool:
        return self.status is PollStatus.RESOLVED


__all__ = [
    "PENDING_MARKER",
    "ChatEntry",
    "DocumentFile",
    "InvalidJobTransition",
    "Job",
    "JobState",
    "PollOutcome",
    "PollStatus",
]
