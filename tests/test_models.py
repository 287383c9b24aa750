"""Tests for :mod:`summarybridge.core.models` and :mod:`summarybridge.core.messages`."""

from __future__ import annotations

from pathlib import Path

import pytest

from summarybridge.core import messages
from summarybridge.core.messages import Language
from summarybridge.core.models import (
    PENDING_MARKER,
    ChatEntry,
    DocumentFile,
    InvalidJobTransition,
    Job,
    JobState,
    PollOutcome,
    PollStatus,
)


class TestJobLifecycle:
    def test_forward_path(self) -> None:
        job = Job()
        assert job.state is JobState.SUBMITTING
        assert job.id is None

        job.mark_submitted(12)
        job.mark_polling()
        job.mark_resolved()

        assert job.id == 12
        assert job.is_terminal

    @pytest.mark.parametrize("steps", [0, 1, 2])
    def test_failure_is_reachable_from_every_active_state(self, steps: int) -> None:
        job = Job()
        if steps >= 1:
            job.mark_submitted(1)
        if steps >= 2:
            job.mark_polling()

        job.mark_failed()

        assert job.state is JobState.FAILED

    @pytest.mark.parametrize("terminal", [JobState.RESOLVED, JobState.FAILED])
    def test_terminal_states_are_final(self, terminal: JobState) -> None:
        job = Job(id=1, state=terminal)

        with pytest.raises(InvalidJobTransition):
            job.mark_polling()
        with pytest.raises(InvalidJobTransition):
            job.mark_failed()

    def test_backwards_transition_is_rejected(self) -> None:
        job = Job.restored(4)
        job.mark_polling()

        with pytest.raises(ValueError):
            job.advance(JobState.SUBMITTED)

    def test_restored_job_is_ready_to_poll(self) -> None:
        job = Job.restored(9)

        assert job.state is JobState.SUBMITTED
        assert job.id == 9

    def test_require_id_returns_acknowledged_identifier(self) -> None:
        job = Job()
        job.mark_submitted(41)

        assert job.require_id() == 41

    def test_require_id_rejects_unacknowledged_job(self) -> None:
        with pytest.raises(InvalidJobTransition, match="no identifier"):
            Job().require_id()


class TestDocumentFile:
    def test_from_path_guesses_content_type(self, tmp_path: Path) -> None:
        path = tmp_path / "balans.pdf"
        path.write_bytes(b"%PDF")

        document = DocumentFile.from_path(path)

        assert document.as_multipart() == ("balans.pdf", b"%PDF", "application/pdf")

    def test_unknown_extension_falls_back_to_octet_stream(self, tmp_path: Path) -> None:
        path = tmp_path / "blob.unknownext"
        path.write_bytes(b"x")

        assert DocumentFile.from_path(path).content_type == "application/octet-stream"


def test_chat_entry_starts_pending() -> None:
    entry = ChatEntry(id=1, question="q")

    assert entry.answer == PENDING_MARKER
    assert entry.is_pending
    entry.answer = "a"
    assert not entry.is_pending


def test_poll_outcome_resolved_flag() -> None:
    assert PollOutcome(status=PollStatus.RESOLVED, job_id=1).resolved
    assert not PollOutcome(status=PollStatus.CANCELLED, job_id=1).resolved


class TestMessages:
    def test_language_coercion(self) -> None:
        assert Language.coerce("fr") is Language.FR
        assert Language.coerce(" NL ") is Language.NL
        assert Language.coerce("de") is Language.NL
        assert Language.coerce(None) is Language.NL

    def test_localized_lookup(self) -> None:
        assert messages.localized("send_button", "FR") == "Envoyer"
        assert messages.localized("send_button", Language.NL) == "Verzend"
        assert messages.localized("upload_button", "NL") == "Upload Balans/Jaarrekening"

    def test_formatted_messages(self) -> None:
        assert messages.server_aborted(503) == "Server returned 503, aborting."
        assert messages.error_message("boom") == "Error: boom"
        assert messages.error_message("") == "Error: Upload failed"
