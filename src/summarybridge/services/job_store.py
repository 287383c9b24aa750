"""Persisted job identifier and language preference.

The job identifier is the only mutable state shared between the upload,
polling, and chat flows. Every write goes through :class:`JobStore`, which
broadcasts the new value so observers never read the store themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from ..core.messages import Language
from ..events import EventBus, JobIdChanged, LanguageChanged

if TYPE_CHECKING:  # pragma: no cover
    from ..core.clock import Clock
    from .kv_store import KeyValueStore

LOGGER = logging.getLogger(__name__)

JOB_ID_KEY = "nn_summary_id"
CREATED_AT_KEY = "nn_summary_created_at"
LANGUAGE_KEY = "selectedLanguage"


class JobStore:
    """Reads and writes the current job identifier."""

    def __init__(self, store: KeyValueStore, event_bus: EventBus, clock: Clock) -> None:
        self._store = store
        self._bus = event_bus
        self._clock = clock

    def current_id(self) -> int | None:
        raw = self._store.get(JOB_ID_KEY)
        if raw is None:
            return None
        try:
            return int(raw.strip(), 10)
        except ValueError:
            LOGGER.warning("Ignoring non-numeric stored job id %r", raw)
            return None

    def created_at(self) -> datetime | None:
        raw = self._store.get(CREATED_AT_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def save(self, job_id: int) -> None:
        """Persist a freshly submitted identifier."""

        self._store.set(JOB_ID_KEY, str(job_id))
        self._store.set(CREATED_AT_KEY, self._clock.now().isoformat())
        LOGGER.debug("JobStore.save: job_id=%s", job_id)
        self._bus.publish(JobIdChanged(job_id=job_id))

    def reaffirm(self, job_id: int) -> None:
        """Confirm ``job_id`` as current after a result; never clears it."""

        if self.current_id() != job_id:
            self._store.set(JOB_ID_KEY, str(job_id))
            if self.created_at() is None:
                self._store.set(CREATED_AT_KEY, self._clock.now().isoformat())
        self._bus.publish(JobIdChanged(job_id=job_id))

    def clear(self) -> None:
        self._store.remove(JOB_ID_KEY)
        self._store.remove(CREATED_AT_KEY)
        LOGGER.debug("JobStore.clear")
        self._bus.publish(JobIdChanged(job_id=None))

    def announce(self) -> int | None:
        """Broadcast the stored identifier so late observers can sync."""

        job_id = self.current_id()
        self._bus.publish(JobIdChanged(job_id=job_id))
        return job_id


class LanguagePreference:
    """Locale used for upload requests and validation messages."""

    def __init__(self, store: KeyValueStore, event_bus: EventBus, default: Language | str = Language.NL) -> None:
        self._store = store
        self._bus = event_bus
        self._default = Language.coerce(default)

    def get(self) -> Language:
        raw = self._store.get(LANGUAGE_KEY)
        if raw in (Language.NL.value, Language.FR.value):
            return Language(raw)
        return self._default

    def set(self, language: Language | str) -> Language:
        resolved = Language.coerce(language)
        self._store.set(LANGUAGE_KEY, resolved.value)
        self._bus.publish(LanguageChanged(language=resolved.value))
        return resolved


__all__ = ["JobStore", "LanguagePreference", "JOB_ID_KEY", "CREATED_AT_KEY", "LANGUAGE_KEY"]
