"""
residuals/audit/recorder.py

Append-only audit recorder and the sink contract it writes through.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Protocol

from residuals.domain.audit import AuditEntry
from residuals.domain.errors import AuditWriteError

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class AuditSink(Protocol):
    """
    Storage collaborator that durably appends audit entries.
    """

    def append(self, entry: AuditEntry) -> None:
        ...


class InMemoryAuditSink:
    """
    Thread-safe list-backed sink for tests and dry runs.
    """

    def __init__(self) -> None:
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()

    def append(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditRecorder:
    """
    Stamps and writes audit entries; safe for concurrent callers.

    Timestamps are strictly increasing across every entry this recorder
    writes. A sink failure is raised as AuditWriteError, never swallowed.
    """

    def __init__(
        self,
        sink: AuditSink,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._sink = sink
        self._clock = clock
        self._last_timestamp: datetime | None = None
        self._lock = threading.Lock()

    @property
    def sink(self) -> AuditSink:
        return self._sink

    def record(self, entry: AuditEntry) -> AuditEntry:
        """
        Append one entry and return it as written (with its timestamp).
        """

        with self._lock:
            timestamp = self._clock()
            if self._last_timestamp is not None and timestamp <= self._last_timestamp:
                timestamp = self._last_timestamp + _TICK
            stamped = replace(entry, timestamp=timestamp)
            try:
                self._sink.append(stamped)
            except Exception as exc:
                logger.exception(
                    "Audit write failed action=%s processor=%s line=%s",
                    entry.action,
                    entry.processor_name,
                    entry.source_line,
                )
                raise AuditWriteError(
                    f"Audit sink rejected '{entry.action}' entry: {exc}",
                    action=entry.action,
                    source_line=entry.source_line,
                ) from exc
            self._last_timestamp = timestamp
        return stamped

    def record_many(self, entries: Iterable[AuditEntry]) -> int:
        """
        Append entries in order; stops at the first failure.
        """

        written = 0
        for entry in entries:
            self.record(entry)
            written += 1
        return written
