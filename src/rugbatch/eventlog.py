"""Structured event log with swappable sinks.

The pipeline, payload assembler and API record their operational events
through an ``EventLog`` handed to them at construction time. Each entry is
also forwarded to the standard ``logging`` tree so console handlers keep
working; the sink decides where entries are kept for later inspection:

- ``MemorySink`` keeps the most recent entries in a bounded ring buffer.
- ``JsonlFileSink`` appends every entry to a JSON-lines file and reads it
  back for queries.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections import deque
from collections.abc import Iterable
from datetime import UTC, datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3

    @property
    def stdlib_level(self) -> int:
        return {
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]


class LogEntry(BaseModel):
    """One recorded event."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    level: LogLevel
    category: str
    message: str
    chunk_index: int | None = None
    batch_id: str | None = None
    sku: str | None = None
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class LogSink(ABC):
    """Storage for log entries."""

    @abstractmethod
    def write(self, entry: LogEntry) -> None: ...

    @abstractmethod
    def read(self) -> list[LogEntry]: ...

    @abstractmethod
    def clear(self) -> None: ...


class MemorySink(LogSink):
    """Keeps the newest ``capacity`` entries in memory."""

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: deque[LogEntry] = deque(maxlen=capacity)

    def write(self, entry: LogEntry) -> None:
        self._entries.append(entry)

    def read(self) -> list[LogEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class JsonlFileSink(LogSink):
    """Appends entries to a JSON-lines file."""

    def __init__(self, path: Path):
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write(self, entry: LogEntry) -> None:
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")

    def read(self) -> list[LogEntry]:
        if not self.path.exists():
            return []
        entries = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                entries.append(LogEntry.model_validate_json(line))
            except ValueError:
                logger.warning(f"Skipping unreadable event log line in {self.path}")
        return entries

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class EventLog:
    """Records categorized events to a sink and to stdlib logging."""

    def __init__(self, sink: LogSink | None = None, min_level: LogLevel = LogLevel.DEBUG):
        self.sink = sink or MemorySink()
        self.min_level = min_level

    def record(
        self,
        level: LogLevel,
        category: str,
        message: str,
        *,
        chunk_index: int | None = None,
        batch_id: str | None = None,
        sku: str | None = None,
        error: BaseException | str | None = None,
        **data: Any,
    ) -> LogEntry | None:
        if level < self.min_level:
            return None
        entry = LogEntry(
            level=level,
            category=category,
            message=message,
            chunk_index=chunk_index,
            batch_id=batch_id,
            sku=sku,
            error=str(error) if error is not None else None,
            data=data,
        )
        self.sink.write(entry)
        logging.getLogger(f"rugbatch.events.{category.lower()}").log(
            level.stdlib_level, message
        )
        return entry

    def debug(self, category: str, message: str, **kwargs: Any) -> LogEntry | None:
        return self.record(LogLevel.DEBUG, category, message, **kwargs)

    def info(self, category: str, message: str, **kwargs: Any) -> LogEntry | None:
        return self.record(LogLevel.INFO, category, message, **kwargs)

    def warn(self, category: str, message: str, **kwargs: Any) -> LogEntry | None:
        return self.record(LogLevel.WARN, category, message, **kwargs)

    def error(self, category: str, message: str, **kwargs: Any) -> LogEntry | None:
        return self.record(LogLevel.ERROR, category, message, **kwargs)

    def entries(
        self,
        category: str | None = None,
        level: LogLevel | None = None,
        chunk_index: int | None = None,
    ) -> list[LogEntry]:
        """Entries matching every given filter, oldest first."""
        return [
            e
            for e in self.sink.read()
            if (category is None or e.category == category)
            and (level is None or e.level >= level)
            and (chunk_index is None or e.chunk_index == chunk_index)
        ]

    def failures(self) -> list[LogEntry]:
        return self.entries(level=LogLevel.ERROR)

    def export_json(self, entries: Iterable[LogEntry] | None = None) -> str:
        selected = list(entries) if entries is not None else self.sink.read()
        return json.dumps([e.model_dump(mode="json") for e in selected], indent=2)

    def clear(self) -> None:
        self.sink.clear()


def create_event_log(capacity: int = 1000, path: Path | None = None) -> EventLog:
    """Build an event log backed by a file when ``path`` is set, memory otherwise."""
    if path is not None:
        return EventLog(JsonlFileSink(path))
    return EventLog(MemorySink(capacity))
