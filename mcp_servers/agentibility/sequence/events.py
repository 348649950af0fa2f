"""Unified event log for one sequence run.

Insertion order is authoritative. Timestamps are ISO-8601 UTC with
millisecond precision and are clamped so they never go backwards in log order
(wall clock adjustments would otherwise reorder them).
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class StepResult:
    success: bool
    duration_ms: int = 0
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        out["duration_ms"] = self.duration_ms
        return out


@dataclass(slots=True)
class StepEvent:
    index: int
    step: Any
    result: StepResult
    timestamp: str = ""
    type: str = field(default="step", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "index": self.index,
            "step": self.step,
            "result": self.result.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass(slots=True)
class NavigationEvent:
    from_url: str
    to_url: str
    timestamp: str = ""
    type: str = field(default="navigation", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "from": self.from_url, "to": self.to_url, "timestamp": self.timestamp}


@dataclass(slots=True)
class ConsoleEvent:
    level: str
    message: str
    timestamp: str = ""
    type: str = field(default="console", init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "level": self.level, "message": self.message, "timestamp": self.timestamp}


@dataclass(slots=True)
class NetworkEvent:
    method: str
    url: str
    status: int | None = None
    error: str | None = None
    timing: int | None = None
    timestamp: str = ""
    type: str = field(default="network", init=False)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"type": self.type, "method": self.method, "url": self.url}
        if self.status is not None:
            out["status"] = self.status
        if self.error is not None:
            out["error"] = self.error
        if self.timing is not None:
            out["timing"] = self.timing
        out["timestamp"] = self.timestamp
        return out


Event = StepEvent | NavigationEvent | ConsoleEvent | NetworkEvent


class EventLog:
    """Append-only, single-owner list of events."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock
        self._events: list[Event] = []
        self._last: datetime | None = None

    def _stamp(self) -> str:
        now = self._clock()
        if self._last is not None and now < self._last:
            now = self._last
        self._last = now
        return format_timestamp(now)

    def append(self, event: Event) -> Event:
        event.timestamp = self._stamp()
        self._events.append(event)
        return event

    def to_list(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
