"""Page event collectors feeding an `EventLog`.

Each collector owns the listeners it registers and removes exactly those on
`detach()`. Use `attached()` so detachment happens on every exit path.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Iterator, Sequence
from contextlib import ExitStack, contextmanager
from typing import TYPE_CHECKING, Any, Protocol

from .events import ConsoleEvent, EventLog, NavigationEvent, NetworkEvent

if TYPE_CHECKING:
    from ..page import ConsoleMessage, FrameInfo, Page, PageRequest, PageResponse

logger = logging.getLogger("mcp.agentibility.sequence")

CONSOLE_PRIORITY = {"debug": 0, "log": 1, "info": 2, "warn": 3, "warning": 3, "error": 4}
CONSOLE_MIN_LEVEL = {"all": 0, "warn": 3, "error": 4}


def compile_filter(pattern: str | None) -> re.Pattern[str] | None:
    """Compile a user regex; an empty or invalid pattern means no filter."""
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error:
        logger.debug("ignoring invalid filter pattern %r", pattern)
        return None


def _accepts(pattern: re.Pattern[str] | None, text: str) -> bool:
    return pattern is None or pattern.search(text) is not None


class Collector(Protocol):
    def attach(self, page: Page) -> None: ...

    def detach(self) -> None: ...


class _PageCollector:
    """Bookkeeping for (event, listener) pairs registered on one page."""

    def __init__(self, log: EventLog) -> None:
        self.log = log
        self._page: Page | None = None
        self._registered: list[tuple[str, Any]] = []

    def _listen(self, page: Page, event: str, listener: Any) -> None:
        page.on(event, listener)
        self._registered.append((event, listener))

    def attach(self, page: Page) -> None:
        if self._page is not None:
            raise RuntimeError(f"{type(self).__name__} is already attached")
        self._page = page
        self._register(page)

    def _register(self, page: Page) -> None:
        raise NotImplementedError

    def detach(self) -> None:
        page, self._page = self._page, None
        if page is None:
            return
        for event, listener in self._registered:
            page.off(event, listener)
        self._registered.clear()


class ConsoleCollector(_PageCollector):
    def __init__(self, log: EventLog, level: str = "all", pattern: str | None = None) -> None:
        super().__init__(log)
        self.min_priority = CONSOLE_MIN_LEVEL.get(level or "all", 0)
        self.filter = compile_filter(pattern)

    def _register(self, page: Page) -> None:
        self._listen(page, "console", self.on_console)

    def accepts(self, level: str, message: str) -> bool:
        if CONSOLE_PRIORITY.get(level, 1) < self.min_priority:
            return False
        return _accepts(self.filter, message)

    def on_console(self, message: ConsoleMessage) -> None:
        if not self.accepts(message.type, message.text):
            return
        level = "warn" if message.type == "warning" else message.type
        self.log.append(ConsoleEvent(level=level, message=message.text))


class NetworkCollector(_PageCollector):
    """Pairs requests with their response/failure through a correlation id."""

    def __init__(self, log: EventLog, pattern: str | None = None, include_body: bool = False) -> None:
        super().__init__(log)
        self.filter = compile_filter(pattern)
        # Accepted for compatibility; bodies are never captured.
        self.include_body = include_body
        self.pending: dict[str, tuple[str, str, float]] = {}
        self._correlation: dict[str, str] = {}

    def _register(self, page: Page) -> None:
        self._listen(page, "request", self.on_request)
        self._listen(page, "response", self.on_response)
        self._listen(page, "requestfailed", self.on_request_failed)

    def on_request(self, request: PageRequest) -> str | None:
        if not _accepts(self.filter, request.url):
            return None
        corr = uuid.uuid4().hex
        self.pending[corr] = (request.method, request.url, time.monotonic())
        self._correlation[request.key] = corr
        return corr

    def _resolve(self, request: PageRequest) -> tuple[str, str, int] | None:
        corr = self._correlation.pop(request.key, None)
        if corr is None:
            return None
        entry = self.pending.pop(corr, None)
        if entry is None:
            return None
        method, url, started = entry
        return method, url, int((time.monotonic() - started) * 1000)

    def on_response(self, response: PageResponse) -> None:
        resolved = self._resolve(response.request)
        if resolved is None:
            return
        method, url, timing = resolved
        self.log.append(NetworkEvent(method=method, url=url, status=response.status, timing=timing))

    def on_request_failed(self, request: PageRequest, error_text: str | None = None) -> None:
        resolved = self._resolve(request)
        if resolved is None:
            return
        method, url, timing = resolved
        self.log.append(NetworkEvent(method=method, url=url, error=error_text or "Request failed", timing=timing))

    def detach(self) -> None:
        super().detach()
        if self.pending:
            logger.debug("dropping %d unresolved request(s)", len(self.pending))
        self.pending.clear()
        self._correlation.clear()


class NavigationCollector(_PageCollector):
    def __init__(self, log: EventLog, initial_url: str) -> None:
        super().__init__(log)
        self.last_url = initial_url

    def _register(self, page: Page) -> None:
        self._listen(page, "framenavigated", self.on_frame_navigated)

    def on_frame_navigated(self, frame: FrameInfo) -> None:
        if not frame.is_main or self._page is None:
            return
        current = self._page.url()
        if current == self.last_url:
            return
        self.log.append(NavigationEvent(from_url=self.last_url, to_url=current))
        self.last_url = current


@contextmanager
def attached(page: Page, collectors: Sequence[Collector]) -> Iterator[Sequence[Collector]]:
    """Attach collectors for the duration of the block; always detach them."""
    with ExitStack() as stack:
        for collector in collectors:
            stack.callback(collector.detach)
            collector.attach(page)
        yield collectors
