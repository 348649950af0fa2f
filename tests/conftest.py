from __future__ import annotations

import io
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from mcp_servers.agentibility.config import BrowserConfig
from mcp_servers.agentibility.page import (
    PAGE_EVENTS,
    ConsoleMessage,
    FrameInfo,
    PageError,
    PageRequest,
    PageResponse,
    PageTimeoutError,
)


def make_png(width: int = 8, height: int = 6) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


class FakePage:
    """In-memory stand-in for `Page`: same methods, same event channels.

    `elements` maps selector -> {"visible": bool, "text": str, "count": int}.
    `on_click` / `on_press` hooks run when the matching selector is used.
    Events queued with `queue_event` are delivered by `pump_events()`, the way
    socket events are delivered by the real page.
    """

    def __init__(self, url: str = "https://site.test/", title: str = "Test Page") -> None:
        self._listeners: dict[str, list[Callable[..., None]]] = {name: [] for name in PAGE_EVENTS}
        self._url = url
        self._title = title
        self.history: list[str] = [url]
        self.history_index = 0
        self.elements: dict[str, dict[str, Any]] = {}
        self.values: dict[str, str] = {}
        self.checked: dict[str, bool] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.on_click: dict[str, Callable[[FakePage], None]] = {}
        self.on_press: dict[str, Callable[[FakePage], None]] = {}
        self.extraction: dict[str, Any] = {}
        self.screenshot_bytes = make_png()
        self._queued: list[tuple[str, tuple[Any, ...]]] = []
        self._hop = 0
        self.closed = False

    # events
    def on(self, event: str, listener: Callable[..., None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown page event: {event}")
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Callable[..., None]) -> None:
        if listener in self._listeners.get(event, []):
            self._listeners[event].remove(listener)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(v) for v in self._listeners.values())

    def emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            listener(*args)

    def queue_event(self, event: str, *args: Any) -> None:
        self._queued.append((event, args))

    def pump_events(self) -> int:
        queued, self._queued = self._queued, []
        for event, args in queued:
            self.emit(event, *args)
        return len(queued)

    # helpers for tests
    def add(self, selector: str, *, visible: bool = True, text: str = "", count: int = 1) -> None:
        self.elements[selector] = {"visible": visible, "text": text, "count": count}

    def console(self, level: str, text: str) -> None:
        self.queue_event("console", ConsoleMessage(type=level, text=text))

    def request(self, url: str, method: str = "GET", status: int | None = 200, error: str | None = None) -> PageRequest:
        self._hop += 1
        req = PageRequest(key=f"r{self._hop}#1", request_id=f"r{self._hop}", url=url, method=method, resource_type="Fetch")
        self.queue_event("request", req)
        if error is not None:
            self.queue_event("requestfailed", req, error)
        elif status is not None:
            self.queue_event("response", PageResponse(req, status, url))
        return req

    def navigate_to(self, url: str) -> None:
        self.history = self.history[: self.history_index + 1] + [url]
        self.history_index = len(self.history) - 1
        self._url = url
        self.emit("framenavigated", FrameInfo("main", url, True))

    # page interface
    def url(self) -> str:
        return self._url

    def title(self) -> str:
        return self._title

    def evaluate(self, expression: str) -> Any:
        self.calls.append(("evaluate",))
        if "__agentibilityExtract" in expression:
            for op, response in self.extraction.items():
                if f'"op": "{op}"' in expression:
                    return response
            return {"v": 1, "ok": False, "error": "no fake extraction configured"}
        return None

    def goto(self, url: str, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str:
        self.calls.append(("goto", url))
        if "unresolvable" in url:
            raise PageError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.navigate_to(url)
        return self._url

    def _history(self, delta: int) -> str | None:
        index = self.history_index + delta
        if index < 0 or index >= len(self.history):
            return None
        self.history_index = index
        self._url = self.history[index]
        self.emit("framenavigated", FrameInfo("main", self._url, True))
        return self._url

    def go_back(self, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str | None:
        self.calls.append(("go_back",))
        return self._history(-1)

    def go_forward(self, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str | None:
        self.calls.append(("go_forward",))
        return self._history(1)

    def wait_for_load_state(self, state: str = "load", timeout_ms: int | None = None) -> None:
        self.calls.append(("wait_for_load_state", state))

    def wait_for_selector(self, selector: str, state: str = "visible", timeout_ms: int | None = None) -> None:
        self.calls.append(("wait_for_selector", selector, state, timeout_ms))
        el = self.elements.get(selector)
        reached = {
            "attached": el is not None,
            "detached": el is None,
            "visible": bool(el and el["visible"]),
            "hidden": not (el and el["visible"]),
        }[state]
        if not reached:
            raise PageTimeoutError(f'Timeout {timeout_ms}ms exceeded waiting for selector "{selector}" to be {state}')

    def count(self, selector: str) -> int:
        el = self.elements.get(selector)
        return int(el["count"]) if el else 0

    def text_content(self, selector: str) -> str | None:
        el = self.elements.get(selector)
        return el["text"] if el else None

    def click(self, selector: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        self.calls.append(("click", selector))
        hook = self.on_click.get(selector)
        if hook:
            hook(self)

    def fill(self, selector: str, value: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        self.calls.append(("fill", selector))
        self.values[selector] = value

    def select_option(self, selector: str, value: str, timeout_ms: int | None = None) -> list[str]:
        self.wait_for_selector(selector, "attached", timeout_ms)
        self.calls.append(("select_option", selector, value))
        self.values[selector] = value
        return [value]

    def check(self, selector: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        self.checked[selector] = True

    def uncheck(self, selector: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        self.checked[selector] = False

    def keyboard_press(self, combo: str) -> None:
        self.calls.append(("keyboard_press", combo))

    def press(self, selector: str, key: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        self.calls.append(("press", selector, key))
        hook = self.on_press.get(selector)
        if hook:
            hook(self)

    def scroll(self, direction: str = "down", selector: str | None = None) -> bool:
        self.calls.append(("scroll", direction, selector))
        return selector is None or selector in self.elements

    def highlight(self, selector: str, duration_ms: int = 2000, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "attached", timeout_ms)
        self.calls.append(("highlight", selector))

    def screenshot(self, selector: str | None = None, full_page: bool = False, timeout_ms: int | None = None) -> bytes:
        if selector:
            self.wait_for_selector(selector, "visible", timeout_ms)
        self.calls.append(("screenshot", selector, full_page))
        return self.screenshot_bytes

    def set_viewport_size(self, width: int, height: int) -> None:
        self.calls.append(("set_viewport_size", width, height))

    def close(self) -> None:
        self.closed = True
        for listeners in self._listeners.values():
            listeners.clear()


class FakeBrowser:
    instances: list[FakeBrowser] = []

    def __init__(self, config: BrowserConfig) -> None:
        self.config = config
        self.started = False
        self.closed = False
        self.connected = True
        self.pages: list[FakePage] = []
        self.closed_pages: list[FakePage] = []
        self.goto_delay = 0.0
        FakeBrowser.instances.append(self)

    def start(self) -> None:
        self.started = True

    def is_connected(self) -> bool:
        return self.connected and not self.closed

    def new_page(self) -> FakePage:
        page = FakePage(url="about:blank", title="")
        delay = self.goto_delay
        original_goto = page.goto

        def goto(url: str, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str:
            if delay:
                time.sleep(delay)
            return original_goto(url, wait_until, timeout_ms)

        page.goto = goto  # type: ignore[method-assign]
        self.pages.append(page)
        return page

    def close_page(self, page: FakePage) -> None:
        self.closed_pages.append(page)
        page.close()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def config(tmp_path: Path) -> BrowserConfig:
    return BrowserConfig(
        binary_path="/usr/bin/chromium",
        profile_path=str(tmp_path / "profile"),
        screenshot_dir=str(tmp_path / "shots"),
        assert_timeout_ms=50,
    )
