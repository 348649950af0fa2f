"""Page-automation interface over a single CDP target.

`Page` wraps a `CdpConnection` with the operations the tools need (navigation,
element interaction, waits, screenshots) and republishes raw CDP events as a small
set of page events:

- ``console``        (ConsoleMessage)
- ``request``        (PageRequest)
- ``response``       (PageResponse)
- ``requestfailed``  (PageRequest, error_text)
- ``framenavigated`` (FrameInfo)

Events are dispatched synchronously while the connection reads the socket, so
listeners run on the caller's thread, between (never inside) CDP round trips.
Listeners must not issue CDP commands; `url()` is served from a cache for that reason.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .http_client import HttpClientError

if TYPE_CHECKING:
    from .cdp import CdpConnection
    from .config import BrowserConfig

logger = logging.getLogger("mcp.agentibility.page")

PAGE_EVENTS = ("console", "request", "response", "requestfailed", "framenavigated")

_LOAD_EVENTS = {
    "domcontentloaded": "Page.domContentEventFired",
    "load": "Page.loadEventFired",
}

_POLL_INTERVAL = 0.1


class PageError(Exception):
    """Page-level failure (script exception, missing element, navigation error)."""


class PageTimeoutError(PageError):
    """A bounded wait expired."""


@dataclass(slots=True)
class ConsoleMessage:
    type: str
    text: str


@dataclass(slots=True)
class PageRequest:
    # Unique per redirect hop; CDP reuses requestId across redirects.
    key: str
    request_id: str
    url: str
    method: str
    resource_type: str = ""


@dataclass(slots=True)
class PageResponse:
    request: PageRequest
    status: int
    url: str


@dataclass(slots=True)
class FrameInfo:
    frame_id: str
    url: str
    is_main: bool


def _remote_obj_to_str(obj: Any) -> str:
    """Best-effort conversion of CDP RemoteObject to a console-like string."""
    if not isinstance(obj, dict):
        return str(obj)
    if "value" in obj:
        value = obj["value"]
        if isinstance(value, str):
            return value
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return str(value)
    for k in ("unserializableValue", "description"):
        if obj.get(k) is not None:
            return str(obj[k])
    if obj.get("type") == "undefined":
        return "undefined"
    typ = obj.get("type")
    subtype = obj.get("subtype")
    return f"<{typ}{('/' + subtype) if subtype else ''}>"


def _exception_text(details: dict[str, Any]) -> str:
    exc = details.get("exception")
    if isinstance(exc, dict):
        desc = exc.get("description") or exc.get("value")
        if desc:
            return str(desc).splitlines()[0]
    return str(details.get("text") or "Script evaluation failed")


# ─────────────────────────────────────────────────────────────────────────────
# In-page helpers (called with JSON-encoded arguments)
# ─────────────────────────────────────────────────────────────────────────────

_PROBE_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return {attached: false, visible: false};
  const rect = el.getBoundingClientRect();
  const style = window.getComputedStyle(el);
  const visible = rect.width > 0 && rect.height > 0 && style.visibility !== 'hidden';
  return {attached: true, visible};
}"""

_CLICK_POINT_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return null;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const rect = el.getBoundingClientRect();
  return {x: rect.left + rect.width / 2, y: rect.top + rect.height / 2};
}"""

_ELEMENT_RECT_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return null;
  el.scrollIntoView({block: 'nearest', inline: 'nearest'});
  const rect = el.getBoundingClientRect();
  return {x: rect.left + window.scrollX, y: rect.top + window.scrollY, width: rect.width, height: rect.height};
}"""

_PREPARE_FILL_JS = """(selector, value) => {
  const el = document.querySelector(selector);
  if (!el) return 'Element "' + selector + '" is not attached';
  const tag = el.tagName;
  if (tag === 'INPUT' || tag === 'TEXTAREA') {
    const type = (el.getAttribute('type') || 'text').toLowerCase();
    if (['checkbox', 'radio', 'file', 'submit', 'button', 'image', 'reset'].includes(type)) {
      return 'Input of type "' + type + '" cannot be filled';
    }
    if (el.disabled || el.readOnly) return 'Element is not editable';
    el.focus();
    const proto = tag === 'INPUT' ? HTMLInputElement.prototype : HTMLTextAreaElement.prototype;
    const setter = Object.getOwnPropertyDescriptor(proto, 'value').set;
    if (['date', 'time', 'datetime-local', 'month', 'week', 'color', 'range'].includes(type)) {
      setter.call(el, value);
      el.dispatchEvent(new Event('input', {bubbles: true}));
      el.dispatchEvent(new Event('change', {bubbles: true}));
      return 'done';
    }
    setter.call(el, '');
    el.dispatchEvent(new Event('input', {bubbles: true}));
    return 'ok';
  }
  if (el.isContentEditable) {
    el.focus();
    document.execCommand('selectAll');
    document.execCommand('delete');
    return 'ok';
  }
  return 'Element is not an <input>, <textarea> or [contenteditable] element';
}"""

_DISPATCH_CHANGE_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (el && !el.isContentEditable) el.dispatchEvent(new Event('change', {bubbles: true}));
  return true;
}"""

_SELECT_OPTION_JS = """(selector, value) => {
  const el = document.querySelector(selector);
  if (!el) return {error: 'Element "' + selector + '" is not attached'};
  if (el.tagName !== 'SELECT') return {error: 'Element is not a <select> element'};
  const options = Array.from(el.options);
  const match = options.find(o => o.value === value)
    || options.find(o => o.label === value || o.textContent.trim() === value);
  if (!match) return {error: 'No option matching "' + value + '" in "' + selector + '"'};
  if (el.multiple) options.forEach(o => { o.selected = o === match; });
  else match.selected = true;
  el.dispatchEvent(new Event('input', {bubbles: true}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
  return {selected: [match.value]};
}"""

_CHECKED_STATE_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return {error: 'Element "' + selector + '" is not attached'};
  if (el.tagName === 'INPUT' && ['checkbox', 'radio'].includes((el.type || '').toLowerCase())) {
    return {checked: el.checked, radio: el.type.toLowerCase() === 'radio'};
  }
  const role = el.getAttribute('role');
  if (['checkbox', 'radio', 'switch', 'menuitemcheckbox'].includes(role)) {
    return {checked: el.getAttribute('aria-checked') === 'true', radio: role === 'radio'};
  }
  return {error: 'Not a checkbox or radio button'};
}"""

_FOCUS_JS = """(selector) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.focus();
  return true;
}"""

_SCROLL_JS = """(selector, direction) => {
  const amount = direction === 'up' ? -500 : 500;
  if (selector) {
    const el = document.querySelector(selector);
    if (el) el.scrollBy(0, amount);
    return !!el;
  }
  window.scrollBy(0, amount);
  return true;
}"""

_HIGHLIGHT_JS = """(selector, durationMs) => {
  const el = document.querySelector(selector);
  if (!el) return false;
  el.scrollIntoView({block: 'center', inline: 'center'});
  const previous = el.style.outline;
  const previousOffset = el.style.outlineOffset;
  el.style.outline = '3px solid #ff00ff';
  el.style.outlineOffset = '2px';
  setTimeout(() => { el.style.outline = previous; el.style.outlineOffset = previousOffset; }, durationMs);
  return true;
}"""

_TEXT_CONTENT_JS = """(selector) => {
  const el = document.querySelector(selector);
  return el ? el.textContent : null;
}"""

_COUNT_JS = "(selector) => document.querySelectorAll(selector).length"

# ─────────────────────────────────────────────────────────────────────────────
# Keyboard
# ─────────────────────────────────────────────────────────────────────────────

_MODIFIERS = {"Alt": 1, "Control": 2, "Meta": 4, "Shift": 8}

# key -> (code, windowsVirtualKeyCode, text)
_KEY_DEFINITIONS: dict[str, tuple[str, int, str]] = {
    "Enter": ("Enter", 13, "\r"),
    "Tab": ("Tab", 9, ""),
    "Escape": ("Escape", 27, ""),
    "Backspace": ("Backspace", 8, ""),
    "Delete": ("Delete", 46, ""),
    "Space": ("Space", 32, " "),
    "ArrowUp": ("ArrowUp", 38, ""),
    "ArrowDown": ("ArrowDown", 40, ""),
    "ArrowLeft": ("ArrowLeft", 37, ""),
    "ArrowRight": ("ArrowRight", 39, ""),
    "Home": ("Home", 36, ""),
    "End": ("End", 35, ""),
    "PageUp": ("PageUp", 33, ""),
    "PageDown": ("PageDown", 34, ""),
}


def parse_key_combo(combo: str) -> tuple[str, int]:
    """Split `Control+Shift+A` into (key, modifier bitmask)."""
    if not combo:
        raise PageError("Key must not be empty")
    parts = combo.split("+")
    if combo.endswith("+"):
        # "+" itself, possibly with modifiers ("Shift++")
        parts = [*combo[:-1].split("+")[:-1], "+"] if len(combo) > 1 else ["+"]
    key = parts[-1]
    modifiers = 0
    for name in parts[:-1]:
        if name not in _MODIFIERS:
            raise PageError(f'Unknown modifier "{name}" in "{combo}"')
        modifiers |= _MODIFIERS[name]
    return key, modifiers


def key_definition(key: str) -> tuple[str, int, str]:
    if key in _KEY_DEFINITIONS:
        return _KEY_DEFINITIONS[key]
    if key in _MODIFIERS:
        return key + "Left", {"Alt": 18, "Control": 17, "Meta": 91, "Shift": 16}[key], ""
    if len(key) == 1:
        if key.isalpha():
            return f"Key{key.upper()}", ord(key.upper()), key
        if key.isdigit():
            return f"Digit{key}", ord(key), key
        return "", 0, key
    raise PageError(f'Unknown key: "{key}"')


class Page:
    """High-level page handle for one browser tab."""

    def __init__(self, conn: CdpConnection, target_id: str = "", config: BrowserConfig | None = None):
        self.conn = conn
        self.target_id = target_id
        self.action_timeout_ms = config.action_timeout_ms if config else 30_000
        self.navigation_timeout_ms = config.navigation_timeout_ms if config else 30_000
        self._listeners: dict[str, list[Callable[..., None]]] = {name: [] for name in PAGE_EVENTS}
        self._main_frame_id: str | None = None
        self._url = "about:blank"
        self._requests: dict[str, PageRequest] = {}
        self._hops: dict[str, int] = {}
        self._closed = False
        conn.set_event_sink(self._on_cdp_event)

    def initialize(self) -> Page:
        """Enable the CDP domains the page relies on and read the main frame."""
        for domain in ("Page", "Runtime", "Network"):
            self.conn.send(f"{domain}.enable")
        tree = self.conn.send("Page.getFrameTree")
        frame = (tree.get("frameTree") or {}).get("frame") or {}
        self._main_frame_id = frame.get("id")
        if frame.get("url"):
            self._url = str(frame["url"]) + str(frame.get("urlFragment") or "")
        return self

    # ─────────────────────────────────────────────────────────────────────────
    # Events
    # ─────────────────────────────────────────────────────────────────────────

    def on(self, event: str, listener: Callable[..., None]) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unknown page event: {event}")
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Callable[..., None]) -> None:
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(v) for v in self._listeners.values())

    def _emit(self, event: str, *args: Any) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(*args)
            except Exception:  # noqa: BLE001
                logger.debug("page listener failed event=%s", event, exc_info=True)

    def pump_events(self) -> int:
        """Deliver events that already arrived on the socket (non-blocking)."""
        if self._closed:
            return 0
        return self.conn.drain_events()

    def _on_cdp_event(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        params = event.get("params")
        if not isinstance(params, dict):
            params = {}

        if method == "Runtime.consoleAPICalled":
            args = params.get("args")
            text = " ".join(_remote_obj_to_str(a) for a in args) if isinstance(args, list) else ""
            self._emit("console", ConsoleMessage(type=str(params.get("type") or "log"), text=text))
            return

        if method == "Network.requestWillBeSent":
            self._on_request(params)
            return

        if method == "Network.responseReceived":
            request = self._requests.get(str(params.get("requestId") or ""))
            response = params.get("response") or {}
            if request is not None:
                status = int(response.get("status") or 0)
                self._emit("response", PageResponse(request, status, str(response.get("url") or request.url)))
            return

        if method == "Network.loadingFinished":
            self._hops.pop(str(params.get("requestId") or ""), None)
            self._requests.pop(str(params.get("requestId") or ""), None)
            return

        if method == "Network.loadingFailed":
            self._hops.pop(str(params.get("requestId") or ""), None)
            request = self._requests.pop(str(params.get("requestId") or ""), None)
            if request is not None:
                self._emit("requestfailed", request, str(params.get("errorText") or "Request failed"))
            return

        if method == "Page.frameNavigated":
            frame = params.get("frame") or {}
            is_main = not frame.get("parentId")
            url = str(frame.get("url") or "") + str(frame.get("urlFragment") or "")
            if is_main:
                self._main_frame_id = frame.get("id")
                self._url = url
            self._emit("framenavigated", FrameInfo(str(frame.get("id") or ""), url, is_main))
            return

        if method == "Page.navigatedWithinDocument":
            frame_id = params.get("frameId")
            url = str(params.get("url") or "")
            is_main = frame_id is not None and frame_id == self._main_frame_id
            if is_main:
                self._url = url
            self._emit("framenavigated", FrameInfo(str(frame_id or ""), url, is_main))

    def _on_request(self, params: dict[str, Any]) -> None:
        request_id = str(params.get("requestId") or "")
        redirect = params.get("redirectResponse")
        if isinstance(redirect, dict):
            previous = self._requests.pop(request_id, None)
            if previous is not None:
                self._emit("response", PageResponse(previous, int(redirect.get("status") or 0), previous.url))
        info = params.get("request") or {}
        hop = self._hops.get(request_id, 0) + 1
        self._hops[request_id] = hop
        request = PageRequest(
            key=f"{request_id}#{hop}",
            request_id=request_id,
            url=str(info.get("url") or ""),
            method=str(info.get("method") or "GET"),
            resource_type=str(params.get("type") or ""),
        )
        self._requests[request_id] = request
        self._emit("request", request)

    # ─────────────────────────────────────────────────────────────────────────
    # JavaScript
    # ─────────────────────────────────────────────────────────────────────────

    def evaluate(self, expression: str) -> Any:
        """Evaluate JavaScript and return the JSON value (undefined/null map to None)."""
        result = self.conn.send(
            "Runtime.evaluate",
            {
                "expression": expression,
                "returnByValue": True,
                "awaitPromise": True,
            },
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            raise PageError(_exception_text(details))
        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def call(self, function_source: str, *args: Any) -> Any:
        """Invoke an in-page function with JSON-serialized arguments."""
        encoded = ", ".join(json.dumps(arg, ensure_ascii=False) for arg in args)
        return self.evaluate(f"({function_source})({encoded})")

    def url(self) -> str:
        """Current main-frame URL (tracked from navigation events, no round trip)."""
        return self._url

    def title(self) -> str:
        return self.evaluate("document.title") or ""

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def _prepare_navigation(self) -> None:
        self.pump_events()
        self.conn.discard_events(*_LOAD_EVENTS.values())

    def _wait_lifecycle(self, state: str, timeout_ms: int, what: str) -> None:
        event_name = _LOAD_EVENTS.get(state)
        if event_name is None:
            raise PageError(f"Unsupported load state: {state}")
        if self.conn.wait_for_event(event_name, timeout=timeout_ms / 1000) is None:
            raise PageTimeoutError(f"Timeout {timeout_ms}ms exceeded {what}")

    def goto(self, url: str, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str:
        timeout_ms = self.navigation_timeout_ms if timeout_ms is None else timeout_ms
        self._prepare_navigation()
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            raise PageError(f"{error_text} at {url}")
        # No loaderId means a same-document navigation: nothing to wait for.
        if wait_until and result.get("loaderId"):
            self._wait_lifecycle(wait_until, timeout_ms, f'navigating to "{url}"')
        return self._url

    def _history_step(self, delta: int, wait_until: str | None, timeout_ms: int | None) -> str | None:
        timeout_ms = self.navigation_timeout_ms if timeout_ms is None else timeout_ms
        history = self.conn.send("Page.getNavigationHistory")
        entries = history.get("entries") or []
        index = int(history.get("currentIndex") or 0) + delta
        if index < 0 or index >= len(entries):
            return None
        self._prepare_navigation()
        self.conn.send("Page.navigateToHistoryEntry", {"entryId": entries[index]["id"]})
        if wait_until:
            hit = self.conn.wait_for_any(
                (_LOAD_EVENTS.get(wait_until, _LOAD_EVENTS["domcontentloaded"]), "Page.navigatedWithinDocument"),
                timeout=timeout_ms / 1000,
            )
            if hit is None:
                raise PageTimeoutError(f"Timeout {timeout_ms}ms exceeded navigating {'back' if delta < 0 else 'forward'}")
        return self._url

    def go_back(self, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str | None:
        """Navigate back in history; None when there is no previous entry."""
        return self._history_step(-1, wait_until, timeout_ms)

    def go_forward(self, wait_until: str | None = "domcontentloaded", timeout_ms: int | None = None) -> str | None:
        """Navigate forward in history; None when there is no next entry."""
        return self._history_step(1, wait_until, timeout_ms)

    def wait_for_load_state(self, state: str = "load", timeout_ms: int | None = None) -> None:
        """Poll `document.readyState` until the given state is reached."""
        timeout_ms = self.navigation_timeout_ms if timeout_ms is None else timeout_ms
        wanted = {"domcontentloaded": ("interactive", "complete"), "load": ("complete",)}.get(state)
        if wanted is None:
            raise PageError(f"Unsupported load state: {state}")
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            try:
                if self.evaluate("document.readyState") in wanted:
                    return
            except (PageError, HttpClientError):
                # Context torn down mid-navigation; keep polling.
                pass
            if time.monotonic() >= deadline:
                raise PageTimeoutError(f'Timeout {timeout_ms}ms exceeded waiting for load state "{state}"')
            time.sleep(_POLL_INTERVAL)

    # ─────────────────────────────────────────────────────────────────────────
    # Selectors
    # ─────────────────────────────────────────────────────────────────────────

    def wait_for_selector(self, selector: str, state: str = "visible", timeout_ms: int | None = None) -> None:
        """Wait until the first match of `selector` is attached/detached/visible/hidden."""
        timeout_ms = self.action_timeout_ms if timeout_ms is None else timeout_ms
        if state not in {"attached", "detached", "visible", "hidden"}:
            raise PageError(f"Unsupported selector state: {state}")
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            try:
                probe = self.call(_PROBE_JS, selector) or {}
            except (PageError, HttpClientError) as exc:
                # Context torn down mid-navigation: the state is unknown, not reached.
                logger.debug("selector probe failed selector=%s: %s", selector, exc)
                probe = None
            if probe is not None:
                attached = bool(probe.get("attached"))
                visible = bool(probe.get("visible"))
                reached = {
                    "attached": attached,
                    "detached": not attached,
                    "visible": visible,
                    "hidden": not visible,
                }[state]
                if reached:
                    return
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise PageTimeoutError(f'Timeout {timeout_ms}ms exceeded waiting for selector "{selector}" to be {state}')
            time.sleep(min(_POLL_INTERVAL, remaining))

    def count(self, selector: str) -> int:
        return int(self.call(_COUNT_JS, selector) or 0)

    def text_content(self, selector: str) -> str | None:
        return self.call(_TEXT_CONTENT_JS, selector)

    # ─────────────────────────────────────────────────────────────────────────
    # Interaction
    # ─────────────────────────────────────────────────────────────────────────

    def _mouse_click(self, x: float, y: float) -> None:
        self.conn.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y, "button": "none"})
        for event_type in ("mousePressed", "mouseReleased"):
            self.conn.send(
                "Input.dispatchMouseEvent",
                {"type": event_type, "x": x, "y": y, "button": "left", "clickCount": 1},
            )

    def click(self, selector: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        point = self.call(_CLICK_POINT_JS, selector)
        if not isinstance(point, dict):
            raise PageError(f'Element "{selector}" is not attached')
        self._mouse_click(float(point["x"]), float(point["y"]))

    def fill(self, selector: str, value: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        status = self.call(_PREPARE_FILL_JS, selector, value)
        if status == "done":
            return
        if status != "ok":
            raise PageError(str(status))
        if value:
            self.conn.send("Input.insertText", {"text": value})
        self.call(_DISPATCH_CHANGE_JS, selector)

    def select_option(self, selector: str, value: str, timeout_ms: int | None = None) -> list[str]:
        self.wait_for_selector(selector, "attached", timeout_ms)
        result = self.call(_SELECT_OPTION_JS, selector, value) or {}
        if result.get("error"):
            raise PageError(str(result["error"]))
        return list(result.get("selected") or [])

    def _set_checked(self, selector: str, checked: bool, timeout_ms: int | None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        state = self.call(_CHECKED_STATE_JS, selector) or {}
        if state.get("error"):
            raise PageError(str(state["error"]))
        if bool(state.get("checked")) == checked:
            return
        if not checked and state.get("radio"):
            raise PageError("Cannot uncheck radio button")
        self.click(selector, timeout_ms)
        after = self.call(_CHECKED_STATE_JS, selector) or {}
        if bool(after.get("checked")) != checked:
            raise PageError("Clicking the checkbox did not change its state")

    def check(self, selector: str, timeout_ms: int | None = None) -> None:
        self._set_checked(selector, True, timeout_ms)

    def uncheck(self, selector: str, timeout_ms: int | None = None) -> None:
        self._set_checked(selector, False, timeout_ms)

    def keyboard_press(self, combo: str) -> None:
        """Press a key (or `Modifier+Key` combo) on the focused element."""
        key, modifiers = parse_key_combo(combo)
        code, key_code, text = key_definition(key)
        # Shortcuts with Control/Alt/Meta must not insert text.
        if modifiers & ~_MODIFIERS["Shift"]:
            text = ""
        down: dict[str, Any] = {
            "type": "keyDown" if text else "rawKeyDown",
            "key": key,
            "code": code,
            "windowsVirtualKeyCode": key_code,
            "modifiers": modifiers,
        }
        if text:
            down["text"] = text
            down["unmodifiedText"] = text
        self.conn.send("Input.dispatchKeyEvent", down)
        self.conn.send(
            "Input.dispatchKeyEvent",
            {"type": "keyUp", "key": key, "code": code, "windowsVirtualKeyCode": key_code, "modifiers": modifiers},
        )

    def press(self, selector: str, key: str, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "visible", timeout_ms)
        if not self.call(_FOCUS_JS, selector):
            raise PageError(f'Element "{selector}" is not attached')
        self.keyboard_press(key)

    def scroll(self, direction: str = "down", selector: str | None = None) -> bool:
        return bool(self.call(_SCROLL_JS, selector, direction))

    def highlight(self, selector: str, duration_ms: int = 2000, timeout_ms: int | None = None) -> None:
        self.wait_for_selector(selector, "attached", timeout_ms)
        if not self.call(_HIGHLIGHT_JS, selector, duration_ms):
            raise PageError(f'Element "{selector}" is not attached')

    # ─────────────────────────────────────────────────────────────────────────
    # Screenshots & viewport
    # ─────────────────────────────────────────────────────────────────────────

    def screenshot(self, selector: str | None = None, full_page: bool = False, timeout_ms: int | None = None) -> bytes:
        """Capture PNG bytes of the viewport, the full page, or one element."""
        params: dict[str, Any] = {"format": "png", "fromSurface": True}
        if selector:
            self.wait_for_selector(selector, "visible", timeout_ms)
            rect = self.call(_ELEMENT_RECT_JS, selector)
            if not isinstance(rect, dict):
                raise PageError(f'Element "{selector}" is not attached')
            params["clip"] = {
                "x": rect["x"],
                "y": rect["y"],
                "width": max(1, rect["width"]),
                "height": max(1, rect["height"]),
                "scale": 1,
            }
            params["captureBeyondViewport"] = True
        elif full_page:
            metrics = self.conn.send("Page.getLayoutMetrics")
            size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
            params["clip"] = {
                "x": 0,
                "y": 0,
                "width": max(1, size.get("width") or 0),
                "height": max(1, size.get("height") or 0),
                "scale": 1,
            }
            params["captureBeyondViewport"] = True
        data = self.conn.send("Page.captureScreenshot", params).get("data")
        if not data:
            raise PageError("Screenshot capture returned no data")
        return base64.b64decode(data)

    def set_viewport_size(self, width: int, height: int) -> None:
        self.conn.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": int(width), "height": int(height), "deviceScaleFactor": 1, "mobile": False},
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Drop listeners and close the CDP connection (the target is closed by Browser)."""
        if self._closed:
            return
        self._closed = True
        for listeners in self._listeners.values():
            listeners.clear()
        self.conn.close()


__all__ = [
    "ConsoleMessage",
    "FrameInfo",
    "PAGE_EVENTS",
    "Page",
    "PageError",
    "PageRequest",
    "PageResponse",
    "PageTimeoutError",
]
