"""Raw CDP WebSocket connection.

Commands are synchronous: `send()` blocks until the response with the matching id
arrives. Events read off the socket in the meantime are handed to the event sink
(the owning Page) and queued so `wait_for_event()` can still find them later.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from collections.abc import Callable, Iterable
from contextlib import suppress
from typing import Any

import websocket

from .http_client import HttpClientError

logger = logging.getLogger("mcp.agentibility.cdp")

EventSink = Callable[[dict[str, Any]], None]

# websocket-client maps socket timeouts to its own exception type.
_TIMEOUT_ERRORS = (TimeoutError, socket.timeout, websocket.WebSocketTimeoutException)


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout, suppress_origin=True)
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(f"CDP connect failed ({ws_url}): {exc}") from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 2000
        self._event_sink: EventSink | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Attach a sink called for every received CDP event."""
        self._event_sink = sink

    def _dispatch(self, event: dict[str, Any]) -> None:
        sink = self._event_sink
        if sink is None:
            return
        try:
            sink(event)
        except Exception:  # noqa: BLE001
            # Listeners must never break browser operations.
            logger.debug("event sink failed for %s", event.get("method"), exc_info=True)

    def _push_event(self, event: dict[str, Any]) -> None:
        """Dispatch an event and store it for later consumption (bounded)."""
        self._dispatch(event)
        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    @staticmethod
    def _is_event(data: Any) -> bool:
        return isinstance(data, dict) and isinstance(data.get("method"), str) and "id" not in data

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def discard_events(self, *event_names: str) -> int:
        """Drop queued events (all, or only the given names). Returns how many were dropped."""
        before = len(self._event_queue)
        if event_names:
            names = set(event_names)
            self._event_queue = [ev for ev in self._event_queue if ev.get("method") not in names]
        else:
            self._event_queue = []
        return before - len(self._event_queue)

    def _recv_json(self, timeout: float) -> Any:
        """Receive one message; None on timeout or undecodable payload."""
        try:
            self.ws.settimeout(timeout)
            raw = self.ws.recv()
        except _TIMEOUT_ERRORS:
            return None
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(str(exc) or exc.__class__.__name__) from exc
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return None

    def drain_events(self, *, max_messages: int = 200) -> int:
        """Read already-arrived events without blocking (best-effort).

        Only CDP events are consumed; anything else stops the drain.
        """
        if self._closed:
            return 0
        drained = 0
        for _ in range(max(0, int(max_messages))):
            try:
                data = self._recv_json(0.01)
            except HttpClientError:
                break
            if data is None:
                break
            if self._is_event(data):
                self._push_event(data)
                drained += 1
                continue
            logger.debug("drain stopped on non-event message id=%s", data.get("id") if isinstance(data, dict) else None)
            break
        return drained

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        if self._closed:
            raise HttpClientError(f"CDP connection closed ({method})")
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        try:
            self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except (OSError, websocket.WebSocketException) as exc:
            raise HttpClientError(str(exc) or exc.__class__.__name__) from exc

        return self._recv_until(msg_id, method)

    def _recv_until(self, expected_id: int, method: str = "") -> dict[str, Any]:
        """Wait for response with specific ID."""
        deadline = time.time() + self.timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                raise HttpClientError(f"CDP response timed out ({method})")

            data = self._recv_json(min(0.5, remaining))
            if data is None:
                continue

            if self._is_event(data):
                self._push_event(data)
                continue

            if isinstance(data, dict) and data.get("id") == expected_id:
                if "error" in data:
                    err = data["error"]
                    message = err.get("message") if isinstance(err, dict) else None
                    raise HttpClientError(f"{method}: {message or err}")
                result = data.get("result")
                return result if isinstance(result, dict) else {}

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        """Wait for specific CDP event."""
        hit = self.wait_for_any((event_name,), timeout=timeout)
        return hit[1] if hit is not None else None

    def wait_for_any(self, event_names: Iterable[str], timeout: float = 10.0) -> tuple[str, dict[str, Any]] | None:
        """Wait for the first of several CDP events; returns (name, params) or None on timeout."""
        names = tuple(event_names)
        for name in names:
            queued = self.pop_event(name)
            if queued is not None:
                return name, queued

        deadline = time.time() + timeout
        while True:
            remaining = deadline - time.time()
            if remaining <= 0:
                return None

            data = self._recv_json(min(0.5, remaining))
            if data is None or not self._is_event(data):
                continue

            if data["method"] in names:
                self._dispatch(data)
                params = data.get("params")
                return data["method"], params if isinstance(params, dict) else {}
            self._push_event(data)

    def abort(self) -> None:
        """Best-effort hard break of the underlying socket."""
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()

    def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return
        self._closed = True
        self._event_sink = None
        with suppress(Exception):
            self.ws.close(timeout=0.5)
        self.abort()


__all__ = ["CdpConnection", "EventSink"]
