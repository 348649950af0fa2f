"""Named browser sessions.

`SessionRegistry` owns the shared browser and the id -> Session map. The browser
is created on the first open and torn down when the last session closes (or on
`shutdown()`).

Concurrent opens are serialized on the id: the first caller reserves it under the
lock, later callers with the same id fail with `SessionExistsError` until that
reservation is either registered or released.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from .browser import Browser
from .config import BrowserConfig

if TYPE_CHECKING:
    from .page import Page

logger = logging.getLogger("mcp.agentibility.sessions")


class SessionExistsError(Exception):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session '{session_id}' already exists")
        self.session_id = session_id


@dataclass
class Session:
    id: str
    page: Page
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    def __init__(
        self,
        config: BrowserConfig,
        browser_factory: Callable[[BrowserConfig], Browser] = Browser,
    ) -> None:
        self.config = config
        self._browser_factory = browser_factory
        self._browser: Browser | None = None
        self._sessions: dict[str, Session] = {}
        self._reserved: set[str] = set()
        self._lock = threading.Lock()

    @property
    def browser(self) -> Browser | None:
        return self._browser

    def _ensure_browser(self) -> Browser:
        # Caller holds the lock.
        if self._browser is not None and not self._browser.is_connected():
            logger.info("browser disconnected; relaunching")
            with suppress(Exception):
                self._browser.close()
            self._browser = None
        if self._browser is None:
            browser = self._browser_factory(self.config)
            browser.start()
            self._browser = browser
        return self._browser

    def _release_browser_if_idle(self) -> None:
        # Caller holds the lock.
        if self._sessions or self._reserved or self._browser is None:
            return
        browser, self._browser = self._browser, None
        try:
            browser.close()
        except Exception:  # noqa: BLE001
            logger.warning("browser close failed", exc_info=True)

    def open(self, session_id: str, url: str) -> Session:
        with self._lock:
            if session_id in self._sessions or session_id in self._reserved:
                raise SessionExistsError(session_id)
            self._reserved.add(session_id)
            try:
                browser = self._ensure_browser()
            except BaseException:
                self._reserved.discard(session_id)
                raise

        page: Page | None = None
        try:
            page = browser.new_page()
            page.set_viewport_size(self.config.viewport_width, self.config.viewport_height)
            page.goto(url, wait_until="domcontentloaded")
        except BaseException:
            with self._lock:
                self._reserved.discard(session_id)
                if page is not None:
                    with suppress(Exception):
                        browser.close_page(page)
                self._release_browser_if_idle()
            raise

        session = Session(id=session_id, page=page)
        with self._lock:
            self._reserved.discard(session_id)
            self._sessions[session_id] = session
        logger.info("session opened id=%s url=%s", session_id, page.url())
        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def list_ids(self) -> list[str]:
        return list(self._sessions)

    def close(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            browser = self._browser
            try:
                if browser is not None:
                    browser.close_page(session.page)
                else:
                    session.page.close()
            except Exception:  # noqa: BLE001
                logger.warning("page close failed id=%s", session_id, exc_info=True)
            self._release_browser_if_idle()
        logger.info("session closed id=%s", session_id)
        return True

    def shutdown(self) -> None:
        """Close every session and the browser."""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            browser = self._browser
            for session in sessions:
                with suppress(Exception):
                    if browser is not None:
                        browser.close_page(session.page)
                    else:
                        session.page.close()
            self._release_browser_if_idle()
        if sessions:
            logger.info("shutdown closed %d session(s)", len(sessions))

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
