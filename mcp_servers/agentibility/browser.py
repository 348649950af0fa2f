from __future__ import annotations

import logging
import time
from contextlib import suppress

from .cdp import CdpConnection
from .config import BrowserConfig
from .http_client import HttpClientError
from .launcher import BrowserLauncher
from .page import Page

logger = logging.getLogger("mcp.agentibility.browser")


class Browser:
    """One Chrome process (owned or attached) and the tabs opened through it."""

    def __init__(self, config: BrowserConfig, launcher: BrowserLauncher | None = None):
        self.config = config
        self.launcher = launcher or BrowserLauncher(config)
        self._pages: dict[str, Page] = {}

    def start(self) -> None:
        result = self.launcher.ensure_running()
        if not self.launcher.cdp_ready(timeout=1.0):
            raise HttpClientError(f"Browser is not reachable on CDP port {self.config.cdp_port}: {result.message}")
        logger.info("browser ready port=%s (%s)", self.config.cdp_port, result.message)

    def is_connected(self) -> bool:
        return self.launcher.cdp_ready(timeout=0.6)

    def _browser_ws(self) -> str:
        ws_url = self.launcher.cdp_version().get("webSocketDebuggerUrl")
        if not ws_url:
            raise HttpClientError("CDP /json/version did not return webSocketDebuggerUrl")
        return str(ws_url)

    def _browser_command(self, method: str, params: dict) -> dict:
        conn = CdpConnection(self._browser_ws(), timeout=self.config.cdp_timeout)
        try:
            return conn.send(method, params)
        finally:
            conn.close()

    def _target_ws_url(self, target_id: str, timeout: float = 2.0) -> str:
        deadline = time.time() + timeout
        while True:
            for target in self.launcher.list_targets():
                if target.get("id") == target_id and target.get("webSocketDebuggerUrl"):
                    return str(target["webSocketDebuggerUrl"])
            if time.time() >= deadline:
                raise HttpClientError(f"Target {target_id} has no debugger URL")
            time.sleep(0.05)

    def new_page(self) -> Page:
        """Create a blank tab and return an initialized Page for it."""
        target_id = self._browser_command("Target.createTarget", {"url": "about:blank"}).get("targetId")
        if not target_id:
            raise HttpClientError("Failed to create browser tab")
        try:
            conn = CdpConnection(self._target_ws_url(target_id), timeout=self.config.cdp_timeout)
            page = Page(conn, target_id, self.config)
            page.initialize()
        except Exception:
            with suppress(HttpClientError):
                self._browser_command("Target.closeTarget", {"targetId": target_id})
            raise
        self._pages[target_id] = page
        return page

    def close_page(self, page: Page) -> None:
        self._pages.pop(page.target_id, None)
        page.close()
        if page.target_id:
            self._browser_command("Target.closeTarget", {"targetId": page.target_id})

    def close(self) -> None:
        for page in list(self._pages.values()):
            try:
                self.close_page(page)
            except HttpClientError as exc:
                logger.debug("close_page failed target=%s: %s", page.target_id, exc)
        if self.launcher.stop():
            logger.info("browser closed")
