from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import URLError
from urllib.request import urlopen

from .config import BrowserConfig, expand_path
from .http_client import HttpClientError, fetch_json

logger = logging.getLogger("mcp.agentibility.launcher")


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


class BrowserLauncher:
    def __init__(self, config: BrowserConfig | None = None) -> None:
        self.config = config or BrowserConfig.from_env()
        self.process: subprocess.Popen | None = None

    @property
    def endpoint(self) -> str:
        return f"http://127.0.0.1:{self.config.cdp_port}"

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        return self._cdp_ready(timeout=timeout)

    def owns_process(self) -> bool:
        return self.process is not None

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of the launcher-owned Chrome process."""
        proc = self.process
        if proc is None:
            return False
        self.process = None
        if proc.poll() is not None:
            return True

        with contextlib.suppress(Exception):
            proc.terminate()

        deadline = time.time() + max(0.1, float(timeout))
        while time.time() < deadline:
            if proc.poll() is not None:
                logger.info("browser stopped pid=%s", proc.pid)
                return True
            time.sleep(0.05)

        with contextlib.suppress(Exception):
            proc.kill()
        logger.info("browser killed pid=%s", proc.pid)
        return True

    def _build_common_flags(self) -> list[str]:
        flags = [
            f"--remote-debugging-port={self.config.cdp_port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-background-networking",
            "--disable-popup-blocking",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        else:
            flags.append(f"--window-size={self.config.window_size}")
        return flags

    def build_launch_command(self, extra: list[str] | None = None) -> list[str]:
        flags = self._build_common_flags() + self.config.extra_flags
        if extra:
            flags.extend(extra)
        # Open on about:blank so the launch does not leave a stray start page.
        return [self.config.binary_path, *flags, "about:blank"]

    def _port_available(self, timeout: float = 0.2) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            try:
                result = sock.connect_ex(("127.0.0.1", self.config.cdp_port))
                return result != 0
            except OSError:
                return False

    def _cdp_ready(self, timeout: float = 0.4) -> bool:
        endpoint = f"{self.endpoint}/json/version"
        try:
            with urlopen(endpoint, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def ensure_running(self, timeout: float | None = None) -> LaunchResult:
        timeout = self.config.launch_timeout if timeout is None else timeout
        if self._cdp_ready():
            return LaunchResult([], False, "Chrome already listening on CDP port")

        if not self._port_available():
            return LaunchResult([], False, f"Port {self.config.cdp_port} already in use")

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command()
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as exc:
            return LaunchResult(cmd, False, str(exc))

        logger.info("browser launching binary=%s port=%s headless=%s", cmd[0], self.config.cdp_port, self.config.headless)
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self._cdp_ready():
                return LaunchResult(cmd, True, "Chrome launched")
            time.sleep(0.1)
        return LaunchResult(cmd, False, "Chrome launch timed out")

    def cdp_version(self, timeout: float = 0.8) -> dict[str, Any]:
        try:
            payload = fetch_json(f"{self.endpoint}/json/version", timeout=timeout)
        except HttpClientError as exc:
            raise HttpClientError(f"CDP not reachable on port {self.config.cdp_port}: {exc}") from exc
        return payload if isinstance(payload, dict) else {}

    def list_targets(self) -> list[dict[str, Any]]:
        try:
            payload = fetch_json(f"{self.endpoint}/json/list", timeout=0.5)
        except HttpClientError:
            return []
        return payload if isinstance(payload, list) else []
