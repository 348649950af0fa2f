from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Prefer Chromium builds; avoid snap (ignores --user-data-dir).
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "/snap/bin/chromium",
]

DEFAULT_VIEWPORT = (1280, 800)


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def parse_bool(raw: str | None, default: bool) -> bool:
    value = (raw or "").strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except ValueError:
        return default


def parse_viewport(raw: str | None) -> tuple[int, int]:
    """Parse `WxH` (or `W,H`); fall back to the default viewport."""
    value = (raw or "").strip().lower().replace(",", "x")
    if not value:
        return DEFAULT_VIEWPORT
    try:
        width, height = (int(part) for part in value.split("x", 1))
    except ValueError:
        return DEFAULT_VIEWPORT
    if width <= 0 or height <= 0:
        return DEFAULT_VIEWPORT
    return width, height


@dataclass
class BrowserConfig:
    binary_path: str
    profile_path: str
    cdp_port: int = 9222
    headless: bool = True
    extra_flags: list[str] = field(default_factory=list)
    window_size: str = "1280,900"
    viewport_width: int = DEFAULT_VIEWPORT[0]
    viewport_height: int = DEFAULT_VIEWPORT[1]
    cdp_timeout: float = 10.0
    launch_timeout: float = 10.0
    navigation_timeout_ms: int = 30_000
    action_timeout_ms: int = 30_000
    assert_timeout_ms: int = 5_000
    screenshot_dir: str = field(default_factory=lambda: os.path.join(tempfile.gettempdir(), "agentibility-screenshots"))

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("MCP_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "google-chrome"

    @classmethod
    def from_env(cls) -> BrowserConfig:
        default_profile = os.path.join(tempfile.gettempdir(), "agentibility-profile")
        profile = expand_path(os.environ.get("MCP_BROWSER_PROFILE") or default_profile)
        flags_raw = os.environ.get("MCP_BROWSER_FLAGS", "")
        extra_flags = [flag.strip() for flag in flags_raw.split(",") if flag.strip()]
        width, height = parse_viewport(os.environ.get("MCP_VIEWPORT"))
        screenshot_dir = os.environ.get("MCP_SCREENSHOT_DIR") or os.path.join(
            tempfile.gettempdir(), "agentibility-screenshots"
        )
        return cls(
            binary_path=cls.detect_binary(),
            profile_path=profile,
            cdp_port=_env_int("MCP_BROWSER_PORT", 9222),
            headless=parse_bool(os.environ.get("MCP_HEADLESS"), True),
            extra_flags=extra_flags,
            window_size=os.environ.get("MCP_WINDOW_SIZE") or "1280,900",
            viewport_width=width,
            viewport_height=height,
            cdp_timeout=_env_float("MCP_CDP_TIMEOUT", 10.0),
            launch_timeout=_env_float("MCP_LAUNCH_TIMEOUT", 10.0),
            navigation_timeout_ms=_env_int("MCP_NAVIGATION_TIMEOUT_MS", 30_000),
            action_timeout_ms=_env_int("MCP_ACTION_TIMEOUT_MS", 30_000),
            assert_timeout_ms=_env_int("MCP_ASSERT_TIMEOUT_MS", 5_000),
            screenshot_dir=expand_path(screenshot_dir),
        )
