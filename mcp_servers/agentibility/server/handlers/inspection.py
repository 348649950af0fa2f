"""
Page inspection handlers - overview, query, section, elements, screenshot.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...tools import accessibility
from ...tools.screenshot import capture, encode_png, image_dimensions
from ..types import ToolResult

if TYPE_CHECKING:
    from ...config import BrowserConfig
    from ...page import Page
    from ...sessions import SessionRegistry


def _page(sessions: SessionRegistry, args: dict[str, Any]) -> Page:
    # The registry checked the session before dispatching here.
    session = sessions.get(str(args.get("session") or ""))
    if session is None:
        raise KeyError(f"Session '{args.get('session')}' not found")
    return session.page


def _int(args: dict[str, Any], key: str, default: int) -> int:
    try:
        return int(args.get(key, default))
    except (TypeError, ValueError):
        return default


def handle_overview(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    return ToolResult.json(accessibility.get_overview(_page(sessions, args)))


def handle_query(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    result = accessibility.query_elements(
        _page(sessions, args),
        str(args.get("selector") or ""),
        extract=str(args.get("extract") or "structure"),
        depth=_int(args, "depth", 10),
        limit=_int(args, "limit", 0),
    )
    return ToolResult.json(result)


def handle_section(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    result = accessibility.get_section(
        _page(sessions, args),
        str(args.get("name") or ""),
        extract=str(args.get("extract") or "text"),
        depth=_int(args, "depth", 10),
        limit=_int(args, "limit", 0),
    )
    return ToolResult.json(result)


def handle_elements(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    result = accessibility.get_elements(
        _page(sessions, args),
        str(args.get("type") or ""),
        limit=_int(args, "limit", 0),
    )
    return ToolResult.json(result)


def handle_screenshot(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    selector = args.get("selector") or None
    png = capture(_page(sessions, args), selector, bool(args.get("fullPage", False)))
    width, height = image_dimensions(png)
    meta = {"selector": selector, "width": width, "height": height, "bytes": len(png)}
    return ToolResult.with_image(encode_png(png), meta)


INSPECT_HANDLERS: dict[str, tuple] = {
    "overview": (handle_overview, True),
    "query": (handle_query, True),
    "section": (handle_section, True),
    "elements": (handle_elements, True),
    "screenshot": (handle_screenshot, True),
}
