"""
Session lifecycle handlers - open_session / close_session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...sequence.executor import session_not_found
from ...sessions import SessionExistsError
from ..types import ToolResult

if TYPE_CHECKING:
    from ...config import BrowserConfig
    from ...sessions import SessionRegistry


def handle_open_session(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    session_id = str(args.get("session") or "")
    url = str(args.get("url") or "")
    if not session_id or not url:
        return ToolResult.json({"error": "open_session requires session and url"}, is_error=True)
    try:
        session = sessions.open(session_id, url)
    except SessionExistsError:
        return ToolResult.json(
            {
                "error": f"Session '{session_id}' already exists. "
                "Use close_session to close it first, or choose a different name."
            },
            is_error=True,
        )
    return ToolResult.json(
        {
            "success": True,
            "session": session_id,
            "title": session.page.title(),
            "url": session.page.url(),
        }
    )


def handle_close_session(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    session_id = str(args.get("session") or "")
    if not sessions.close(session_id):
        return ToolResult.json(session_not_found(sessions, session_id), is_error=True)
    return ToolResult.json({"success": True, "session": session_id, "message": f"Session '{session_id}' closed"})


# name -> (handler, requires_session)
SESSION_HANDLERS: dict[str, tuple] = {
    "open_session": (handle_open_session, False),
    "close_session": (handle_close_session, False),
}
