"""
Action handler - one interaction per call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ...http_client import HttpClientError
from ...page import PageError
from ...tools.actions import ActionParams, perform_action
from ...tools.base import SmartToolError
from ..types import ToolResult

if TYPE_CHECKING:
    from ...config import BrowserConfig
    from ...sessions import SessionRegistry

logger = logging.getLogger("mcp.agentibility.actions")


def handle_action(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    session = sessions.get(str(args.get("session") or ""))
    if session is None:
        raise KeyError(f"Session '{args.get('session')}' not found")
    params = ActionParams.from_dict(args)
    try:
        return ToolResult.json(perform_action(session.page, params))
    except SmartToolError as exc:
        message = exc.reason
    except (PageError, HttpClientError) as exc:
        message = str(exc)
    logger.info("action failed type=%s: %s", params.type, message)
    return ToolResult.json({"error": message, "action": params.type, "selector": params.selector}, is_error=True)


ACTION_HANDLERS: dict[str, tuple] = {
    "action": (handle_action, True),
}
