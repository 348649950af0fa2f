"""
Tool registry with dispatch table for MCP server.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ..sequence.executor import session_not_found
from .types import HandlerFunc, ToolResult

if TYPE_CHECKING:
    from ..config import BrowserConfig
    from ..sessions import SessionRegistry

logger = logging.getLogger("mcp.agentibility.registry")


class ToolRegistry:
    """Registry for tool handlers with session lookup before dispatch."""

    def __init__(self) -> None:
        # name -> (handler, requires_session)
        self._handlers: dict[str, tuple[HandlerFunc, bool]] = {}

    def register(
        self,
        name: str,
        handler: HandlerFunc,
        requires_session: bool = True,
    ) -> None:
        """Register a tool handler."""
        self._handlers[name] = (handler, requires_session)

    def register_many(self, handlers: dict[str, tuple[HandlerFunc, bool]]) -> None:
        """Register multiple handlers at once."""
        self._handlers.update(handlers)

    def has(self, name: str) -> bool:
        return name in self._handlers

    def dispatch(
        self,
        name: str,
        config: BrowserConfig,
        sessions: SessionRegistry,
        arguments: dict[str, Any],
    ) -> ToolResult:
        """
        Dispatch tool call to appropriate handler.

        Session-scoped tools get the session-not-found payload instead of a
        handler call when `arguments["session"]` is unknown.

        Raises:
            KeyError: If tool not found
        """
        handler_info = self._handlers.get(name)
        if handler_info is None:
            raise KeyError(f"Unknown tool: {name}")

        handler, requires_session = handler_info
        if requires_session:
            session_id = str(arguments.get("session") or "")
            if session_id not in sessions:
                logger.info("unknown session tool=%s session=%s", name, session_id)
                return ToolResult.json(session_not_found(sessions, session_id), is_error=True)

        return handler(config, sessions, arguments)

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers.keys())

    def __len__(self) -> int:
        return len(self._handlers)


def create_default_registry() -> ToolRegistry:
    """Create registry with all tool handlers."""
    from .handlers import ALL_HANDLERS

    registry = ToolRegistry()
    registry.register_many(ALL_HANDLERS)
    return registry
