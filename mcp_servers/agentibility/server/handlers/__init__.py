"""
Tool handlers organized by domain.

All handlers follow the signature: (config, sessions, arguments) -> ToolResult
and are registered as name -> (handler, requires_session).
"""

from .actions import ACTION_HANDLERS
from .inspection import INSPECT_HANDLERS
from .sequence import SEQUENCE_HANDLERS
from .sessions import SESSION_HANDLERS

# Aggregate all handlers
ALL_HANDLERS: dict[str, tuple] = {
    **SESSION_HANDLERS,
    **INSPECT_HANDLERS,
    **ACTION_HANDLERS,
    **SEQUENCE_HANDLERS,
}

__all__ = [
    "ALL_HANDLERS",
    "ACTION_HANDLERS",
    "INSPECT_HANDLERS",
    "SEQUENCE_HANDLERS",
    "SESSION_HANDLERS",
]
