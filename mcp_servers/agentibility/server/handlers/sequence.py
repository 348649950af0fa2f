"""
run_sequence handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...sequence.executor import run_sequence
from ..types import ToolResult

if TYPE_CHECKING:
    from ...config import BrowserConfig
    from ...sessions import SessionRegistry


def handle_run_sequence(config: BrowserConfig, sessions: SessionRegistry, args: dict[str, Any]) -> ToolResult:
    steps = args.get("steps")
    if not isinstance(steps, list):
        return ToolResult.json({"error": "run_sequence requires a steps array"}, is_error=True)
    result = run_sequence(sessions, str(args.get("session") or ""), steps, args.get("options"), config)
    return ToolResult.json(result, is_error="error" in result)


SEQUENCE_HANDLERS: dict[str, tuple] = {
    "run_sequence": (handle_run_sequence, True),
}
