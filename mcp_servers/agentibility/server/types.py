"""
Type definitions for MCP server responses and handlers.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..config import BrowserConfig
    from ..sessions import SessionRegistry


@dataclass(slots=True)
class ToolContent:
    """Single content item in tool response."""

    type: str  # "text" or "image"
    text: str | None = None
    data: str | None = None  # base64 for images
    mime_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP content format."""
        if self.type == "image":
            return {"type": "image", "data": self.data, "mimeType": self.mime_type}
        return {"type": "text", "text": self.text}


def _dump(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


@dataclass(slots=True)
class ToolResult:
    """Result of a tool execution."""

    content: list[ToolContent] = field(default_factory=list)
    is_error: bool = False
    # Raw payload, kept for tests and internal callers; not part of the wire format.
    data: Any | None = None

    @classmethod
    def json(cls, data: Any, is_error: bool = False) -> ToolResult:
        """Create result with pretty-printed JSON text content."""
        return cls(content=[ToolContent(type="text", text=_dump(data))], is_error=is_error, data=data)

    @classmethod
    def error(
        cls,
        message: str,
        *,
        tool: str | None = None,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ToolResult:
        """Create error result (`{"error": message, ...}`)."""
        payload: dict[str, Any] = {"error": message}
        if tool:
            payload["tool"] = tool
        if suggestion:
            payload["suggestion"] = suggestion
        if details:
            payload["details"] = details
        return cls.json(payload, is_error=True)

    @classmethod
    def with_image(cls, data_b64: str, meta: Any, mime_type: str = "image/png") -> ToolResult:
        """Image content followed by a JSON text block describing it."""
        if not data_b64:
            return cls.error("Screenshot data is empty")
        return cls(
            content=[
                ToolContent(type="image", data=data_b64, mime_type=mime_type),
                ToolContent(type="text", text=_dump(meta)),
            ],
            data=meta,
        )

    def to_content_list(self) -> list[dict[str, Any]]:
        """Convert to MCP content list format."""
        return [c.to_dict() for c in self.content]


HandlerFunc = Callable[["BrowserConfig", "SessionRegistry", dict[str, Any]], ToolResult]
