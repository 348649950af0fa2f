"""Single page interactions (navigate, click, fill, ...)."""

from __future__ import annotations

import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..http_client import HttpClientError
from ..page import PageError, PageTimeoutError
from .base import SmartToolError

if TYPE_CHECKING:
    from ..page import Page

logger = logging.getLogger("mcp.agentibility.actions")

ACTION_TYPES = (
    "navigate",
    "back",
    "forward",
    "click",
    "fill",
    "select",
    "check",
    "uncheck",
    "press",
    "scroll",
    "highlight",
)

# Actions that may trigger a navigation; they settle on domcontentloaded afterwards.
NAVIGATING_ACTIONS = frozenset({"navigate", "back", "forward", "click", "press"})


@dataclass(slots=True)
class ActionParams:
    type: str
    selector: str | None = None
    value: str | None = None
    url: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActionParams:
        value = data.get("value")
        return cls(
            type=str(data.get("type") or data.get("action") or ""),
            selector=data.get("selector") or None,
            value=None if value is None else str(value),
            url=data.get("url") or None,
        )


def _invalid(action: str, reason: str, suggestion: str) -> SmartToolError:
    return SmartToolError(tool="action", action=action, reason=reason, suggestion=suggestion)


def validate_action(params: ActionParams) -> None:
    """Raise SmartToolError when required parameters are missing."""
    kind = params.type
    if kind not in ACTION_TYPES:
        raise _invalid(kind, f"Unknown action type: {kind}", f"Use one of: {', '.join(ACTION_TYPES)}")
    if kind == "navigate" and not params.url:
        raise _invalid(kind, "navigate requires url parameter", "Provide url")
    if kind in {"click", "fill", "select", "check", "uncheck", "highlight"} and not params.selector:
        raise _invalid(kind, f"{kind} requires selector parameter", "Provide a CSS selector")
    if kind in {"fill", "select"} and params.value is None:
        raise _invalid(kind, f"{kind} requires value parameter", "Provide value (an empty string is allowed for fill)")
    if kind == "press" and not params.selector and not params.value:
        raise _invalid(kind, "press requires selector or value (key) parameter", "Provide value, e.g. 'Enter'")


def _settle(page: Page) -> None:
    with suppress(PageError, HttpClientError):
        page.wait_for_load_state("domcontentloaded")


def perform_action(page: Page, params: ActionParams) -> dict[str, Any]:
    """Perform exactly one interaction and describe what happened."""
    validate_action(params)
    kind = params.type
    result: dict[str, Any] = {"success": True, "action": kind}

    if kind == "navigate":
        try:
            page.goto(str(params.url), wait_until="domcontentloaded")
        except PageTimeoutError:
            logger.debug("navigate: load wait timed out url=%s", params.url)
        result["url"] = page.url()
        result["title"] = page.title()
    elif kind in {"back", "forward"}:
        step = page.go_back if kind == "back" else page.go_forward
        try:
            step(wait_until="domcontentloaded")
        except PageTimeoutError:
            logger.debug("%s: load wait timed out", kind)
        result["url"] = page.url()
        result["title"] = page.title()
    elif kind == "click":
        page.click(str(params.selector))
        _settle(page)
        result["url"] = page.url()
    elif kind == "fill":
        page.fill(str(params.selector), params.value or "")
        result["selector"] = params.selector
    elif kind == "select":
        page.select_option(str(params.selector), str(params.value))
        result["selector"] = params.selector
    elif kind == "check":
        page.check(str(params.selector))
        result["selector"] = params.selector
    elif kind == "uncheck":
        page.uncheck(str(params.selector))
        result["selector"] = params.selector
    elif kind == "press":
        if params.selector:
            page.press(params.selector, params.value or "Enter")
        else:
            page.keyboard_press(str(params.value))
        _settle(page)
        result["url"] = page.url()
    elif kind == "scroll":
        direction = params.value or "down"
        page.scroll(direction, params.selector)
        result["direction"] = direction
    elif kind == "highlight":
        page.highlight(str(params.selector))
        result["selector"] = params.selector

    return result
