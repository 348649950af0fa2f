"""Tool schema definitions."""

from __future__ import annotations

from typing import Any

from ..sequence.executor import QUERY_TYPES, STEP_TYPES
from ..tools.accessibility import ELEMENT_TYPES, EXTRACT_MODES
from ..tools.actions import ACTION_TYPES

_SESSION: dict[str, Any] = {"type": "string", "description": "The session name"}

_ASSERT_CONDITIONS = """Assertion conditions (one key per condition):
- url_contains, url_equals: {"url_contains": "/done"}
- title_contains, title_equals: {"title_equals": "Checkout"}
- element_exists, element_not_exists, element_visible: {"element_visible": "#result"}
- element_text_contains: {"element_text_contains": {"selector": "#result", "text": "ok"}}
- element_count, element_count_gte, element_count_lte: {"element_count_gte": {"selector": "li", "count": 3}}"""

OPEN_SESSION_TOOL: dict[str, Any] = {
    "name": "open_session",
    "description": "Opens a new browser tab and navigates to the specified URL. Returns session info including title and URL.",
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": {"type": "string", "description": 'A unique name for this browser session (e.g., "main", "test-1")'},
            "url": {"type": "string", "description": "The URL to navigate to"},
        },
        "required": ["session", "url"],
    },
}

CLOSE_SESSION_TOOL: dict[str, Any] = {
    "name": "close_session",
    "description": "Closes a browser session and releases its resources.",
    "inputSchema": {
        "type": "object",
        "properties": {"session": {"type": "string", "description": "The session name to close"}},
        "required": ["session"],
    },
}

OVERVIEW_TOOL: dict[str, Any] = {
    "name": "overview",
    "description": (
        "Returns a summary of the current page including title, URL, accessibility landmarks, "
        "and counts of key elements (headings, links, buttons, forms, etc.)."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {"session": _SESSION},
        "required": ["session"],
    },
}

_EXTRACT_PROPERTIES: dict[str, Any] = {
    "depth": {"type": "integer", "default": 10, "description": "Maximum depth for structure extraction. Default: 10"},
    "limit": {
        "type": "integer",
        "default": 0,
        "description": "Character limit for text extraction (0 = no limit). Default: 0",
    },
}

QUERY_TOOL: dict[str, Any] = {
    "name": "query",
    "description": (
        "Query elements on the page using CSS selectors. Can extract structure "
        "(HTML-like representation with accessible names) or text content."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": _SESSION,
            "selector": {"type": "string", "description": 'CSS selector to match elements (e.g., "main", "form", "#content")'},
            "extract": {
                "type": "string",
                "enum": list(EXTRACT_MODES),
                "default": "structure",
                "description": 'What to extract: "structure" for HTML-like tree with accessible names, "text" for plain text content. Default: structure',
            },
            **_EXTRACT_PROPERTIES,
        },
        "required": ["session", "selector"],
    },
}

SECTION_TOOL: dict[str, Any] = {
    "name": "section",
    "description": (
        "Extracts content from under a heading. Finds a heading containing the specified text "
        "and returns all content until the next same-or-higher level heading."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": _SESSION,
            "name": {"type": "string", "description": "Text to match in the heading (case-insensitive)"},
            "extract": {
                "type": "string",
                "enum": list(EXTRACT_MODES),
                "default": "text",
                "description": 'What to extract: "structure" or "text". Default: text',
            },
            **_EXTRACT_PROPERTIES,
        },
        "required": ["session", "name"],
    },
}

ELEMENTS_TOOL: dict[str, Any] = {
    "name": "elements",
    "description": (
        "Lists all elements of a specific type on the page (like a screen reader rotor). "
        "Returns accessible information about each element."
    ),
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": _SESSION,
            "type": {"type": "string", "enum": list(ELEMENT_TYPES), "description": "Type of elements to list"},
            "limit": {
                "type": "integer",
                "default": 0,
                "description": "Maximum number of elements to return (0 = no limit). Default: 0",
            },
        },
        "required": ["session", "type"],
    },
}

ACTION_TOOL: dict[str, Any] = {
    "name": "action",
    "description": """Perform an action on the page. Actions block until complete (elements are waited for).

Available actions:
- navigate: Go to a URL (requires: url)
- back: Navigate back in history
- forward: Navigate forward in history
- click: Click an element (requires: selector)
- fill: Fill a text input (requires: selector, value)
- select: Select an option in a dropdown (requires: selector, value)
- check: Check a checkbox (requires: selector)
- uncheck: Uncheck a checkbox (requires: selector)
- press: Press a key (requires: selector or value for key name)
- scroll: Scroll the page or element (optional: selector, value for direction)
- highlight: Outline an element briefly for visual debugging (requires: selector)""",
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": _SESSION,
            "type": {"type": "string", "enum": list(ACTION_TYPES), "description": "The action to perform"},
            "selector": {
                "type": "string",
                "description": "CSS selector for the target element (required for most actions)",
            },
            "value": {
                "type": "string",
                "description": "Value for fill/select actions, key name for press, direction (up/down) for scroll",
            },
            "url": {"type": "string", "description": "URL for navigate action"},
        },
        "required": ["session", "type"],
    },
}

SCREENSHOT_TOOL: dict[str, Any] = {
    "name": "screenshot",
    "description": "Captures a screenshot of the current page or a specific element. Returns PNG image content plus its dimensions.",
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": _SESSION,
            "selector": {
                "type": "string",
                "description": "CSS selector for a specific element to capture. If omitted, captures the full page/viewport.",
            },
            "fullPage": {
                "type": "boolean",
                "default": False,
                "description": "Capture full scrollable page instead of viewport only. Ignored if selector is provided. Default: false",
            },
        },
        "required": ["session"],
    },
}

RUN_SEQUENCE_TOOL: dict[str, Any] = {
    "name": "run_sequence",
    "description": f"""Execute a sequence of browser operations and assertions in a single call.

Returns a chronological event log of everything that happened: actions, assertions and browser events interleaved.

Step types:
- action: Browser actions ({", ".join(ACTION_TYPES)})
- assert: Conditions that fail the sequence if not met (optional "timeout" in ms for element waits)
- query: Capture page state mid-sequence (overview, screenshot)

{_ASSERT_CONDITIONS}

Options:
- console: Capture console logs (level: 'all'|'warn'|'error', filter: regex)
- network: Capture network requests (filter: regex for URL)

Stops on first assertion failure or action error.""",
    "inputSchema": {
        "type": "object",
        "properties": {
            "session": {"type": "string", "description": "Browser session ID"},
            "steps": {
                "type": "array",
                "description": "Ordered list of operations to execute",
                "items": {
                    "type": "object",
                    "properties": {
                        "type": {"type": "string", "enum": list(STEP_TYPES), "description": "Step type"},
                        "action": {
                            "type": "string",
                            "enum": list(ACTION_TYPES),
                            "description": "Action type (for action steps)",
                        },
                        "condition": {"type": "object", "description": "Assertion condition (for assert steps)"},
                        "timeout": {"type": "integer", "description": "Wait budget in ms for element assertions"},
                        "query": {
                            "type": "string",
                            "enum": list(QUERY_TYPES),
                            "description": "Query type (for query steps)",
                        },
                        "selector": {"type": "string"},
                        "value": {"type": "string"},
                        "url": {"type": "string"},
                        "params": {"type": "object"},
                    },
                    "required": ["type"],
                },
            },
            "options": {
                "type": "object",
                "description": "Capture options for console and network events",
                "properties": {
                    "console": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "level": {"type": "string", "enum": ["all", "warn", "error"]},
                            "filter": {"type": "string", "description": "Regex pattern to filter messages"},
                        },
                    },
                    "network": {
                        "type": "object",
                        "properties": {
                            "enabled": {"type": "boolean"},
                            "filter": {"type": "string", "description": "Regex pattern to filter URLs"},
                            "includeBody": {"type": "boolean"},
                        },
                    },
                },
            },
        },
        "required": ["session", "steps"],
    },
}

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    OPEN_SESSION_TOOL,
    CLOSE_SESSION_TOOL,
    OVERVIEW_TOOL,
    QUERY_TOOL,
    SECTION_TOOL,
    ELEMENTS_TOOL,
    ACTION_TOOL,
    SCREENSHOT_TOOL,
    RUN_SEQUENCE_TOOL,
]
