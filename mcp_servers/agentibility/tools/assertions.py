"""Page state assertions used by `run_sequence`.

Conditions are single-key dicts (`{"url_contains": "/done"}`). Failures are
reported as data (`AssertionResult.success == False`), never raised.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..http_client import HttpClientError
from ..page import PageError

if TYPE_CHECKING:
    from ..page import Page

DEFAULT_TIMEOUT_MS = 5000

STRING_CONDITIONS = ("url_contains", "url_equals", "title_contains", "title_equals")
PRESENCE_CONDITIONS = ("element_exists", "element_not_exists", "element_visible")
COUNT_CONDITIONS = ("element_count", "element_count_gte", "element_count_lte")
CONDITIONS = STRING_CONDITIONS + PRESENCE_CONDITIONS + ("element_text_contains",) + COUNT_CONDITIONS

# condition -> (wait state, failure template)
_PRESENCE = {
    "element_exists": ("attached", 'Element "{selector}" not found within {timeout}ms'),
    "element_not_exists": ("detached", 'Element "{selector}" still exists after {timeout}ms'),
    "element_visible": ("visible", 'Element "{selector}" not visible within {timeout}ms'),
}


@dataclass(slots=True)
class AssertionResult:
    success: bool
    condition: str
    expected: str | int | None = None
    actual: str | int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "condition": self.condition}
        for key in ("expected", "actual", "error"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        return out


def condition_kind(condition: Any) -> str | None:
    """The recognized condition key, or None."""
    if not isinstance(condition, dict):
        return None
    for key in CONDITIONS:
        if key in condition:
            return key
    return None


def _compare_strings(kind: str, actual: str, expected: str) -> AssertionResult:
    subject = "URL" if kind.startswith("url") else "Title"
    if kind.endswith("_contains"):
        success = expected in actual
        error = f'{subject} "{actual}" does not contain "{expected}"'
    else:
        success = actual == expected
        error = f'{subject} "{actual}" does not equal "{expected}"'
    return AssertionResult(success, kind, expected, actual, None if success else error)


def _count(page: Page, kind: str, spec: dict[str, Any]) -> AssertionResult:
    selector = str(spec.get("selector") or "")
    expected = int(spec.get("count") or 0)
    actual = page.count(selector)
    if kind == "element_count":
        success = actual == expected
        error = f'Expected {expected} elements matching "{selector}", found {actual}'
    elif kind == "element_count_gte":
        success = actual >= expected
        error = f'Expected at least {expected} elements matching "{selector}", found {actual}'
    else:
        success = actual <= expected
        error = f'Expected at most {expected} elements matching "{selector}", found {actual}'
    return AssertionResult(success, kind, expected, actual, None if success else error)


def check_assertion(page: Page, condition: Any, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> AssertionResult:
    """Check one condition against the current page state.

    Presence-class conditions wait up to `timeout_ms` for the DOM state;
    everything else is evaluated once.
    """
    kind = condition_kind(condition)
    if kind is None:
        try:
            encoded = json.dumps(condition, ensure_ascii=False)
        except (TypeError, ValueError):
            encoded = repr(condition)
        return AssertionResult(False, "unknown", error=f"Unknown assertion condition: {encoded}")

    if kind in ("url_contains", "url_equals"):
        return _compare_strings(kind, page.url(), str(condition[kind]))

    if kind in ("title_contains", "title_equals"):
        return _compare_strings(kind, page.title(), str(condition[kind]))

    if kind in _PRESENCE:
        selector = str(condition[kind])
        state, template = _PRESENCE[kind]
        try:
            page.wait_for_selector(selector, state=state, timeout_ms=timeout_ms)
        except (PageError, HttpClientError):
            return AssertionResult(False, kind, selector, error=template.format(selector=selector, timeout=timeout_ms))
        return AssertionResult(True, kind, selector)

    if kind == "element_text_contains":
        spec = condition[kind] if isinstance(condition[kind], dict) else {}
        selector = str(spec.get("selector") or "")
        text = str(spec.get("text") or "")
        try:
            page.wait_for_selector(selector, state="attached", timeout_ms=timeout_ms)
        except (PageError, HttpClientError):
            return AssertionResult(False, kind, text, error=f'Element "{selector}" not found within {timeout_ms}ms')
        actual = page.text_content(selector) or ""
        success = text in actual
        error = None if success else f'Element text "{actual}" does not contain "{text}"'
        return AssertionResult(success, kind, text, actual, error)

    spec = condition[kind] if isinstance(condition[kind], dict) else {}
    return _count(page, kind, spec)


def describe_condition(condition: Any) -> str:
    kind = condition_kind(condition)
    if kind is None:
        return "unknown condition"
    value = condition[kind]
    if kind == "url_contains":
        return f'URL contains "{value}"'
    if kind == "url_equals":
        return f'URL equals "{value}"'
    if kind == "title_contains":
        return f'title contains "{value}"'
    if kind == "title_equals":
        return f'title equals "{value}"'
    if kind == "element_exists":
        return f'element "{value}" exists'
    if kind == "element_not_exists":
        return f'element "{value}" does not exist'
    if kind == "element_visible":
        return f'element "{value}" is visible'
    spec = value if isinstance(value, dict) else {}
    selector = spec.get("selector")
    if kind == "element_text_contains":
        return f'element "{selector}" contains text "{spec.get("text")}"'
    qualifier = {"element_count": "exactly", "element_count_gte": "at least", "element_count_lte": "at most"}[kind]
    return f'{qualifier} {spec.get("count")} elements matching "{selector}"'
