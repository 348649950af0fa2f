from __future__ import annotations

import json
from typing import Any

import pytest

from mcp_servers.agentibility.page import PageError
from mcp_servers.agentibility.tools import accessibility
from mcp_servers.agentibility.tools.extraction import (
    EXTRACT_SCRIPT_SOURCE,
    EXTRACT_SCRIPT_VERSION,
    build_expression,
    build_request,
    run_extraction,
)


class RecordingPage:
    def __init__(self, response: Any) -> None:
        self.response = response
        self.expressions: list[str] = []

    def evaluate(self, expression: str) -> Any:
        self.expressions.append(expression)
        return self.response

    def request(self) -> dict[str, Any]:
        expr = self.expressions[-1]
        marker = "__agentibilityExtract.run("
        start = expr.rindex(marker) + len(marker)
        end = expr.rindex(");")
        return json.loads(expr[start:end])


def _ok(result: dict[str, Any]) -> dict[str, Any]:
    return {"v": EXTRACT_SCRIPT_VERSION, "ok": True, "result": result}


def test_script_is_versioned_and_idempotent() -> None:
    assert f"const VERSION = {EXTRACT_SCRIPT_VERSION};" in EXTRACT_SCRIPT_SOURCE
    assert "g.__agentibilityExtract.version === VERSION" in EXTRACT_SCRIPT_SOURCE
    for op in ("overview", "query", "section", "elements"):
        assert f"function {op}(" in EXTRACT_SCRIPT_SOURCE


def test_build_request_rejects_unknown_op() -> None:
    with pytest.raises(ValueError):
        build_request("scrape")


def test_expression_embeds_structured_request() -> None:
    expr = build_expression(build_request("query", selector='a[href="/x"]', extract="text", depth=3, limit=10))
    assert EXTRACT_SCRIPT_SOURCE in expr
    assert '"selector": "a[href=\\"/x\\"]"' in expr


def test_run_extraction_returns_result() -> None:
    page = RecordingPage(_ok({"elements": ["<main />"], "count": 1}))

    result = accessibility.query_elements(page, "main")

    assert result == {"elements": ["<main />"], "count": 1}
    assert page.request() == {
        "v": EXTRACT_SCRIPT_VERSION,
        "op": "query",
        "selector": "main",
        "extract": "structure",
        "depth": 10,
        "limit": 0,
    }


def test_accessibility_defaults() -> None:
    page = RecordingPage(_ok({"text": "", "count": 0}))

    accessibility.get_section(page, "History")
    assert page.request()["extract"] == "text"
    assert page.request()["name"] == "History"

    accessibility.get_elements(page, "links", limit=5)
    assert page.request() == {"v": EXTRACT_SCRIPT_VERSION, "op": "elements", "type": "links", "limit": 5}

    accessibility.get_overview(page)
    assert page.request() == {"v": EXTRACT_SCRIPT_VERSION, "op": "overview"}


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (None, "no response"),
        ("oops", "no response"),
        ({"v": EXTRACT_SCRIPT_VERSION + 1, "ok": True, "result": {}}, "version mismatch"),
        ({"v": EXTRACT_SCRIPT_VERSION, "ok": False, "error": "SyntaxError: bad selector"}, "bad selector"),
    ],
)
def test_run_extraction_rejects_bad_responses(response: Any, message: str) -> None:
    with pytest.raises(PageError, match=message):
        run_extraction(RecordingPage(response), "overview")


def test_in_page_errors_for_unknown_section_are_data() -> None:
    payload = {"error": "Section not found: Nope", "count": 0}
    page = RecordingPage(_ok(payload))
    assert accessibility.get_section(page, "Nope") == payload
