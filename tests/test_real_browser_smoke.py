from __future__ import annotations

import http.server
import os
import socketserver
import threading
from collections.abc import Iterator
from functools import partial
from pathlib import Path

import pytest

from mcp_servers.agentibility.config import BrowserConfig
from mcp_servers.agentibility.sequence import run_sequence
from mcp_servers.agentibility.sessions import SessionRegistry
from mcp_servers.agentibility.tools.accessibility import get_elements, get_overview

pytestmark = pytest.mark.skipif(
    os.environ.get("RUN_BROWSER_INTEGRATION") != "1",
    reason="Requires real Chrome/Chromium. Set RUN_BROWSER_INTEGRATION=1 to enable.",
)

_INDEX = """<!doctype html>
<html><head><title>Search</title></head>
<body>
<main>
  <h1>Search</h1>
  <form id="form" action="results.html">
    <label for="q">Query</label>
    <input id="q" name="q">
    <button id="submit" type="submit">Go</button>
  </form>
  <a href="results.html">Results</a>
</main>
<script>console.warn("index loaded")</script>
</body></html>
"""

_RESULTS = """<!doctype html>
<html><head><title>Results</title></head>
<body><main><h1>Results</h1><p id="result">Found 3 items</p>
<script>console.error("results ready"); fetch("data.json");</script>
</main></body></html>
"""


class _QuietHandler(http.server.SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        return None


@pytest.fixture(scope="module")
def site(tmp_path_factory: pytest.TempPathFactory) -> Iterator[str]:
    root: Path = tmp_path_factory.mktemp("site")
    (root / "index.html").write_text(_INDEX, encoding="utf-8")
    (root / "results.html").write_text(_RESULTS, encoding="utf-8")
    (root / "data.json").write_text('{"items": 3}', encoding="utf-8")
    handler = partial(_QuietHandler, directory=str(root))
    with socketserver.TCPServer(("127.0.0.1", 0), handler) as httpd:
        thread = threading.Thread(target=httpd.serve_forever, daemon=True)
        thread.start()
        try:
            yield f"http://127.0.0.1:{httpd.server_address[1]}"
        finally:
            httpd.shutdown()
            thread.join(timeout=1)


@pytest.fixture(scope="module")
def sessions() -> Iterator[SessionRegistry]:
    registry = SessionRegistry(BrowserConfig.from_env())
    try:
        yield registry
    finally:
        registry.shutdown()


def test_inspect_local_page(sessions: SessionRegistry, site: str) -> None:
    session = sessions.open("inspect", f"{site}/index.html")
    try:
        overview = get_overview(session.page)
        assert overview["title"] == "Search"
        headings = get_elements(session.page, "headings")
        assert any(h.get("text") == "Search" for h in headings["elements"])
    finally:
        sessions.close("inspect")


def test_sequence_submits_form_and_captures_events(sessions: SessionRegistry, site: str) -> None:
    sessions.open("seq", f"{site}/index.html")
    try:
        result = run_sequence(
            sessions,
            "seq",
            [
                {"type": "assert", "condition": {"element_exists": "#form"}},
                {"type": "action", "action": "fill", "selector": "#q", "value": "hi"},
                {"type": "action", "action": "click", "selector": "#submit"},
                {"type": "assert", "condition": {"element_text_contains": {"selector": "#result", "text": "Found"}}},
                {"type": "assert", "condition": {"title_equals": "Results"}},
            ],
            {"console": {"enabled": True, "level": "error"}, "network": {"enabled": True, "filter": r"data\.json"}},
        )

        assert result["success"] is True, result
        assert result["completed"] == 5
        kinds = [e["type"] for e in result["events"]]
        assert "navigation" in kinds
        assert result["final_state"]["url"].startswith(f"{site}/results.html")
        assert result["final_state"]["title"] == "Results"
        consoles = [e for e in result["events"] if e["type"] == "console"]
        assert all(e["level"] == "error" for e in consoles)
    finally:
        sessions.close("seq")


def test_sequence_stops_on_missing_element(sessions: SessionRegistry, site: str) -> None:
    sessions.open("fail", f"{site}/index.html")
    try:
        result = run_sequence(
            sessions,
            "fail",
            [
                {"type": "assert", "condition": {"element_exists": "#form"}},
                {"type": "assert", "condition": {"element_exists": "#missing"}, "timeout": 300},
                {"type": "action", "action": "fill", "selector": "#q", "value": "x"},
            ],
        )

        assert result["success"] is False
        assert result["failed_at"] == 1
        assert result["completed"] == 1
        assert [e["index"] for e in result["events"] if e["type"] == "step"] == [0, 1]
    finally:
        sessions.close("fail")
