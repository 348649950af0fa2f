from __future__ import annotations

import base64
import json
from typing import Any

import pytest
from conftest import FakeBrowser, make_png

from mcp_servers.agentibility import main as mcp_server
from mcp_servers.agentibility.config import BrowserConfig
from mcp_servers.agentibility.server.contract import SERVER_INFO, tool_names
from mcp_servers.agentibility.server.registry import ToolRegistry, create_default_registry
from mcp_servers.agentibility.server.types import ToolResult
from mcp_servers.agentibility.sessions import SessionRegistry

EXPECTED_TOOLS = [
    "open_session",
    "close_session",
    "overview",
    "query",
    "section",
    "elements",
    "action",
    "screenshot",
    "run_sequence",
]


@pytest.fixture
def sent(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    monkeypatch.setattr(mcp_server, "_write_message", lambda payload: out.append(payload))
    return out


@pytest.fixture
def server(config: BrowserConfig) -> mcp_server.McpServer:
    FakeBrowser.instances.clear()
    return mcp_server.McpServer(config, sessions=SessionRegistry(config, browser_factory=FakeBrowser))


def _call(server: mcp_server.McpServer, sent: list[dict[str, Any]], name: str, /, **arguments: Any) -> dict[str, Any]:
    server.dispatch({"jsonrpc": "2.0", "id": len(sent) + 1, "method": "tools/call", "params": {"name": name, "arguments": arguments}})
    return sent[-1]["result"]


def _payload(result: dict[str, Any]) -> Any:
    texts = [c["text"] for c in result["content"] if c["type"] == "text"]
    return json.loads(texts[-1])


# ═══════════════════════════════════════════════════════════════════════════════
# PROTOCOL
# ═══════════════════════════════════════════════════════════════════════════════


def test_initialize_negotiates_protocol(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    server.dispatch({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"protocolVersion": "2024-11-05"}})
    server.dispatch({"jsonrpc": "2.0", "id": 2, "method": "initialize", "params": {"protocolVersion": "1999-01-01"}})

    assert sent[0]["result"]["protocolVersion"] == "2024-11-05"
    assert sent[0]["result"]["serverInfo"] == SERVER_INFO
    assert sent[1]["result"]["protocolVersion"] == mcp_server.DEFAULT_PROTOCOL_VERSION


def test_list_tools_output(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    server.dispatch({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})

    tools = sent[0]["result"]["tools"]
    assert [t["name"] for t in tools] == EXPECTED_TOOLS
    for tool in tools:
        assert tool["inputSchema"]["type"] == "object"
        assert tool["description"]


def test_every_listed_tool_has_a_handler() -> None:
    registry = create_default_registry()
    assert sorted(registry.tool_names) == sorted(tool_names())


def test_unknown_method_and_notifications(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    server.dispatch({"jsonrpc": "2.0", "id": 7, "method": "resources/list"})
    server.dispatch({"jsonrpc": "2.0", "method": "notifications/cancelled"})
    server.dispatch({"jsonrpc": "2.0", "method": "notifications/initialized"})
    server.dispatch({"jsonrpc": "2.0", "id": 8, "method": "ping"})

    assert sent == [
        {"jsonrpc": "2.0", "id": 7, "error": {"code": -32601, "message": "Method resources/list not found"}},
        {"jsonrpc": "2.0", "id": 8, "result": {}},
    ]


def test_unknown_tool_is_error(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    result = _call(server, sent, "teleport", session="main")

    assert result["isError"] is True
    assert _payload(result) == {"error": "Unknown tool: teleport", "tool": "teleport"}


@pytest.mark.parametrize("params", [[1, 2], "tools", 42])
def test_non_object_params_do_not_crash_dispatch(
    server: mcp_server.McpServer, sent: list[dict[str, Any]], params: Any
) -> None:
    server.dispatch({"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": params})
    server.dispatch({"jsonrpc": "2.0", "id": 4, "method": "initialize", "params": params})

    assert sent[0]["result"]["isError"] is True
    assert _payload(sent[0]["result"]) == {"error": "Missing tool name"}
    assert sent[1]["result"]["protocolVersion"] == mcp_server.DEFAULT_PROTOCOL_VERSION


def test_serve_reads_until_eof(server: mcp_server.McpServer, sent: list[dict[str, Any]], monkeypatch: pytest.MonkeyPatch) -> None:
    frames: list[dict[str, Any] | None] = [{}, {"jsonrpc": "2.0", "id": 1, "method": "ping"}, None]
    monkeypatch.setattr(mcp_server, "_read_message", lambda: frames.pop(0))

    server.serve()

    assert sent == [{"jsonrpc": "2.0", "id": 1, "result": {}}]


# ═══════════════════════════════════════════════════════════════════════════════
# SESSION TOOLS
# ═══════════════════════════════════════════════════════════════════════════════


def test_open_and_close_session(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    opened = _call(server, sent, "open_session", session="main", url="https://site.test/")
    assert opened["isError"] is False
    assert _payload(opened) == {"success": True, "session": "main", "title": "", "url": "https://site.test/"}

    closed = _call(server, sent, "close_session", session="main")
    assert _payload(closed) == {"success": True, "session": "main", "message": "Session 'main' closed"}
    assert FakeBrowser.instances[0].closed is True


def test_open_existing_session_is_error(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    _call(server, sent, "open_session", session="main", url="https://site.test/")

    again = _call(server, sent, "open_session", session="main", url="https://site.test/other")

    assert again["isError"] is True
    assert _payload(again) == {
        "error": "Session 'main' already exists. Use close_session to close it first, or choose a different name."
    }


def test_open_navigation_failure_is_reported(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    result = _call(server, sent, "open_session", session="main", url="https://unresolvable.test/")

    assert result["isError"] is True
    assert "net::ERR_NAME_NOT_RESOLVED" in _payload(result)["error"]
    assert len(server.sessions) == 0


@pytest.mark.parametrize("tool", ["overview", "action", "screenshot", "run_sequence", "close_session"])
def test_unknown_session_lists_available(server: mcp_server.McpServer, sent: list[dict[str, Any]], tool: str) -> None:
    _call(server, sent, "open_session", session="main", url="https://site.test/")

    result = _call(server, sent, tool, session="ghost", type="click", selector="#x", steps=[])

    assert result["isError"] is True
    assert _payload(result) == {"error": "Session 'ghost' not found", "availableSessions": ["main"]}


# ═══════════════════════════════════════════════════════════════════════════════
# PAGE TOOLS
# ═══════════════════════════════════════════════════════════════════════════════


def _open(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> Any:
    _call(server, sent, "open_session", session="main", url="https://site.test/")
    return server.sessions.get("main").page


def test_action_error_payload(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    _open(server, sent)

    missing = _call(server, sent, "action", session="main", type="click")
    assert missing["isError"] is True
    assert _payload(missing) == {"error": "click requires selector parameter", "action": "click", "selector": None}

    timeout = _call(server, sent, "action", session="main", type="click", selector="#nope")
    assert timeout["isError"] is True
    assert "#nope" in _payload(timeout)["error"]


def test_action_fill_succeeds(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    page = _open(server, sent)
    page.add("#email")

    result = _call(server, sent, "action", session="main", type="fill", selector="#email", value="a@b.test")

    assert result["isError"] is False
    assert _payload(result)["success"] is True
    assert page.values["#email"] == "a@b.test"


def test_overview_returns_extraction_result(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    page = _open(server, sent)
    page.extraction["overview"] = {"v": 1, "ok": True, "result": {"title": "Docs", "counts": {"links": 3}}}

    result = _call(server, sent, "overview", session="main")

    assert _payload(result) == {"title": "Docs", "counts": {"links": 3}}


def test_extraction_failure_is_tool_error(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    _open(server, sent)

    result = _call(server, sent, "section", session="main", name="Pricing")

    assert result["isError"] is True
    assert _payload(result)["error"] == "no fake extraction configured"


def test_screenshot_returns_image_and_dimensions(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    page = _open(server, sent)
    page.screenshot_bytes = make_png(12, 7)

    result = _call(server, sent, "screenshot", session="main", fullPage=True)

    image, text = result["content"]
    assert image["type"] == "image"
    assert image["mimeType"] == "image/png"
    assert base64.b64decode(image["data"]) == page.screenshot_bytes
    assert json.loads(text["text"]) == {"selector": None, "width": 12, "height": 7, "bytes": len(page.screenshot_bytes)}
    assert ("screenshot", None, True) in page.calls


def test_run_sequence_over_the_wire(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    page = _open(server, sent)
    page.add("#go")
    page.on_click["#go"] = lambda p: p.navigate_to("https://site.test/done")

    result = _call(
        server,
        sent,
        "run_sequence",
        session="main",
        steps=[
            {"type": "action", "action": "click", "selector": "#go"},
            {"type": "assert", "condition": {"url_contains": "/done"}},
        ],
    )

    payload = _payload(result)
    assert result["isError"] is False
    assert payload["success"] is True
    assert payload["completed"] == 2
    assert [e["type"] for e in payload["events"]] == ["navigation", "step", "step"]


def test_run_sequence_requires_steps_array(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    _open(server, sent)

    result = _call(server, sent, "run_sequence", session="main", steps="click")

    assert result["isError"] is True
    assert _payload(result) == {"error": "run_sequence requires a steps array"}


# ═══════════════════════════════════════════════════════════════════════════════
# REGISTRY / SHUTDOWN / CLI
# ═══════════════════════════════════════════════════════════════════════════════


def test_handler_exception_becomes_tool_error(config: BrowserConfig, sent: list[dict[str, Any]]) -> None:
    def explode(_config: Any, _sessions: Any, _args: dict[str, Any]) -> ToolResult:
        raise RuntimeError("kaboom")

    registry = ToolRegistry()
    registry.register("explode", explode, requires_session=False)
    srv = mcp_server.McpServer(config, sessions=SessionRegistry(config, browser_factory=FakeBrowser), registry=registry)

    result = _call(srv, sent, "explode")

    assert result["isError"] is True
    assert _payload(result) == {"error": "kaboom", "tool": "explode"}


def test_shutdown_closes_sessions(server: mcp_server.McpServer, sent: list[dict[str, Any]]) -> None:
    page = _open(server, sent)

    server.shutdown()

    assert page.closed is True
    assert len(server.sessions) == 0
    assert FakeBrowser.instances[0].closed is True


@pytest.mark.parametrize(
    ("argv", "expected"),
    [([], None), (["--headless"], "true"), (["--headless=false"], "false"), (["--no-headless"], "false")],
)
def test_cli_headless_flags(argv: list[str], expected: str | None) -> None:
    assert mcp_server.build_parser().parse_args(argv).headless == expected
