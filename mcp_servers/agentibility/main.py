"""
MCP server exposing a browser to agents through semantically-typed tools.

This module provides the main entry point and protocol handling.
Tool dispatch is handled via registry pattern in server/registry.py.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from typing import Any

from .config import BrowserConfig, parse_bool
from .http_client import HttpClientError
from .page import PageError
from .server.contract import (
    DEFAULT_PROTOCOL_VERSION,
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    initialize_result,
    select_protocol,
    tools_list,
)
from .server.registry import ToolRegistry, create_default_registry
from .server.types import ToolResult
from .sessions import SessionRegistry
from .tools.base import SmartToolError

logger = logging.getLogger("mcp.agentibility")

__all__ = [
    "SUPPORTED_PROTOCOL_VERSIONS",
    "LATEST_PROTOCOL_VERSION",
    "DEFAULT_PROTOCOL_VERSION",
    "McpServer",
    "build_parser",
    "main",
]


def _write_message(payload: dict[str, Any]) -> None:
    """Write JSON-RPC message to stdout."""
    data = json.dumps(payload, ensure_ascii=False)
    sys.stdout.buffer.write((data + "\n").encode())
    sys.stdout.buffer.flush()


def _read_message() -> dict[str, Any] | None:
    """Read one JSON-RPC message from stdin; None on EOF. Blank lines yield {}."""
    line = sys.stdin.buffer.readline()
    if not line:
        return None
    line = line.strip()
    if not line:
        return {}
    try:
        msg = json.loads(line.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("dropping malformed frame: %s", exc)
        return {}
    return msg if isinstance(msg, dict) else {}


class McpServer:
    """MCP Server with registry-based tool dispatch."""

    def __init__(
        self,
        config: BrowserConfig | None = None,
        sessions: SessionRegistry | None = None,
        registry: ToolRegistry | None = None,
    ) -> None:
        self.config = config or BrowserConfig.from_env()
        self.sessions = sessions if sessions is not None else SessionRegistry(self.config)
        self.registry = registry or create_default_registry()

    def handle_initialize(self, request_id: Any, params: dict[str, Any] | None = None) -> None:
        """Handle initialize request."""
        requested = (params or {}).get("protocolVersion") if isinstance(params, dict) else None
        protocol = select_protocol(requested)
        _write_message(
            {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": initialize_result(protocol),
            }
        )

    def handle_list_tools(self, request_id: Any) -> None:
        """Handle tools/list request."""
        _write_message(
            {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": {"tools": tools_list()},
            }
        )

    def call_tool(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        # Argument values (fill text, urls with tokens) stay out of the log.
        logger.info("tool=%s session=%s", name, arguments.get("session"))
        try:
            if not name:
                return ToolResult.error("Missing tool name")
            if not self.registry.has(name):
                return ToolResult.error(f"Unknown tool: {name}", tool=name)
            return self.registry.dispatch(name, self.config, self.sessions, arguments)
        except SmartToolError as e:
            logger.info("tool_error tool=%s action=%s reason=%s", e.tool, e.action, e.reason)
            return ToolResult.error(e.reason, tool=e.tool, suggestion=e.suggestion, details=e.details)
        except (HttpClientError, PageError) as e:
            logger.info("tool_failed tool=%s: %s", name, e)
            return ToolResult.error(str(e), tool=name)
        except Exception as exc:
            logger.exception("tool_call_failed")
            return ToolResult.error(str(exc) or type(exc).__name__, tool=name)

    def handle_call_tool(self, request_id: Any, name: str, arguments: dict[str, Any]) -> None:
        """Handle tool call via registry dispatch."""
        result = self.call_tool(name, arguments)
        _write_message(
            {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": {"content": result.to_content_list(), "isError": result.is_error},
            }
        )

    def dispatch(self, message: dict[str, Any]) -> None:
        """Dispatch incoming JSON-RPC message to appropriate handler."""
        if not message:
            return

        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params")
        params = params if isinstance(params, dict) else {}

        if method == "initialize":
            self.handle_initialize(request_id, params)
        elif method == "notifications/initialized":
            return
        elif method in ("tools/list", "list_tools"):
            self.handle_list_tools(request_id)
        elif method in ("tools/call", "call_tool"):
            name = params.get("name")
            arguments = params.get("arguments") or {}
            self.handle_call_tool(request_id, name or "", arguments if isinstance(arguments, dict) else {})
        elif method == "ping":
            _write_message({"jsonrpc": "2.0", "id": request_id, "result": {}})
        elif request_id is None:
            # Unknown notification: nothing to answer.
            return
        else:
            _write_message(
                {
                    "jsonrpc": "2.0",
                    "id": request_id,
                    "error": {"code": -32601, "message": f"Method {method} not found"},
                }
            )

    def serve(self) -> None:
        """Read and dispatch messages until stdin closes."""
        while True:
            message = _read_message()
            if message is None:
                break
            self.dispatch(message)

    def shutdown(self) -> None:
        self.sessions.shutdown()


_TOOLS_HELP = """\
The server exposes MCP tools for web browsing:
  - open_session   Open a browser tab to a URL
  - close_session  Close a browser tab
  - overview       Get page summary (landmarks, counts)
  - query          Query elements with CSS selectors
  - section        Extract content under a heading
  - elements       List elements by type (headings, links, etc.)
  - action         Interact (click, fill, navigate, etc.)
  - screenshot     Capture the page or one element as PNG
  - run_sequence   Run actions, assertions and queries in one call
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentibility",
        description="Agentibility - accessibility for agents (MCP stdio server)",
        epilog=_TOOLS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headless",
        nargs="?",
        const="true",
        default=None,
        metavar="true|false",
        help="Run browser in headless mode (default) or headed with --headless=false",
    )
    parser.add_argument(
        "--no-headless",
        dest="headless",
        action="store_const",
        const="false",
        help="Same as --headless=false",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for MCP server."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = BrowserConfig.from_env()
    if args.headless is not None:
        config.headless = parse_bool(args.headless, True)

    server = McpServer(config)

    def _terminate(signum: int, _frame: Any) -> None:
        logger.info("signal %s received; shutting down", signum)
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, _terminate)
    logger.info("agentibility ready headless=%s port=%s", config.headless, config.cdp_port)
    try:
        server.serve()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()


if __name__ == "__main__":
    main()
