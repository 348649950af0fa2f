#!/usr/bin/env python3
import os
import sys

print(
    f"[mcp] binary={os.environ.get('MCP_BROWSER_BINARY', 'auto')} | "
    f"profile={os.environ.get('MCP_BROWSER_PROFILE', 'tmp/agentibility-profile')} | "
    f"port={os.environ.get('MCP_BROWSER_PORT', '9222')} | "
    f"headless={os.environ.get('MCP_HEADLESS', '1')}",
    file=sys.stderr,
)

from mcp_servers.agentibility.main import main  # noqa: E402

if __name__ == "__main__":
    main(sys.argv[1:])
