"""MCP protocol surface: tool definitions, handlers and dispatch."""
