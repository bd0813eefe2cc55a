"""
Server subpackage: websocket state broadcaster and the agent-facing MCP server.
"""

from agent_display.server.broadcaster import (
    StateBroadcaster,
    create_app,
    handle_client_message,
)
from agent_display.server.mcp_server import create_mcp_server, handle_tool_call
from agent_display.server.runner import run_server

__all__ = [
    "StateBroadcaster",
    "create_app",
    "create_mcp_server",
    "handle_client_message",
    "handle_tool_call",
    "run_server",
]
