"""Agent display: a shared text/markdown display driven by an agent over MCP."""

from agent_display.session import DisplaySession

__all__ = ["DisplaySession"]
