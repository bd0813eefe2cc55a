"""
Client subpackage: state mirror, action log, Rich rendering and the watch console.
"""

from agent_display.client.action_log import ActionLogEntry, action_detail
from agent_display.client.sync import ClientSync
from agent_display.client.watch import WatchConsole

__all__ = ["ActionLogEntry", "ClientSync", "WatchConsole", "action_detail"]
