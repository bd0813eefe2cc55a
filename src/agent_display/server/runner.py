"""
Run the MCP stdio server and the websocket broadcaster in one event loop.
"""

import asyncio
import logging
from typing import Optional

import mcp.server.stdio
import uvicorn
from mcp.server.lowlevel import NotificationOptions

from agent_display.runtime_config import RuntimeConfig
from agent_display.server.broadcaster import StateBroadcaster, create_app
from agent_display.server.mcp_server import create_mcp_server
from agent_display.session import DisplaySession

logger = logging.getLogger(__name__)


def build_uvicorn_server(
    config: RuntimeConfig, session: DisplaySession, broadcaster: StateBroadcaster
) -> uvicorn.Server:
    """Create the uvicorn server for the state websocket.

    uvicorn's own logging config is disabled so nothing is written to stdout.
    """
    app = create_app(session, broadcaster)
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            log_config=None,
            log_level=config.log_level.value,
        )
    )


async def run_server(
    config: RuntimeConfig, session: Optional[DisplaySession] = None
) -> None:
    """Serve ``session`` to an agent over stdio and to UI clients over websocket."""
    session = session or DisplaySession(max_history=config.max_history)
    broadcaster = StateBroadcaster()
    broadcaster.attach(session)

    ws_server = build_uvicorn_server(config, session, broadcaster)
    ws_task = asyncio.create_task(ws_server.serve())
    logger.info(f"Websocket broadcaster starting on {config.websocket_url}")

    mcp_server = create_mcp_server(session, wait_timeout=config.input_wait_timeout)
    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await mcp_server.run(
                read_stream,
                write_stream,
                mcp_server.create_initialization_options(
                    notification_options=NotificationOptions(tools_changed=True)
                ),
            )
    finally:
        logger.info("MCP session ended, stopping websocket broadcaster")
        ws_server.should_exit = True
        await ws_task
        await broadcaster.drain()
