import asyncio
import logging
from typing import Callable, Optional

import typer
from typing_extensions import Annotated

from agent_display.client.sync import ClientSync
from agent_display.client.watch import WatchConsole
from agent_display.logger import setup_logging
from agent_display.runtime_config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    HOST_ENV,
    LOG_LEVEL_ENV,
    MAX_HISTORY_ENV,
    PORT_ENV,
    LogLevel,
    RuntimeConfig,
    load_envs,
)
from agent_display.server.runner import run_server

logger = logging.getLogger(__name__)

ServerRunner = Callable[[RuntimeConfig], None]
WatchRunner = Callable[[RuntimeConfig, str], None]

# Global runner functions - set by create_app()
_server_runner: Optional[ServerRunner] = None
_watch_runner: Optional[WatchRunner] = None


def default_server_runner(config: RuntimeConfig) -> None:
    """Run the MCP stdio server and websocket broadcaster until stdin closes."""
    asyncio.run(run_server(config))


def default_watch_runner(config: RuntimeConfig, url: str) -> None:
    """Run the terminal watch console against ``url``."""
    sync = ClientSync(
        url,
        reconnect_delay=config.reconnect_delay,
        max_log_entries=config.action_log_size,
    )
    asyncio.run(WatchConsole(sync).run())


def serve(
    host: Annotated[
        str,
        typer.Option(envvar=HOST_ENV, help="Interface for the websocket broadcaster"),
    ] = DEFAULT_HOST,
    port: Annotated[
        int,
        typer.Option(envvar=PORT_ENV, help="Port for the websocket broadcaster"),
    ] = DEFAULT_PORT,
    log_level: Annotated[
        LogLevel, typer.Option(envvar=LOG_LEVEL_ENV, help="Log file level")
    ] = LogLevel.info,
    max_history: Annotated[
        Optional[int],
        typer.Option(
            envvar=MAX_HISTORY_ENV,
            min=1,
            help="Maximum number of undo steps to keep (default: unlimited)",
        ),
    ] = None,
) -> None:
    """Serve the display to an agent over MCP stdio and to UIs over websocket."""
    cfg = RuntimeConfig(
        host=host, port=port, log_level=log_level, max_history=max_history
    )
    log_file = setup_logging(cfg.log_level)
    logger.info(f"Starting agent-display on {cfg.websocket_url} (log: {log_file})")

    runner = _server_runner or default_server_runner
    try:
        runner(cfg)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def watch(
    url: Annotated[
        Optional[str],
        typer.Option(help="Websocket URL (default: ws://HOST:PORT)"),
    ] = None,
    host: Annotated[str, typer.Option(envvar=HOST_ENV)] = DEFAULT_HOST,
    port: Annotated[int, typer.Option(envvar=PORT_ENV)] = DEFAULT_PORT,
    reconnect_delay: Annotated[
        float,
        typer.Option(min=0.1, help="Seconds to wait before reconnecting"),
    ] = 2.0,
    log_level: Annotated[
        LogLevel, typer.Option(envvar=LOG_LEVEL_ENV, help="Log file level")
    ] = LogLevel.info,
) -> None:
    """Watch the display in this terminal and answer input requests."""
    cfg = RuntimeConfig(
        host=host, port=port, log_level=log_level, reconnect_delay=reconnect_delay
    )
    setup_logging(cfg.log_level)
    target = url or cfg.websocket_url

    runner = _watch_runner or default_watch_runner
    try:
        runner(cfg, target)
    except KeyboardInterrupt:
        print("\nExiting...")


def create_app(
    server_runner: Optional[ServerRunner] = None,
    watch_runner: Optional[WatchRunner] = None,
) -> typer.Typer:
    """
    Create and configure the Typer application.

    Args:
        server_runner: Function that runs the server for a RuntimeConfig
        watch_runner: Function that runs the watch console for a RuntimeConfig and URL

    Returns:
        Typer application
    """
    # Load settings from .env if not already set in the environment
    load_envs()

    # Set global runner functions
    global _server_runner, _watch_runner
    _server_runner = server_runner
    _watch_runner = watch_runner

    app = typer.Typer(rich_markup_mode=None, no_args_is_help=True)
    app.command("serve")(serve)
    app.command("watch")(watch)

    return app


# Create default app instance for the console script
app = create_app()


if __name__ == "__main__":
    app()
