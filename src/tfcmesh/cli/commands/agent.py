# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/cli/commands/agent.py

"""Agent command: run a transfer agent until interrupted."""

import signal
import threading
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from tfcmesh.agent import Agent
from tfcmesh.config import load_config
from tfcmesh.errors import ConfigError
from tfcmesh.server.app import AgentServer


def main(
    config: Path = typer.Option(..., "--config", "-c", help="Agent JSON config file"),
    register: Optional[str] = typer.Option(None, "--register", "-r", help="Bootstrap peer url"),
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind"),
):
    """Run a transfer agent."""
    try:
        cfg = load_config(config)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    agent = Agent(cfg)
    server = AgentServer(agent, host=host)

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        # serve_forever runs in this thread, shutdown must come from another
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    agent.start(bootstrap=register)
    try:
        server.serve_forever()
    finally:
        agent.stop()
