# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/cli/commands/status.py

"""Read-only queries against a running agent."""

import json
from typing import Optional

import typer
from loguru import logger

from tfcmesh.clients.http import PeerClient
from tfcmesh.errors import FetchError

DEFAULT_AGENT = "http://localhost:8989"

AgentOption = typer.Option(DEFAULT_AGENT, "--agent", "-a", help="Agent url")


def _echo(data):
    typer.echo(json.dumps(data, indent=2))


def _fetch(func, *args, **kwargs):
    try:
        return func(*args, **kwargs)
    except FetchError as e:
        logger.error(str(e))
        raise typer.Exit(1)


def main(agent: str = AgentOption):
    """Show an agent's status and metrics."""
    _echo(_fetch(PeerClient().status, agent.rstrip("/")).to_wire())


def agents(agent: str = AgentOption):
    """List the agents known to an agent."""
    _echo(_fetch(PeerClient().agents, agent.rstrip("/")))


def files(
    pattern: str = typer.Argument("", help="Glob or substring to match lfns against"),
    agent: str = AgentOption,
):
    """List lfns in an agent's catalog."""
    for lfn in _fetch(PeerClient().files, agent.rstrip("/"), pattern):
        typer.echo(lfn)


def pending(
    status: str = typer.Option("", "--status", help="queued, processing, completed, failed, cancelled, forwarded or all"),
    request_id: Optional[int] = typer.Option(None, "--id", help="Show a single request"),
    agent: str = AgentOption,
):
    """Show requests waiting for a worker, or past ones by status."""
    client = PeerClient()
    if request_id is not None:
        _echo(_fetch(client.request, agent.rstrip("/"), request_id))
    else:
        _echo(_fetch(client.pending, agent.rstrip("/"), status))
