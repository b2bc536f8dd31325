# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/cli/commands/transfer.py

"""Commands that change state on a running agent."""

from typing import Optional

import typer
from loguru import logger

from tfcmesh.clients.http import PeerClient
from tfcmesh.errors import FetchError
from tfcmesh.models import TransferCollection, TransferRequest

from .status import DEFAULT_AGENT, AgentOption, _echo, _fetch


def _endpoint(value: str):
    """Split an agent given as url or alias into (url, alias)."""
    if value.startswith(("http://", "https://")):
        return value.rstrip("/"), ""
    return "", value


def main(
    src: str = typer.Option(..., "--src", "-s", help="Source agent url or alias"),
    dst: str = typer.Option(..., "--dst", "-d", help="Destination agent url or alias"),
    dataset: str = typer.Option("", "--dataset", help="Dataset to move"),
    block: str = typer.Option("", "--block", help="Block to move"),
    lfn: str = typer.Option("", "--file", "-f", help="Single lfn to move"),
    priority: int = typer.Option(0, "--priority", "-p", help="Higher runs first"),
    delay: int = typer.Option(0, "--delay", help="Seconds to wait before transferring"),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Agent to submit to (default: destination)"),
):
    """Ask the mesh to move files from src to dst."""
    if not (dataset or block or lfn):
        logger.error("Give at least one of --dataset, --block or --file")
        raise typer.Exit(1)
    src_url, src_alias = _endpoint(src)
    dst_url, dst_alias = _endpoint(dst)
    target = agent or dst_url or DEFAULT_AGENT
    request = TransferRequest(
        file=lfn,
        block=block,
        dataset=dataset,
        src_url=src_url,
        src_alias=src_alias,
        dst_url=dst_url,
        dst_alias=dst_alias,
        priority=priority,
        delay=delay,
    )
    result = _fetch(PeerClient().submit, target.rstrip("/"), TransferCollection(requests=[request]))
    logger.info(f"Submitted to {target}: {result}")
    _echo(result)


def register(
    alias: str = typer.Argument(..., help="Alias to register"),
    url: str = typer.Argument(..., help="Url the alias points to"),
    agent: str = AgentOption,
):
    """Register an alias -> url pair with an agent."""
    try:
        PeerClient().register(agent.rstrip("/"), alias, url)
    except FetchError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(f"Registered {alias} -> {url} at {agent}")


def cancel(
    request_id: int = typer.Argument(..., help="Pending request id"),
    agent: str = AgentOption,
):
    """Cancel a request that has not started yet."""
    _fetch(PeerClient().cancel, agent.rstrip("/"), request_id)
    typer.echo(f"Cancelled request {request_id}")
