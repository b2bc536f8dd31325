# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/cli/main.py

"""Main CLI entry point for tfcmesh."""

import typer
from typing import Optional
from pathlib import Path

from tfcmesh.cli.commands.agent import main as agent_command
from tfcmesh.cli.commands.catalog import central, seed, snapshot
from tfcmesh.cli.commands.status import agents, files, pending
from tfcmesh.cli.commands.status import main as status_command
from tfcmesh.cli.commands.transfer import cancel, register
from tfcmesh.cli.commands.transfer import main as transfer_command
from tfcmesh.logging.setup import setup_logging

app = typer.Typer(
    name="tfcmesh",
    help="Peer-to-peer data transfer agents with trivial file catalogs",
    no_args_is_help=True,
)

app.command("agent", help="Run a transfer agent")(agent_command)
app.command("status", help="Show an agent's status and metrics")(status_command)
app.command("agents", help="List agents known to an agent")(agents)
app.command("files", help="List lfns in an agent's catalog")(files)
app.command("transfer", help="Request a transfer between two agents")(transfer_command)
app.command("register", help="Register an alias with an agent")(register)
app.command("requests", help="Show pending or past requests")(pending)
app.command("cancel", help="Cancel a pending request")(cancel)
app.command("seed", help="Fill a catalog from disk or synthetic data")(seed)
app.command("snapshot", help="Publish an agent's catalog to the central catalog")(snapshot)
app.command("central", help="Read the newest central catalog snapshot")(central)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", "-l", help="Also log to this file"),
):
    """tfcmesh: peer-to-peer transfer agents."""
    setup_logging(verbose=verbose, log_file=log_file)


if __name__ == "__main__":
    app()
