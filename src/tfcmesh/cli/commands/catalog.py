# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/cli/commands/catalog.py

"""Catalog maintenance: seeding, snapshots and central catalog reads."""

from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from tfcmesh.catalog.central import CentralCatalog
from tfcmesh.catalog.factory import make_catalog
from tfcmesh.clients.base import BaseClient
from tfcmesh.clients.http import PeerClient
from tfcmesh.clients.scanner import FileScanner
from tfcmesh.clients.synthetic import SyntheticCatalogClient
from tfcmesh.config import load_config
from tfcmesh.errors import CatalogWriteError, CentralCatalogError, ConfigError

from .status import AgentOption, _echo, _fetch


def seed(
    config: Path = typer.Option(..., "--config", "-c", help="Agent JSON config file"),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Directory whose files to register"),
    dataset: str = typer.Option("/tfcmesh/local/RAW", "--dataset", help="Dataset for scanned files"),
    block: Optional[str] = typer.Option(None, "--block", help="Block for scanned files"),
    synthetic: int = typer.Option(0, "--synthetic", help="Generate this many datasets instead of scanning"),
    blocks: int = typer.Option(10, "--blocks", help="Blocks per synthetic dataset"),
    files: int = typer.Option(100, "--files", help="Files per synthetic block"),
):
    """Fill an agent's catalog from disk or with synthetic entries."""
    try:
        cfg = load_config(config)
    except ConfigError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    client: BaseClient
    if synthetic:
        client = SyntheticCatalogClient(datasets=synthetic, blocks=blocks, files=files)
    elif directory:
        client = FileScanner(directory, dataset=dataset, block=block)
    else:
        logger.error("Give --dir or --synthetic")
        raise typer.Exit(1)

    catalog = make_catalog(cfg.catalog)
    total = 0
    try:
        for batch in client.discover_entries_streaming():
            total += catalog.seed(batch)
    except CatalogWriteError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    finally:
        catalog.close()
    typer.echo(f"Seeded {total:,} entries into {cfg.catalog.type} catalog {cfg.catalog.uri}")


def snapshot(agent: str = AgentOption):
    """Ask an agent to publish its catalog to the central catalog."""
    _echo(_fetch(PeerClient().snapshot, agent.rstrip("/")))


def central(
    root: Path = typer.Argument(..., help="Central catalog root directory"),
    table: str = typer.Argument("files", help="Table to print"),
):
    """Print a table from the newest central catalog snapshot."""
    store = CentralCatalog(root)
    try:
        text = store.get(table)
    except CentralCatalogError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    logger.debug(f"Reading {store.latest() / table}")
    typer.echo(text, nl=False)
