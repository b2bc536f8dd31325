# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/catalog/relational.py

"""Catalog backed by sqlite, postgresql or mysql through SQLAlchemy."""

import sqlite3
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from tfcmesh.catalog.base import Catalog
from tfcmesh.errors import CatalogWriteError
from tfcmesh.models import CatalogEntry, Selector, TransferRecord
from tfcmesh.service.database.operations import DatabaseManager


class RelationalCatalog(Catalog):
    kind = "relational"

    def __init__(self, database_url: str):
        self.db = DatabaseManager(database_url)
        self.db.create_tables()
        self.kind = self.db.dialect
        logger.info(f"Relational catalog at {database_url}")

    def add(self, entry: CatalogEntry) -> None:
        try:
            self.db.add_entry(entry)
        except SQLAlchemyError as e:
            logger.error(f"Catalog insert of {entry} failed: {e}")
            raise CatalogWriteError(f"Unable to add {entry.lfn}: {e}") from e

    def seed(self, entries: Iterable[CatalogEntry]) -> int:
        try:
            count = self.db.add_entries(entries)
        except SQLAlchemyError as e:
            logger.error(f"Catalog seed failed: {e}")
            raise CatalogWriteError(f"Unable to seed catalog: {e}") from e
        logger.info(f"Seeded {count:,} catalog entries")
        return count

    def records(self, selector: Selector = Selector()) -> List[CatalogEntry]:
        try:
            return self.db.get_records(selector)
        except SQLAlchemyError as e:
            logger.error(f"Catalog query {selector} failed: {e}")
            return []

    def lfns(self) -> List[str]:
        try:
            return self.db.get_lfns()
        except SQLAlchemyError as e:
            logger.error(f"Catalog lfn listing failed: {e}")
            return []

    def transfers(self, t0: int, t1: int) -> List[TransferRecord]:
        try:
            return self.db.get_transfers(t0, t1)
        except SQLAlchemyError as e:
            logger.error(f"Catalog transfer query [{t0}, {t1}] failed: {e}")
            return []

    def snapshot(self) -> Dict[str, List[str]]:
        try:
            return self.db.get_snapshot()
        except SQLAlchemyError as e:
            logger.error(f"Catalog snapshot failed: {e}")
            return {}

    def dump(self) -> Optional[str]:
        try:
            return self.db.dump()
        except (SQLAlchemyError, sqlite3.Error) as e:
            logger.error(f"Catalog dump failed: {e}")
            return None

    def owned_paths(self) -> List[Path]:
        database = self.db.engine.url.database
        if self.db.dialect != "sqlite" or not database or database == ":memory:":
            return []
        path = Path(database).resolve()
        return [path, path.with_name(path.name + "-wal"), path.with_name(path.name + "-shm")]

    def close(self) -> None:
        self.db.engine.dispose()
