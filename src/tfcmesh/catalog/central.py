# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/catalog/central.py

"""Append-only archive of catalog snapshots, partitioned by date.

Layout: ``root/<year>/<month>/<day>/<unix-ts>/<table>``, one record per
line. Components are plain integers without zero padding, so the newest
snapshot is found by taking the numerically largest name at each level.
"""

import os
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from tfcmesh.errors import CentralCatalogError


def _numeric(name: str) -> int:
    try:
        return int(name)
    except ValueError:
        return 0


class CentralCatalog:
    def __init__(self, root: Path, clock=time.time):
        self.root = Path(root)
        self.clock = clock

    def _new_leaf(self) -> Path:
        """Create a fresh leaf directory; never reuses an existing one."""
        ts = int(self.clock())
        while True:
            day = datetime.fromtimestamp(ts)
            leaf = self.root / str(day.year) / str(day.month) / str(day.day) / str(ts)
            try:
                os.makedirs(leaf, exist_ok=False)
                return leaf
            except FileExistsError:
                ts += 1
            except OSError as e:
                raise CentralCatalogError(f"Unable to create {leaf}: {e}") from e

    def put(self, table: str, records: List[str]) -> Path:
        """Write one table into a brand-new snapshot."""
        return self.put_snapshot({table: records})

    def put_snapshot(self, tables: Dict[str, List[str]]) -> Path:
        """Write several tables into the same brand-new snapshot."""
        leaf = self._new_leaf()
        for table, records in tables.items():
            path = leaf / table
            try:
                path.write_text("".join(f"{r}\n" for r in records))
            except OSError as e:
                raise CentralCatalogError(f"Unable to write {path}: {e}") from e
        logger.info(f"Central catalog snapshot {leaf} ({', '.join(tables)})")
        return leaf

    def _latest_child(self, path: Path) -> str:
        try:
            names = [p.name for p in path.iterdir()]
        except OSError:
            names = []
        return str(max((_numeric(n) for n in names), default=0))

    def latest(self) -> Path:
        """Leaf of the newest snapshot (``root/0/0/0/0`` on an empty store)."""
        path = self.root
        for _ in ("year", "month", "day", "ts"):
            path = path / self._latest_child(path)
        return path

    def get(self, table: str) -> str:
        """Contents of ``table`` in the newest snapshot."""
        path = self.latest() / table
        try:
            return path.read_text()
        except OSError as e:
            raise CentralCatalogError(f"Unable to read {path}: {e}") from e

    def records(self, table: str) -> List[str]:
        return self.get(table).splitlines()


def open_central(root: str) -> Optional[CentralCatalog]:
    return CentralCatalog(Path(root)) if root else None
