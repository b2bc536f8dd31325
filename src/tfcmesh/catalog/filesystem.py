# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/catalog/filesystem.py

"""Catalog kept as a JSON-lines index inside a storage directory."""

import json
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple

from loguru import logger
from pydantic import ValidationError

from tfcmesh.catalog.base import Catalog
from tfcmesh.errors import CatalogWriteError
from tfcmesh.models import CatalogEntry, Selector, TransferRecord
from tfcmesh.service.database.operations import csv_line

INDEX_NAME = "catalog.jsonl"


class FilesystemCatalog(Catalog):
    """Entries live in memory and are appended to ``<root>/catalog.jsonl``."""

    kind = "filesystem"

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.index_path = self.root / INDEX_NAME
        self._lock = threading.Lock()
        self._entries: List[CatalogEntry] = []
        self._keys: Set[Tuple[str, str]] = set()
        self._load()
        logger.info(f"Filesystem catalog at {self.index_path} ({len(self._entries):,} entries)")

    def _load(self):
        if not self.index_path.exists():
            return
        with open(self.index_path) as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = CatalogEntry.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"{self.index_path}:{lineno} skipped: {e}")
                    continue
                key = (entry.lfn, entry.pfn)
                if key not in self._keys:
                    self._keys.add(key)
                    self._entries.append(entry)

    def _append(self, entries: List[CatalogEntry]):
        try:
            with open(self.index_path, "a") as f:
                for entry in entries:
                    f.write(json.dumps(entry.to_wire()) + "\n")
        except OSError as e:
            raise CatalogWriteError(f"Unable to write {self.index_path}: {e}") from e

    def owned_paths(self) -> List[Path]:
        return [self.index_path.resolve()]

    def add(self, entry: CatalogEntry) -> None:
        self.seed([entry])

    def seed(self, entries: Iterable[CatalogEntry]) -> int:
        count = 0
        with self._lock:
            fresh = []
            for entry in entries:
                count += 1
                key = (entry.lfn, entry.pfn)
                if key in self._keys:
                    continue
                self._keys.add(key)
                fresh.append(entry)
            if fresh:
                try:
                    self._append(fresh)
                except CatalogWriteError:
                    for entry in fresh:
                        self._keys.discard((entry.lfn, entry.pfn))
                    raise
                self._entries.extend(fresh)
        return count

    def records(self, selector: Selector = Selector()) -> List[CatalogEntry]:
        with self._lock:
            return [
                e for e in self._entries
                if (not selector.dataset or e.dataset == selector.dataset)
                and (not selector.block or e.block == selector.block)
                and (not selector.lfn or e.lfn == selector.lfn)
            ]

    def lfns(self) -> List[str]:
        with self._lock:
            return sorted({e.lfn for e in self._entries})

    def transfers(self, t0: int, t1: int) -> List[TransferRecord]:
        with self._lock:
            hits = sorted(
                (e for e in self._entries if t0 <= e.timestamp <= t1),
                key=lambda e: e.timestamp,
            )
        return [TransferRecord(e.size, e.transfer_time) for e in hits]

    def snapshot(self) -> Dict[str, List[str]]:
        datasets: Dict[str, int] = {}
        blocks: Dict[str, int] = {}
        files = []
        with self._lock:
            for fid, e in enumerate(self._entries, 1):
                did = datasets.setdefault(e.dataset, len(datasets) + 1)
                bid = blocks.setdefault(e.block, len(blocks) + 1)
                files.append(csv_line((
                    fid, e.lfn, e.pfn, bid, did,
                    e.size, e.digest, e.transfer_time, e.timestamp,
                )))
        return {
            "datasets": [csv_line((i, name)) for name, i in datasets.items()],
            "blocks": [csv_line((i, name)) for name, i in blocks.items()],
            "files": files,
        }

    def dump(self) -> str:
        with self._lock:
            return "\n".join(json.dumps(e.to_wire()) for e in self._entries)
