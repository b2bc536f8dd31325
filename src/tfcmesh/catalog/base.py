# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/catalog/base.py

"""Catalog interface shared by the relational and filesystem stores."""

import fnmatch
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from tfcmesh.models import CatalogEntry, Selector, TransferRecord

GLOB_CHARS = set("*?[")


def match_names(names: Iterable[str], pattern: str) -> List[str]:
    """Filter names by shell glob (when pattern has glob chars) or substring."""
    if not pattern:
        return list(names)
    if GLOB_CHARS & set(pattern):
        return [n for n in names if fnmatch.fnmatchcase(n, pattern)]
    return [n for n in names if pattern in n]


class Catalog(ABC):
    """Trivial file catalog: lfn -> pfn, checksum and transfer bookkeeping.

    Writes raise CatalogWriteError after rolling back. Reads log store errors
    and degrade to empty results.
    """

    kind = "abstract"

    @abstractmethod
    def add(self, entry: CatalogEntry) -> None:
        """Record one entry; adding an existing (lfn, pfn) is a no-op."""

    @abstractmethod
    def records(self, selector: Selector = Selector()) -> List[CatalogEntry]:
        """Entries matching every non-empty selector field."""

    @abstractmethod
    def transfers(self, t0: int, t1: int) -> List[TransferRecord]:
        """Transfer records with timestamp in [t0, t1]."""

    @abstractmethod
    def lfns(self) -> List[str]:
        """All distinct logical file names."""

    @abstractmethod
    def snapshot(self) -> Dict[str, List[str]]:
        """Tables as csv rows, for the central catalog."""

    def dump(self) -> Optional[str]:
        """Full textual export, None when the store cannot produce one."""
        return None

    def files(self, dataset: str = "", block: str = "", lfn: str = "") -> List[str]:
        return [e.lfn for e in self.records(Selector(dataset, block, lfn))]

    def pfn_files(self, dataset: str = "", block: str = "", lfn: str = "") -> List[str]:
        return [e.pfn for e in self.records(Selector(dataset, block, lfn))]

    def match(self, pattern: str = "") -> List[str]:
        return match_names(self.lfns(), pattern)

    def seed(self, entries: Iterable[CatalogEntry]) -> int:
        """Bulk add; returns how many entries were offered."""
        count = 0
        for entry in entries:
            self.add(entry)
            count += 1
        return count

    def owned_paths(self) -> List[Path]:
        """Local files the store keeps its own state in."""
        return []

    def close(self) -> None:
        pass
