# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/clients/base.py

"""Base interface for clients that produce catalog entries."""

from abc import ABC, abstractmethod
from typing import Generator, Iterator, List

from tfcmesh.models import CatalogEntry


class BaseClient(ABC):
    """Source of catalog entries used to seed an agent's catalog."""

    batch_size = 50000

    @abstractmethod
    def iter_entries(self) -> Iterator[CatalogEntry]:
        """Yield entries one at a time."""

    def discover_entries(self) -> List[CatalogEntry]:
        """All entries as a list.

        Returns:
            List of CatalogEntry ready for Catalog.seed
        """
        return list(self.iter_entries())

    def discover_entries_streaming(self) -> Generator[List[CatalogEntry], None, None]:
        """Stream entries in batches for memory efficiency.

        Yields:
            Batches of at most ``batch_size`` CatalogEntry objects
        """
        batch = []
        for entry in self.iter_entries():
            batch.append(entry)
            if len(batch) >= self.batch_size:
                yield batch
                batch = []
        if batch:
            yield batch
