# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/clients/synthetic.py

"""Synthetic catalog client for load testing with large catalogs."""

import random
import time
from typing import Iterator, Optional

from loguru import logger

from tfcmesh.models import CatalogEntry
from tfcmesh.utils.hashing import hash_bytes

from .base import BaseClient


class SyntheticCatalogClient(BaseClient):
    """Generate datasets x blocks x files entries that point at nothing."""

    def __init__(
        self,
        datasets: int = 10,
        blocks: int = 10,
        files: int = 100,
        prefix: str = "/store/synthetic",
        max_size: int = 1024 ** 3,
        seed: Optional[int] = None,
    ):
        """Initialize synthetic catalog client.

        Args:
            datasets: Number of datasets to generate
            blocks: Blocks per dataset
            files: Files per block
            prefix: pfn prefix of the generated entries
            max_size: Upper bound of the random file size
            seed: Random seed, for reproducible catalogs
        """
        self.datasets = datasets
        self.blocks = blocks
        self.files = files
        self.prefix = prefix.rstrip("/")
        self.max_size = max_size
        self.rng = random.Random(seed)

    @property
    def total(self) -> int:
        return self.datasets * self.blocks * self.files

    def iter_entries(self) -> Iterator[CatalogEntry]:
        logger.info(f"Generating {self.total:,} catalog entries...")
        now = int(time.time())
        count = 0
        for d in range(self.datasets):
            dataset = f"/synthetic/dataset{d:04d}/RAW"
            for b in range(self.blocks):
                block = f"{dataset}#{b}"
                for f in range(self.files):
                    lfn = f"{dataset}/block{b:04d}/file_{f:08d}.dat"
                    yield CatalogEntry(
                        lfn=lfn,
                        pfn=f"{self.prefix}{lfn}",
                        dataset=dataset,
                        block=block,
                        size=self.rng.randint(1, self.max_size),
                        digest=hash_bytes(lfn.encode())[0],
                        timestamp=now,
                    )
                    count += 1
                    if count % 100000 == 0:
                        logger.info(f"Generated {count:,} entries...")
        logger.info(f"Generated {count:,} total catalog entries")
