# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/clients/scanner.py

"""Client that builds catalog entries from files already on disk."""

import os
import time
from pathlib import Path
from typing import Iterator, Optional

from loguru import logger

from tfcmesh.models import CatalogEntry
from tfcmesh.utils.hashing import hash_file

from .base import BaseClient


class FileScanner(BaseClient):
    """Walk a directory and hash every regular file.

    The lfn is the path relative to ``root`` with a leading slash, the pfn
    the absolute path on this host.
    """

    def __init__(self, root: Path, dataset: str, block: Optional[str] = None):
        self.root = Path(root).resolve()
        self.dataset = dataset
        self.block = block or f"{dataset}#1"

    def iter_entries(self) -> Iterator[CatalogEntry]:
        logger.info(f"Scanning filesystem from {self.root}...")
        file_count = 0
        now = int(time.time())
        for root, dirs, filenames in os.walk(self.root):
            dirs.sort()
            for filename in sorted(filenames):
                file_path = Path(root) / filename
                if not file_path.is_file() or file_path.is_symlink():
                    continue
                try:
                    digest, size = hash_file(file_path)
                except OSError as e:
                    logger.warning(f"Skipping {file_path}: {e}")
                    continue

                relative_path = file_path.relative_to(self.root).as_posix()
                yield CatalogEntry(
                    lfn=f"/{relative_path}",
                    pfn=str(file_path),
                    dataset=self.dataset,
                    block=self.block,
                    size=size,
                    digest=digest,
                    timestamp=now,
                )

                file_count += 1
                if file_count % 10000 == 0:
                    logger.info(f"Scanned {file_count:,} files...")

        logger.info(f"Scanned {file_count:,} files from {self.root}")
