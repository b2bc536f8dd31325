# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/transfer.py

"""Pipeline stage that moves catalog entries from this agent to a peer."""

import shlex
import time
from typing import Callable, List

from loguru import logger

from tfcmesh.catalog.base import Catalog
from tfcmesh.clients.http import PeerClient
from tfcmesh.core.metrics import AgentMetrics
from tfcmesh.core.pipeline import Stage
from tfcmesh.errors import TfcMeshError
from tfcmesh.models import AgentStatus, CatalogEntry, TransferRequest
from tfcmesh.utils.tools import run_tool


class TransferStage(Stage):
    """Ship every matching entry to the destination, then register them there.

    HTTP agents receive files through ``/upload``; agents with another
    protocol are driven through their external tool with the destination's
    backend prefix. A file that fails is logged and skipped.
    """

    def __init__(
        self,
        catalog: Catalog,
        client: PeerClient,
        metrics: AgentMetrics,
        tool_runner: Callable = run_tool,
        clock: Callable[[], float] = time.time,
    ):
        self.catalog = catalog
        self.client = client
        self.metrics = metrics
        self.tool_runner = tool_runner
        self.clock = clock

    def process(self, request: TransferRequest, proceed):
        entries = self.catalog.records(request.selector)
        if not entries:
            logger.warning(f"No catalog entries match {request.selector} for request {request.id}")
            proceed(request)
            return

        src = self.client.status(request.src_url)
        dst = self.client.status(request.dst_url)
        logger.info(f"Request {request.id}: {len(entries)} file(s) {src.name} -> {dst.name}")

        moved: List[CatalogEntry] = []
        for entry in entries:
            try:
                moved.append(self.transfer_entry(entry, src, dst))
            except TfcMeshError as e:
                self.metrics.inc("failed")
                logger.error(f"Transfer of {entry.lfn} to {dst.url} failed: {e}")

        if moved:
            self.client.post_tfc(dst.url, moved)
            logger.info(f"Request {request.id}: registered {len(moved)}/{len(entries)} file(s) at {dst.name}")
        proceed(request)

    def transfer_entry(self, entry: CatalogEntry, src: AgentStatus, dst: AgentStatus) -> CatalogEntry:
        """Move one file and return the catalog entry describing the new copy."""
        start = self.clock()
        self.metrics.inc("bytes", entry.size)
        try:
            if src.uses_http:
                receipt = self.client.upload(dst.url, entry.pfn, entry, src.url, dst.url)
                pfn = receipt.pfn
            else:
                pfn = dst.backend + entry.lfn
                argv = [src.tool, *shlex.split(src.toolopts), entry.pfn, pfn]
                self.tool_runner(argv)
        finally:
            self.metrics.dec("bytes", entry.size)
        end = self.clock()
        self.metrics.inc("totalBytes", entry.size)
        self.metrics.inc("total")
        logger.debug(f"{entry.lfn} -> {pfn} in {end - start:.2f}s")
        return entry.model_copy(update={
            "pfn": pfn,
            "transfer_time": int(end - start),
            "timestamp": int(end),
        })
