# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/agent.py

"""One transfer agent: catalog, registry, queue, workers and pipeline."""

import itertools
import os
import tempfile
import time
from collections import defaultdict
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Sequence

from loguru import logger

from tfcmesh.catalog.base import Catalog
from tfcmesh.catalog.central import CentralCatalog, open_central
from tfcmesh.catalog.factory import make_catalog
from tfcmesh.clients.http import PeerClient, secure_http_client
from tfcmesh.config import AgentConfig
from tfcmesh.core.dispatcher import Dispatcher, make_job_source
from tfcmesh.core.history import CANCELLED, FORWARDED, STATUSES, RequestHistory
from tfcmesh.core.metrics import AgentMetrics, MetricsReporter
from tfcmesh.core.pipeline import LoggingStage, PauseStage, Pipeline, Stage, TraceStage
from tfcmesh.core.transfer import TransferStage
from tfcmesh.errors import (
    CentralCatalogError,
    FetchError,
    IntegrityMismatchError,
    MalformedRequestError,
)
from tfcmesh.models import (
    AgentStatus,
    CatalogEntry,
    Selector,
    TransferCollection,
    TransferRecord,
    TransferRequest,
    UploadReceipt,
)
from tfcmesh.peers.discovery import join_mesh
from tfcmesh.peers.registry import RegistryStore
from tfcmesh.utils.hashing import copy_and_hash
from tfcmesh.utils.netinfo import local_addresses


class Agent:
    """Everything one agent process owns; the HTTP app and CLI call into it."""

    def __init__(
        self,
        config: AgentConfig,
        catalog: Optional[Catalog] = None,
        client: Optional[PeerClient] = None,
        stages: Optional[Sequence[Stage]] = None,
    ):
        self.config = config
        self.metrics = AgentMetrics()
        self.catalog = catalog if catalog is not None else make_catalog(config.catalog)
        self.central: Optional[CentralCatalog] = open_central(config.central)
        self.registry = RegistryStore()
        self.client = client if client is not None else PeerClient(
            secure_http_client(),
            retries=config.retries,
            backoff=config.backoff,
            timeout=config.timeout,
        )
        self.storage = Path(config.storage)
        self.transfer_stage = TransferStage(self.catalog, self.client, self.metrics)
        if stages is None:
            stages = [TraceStage(), PauseStage(), self.transfer_stage, LoggingStage()]
        self.pipeline = Pipeline(stages)
        self.source = make_job_source(config.scheduling, config.queue_size)
        self.history = RequestHistory()
        self.dispatcher = Dispatcher(
            self.source, self.pipeline, config.workers, self.metrics, self.history
        )
        self.reporter: Optional[MetricsReporter] = None
        if config.metrics_interval > 0:
            self.reporter = MetricsReporter(self.metrics, config.metrics_interval)
        self._ids = itertools.count(time.time_ns() // 1000)
        self._started = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def url(self) -> str:
        return self.config.url

    def __repr__(self):
        return f"<Agent name={self.name} url={self.url}>"

    # lifecycle

    def start(self, bootstrap: Optional[str] = None) -> "Agent":
        """Register ourselves, start workers and join the mesh."""
        self.registry.add(self.name, self.url)
        self.dispatcher.start()
        if self.reporter:
            self.reporter.start()
        self._started = True
        bootstrap = bootstrap or self.config.bootstrap
        if bootstrap and bootstrap.rstrip("/") != self.url:
            try:
                join_mesh(self.registry, self.client, self.name, self.url, bootstrap)
            except FetchError as e:
                logger.error(f"Unable to join mesh through {bootstrap}: {e}")
        logger.info(f"Agent {self.name} running at {self.url}")
        return self

    def stop(self):
        if not self._started:
            return
        self.dispatcher.stop()
        if self.reporter:
            self.reporter.stop()
        self.catalog.close()
        self._started = False
        logger.info(f"Agent {self.name} stopped")

    # status and peers

    def status(self) -> AgentStatus:
        return AgentStatus(
            url=self.url,
            name=self.name,
            ts=int(time.time()),
            catalog=self.config.catalog.type,
            protocol=self.config.protocol,
            backend=self.config.backend,
            tool=self.config.tool,
            toolopts=self.config.toolopts,
            agents=self.registry.snapshot(),
            addrs=local_addresses(),
            metrics=self.metrics.snapshot(),
        )

    def register(self, alias: str, url: str) -> bool:
        return self.registry.add(alias, url)

    # requests

    def next_id(self) -> int:
        return next(self._ids)

    def _resolve(self, request: TransferRequest) -> TransferRequest:
        """Fill in missing urls or aliases from the registry."""
        for side in ("src", "dst"):
            url = getattr(request, f"{side}_url").rstrip("/")
            alias = getattr(request, f"{side}_alias")
            if not url and alias:
                url = self.registry.get(alias) or ""
                if not url:
                    raise MalformedRequestError(f"Unknown {side} agent {alias}")
            if not url:
                raise MalformedRequestError(f"Request {request.id} has no {side} agent")
            setattr(request, f"{side}_url", url)
            if not alias:
                setattr(request, f"{side}_alias", self._alias_of(url))
        return request

    def _alias_of(self, url: str) -> str:
        for alias, known in self.registry.items():
            if known == url:
                return alias
        return ""

    def accept(self, collection: TransferCollection) -> List[int]:
        """Queue local requests and forward the rest to their source agent.

        Requests whose source is another agent are forwarded to it unless
        the collection was itself forwarded. Returns the request ids.
        """
        local: List[TransferRequest] = []
        remote: Dict[str, List[TransferRequest]] = defaultdict(list)
        for request in collection.requests:
            if not request.id:
                request.id = self.next_id()
            if not request.ts:
                request.ts = collection.ts
            self._resolve(request)
            if collection.forwarded or request.src_url == self.url:
                local.append(request)
            else:
                remote[request.src_url].append(request)

        for src_url, requests in remote.items():
            forward = TransferCollection(ts=collection.ts, requests=requests, forwarded=True)
            logger.info(f"Forwarding {len(requests)} request(s) to source {src_url}")
            self.client.submit(src_url, forward)
            for request in requests:
                self.history.record(request, FORWARDED)

        for request in local:
            self.dispatcher.submit(request)
            self.metrics.inc("in")
            logger.debug(f"Queued {request}")
        return [r.id for r in collection.requests]

    def pending(self) -> List[TransferRequest]:
        return self.source.pending()

    def cancel(self, request_id: int) -> bool:
        cancelled = self.source.cancel(request_id)
        if cancelled:
            self.history.mark(request_id, CANCELLED)
            logger.info(f"Cancelled request {request_id}")
        return cancelled

    def requests(self, status: str = "") -> List[TransferRequest]:
        """Requests this agent has seen, optionally only those in ``status``."""
        if status and status not in STATUSES:
            raise MalformedRequestError(
                f"Unknown request status {status!r}, expected one of {', '.join(STATUSES)}"
            )
        return self.history.requests(status)

    def request(self, request_id: int) -> Optional[TransferRequest]:
        return self.history.get(request_id)

    # catalog

    def add_entries(self, entries: List[CatalogEntry]) -> int:
        for entry in entries:
            self.catalog.add(entry)
        return len(entries)

    def records(self, selector: Selector = Selector()) -> List[CatalogEntry]:
        return self.catalog.records(selector)

    def files(self, pattern: str = "") -> List[str]:
        return self.catalog.match(pattern)

    def transfers(self, t0: int, t1: int) -> List[TransferRecord]:
        return self.catalog.transfers(t0, t1)

    def dump(self) -> Optional[str]:
        return self.catalog.dump()

    def publish_snapshot(self) -> Path:
        """Archive the catalog tables as a new central catalog snapshot."""
        if self.central is None:
            raise CentralCatalogError("No central catalog configured for this agent")
        return self.central.put_snapshot(self.catalog.snapshot())

    # uploads

    def storage_path(self, lfn: str) -> Path:
        root = self.storage.resolve()
        path = (root / lfn.lstrip("/")).resolve()
        if path == root or root not in path.parents:
            raise MalformedRequestError(f"Lfn {lfn!r} escapes the storage area")
        if path in self.catalog.owned_paths():
            raise MalformedRequestError(f"Lfn {lfn!r} would overwrite the catalog")
        return path

    def receive_upload(self, lfn: str, size: int, digest: str, stream: BinaryIO) -> UploadReceipt:
        """Store an uploaded file and verify it against the announced size and hash.

        The data lands in a temporary file next to the target and replaces it
        only once verified, so a rejected upload leaves any earlier copy intact.
        """
        path = self.storage_path(lfn)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", delete=False)
        try:
            with tmp:
                actual_digest, actual_size = copy_and_hash(stream, tmp)
            if actual_size != size:
                raise IntegrityMismatchError(lfn, "bytes", size, actual_size)
            if actual_digest != digest:
                raise IntegrityMismatchError(lfn, "hash", digest, actual_digest)
            os.replace(tmp.name, path)
        except Exception:
            os.unlink(tmp.name)
            raise
        logger.info(f"Stored {lfn} at {path} ({actual_size:,} bytes)")
        return UploadReceipt(lfn=lfn, pfn=str(path), size=actual_size, digest=actual_digest)
