# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/models.py

"""Wire models shared by agents, catalogs and the transfer pipeline.

Field names follow Python conventions; the JSON names exchanged between
agents are kept through aliases (``srcUrl``, ``transferTime``, ...), so
always serialize with ``model_dump(by_alias=True)``.
"""

from __future__ import annotations

import time
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field


class Selector(NamedTuple):
    """Catalog filter; empty fields are unconstrained."""
    dataset: str = ""
    block: str = ""
    lfn: str = ""

    def is_empty(self) -> bool:
        return not (self.dataset or self.block or self.lfn)


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class CatalogEntry(WireModel):
    """One physical copy of one logical file."""

    lfn: str
    pfn: str = ""
    dataset: str = ""
    block: str = ""
    size: int = Field(0, alias="bytes")
    digest: str = Field("", alias="hash")
    transfer_time: int = Field(0, alias="transferTime")
    timestamp: int = 0

    def __str__(self) -> str:
        return (
            f"<CatalogEntry dataset={self.dataset} block={self.block} "
            f"lfn={self.lfn} pfn={self.pfn} bytes={self.size} hash={self.digest}>"
        )


class TransferRecord(NamedTuple):
    """Byte count and duration of one completed transfer."""
    size: int
    transfer_time: int

    def to_wire(self) -> dict:
        return {"bytes": self.size, "transferTime": self.transfer_time}


class TransferRequest(WireModel):
    """Unit of work: move whatever matches the selector from src to dst."""

    id: int = 0
    ts: int = 0
    file: str = ""
    block: str = ""
    dataset: str = ""
    src_url: str = Field("", alias="srcUrl")
    src_alias: str = Field("", alias="srcAlias")
    dst_url: str = Field("", alias="dstUrl")
    dst_alias: str = Field("", alias="dstAlias")
    delay: int = 0
    priority: int = 0
    status: str = ""

    @property
    def selector(self) -> Selector:
        return Selector(dataset=self.dataset, block=self.block, lfn=self.file)

    def __str__(self) -> str:
        return (
            f"<TransferRequest id={self.id} priority={self.priority} "
            f"file={self.file} block={self.block} dataset={self.dataset} "
            f"src={self.src_alias}({self.src_url}) dst={self.dst_alias}({self.dst_url}) "
            f"delay={self.delay}>"
        )


class TransferCollection(WireModel):
    """Body of ``POST /request``."""

    ts: int = Field(default_factory=lambda: int(time.time()))
    requests: list[TransferRequest] = Field(default_factory=list, alias="data")
    forwarded: bool = False


class Registration(WireModel):
    """Body of ``POST /register``."""

    agent: str = Field(alias="Agent")
    alias: str = Field(alias="Alias")


class AgentStatus(WireModel):
    """Snapshot of one agent's identity and health."""

    url: str
    name: str
    ts: int = 0
    catalog: str = ""
    protocol: str = ""
    backend: str = ""
    tool: str = ""
    toolopts: str = ""
    agents: dict[str, str] = Field(default_factory=dict)
    addrs: list[str] = Field(default_factory=list)
    metrics: dict[str, int] = Field(default_factory=dict)

    @property
    def uses_http(self) -> bool:
        return self.protocol in ("", "http")

    def __str__(self) -> str:
        return (
            f"<Agent name={self.name} url={self.url} catalog={self.catalog} "
            f"protocol={self.protocol} backend={self.backend} tool={self.tool}>"
        )


class UploadReceipt(WireModel):
    """Response of ``POST /upload``."""

    lfn: str
    pfn: str
    size: int = Field(0, alias="bytes")
    digest: str = Field("", alias="hash")


class Job:
    """Dispatch wrapper around one transfer request."""

    __slots__ = ("request", "submitted_at")

    def __init__(self, request: TransferRequest, submitted_at: Optional[float] = None):
        self.request = request
        self.submitted_at = submitted_at if submitted_at is not None else time.time()

    @property
    def id(self) -> int:
        return self.request.id

    def __repr__(self) -> str:
        return f"<Job id={self.id} priority={self.request.priority}>"
