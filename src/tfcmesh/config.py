# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/config.py

"""Agent configuration: JSON file plus environment overrides."""

from __future__ import annotations

import json
import os
import socket
from pathlib import Path
from typing import Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tfcmesh.errors import ConfigError

DEFAULT_PORT = 8989
DEFAULT_WORKERS = 10
DEFAULT_QUEUE_SIZE = 100


class CatalogConfig(BaseModel):
    type: str = "sqlite3"  # sqlite3, postgresql, mysql, filesystem
    uri: str = ""  # file name, directory, host/db or a full SQLAlchemy URL
    login: str = ""
    password: str = ""
    owner: str = ""

    def database_url(self) -> str:
        """SQLAlchemy URL for relational catalog types."""
        if "://" in self.uri:
            return self.uri
        if self.type in ("sqlite3", "sqlite"):
            return f"sqlite:///{self.uri}"
        if self.type in ("postgresql", "mysql"):
            auth = self.login
            if self.password:
                auth += f":{self.password}"
            if auth:
                auth += "@"
            return f"{self.type}://{auth}{self.uri}"
        raise ConfigError(f"Catalog type {self.type} has no database URL")


class TlsSettings(BaseModel):
    """Client certificate locations, taken from the X509 environment."""
    proxy: Optional[Path] = None
    cert: Optional[Path] = None
    key: Optional[Path] = None

    @classmethod
    def from_env(cls) -> TlsSettings:
        proxy = os.environ.get("X509_USER_PROXY") or None
        default_proxy = Path(f"/tmp/x509up_u{os.getuid()}")
        if not proxy and default_proxy.exists():
            proxy = str(default_proxy)
        return cls(
            proxy=proxy,
            cert=os.environ.get("X509_USER_CERT") or None,
            key=os.environ.get("X509_USER_KEY") or None,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.proxy or (self.cert and self.key))


class AgentConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str = ""
    port: int = DEFAULT_PORT
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    protocol: str = "http"
    backend: str = ""  # prefix used by peers to address our storage
    tool: str = ""  # external transfer tool, e.g. xrdcp
    toolopts: str = ""
    storage: str = ""  # where uploads are written
    workers: int = Field(DEFAULT_WORKERS, ge=1)
    queue_size: int = Field(DEFAULT_QUEUE_SIZE, ge=1)
    scheduling: Literal["fifo", "priority"] = "fifo"
    bootstrap: str = Field("", alias="register")  # peer url to join the mesh through
    central: str = ""  # central catalog root
    metrics_interval: int = 60
    retries: int = 3
    backoff: float = 1.0
    timeout: float = 30.0

    def model_post_init(self, __context):
        if not self.url:
            self.url = f"http://{socket.gethostname()}:{self.port}"
        self.url = self.url.rstrip("/")
        if not self.catalog.uri:
            self.catalog.uri = os.getcwd()
        if not self.storage:
            self.storage = (
                os.path.join(self.catalog.uri, "storage")
                if self.catalog.type == "filesystem" else os.getcwd()
            )

    def apply_env(self) -> AgentConfig:
        """Apply MAX_WORKERS / MAX_QUEUE overrides."""
        updates = {}
        for var, field in (("MAX_WORKERS", "workers"), ("MAX_QUEUE", "queue_size")):
            value = os.environ.get(var)
            if not value:
                continue
            try:
                updates[field] = int(value)
            except ValueError:
                logger.warning(f"Ignoring non-integer {var}={value!r}")
        if not updates:
            return self
        logger.debug(f"Environment overrides: {updates}")
        return self.model_copy(update=updates)


def load_config(path: Path) -> AgentConfig:
    """Load an agent configuration from a JSON file."""
    try:
        data = json.loads(Path(path).read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Unable to read config {path}: {e}") from e
    try:
        config = AgentConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from e
    if not config.bootstrap:
        logger.warning(
            "This agent is not registered with remote ones, provide register "
            "in your config or pass --register"
        )
    return config.apply_env()
