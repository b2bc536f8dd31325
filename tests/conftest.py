# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tfcmesh/tests/conftest.py

import time
from collections import defaultdict
from pathlib import Path

import pytest

from tfcmesh.config import AgentConfig, CatalogConfig
from tfcmesh.models import CatalogEntry


def wait_until(predicate, timeout: float = 10.0, interval: float = 0.05) -> bool:
    """Poll ``predicate`` until it is truthy or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def make_config(root: Path, name: str, **overrides) -> AgentConfig:
    """Agent config rooted in a temporary directory, with an ephemeral port."""
    base = Path(root) / name
    storage = base / "storage"
    storage.mkdir(parents=True, exist_ok=True)
    values = {
        "name": name,
        "port": 0,
        "catalog": CatalogConfig(type="sqlite3", uri=str(base / "tfc.db")),
        "storage": str(storage),
        "workers": 2,
        "queue_size": 10,
        "metrics_interval": 0,
        "retries": 1,
        "backoff": 0,
        "timeout": 10,
    }
    values.update(overrides)
    return AgentConfig(**values)


def sample_entries():
    return [
        CatalogEntry(lfn="/a/b/c/f1", pfn="/data/a/b/c/f1", dataset="/a/b/c",
                     block="/a/b/c#1", size=100, digest="h1", timestamp=100),
        CatalogEntry(lfn="/a/b/c/f2", pfn="/data/a/b/c/f2", dataset="/a/b/c",
                     block="/a/b/c#2", size=200, digest="h2", timestamp=200),
        CatalogEntry(lfn="/x/y/z/f3.root", pfn="/data/x/y/z/f3.root", dataset="/x/y/z",
                     block="/x/y/z#1", size=300, digest="h3", timestamp=300),
    ]


@pytest.fixture
def entries():
    return sample_entries()


class StubResponse:
    """Just enough of requests.Response for PeerClient."""

    def __init__(self, payload=None, status_code: int = 200, text: str = ""):
        self.payload = payload
        self.status_code = status_code
        self.text = text

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class StubSession:
    """requests.Session stand-in replaying queued replies per (method, url).

    Replies are used in order and the last one repeats; an exception reply
    is raised instead of returned.
    """

    def __init__(self):
        self.replies = defaultdict(list)
        self.calls = []

    def reply(self, method: str, url: str, *replies):
        self.replies[(method, url)].extend(replies)

    def _next(self, method: str, url: str, **kwargs):
        self.calls.append((method, url, kwargs))
        queued = self.replies[(method, url)]
        reply = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._next("DELETE", url, **kwargs)
