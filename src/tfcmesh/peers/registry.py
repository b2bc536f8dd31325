# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/peers/registry.py

"""Alias -> URL map of known agents."""

import threading
from typing import Dict, List, Optional, Tuple

from loguru import logger

from tfcmesh.errors import AliasConflictError


class RegistryStore:
    """Grows monotonically; an alias stays bound to the first URL it got."""

    def __init__(self):
        self._agents: Dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, alias: str, url: str) -> bool:
        """Bind alias to url. Returns False when the pair was already known."""
        url = url.rstrip("/")
        with self._lock:
            existing = self._agents.get(alias)
            if existing is None:
                self._agents[alias] = url
                logger.info(f"Registered agent {alias} at {url}")
                return True
        if existing == url:
            return False
        raise AliasConflictError(alias, existing, url)

    def get(self, alias: str) -> Optional[str]:
        with self._lock:
            return self._agents.get(alias)

    def items(self) -> List[Tuple[str, str]]:
        with self._lock:
            return list(self._agents.items())

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._agents)

    def __len__(self) -> int:
        with self._lock:
            return len(self._agents)

    def __contains__(self, alias: str) -> bool:
        with self._lock:
            return alias in self._agents
