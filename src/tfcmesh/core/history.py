# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/history.py

"""Status of every request an agent has queued, forwarded or run.

A request moves queued -> processing -> completed | failed, or
queued -> cancelled when deleted before a worker picks it up. Requests
handed to their source agent stay here as forwarded.
"""

import threading
from collections import OrderedDict
from typing import List, Optional

from tfcmesh.models import TransferRequest

QUEUED = "queued"
FORWARDED = "forwarded"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

STATUSES = (QUEUED, FORWARDED, PROCESSING, COMPLETED, FAILED, CANCELLED)

DEFAULT_LIMIT = 10_000


class RequestHistory:
    """Thread-safe ``id -> request`` map, least recently updated first.

    Once more than ``limit`` requests are held the least recently updated
    ones are dropped.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT):
        self.limit = limit
        self._lock = threading.Lock()
        self._requests: "OrderedDict[int, TransferRequest]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def _store(self, request: TransferRequest):
        self._requests[request.id] = request
        self._requests.move_to_end(request.id)
        while len(self._requests) > self.limit:
            self._requests.popitem(last=False)

    def track(self, request: TransferRequest):
        """Start tracking ``request`` under the status it already carries.

        A no-op when this very request is already tracked, so a worker that
        moved it on first is not overwritten.
        """
        with self._lock:
            if self._requests.get(request.id) is not request:
                self._store(request)

    def record(self, request: TransferRequest, status: str):
        with self._lock:
            request.status = status
            self._store(request)

    def mark(self, request_id: int, status: str) -> bool:
        """Move a tracked request to ``status``; False when unknown."""
        with self._lock:
            request = self._requests.get(request_id)
            if request is None:
                return False
            request.status = status
            self._store(request)
            return True

    def get(self, request_id: int) -> Optional[TransferRequest]:
        with self._lock:
            request = self._requests.get(request_id)
            return request.model_copy() if request is not None else None

    def requests(self, status: str = "") -> List[TransferRequest]:
        with self._lock:
            return [
                r.model_copy() for r in self._requests.values()
                if not status or r.status == status
            ]
