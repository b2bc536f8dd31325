# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/queue.py

"""Max-priority heap of pending transfer requests.

heapq cannot remove or re-prioritize an arbitrary element, so the heap is
kept by hand: every item carries its current index, updated on each swap,
which makes ``update`` O(log n) and ``delete`` a scan plus O(log n).
"""

import threading
from typing import Dict, List, Optional

from tfcmesh.errors import DuplicateRequestError
from tfcmesh.models import TransferRequest


class QueueItem:
    __slots__ = ("value", "priority", "index")

    def __init__(self, value: TransferRequest, priority: int, index: int = -1):
        self.value = value
        self.priority = priority
        self.index = index

    def __repr__(self):
        return f"<QueueItem id={self.value.id} priority={self.priority} index={self.index}>"


class RequestQueue:
    def __init__(self):
        self._heap: List[QueueItem] = []
        self._ids: Dict[int, QueueItem] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)

    def __contains__(self, request_id: int) -> bool:
        with self._lock:
            return request_id in self._ids

    # heap primitives, callers hold the lock

    def _swap(self, i: int, j: int):
        heap = self._heap
        heap[i], heap[j] = heap[j], heap[i]
        heap[i].index = i
        heap[j].index = j

    def _up(self, j: int):
        while j > 0:
            parent = (j - 1) // 2
            if self._heap[j].priority <= self._heap[parent].priority:
                break
            self._swap(j, parent)
            j = parent

    def _down(self, i: int) -> bool:
        start = i
        n = len(self._heap)
        while True:
            left = 2 * i + 1
            if left >= n:
                break
            child = left
            right = left + 1
            if right < n and self._heap[right].priority > self._heap[left].priority:
                child = right
            if self._heap[child].priority <= self._heap[i].priority:
                break
            self._swap(i, child)
            i = child
        return i > start

    def _fix(self, i: int):
        if not self._down(i):
            self._up(i)

    def _remove_at(self, i: int) -> QueueItem:
        last = len(self._heap) - 1
        if i != last:
            self._swap(i, last)
        item = self._heap.pop()
        if i != last:
            self._fix(i)
        item.index = -1
        del self._ids[item.value.id]
        return item

    # public operations

    def push(self, request: TransferRequest) -> QueueItem:
        with self._lock:
            if request.id in self._ids:
                raise DuplicateRequestError(request.id)
            item = QueueItem(request, request.priority, len(self._heap))
            self._heap.append(item)
            self._ids[request.id] = item
            self._up(item.index)
            return item

    def pop(self) -> TransferRequest:
        """Remove and return the highest-priority request."""
        with self._lock:
            if not self._heap:
                raise IndexError("pop from empty request queue")
            return self._remove_at(0).value

    def peek(self) -> Optional[TransferRequest]:
        with self._lock:
            return self._heap[0].value if self._heap else None

    def delete(self, request_id: int) -> bool:
        """Remove the request with this id; False leaves the heap untouched."""
        with self._lock:
            index = -1
            for item in self._heap:
                if item.value.id == request_id:
                    index = item.index
                    break
            if 0 <= index < len(self._heap):
                self._remove_at(index)
                return True
            return False

    def update(self, item: QueueItem, value: TransferRequest, priority: int):
        """Replace an item's request and priority in place."""
        with self._lock:
            if item.index < 0 or item.index >= len(self._heap) or self._heap[item.index] is not item:
                raise KeyError(f"{item!r} is not queued")
            if value.id != item.value.id:
                if value.id in self._ids:
                    raise DuplicateRequestError(value.id)
                del self._ids[item.value.id]
                self._ids[value.id] = item
            item.value = value
            item.priority = priority
            self._fix(item.index)

    def item(self, request_id: int) -> Optional[QueueItem]:
        with self._lock:
            return self._ids.get(request_id)

    def get_all_requests(self) -> List[TransferRequest]:
        """Snapshot in storage order (not priority order)."""
        with self._lock:
            return [item.value for item in self._heap]

    def priorities(self) -> List[int]:
        with self._lock:
            return [item.priority for item in self._heap]
