# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tfcmesh/tests/test_queue.py

import random

import pytest

from tfcmesh.core.queue import RequestQueue
from tfcmesh.errors import DuplicateRequestError
from tfcmesh.models import TransferRequest


def _request(rid: int, priority: int) -> TransferRequest:
    return TransferRequest(id=rid, priority=priority, dataset="/a/b/c")


def _assert_heap(queue: RequestQueue):
    prio = queue.priorities()
    for i in range(len(prio)):
        for child in (2 * i + 1, 2 * i + 2):
            if child < len(prio):
                assert prio[i] >= prio[child]


@pytest.fixture
def queue():
    q = RequestQueue()
    rng = random.Random(42)
    for rid in range(1, 31):
        q.push(_request(rid, rng.randint(0, 10)))
    return q


class TestRequestQueue:
    def test_pops_are_non_increasing(self, queue):
        popped = [queue.pop().priority for _ in range(len(queue))]

        assert popped == sorted(popped, reverse=True)
        assert len(queue) == 0

    def test_pop_empty(self):
        with pytest.raises(IndexError):
            RequestQueue().pop()

    def test_delete_missing_leaves_heap_untouched(self, queue):
        before = queue.get_all_requests()

        assert queue.delete(999) is False
        assert queue.get_all_requests() == before

    def test_delete_present(self, queue):
        size = len(queue)

        assert queue.delete(7) is True
        assert len(queue) == size - 1
        assert 7 not in queue
        assert all(r.id != 7 for r in queue.get_all_requests())
        _assert_heap(queue)

    def test_delete_every_position(self, queue):
        ids = [r.id for r in queue.get_all_requests()]
        for rid in ids[::3]:
            assert queue.delete(rid)
            _assert_heap(queue)
        popped = [queue.pop().priority for _ in range(len(queue))]
        assert popped == sorted(popped, reverse=True)

    def test_update_reorders(self, queue):
        item = queue.item(5)
        queue.update(item, item.value.model_copy(update={"priority": 100}), 100)

        _assert_heap(queue)
        assert queue.peek().id == 5
        assert queue.pop().id == 5

    def test_update_lowers_priority(self, queue):
        top = queue.peek()
        item = queue.item(top.id)
        queue.update(item, top, -1)

        _assert_heap(queue)
        assert [queue.pop() for _ in range(len(queue))][-1].id == top.id

    def test_indices_track_storage(self, queue):
        queue.delete(3)
        queue.pop()
        for request in queue.get_all_requests():
            item = queue.item(request.id)
            assert queue.get_all_requests()[item.index].id == request.id

    def test_duplicate_push(self, queue):
        with pytest.raises(DuplicateRequestError):
            queue.push(_request(1, 5))

    def test_id_reusable_after_pop(self):
        q = RequestQueue()
        q.push(_request(1, 1))
        q.pop()
        q.push(_request(1, 1))
        assert len(q) == 1
