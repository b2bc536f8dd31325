# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tfcmesh/tests/test_dispatcher.py

import threading
import time

import pytest

from conftest import wait_until
from tfcmesh.core.dispatcher import (
    POLL_INTERVAL,
    Dispatcher,
    FifoJobSource,
    PriorityJobSource,
    make_job_source,
)
from tfcmesh.core.history import RequestHistory
from tfcmesh.core.metrics import AgentMetrics
from tfcmesh.errors import DuplicateRequestError, QueueFullError, TransferError
from tfcmesh.models import Job, TransferRequest


def _job(rid: int, priority: int = 0) -> Job:
    return Job(TransferRequest(id=rid, priority=priority))


class TestJobSources:
    @pytest.mark.parametrize("cls", [FifoJobSource, PriorityJobSource])
    def test_capacity_rejects(self, cls):
        source = cls(2)
        source.submit(_job(1))
        source.submit(_job(2))

        with pytest.raises(QueueFullError):
            source.submit(_job(3))
        assert len(source) == 2

    @pytest.mark.parametrize("cls", [FifoJobSource, PriorityJobSource])
    def test_duplicate_rejected(self, cls):
        source = cls(5)
        source.submit(_job(1))

        with pytest.raises(DuplicateRequestError):
            source.submit(_job(1))

    @pytest.mark.parametrize("cls", [FifoJobSource, PriorityJobSource])
    def test_cancel_and_pending(self, cls):
        source = cls(5)
        for rid in (1, 2, 3):
            source.submit(_job(rid))

        assert source.cancel(2) is True
        assert source.cancel(2) is False
        assert sorted(r.id for r in source.pending()) == [1, 3]

    def test_fifo_order(self):
        source = FifoJobSource(5)
        for rid, prio in ((1, 0), (2, 9), (3, 5)):
            source.submit(_job(rid, prio))

        assert [source.take(0).id for _ in range(3)] == [1, 2, 3]

    def test_priority_order(self):
        source = PriorityJobSource(5)
        for rid, prio in ((1, 0), (2, 9), (3, 5)):
            source.submit(_job(rid, prio))

        assert [source.take(0).id for _ in range(3)] == [2, 3, 1]

    def test_take_times_out(self):
        assert FifoJobSource(1).take(timeout=0.01) is None

    def test_make_job_source(self):
        assert isinstance(make_job_source("priority", 3), PriorityJobSource)
        assert isinstance(make_job_source("fifo", 3), FifoJobSource)


class TestDispatcher:
    def test_runs_every_job(self):
        metrics = AgentMetrics()
        seen = []
        lock = threading.Lock()

        def processor(request):
            with lock:
                seen.append(request.id)

        dispatcher = Dispatcher(FifoJobSource(20), processor, 3, metrics)
        dispatcher.start()
        try:
            jobs = [dispatcher.submit(TransferRequest(id=rid)) for rid in range(1, 11)]
            assert wait_until(lambda: len(seen) == 10)
            assert wait_until(lambda: all(j.request.status == "completed" for j in jobs))
        finally:
            dispatcher.stop()

        assert sorted(seen) == list(range(1, 11))
        assert metrics.get("submitted") == 10
        assert sum(metrics.worker_counts().values()) == 10

    def test_failure_is_counted(self):
        metrics = AgentMetrics()

        def processor(request):
            raise TransferError("boom")

        dispatcher = Dispatcher(FifoJobSource(5), processor, 1, metrics)
        dispatcher.start()
        try:
            job = dispatcher.submit(TransferRequest(id=1))
            assert wait_until(lambda: job.request.status == "failed")
        finally:
            dispatcher.stop()

        assert metrics.get("failed") == 1

    def test_stop_is_cooperative(self):
        metrics = AgentMetrics()
        dispatcher = Dispatcher(FifoJobSource(5), lambda r: None, 2, metrics)
        dispatcher.start()
        dispatcher.stop()

        assert not any(w.is_alive() for w in dispatcher.workers)

    def test_waiting_job_stays_in_source(self):
        """While every worker is busy, queued jobs count against capacity."""
        started = threading.Event()
        release = threading.Event()

        def processor(request):
            started.set()
            release.wait(5)

        dispatcher = Dispatcher(FifoJobSource(2), processor, 1, AgentMetrics())
        dispatcher.start()
        try:
            dispatcher.submit(TransferRequest(id=1))
            assert started.wait(5)
            dispatcher.submit(TransferRequest(id=2))
            time.sleep(3 * POLL_INTERVAL)

            assert [r.id for r in dispatcher.source.pending()] == [2]
            with pytest.raises(DuplicateRequestError):
                dispatcher.submit(TransferRequest(id=2))
            dispatcher.submit(TransferRequest(id=3))
            with pytest.raises(QueueFullError):
                dispatcher.submit(TransferRequest(id=4))
            assert dispatcher.source.cancel(2)
        finally:
            release.set()
            dispatcher.stop()

    def test_history_follows_each_request(self):
        history = RequestHistory()

        def processor(request):
            if request.id == 2:
                raise TransferError("refused")

        dispatcher = Dispatcher(FifoJobSource(5), processor, 2, AgentMetrics(), history)
        dispatcher.start()
        try:
            for rid in (1, 2):
                dispatcher.submit(TransferRequest(id=rid))
            assert wait_until(lambda: history.get(1).status == "completed")
            assert wait_until(lambda: history.get(2).status == "failed")
        finally:
            dispatcher.stop()

        assert [r.id for r in history.requests("failed")] == [2]


class TestRequestHistory:
    def test_record_and_filter(self):
        history = RequestHistory()
        first, second = TransferRequest(id=1), TransferRequest(id=2)
        history.record(first, "queued")
        history.record(second, "queued")
        history.record(first, "processing")

        assert first.status == "processing"
        assert [r.id for r in history.requests()] == [2, 1]
        assert [r.id for r in history.requests("queued")] == [2]

    def test_track_does_not_undo_progress(self):
        history = RequestHistory()
        request = TransferRequest(id=1, status="queued")
        history.record(request, "processing")
        history.track(request)

        assert history.get(1).status == "processing"

    def test_mark(self):
        history = RequestHistory()
        history.track(TransferRequest(id=1, status="queued"))

        assert history.mark(1, "cancelled")
        assert not history.mark(99, "cancelled")
        assert history.get(1).status == "cancelled"

    def test_limit_drops_oldest(self):
        history = RequestHistory(limit=2)
        for rid in (1, 2, 3):
            history.record(TransferRequest(id=rid), "completed")

        assert len(history) == 2
        assert history.get(1) is None

    def test_get_returns_copy(self):
        history = RequestHistory()
        history.record(TransferRequest(id=1), "queued")
        history.get(1).status = "tampered"

        assert history.get(1).status == "queued"
