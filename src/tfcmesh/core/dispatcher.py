# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/dispatcher.py

"""Job sources, worker threads and the dispatcher that connects them.

Every worker owns a one-slot intake queue. When idle it puts
``(worker_id, intake)`` on the shared idle queue; the dispatch thread waits for
an idle intake, then takes a job from the job source and drops it in. A job
therefore stays in the source, counted against its capacity and cancellable,
until a worker is free to run it.
"""

import queue
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from loguru import logger

from tfcmesh.core.history import COMPLETED, FAILED, PROCESSING, QUEUED, RequestHistory
from tfcmesh.core.metrics import AgentMetrics
from tfcmesh.core.queue import RequestQueue
from tfcmesh.errors import DuplicateRequestError, QueueFullError, TfcMeshError
from tfcmesh.models import Job, TransferRequest

POLL_INTERVAL = 0.2  # seconds between stop checks


class JobSource(ABC):
    """Bounded store of jobs waiting for a worker."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self._cond = threading.Condition()

    @abstractmethod
    def _size(self) -> int: ...

    @abstractmethod
    def _contains(self, request_id: int) -> bool: ...

    @abstractmethod
    def _put(self, job: Job): ...

    @abstractmethod
    def _get(self) -> Job: ...

    @abstractmethod
    def _remove(self, request_id: int) -> bool: ...

    @abstractmethod
    def _requests(self) -> List[TransferRequest]: ...

    def __len__(self) -> int:
        with self._cond:
            return self._size()

    def submit(self, job: Job):
        """Queue a job; never blocks, raises when full or duplicated."""
        with self._cond:
            if self._size() >= self.capacity:
                raise QueueFullError(self.capacity)
            if self._contains(job.id):
                raise DuplicateRequestError(job.id)
            self._put(job)
            self._cond.notify()

    def take(self, timeout: Optional[float] = None) -> Optional[Job]:
        """Next job, or None when nothing arrived within ``timeout``."""
        with self._cond:
            if not self._cond.wait_for(lambda: self._size() > 0, timeout=timeout):
                return None
            return self._get()

    def pending(self) -> List[TransferRequest]:
        with self._cond:
            return self._requests()

    def cancel(self, request_id: int) -> bool:
        with self._cond:
            return self._remove(request_id)


class FifoJobSource(JobSource):
    def __init__(self, capacity: int):
        super().__init__(capacity)
        self._jobs: Deque[Job] = deque()

    def _size(self) -> int:
        return len(self._jobs)

    def _contains(self, request_id: int) -> bool:
        return any(job.id == request_id for job in self._jobs)

    def _put(self, job: Job):
        self._jobs.append(job)

    def _get(self) -> Job:
        return self._jobs.popleft()

    def _remove(self, request_id: int) -> bool:
        for job in self._jobs:
            if job.id == request_id:
                self._jobs.remove(job)
                return True
        return False

    def _requests(self) -> List[TransferRequest]:
        return [job.request for job in self._jobs]


class PriorityJobSource(JobSource):
    """Highest ``priority`` first, backed by a RequestQueue."""

    def __init__(self, capacity: int):
        super().__init__(capacity)
        self.heap = RequestQueue()
        self._submitted: Dict[int, float] = {}

    def _size(self) -> int:
        return len(self.heap)

    def _contains(self, request_id: int) -> bool:
        return request_id in self.heap

    def _put(self, job: Job):
        self.heap.push(job.request)
        self._submitted[job.id] = job.submitted_at

    def _get(self) -> Job:
        request = self.heap.pop()
        return Job(request, self._submitted.pop(request.id, None))

    def _remove(self, request_id: int) -> bool:
        if self.heap.delete(request_id):
            self._submitted.pop(request_id, None)
            return True
        return False

    def _requests(self) -> List[TransferRequest]:
        return self.heap.get_all_requests()


def make_job_source(scheduling: str, capacity: int) -> JobSource:
    if scheduling == "priority":
        return PriorityJobSource(capacity)
    return FifoJobSource(capacity)


class Worker(threading.Thread):
    """Runs one job at a time through the processor."""

    def __init__(
        self,
        worker_id: int,
        idle: queue.Queue,
        processor: Callable[[TransferRequest], None],
        metrics: AgentMetrics,
        stop_event: threading.Event,
        history: RequestHistory,
    ):
        super().__init__(name=f"worker-{worker_id}", daemon=True)
        self.worker_id = worker_id
        self.idle = idle
        self.intake: queue.Queue = queue.Queue(maxsize=1)
        self.processor = processor
        self.metrics = metrics
        self.stop_event = stop_event
        self.history = history

    def _wait_for_job(self) -> Optional[Job]:
        while not self.stop_event.is_set():
            try:
                return self.intake.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
        return None

    def run(self):
        logger.debug(f"Worker-{self.worker_id} started")
        while not self.stop_event.is_set():
            self.idle.put((self.worker_id, self.intake))
            job = self._wait_for_job()
            if job is None:
                break
            self._run_job(job)
        logger.debug(f"Worker-{self.worker_id} stopped")

    def _run_job(self, job: Job):
        request = job.request
        self.history.record(request, PROCESSING)
        try:
            self.processor(request)
            self.history.record(request, COMPLETED)
        except TfcMeshError as e:
            self.history.record(request, FAILED)
            self.metrics.inc("failed")
            logger.error(f"Worker-{self.worker_id} request {request.id} failed: {e}")
        except Exception as e:
            self.history.record(request, FAILED)
            self.metrics.inc("failed")
            logger.exception(f"Worker-{self.worker_id} request {request.id} crashed: {e}")


class Dispatcher:
    """Owns the worker pool and the thread feeding it."""

    def __init__(
        self,
        source: JobSource,
        processor: Callable[[TransferRequest], None],
        workers: int,
        metrics: AgentMetrics,
        history: Optional[RequestHistory] = None,
    ):
        self.source = source
        self.processor = processor
        self.metrics = metrics
        self.history = history if history is not None else RequestHistory()
        self.stop_event = threading.Event()
        self.idle: queue.Queue = queue.Queue()
        self.workers = [
            Worker(i, self.idle, processor, metrics, self.stop_event, self.history)
            for i in range(workers)
        ]
        self._thread = threading.Thread(target=self._dispatch_loop, name="dispatcher", daemon=True)

    def start(self):
        for worker in self.workers:
            worker.start()
        self._thread.start()
        logger.info(f"Dispatcher started with {len(self.workers)} workers, queue capacity {self.source.capacity}")

    def submit(self, request: TransferRequest) -> Job:
        job = Job(request)
        request.status = QUEUED
        self.source.submit(job)
        self.history.track(request)
        return job

    def _next_idle(self):
        while not self.stop_event.is_set():
            try:
                return self.idle.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                continue
        return None

    def _next_job(self) -> Optional[Job]:
        while not self.stop_event.is_set():
            job = self.source.take(timeout=POLL_INTERVAL)
            if job is not None:
                return job
        return None

    def _dispatch_loop(self):
        while not self.stop_event.is_set():
            idle = self._next_idle()
            if idle is None:
                break
            job = self._next_job()
            if job is None:
                break
            worker_id, intake = idle
            self.metrics.inc("submitted")
            self.metrics.worker_dispatched(worker_id)
            logger.debug(f"Dispatching request {job.id} to worker-{worker_id}")
            intake.put(job)

    def stop(self, timeout: float = 5.0):
        self.stop_event.set()
        for thread in [self._thread, *self.workers]:
            if thread.is_alive():
                thread.join(timeout)
        logger.info("Dispatcher stopped")
