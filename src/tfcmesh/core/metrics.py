# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/metrics.py

"""Agent counters and the periodic reporter thread."""

import threading
from typing import Dict

import humanize
import psutil
from loguru import logger

COUNTERS = ("in", "failed", "total", "totalBytes", "bytes", "submitted")


class AgentMetrics:
    """Lock-guarded integer counters.

    ``in``: requests accepted, ``failed``: files that failed to move,
    ``total``/``totalBytes``: completed transfers, ``bytes``: bytes in flight,
    ``submitted``: jobs handed out by the dispatcher.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {name: 0 for name in COUNTERS}
        self._workers: Dict[int, int] = {}

    def inc(self, name: str, amount: int = 1):
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def dec(self, name: str, amount: int = 1):
        self.inc(name, -amount)

    def get(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def worker_dispatched(self, worker_id: int):
        with self._lock:
            self._workers[worker_id] = self._workers.get(worker_id, 0) + 1

    def worker_counts(self) -> Dict[int, int]:
        with self._lock:
            return dict(self._workers)

    def snapshot(self) -> Dict[str, int]:
        """Counters plus per-worker dispatches and host gauges."""
        with self._lock:
            data = dict(self._counters)
            for worker_id, count in self._workers.items():
                data[f"worker{worker_id}"] = count
        data["cpu"] = int(psutil.cpu_percent(interval=None))
        data["mem"] = int(psutil.virtual_memory().percent)
        return data


class MetricsReporter(threading.Thread):
    """Logs a metrics line every ``interval`` seconds until stopped."""

    def __init__(self, metrics: AgentMetrics, interval: float = 60):
        super().__init__(name="metrics-reporter", daemon=True)
        self.metrics = metrics
        self.interval = interval
        self.stop_event = threading.Event()

    def report(self):
        m = self.metrics.snapshot()
        logger.info(
            f"METRICS: in={m['in']:,} submitted={m['submitted']:,} "
            f"done={m['total']:,} failed={m['failed']:,} "
            f"moved={humanize.naturalsize(m['totalBytes'])} "
            f"inflight={humanize.naturalsize(m['bytes'])} "
            f"cpu={m['cpu']}% mem={m['mem']}%"
        )

    def run(self):
        while not self.stop_event.wait(self.interval):
            self.report()

    def stop(self):
        self.stop_event.set()
