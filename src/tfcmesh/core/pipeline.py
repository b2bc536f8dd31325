# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/core/pipeline.py

"""Composable request processing.

A processor takes a TransferRequest and raises on failure. A stage wraps the
next processor: ``Pipeline([A, B, C])`` runs A first, and A decides whether
and when to call into B, down to the no-op base.
"""

import time
from abc import ABC, abstractmethod
from functools import partial
from typing import Callable, Iterable, Optional

from loguru import logger

from tfcmesh.models import TransferRequest

Processor = Callable[[TransferRequest], None]


def noop(request: TransferRequest) -> None:
    pass


class Stage(ABC):
    @abstractmethod
    def process(self, request: TransferRequest, proceed: Processor) -> None:
        """Handle the request, calling ``proceed(request)`` to continue."""


class Pipeline:
    def __init__(self, stages: Iterable[Stage], base: Processor = noop):
        self.stages = list(stages)
        processor = base
        for stage in reversed(self.stages):
            processor = partial(stage.process, proceed=processor)
        self._processor = processor

    def __call__(self, request: TransferRequest) -> None:
        self._processor(request)

    def __repr__(self):
        names = " -> ".join(type(s).__name__ for s in self.stages)
        return f"<Pipeline {names}>"


class PauseStage(Stage):
    """Sleep before proceeding; ``interval=None`` uses the request's delay."""

    def __init__(self, interval: Optional[float] = None, sleep=time.sleep):
        self.interval = interval
        self.sleep = sleep

    def process(self, request, proceed):
        seconds = self.interval if self.interval is not None else request.delay
        if seconds and seconds > 0:
            logger.debug(f"Request {request.id} paused for {seconds}s")
            self.sleep(seconds)
        proceed(request)


class LoggingStage(Stage):
    def __init__(self, level: str = "INFO"):
        self.level = level

    def process(self, request, proceed):
        logger.log(self.level, f"Request {request}")
        proceed(request)


class TraceStage(Stage):
    """Log entry, exit and elapsed time of everything downstream."""

    def process(self, request, proceed):
        with logger.contextualize(request_id=request.id):
            logger.debug(f"Request {request.id} started")
            start = time.time()
            try:
                proceed(request)
            except Exception:
                logger.debug(f"Request {request.id} failed after {time.time() - start:.3f}s")
                raise
            logger.debug(f"Request {request.id} finished in {time.time() - start:.3f}s")
