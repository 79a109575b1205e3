"""Bounded worker pool for extraction jobs."""

import logging
import queue
import threading
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Self

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Outcome of one job: its payload plus either a value or an error."""

    payload: Any
    value: Any = None
    error: Exception | None = None


class WorkerPool:
    """Runs jobs on at most ``max_workers`` threads.

    Results are collected in completion order with :meth:`next_result` or
    :meth:`poll`. No more than ``max_workers * backlog_factor`` jobs may be
    submitted and not yet collected; callers check :attr:`has_capacity` and
    collect results before submitting more. A failing job only affects its own
    result.
    """

    def __init__(self, max_workers: int, backlog_factor: int = 2, name: str = "musicscan-worker"):
        if max_workers <= 0:
            raise ValueError(f"max_workers must be positive, got {max_workers}")

        self.max_workers = max_workers
        self.capacity = max_workers * max(1, backlog_factor)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._completed: queue.Queue[JobResult] = queue.Queue()
        self._lock = threading.Lock()
        self._pending = 0
        self._in_flight = 0
        self.peak_in_flight = 0

    @property
    def pending(self) -> int:
        """Jobs submitted whose results have not been collected yet."""
        with self._lock:
            return self._pending

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def has_capacity(self) -> bool:
        return self.pending < self.capacity

    def submit(self, payload: Any, func: Callable[..., Any], *args: Any) -> None:
        with self._lock:
            if self._pending >= self.capacity:
                raise RuntimeError("Worker pool backlog is full; collect results first")
            self._pending += 1
        self._executor.submit(self._run, payload, func, args)

    def next_result(self, timeout: float | None = None) -> JobResult:
        """Block until a job completes and return its result."""
        if self.pending == 0:
            raise RuntimeError("No pending jobs to wait for")
        result = self._completed.get(timeout=timeout)
        with self._lock:
            self._pending -= 1
        return result

    def poll(self) -> JobResult | None:
        """Return a completed result if one is ready, else None."""
        try:
            result = self._completed.get_nowait()
        except queue.Empty:
            return None
        with self._lock:
            self._pending -= 1
        return result

    def drain(self) -> Iterator[JobResult]:
        """Yield every outstanding result until nothing is pending."""
        while self.pending:
            yield self.next_result()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=not wait)

    def _run(self, payload: Any, func: Callable[..., Any], args: tuple) -> None:
        with self._lock:
            self._in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self._in_flight)

        try:
            result = JobResult(payload=payload, value=func(*args))
        except Exception as e:
            logger.debug("Job for %s failed: %s", payload, e)
            result = JobResult(payload=payload, error=e)
        finally:
            with self._lock:
                self._in_flight -= 1

        self._completed.put(result)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)
