"""
Bounded pool of background threads that run archive tasks.

Tasks wait in a fixed-size queue; ``workers.count`` daemon threads drain
it.  Queued or running tasks can be cancelled by entry hash, and each task
carries a deadline so a stuck download cannot hold a worker forever.
"""

import queue
import threading
import time
from typing import TYPE_CHECKING, Dict, List, Optional

from ..constants import (
    DEFAULT_ENQUEUE_TIMEOUT_SECONDS,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_WORKER_COUNT,
)
from ..observability.errors import ErrorTracker
from ..observability.metrics import MetricsCollector

if TYPE_CHECKING:
    import logging

    from ..models import ArchiveTask
    from ..services.archive_service import ArchiveService

# Placed on the queue once per worker to make it exit.
_STOP = object()


def archive_worker(
    tasks: "queue.Queue",
    archive_service: "ArchiveService",
    pool: "ArchiveQueue",
    logger: "logging.Logger",
) -> None:
    """Drain *tasks* until a stop sentinel arrives.

    Args:
        tasks: Shared task queue.
        archive_service: Runs the download/upload/cleanup sequence.
        pool: Owning pool, for active-task bookkeeping.
        logger: Logger instance.
    """
    logger.info("Archive worker %s started", threading.current_thread().name)
    metrics = MetricsCollector()
    error_tracker = ErrorTracker()

    while True:
        task = tasks.get()
        try:
            if task is _STOP:
                break
            metrics.gauge_set("archive_queue_depth", tasks.qsize())
            if task.cancelled:
                logger.info("Skipping cancelled archive task %s", task.hash)
                metrics.inc("archive_tasks_total", labels={"outcome": "cancelled"})
                pool._mark_done(task)
                continue

            pool._mark_active(task)
            try:
                archive_service.run(task)
            finally:
                pool._mark_done(task)
        except Exception as e:
            logger.error("Archive worker error: %s", e)
            error_tracker.capture_exception(extra={"worker": "archive_worker"})
        finally:
            tasks.task_done()

    logger.info("Archive worker %s stopped", threading.current_thread().name)


class ArchiveQueue:
    """Fixed worker count, fixed queue depth."""

    def __init__(
        self,
        archive_service: "ArchiveService",
        logger: "logging.Logger",
        worker_count: int = DEFAULT_WORKER_COUNT,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        enqueue_timeout: float = DEFAULT_ENQUEUE_TIMEOUT_SECONDS,
    ):
        self.archive_service = archive_service
        self.logger = logger
        self.worker_count = max(1, worker_count)
        self.enqueue_timeout = enqueue_timeout
        self._tasks: queue.Queue = queue.Queue(maxsize=max(1, queue_size))
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._known: Dict[str, "ArchiveTask"] = {}
        self._active: Dict[str, "ArchiveTask"] = {}
        self._accepting = False
        self.metrics = MetricsCollector()

    def start(self) -> None:
        with self._lock:
            if self._threads:
                return
            self._accepting = True
            for n in range(1, self.worker_count + 1):
                thread = threading.Thread(
                    target=archive_worker,
                    args=(self._tasks, self.archive_service, self, self.logger),
                    daemon=True,
                    name=f"archive-worker-{n}",
                )
                thread.start()
                self._threads.append(thread)
        self.logger.info(
            "Archive queue started (%d workers, depth %d)", self.worker_count, self._tasks.maxsize
        )

    def submit(self, task: "ArchiveTask") -> bool:
        """Queue *task*; False when the pool is stopped or stays full."""
        if not self._accepting:
            self.logger.error("Archive queue not running, dropping task %s", task.hash)
            return False
        with self._lock:
            self._known[task.hash] = task
        try:
            self._tasks.put(task, timeout=self.enqueue_timeout)
        except queue.Full:
            with self._lock:
                self._known.pop(task.hash, None)
            self.logger.error("Archive queue full, dropping task %s", task.hash)
            self.metrics.inc("archive_tasks_rejected_total")
            return False
        self.metrics.gauge_set("archive_queue_depth", self._tasks.qsize())
        return True

    def cancel(self, entry_hash: str) -> bool:
        """Flag a queued or running task; True if one was found."""
        with self._lock:
            task = self._known.get(entry_hash)
        if task is None:
            return False
        task.cancel()
        self.logger.info("Cancellation requested for archive task %s", entry_hash)
        return True

    def pending(self) -> int:
        return self._tasks.qsize()

    def active(self) -> int:
        with self._lock:
            return len(self._active)

    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop accepting work, let workers finish queued tasks, then join.

        With *timeout*, the whole shutdown is bounded: if the queue is still
        full when the time is up, the queued tasks are cancelled to make
        room for the stop sentinels.
        """
        self._accepting = False
        deadline = None if timeout is None else time.monotonic() + timeout
        for _ in self._threads:
            self._send_stop(deadline)
        for thread in self._threads:
            thread.join(None if deadline is None else max(0.0, deadline - time.monotonic()))
        self._threads = []
        self.logger.info("Archive queue stopped")

    def _send_stop(self, deadline: Optional[float]) -> None:
        remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
        try:
            self._tasks.put(_STOP, timeout=remaining)
            return
        except queue.Full:
            pass
        while True:
            self._drop_pending()
            try:
                self._tasks.put_nowait(_STOP)
                return
            except queue.Full:
                continue

    def _drop_pending(self) -> None:
        """Cancel every queued task, keeping stop sentinels already sent."""
        stops = 0
        while True:
            try:
                task = self._tasks.get_nowait()
            except queue.Empty:
                break
            self._tasks.task_done()
            if task is _STOP:
                stops += 1
                continue
            task.cancel()
            self._mark_done(task)
            self.metrics.inc("archive_tasks_total", labels={"outcome": "cancelled"})
            self.logger.warning("Shutdown: dropped queued archive task %s", task.hash)
        for _ in range(stops):
            self._tasks.put_nowait(_STOP)

    def _mark_active(self, task: "ArchiveTask") -> None:
        with self._lock:
            self._active[task.hash] = task

    def _mark_done(self, task: "ArchiveTask") -> None:
        with self._lock:
            self._active.pop(task.hash, None)
            self._known.pop(task.hash, None)
