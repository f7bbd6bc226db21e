"""
=============================================================================
THREAD POOL
=============================================================================

Runs each accepted connection on its own worker thread, so one slow
request (a large static file, a slow handler) never holds up the others.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   accept loop ──submit()──► [ bounded task queue ] ──► Worker-0     │
    │                                                   ├──► Worker-1     │
    │                                                   └──► Worker-N     │
    │                                                                      │
    │   queue full  → submit() returns False → server answers 503         │
    │   all busy    → add a worker, up to max_workers                     │
    │   shutdown    → one poison pill (None) per worker                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
=============================================================================
"""

import threading
import queue
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Any, List


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """
    A deferred call.

    ``timeout`` is a staleness limit: a task that waited in the queue
    longer than this is dropped instead of run.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def is_stale(self) -> bool:
        return bool(self.timeout) and time.time() - self.submitted_at > self.timeout


class Worker(threading.Thread):
    """Pulls tasks off the shared queue until it receives ``None``."""

    def __init__(self, task_queue: queue.Queue, worker_id: int, poll_interval: float = 1.0):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.poll_interval = poll_interval
        self.busy = False
        self._stop_requested = threading.Event()

    def run(self):
        logger.debug(f"{self.name} started")

        while not self._stop_requested.is_set():
            try:
                task = self.task_queue.get(timeout=self.poll_interval)
            except queue.Empty:
                continue

            try:
                if task is None:
                    break
                self._run_task(task)
            finally:
                self.task_queue.task_done()

        logger.debug(f"{self.name} stopped")

    def _run_task(self, task: Task):
        if task.is_stale:
            logger.warning(
                f"{self.name} dropped a task that waited over {task.timeout}s in queue"
            )
            return

        self.busy = True
        try:
            task.func(*task.args, **task.kwargs)
        except Exception as e:
            # Logged, never re-raised: the worker keeps serving
            logger.exception(f"{self.name} task failed: {e}")
        finally:
            self.busy = False

    def stop(self):
        """Stop after the current task, without waiting for a poison pill."""
        self._stop_requested.set()


class ThreadPool:
    """
    Thread pool with a bounded queue and scale-up to ``max_workers``.

    Usage:
        pool = ThreadPool(min_workers=4, max_workers=16)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        pool.shutdown(wait=True)
    """

    def __init__(self, min_workers: int = 4, max_workers: int = 16, queue_size: int = 100):
        self.min_workers = min_workers
        self.max_workers = max_workers

        self._task_queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutting_down = False

    @property
    def size(self) -> int:
        """Number of live worker threads."""
        with self._lock:
            return sum(1 for w in self._workers if w.is_alive())

    def start(self):
        if self._started:
            return

        logger.info(f"Starting thread pool with {self.min_workers} workers")
        for _ in range(self.min_workers):
            self._add_worker()
        self._started = True

    def _add_worker(self) -> bool:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                return False
            worker = Worker(self._task_queue, len(self._workers))
            self._workers.append(worker)
        worker.start()
        return True

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue ``func(*args, **kwargs)`` without blocking.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: The pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutting_down:
            raise RuntimeError("Thread pool is shutting down")

        try:
            self._task_queue.put(
                Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout),
                block=False,
            )
        except queue.Full:
            return False

        # Grow when every worker is occupied and work is waiting
        with self._lock:
            all_busy = all(w.busy for w in self._workers if w.is_alive())
        if all_busy and not self._task_queue.empty() and self._add_worker():
            logger.debug(f"Thread pool grew to {self.size} workers")
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop all workers.

        Queued tasks ahead of the poison pills still run. With ``wait``,
        joins each worker, sharing ``timeout`` across all of them.
        """
        if self._shutting_down or not self._started:
            return
        self._shutting_down = True

        with self._lock:
            workers = list(self._workers)

        logger.info(f"Shutting down thread pool ({len(workers)} workers)")
        for _ in workers:
            try:
                self._task_queue.put(None, timeout=1.0)
            except queue.Full:
                # Queue jammed: stop after the current task instead
                for worker in workers:
                    worker.stop()
                break

        if wait:
            deadline = None if timeout is None else time.time() + timeout
            for worker in workers:
                remaining = None if deadline is None else max(deadline - time.time(), 0)
                worker.join(remaining)
