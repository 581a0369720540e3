"""
=============================================================================
WORKER POOL
=============================================================================

Worker threads fed by a bounded queue of accepted connections.

    accept loop ──put──▶ [ conn | conn | conn |    ] ──get──▶ Worker-0
                          bounded queue (queue_size)  ──get──▶ Worker-1
                                                      ──get──▶ ...

    - A worker owns a connection from the first request to the close;
      a keep-alive client stays on the same thread.
    - When the queue is full, submit() returns False right away and the
      caller decides what to tell the client (503).
    - Shutdown drains the queue, then stops each worker with a None
      sentinel.

=============================================================================
SCALING
=============================================================================

    min_workers     started with the pool (one per core by default),
                    kept until shutdown
    max_workers     ceiling

    submit():
        idle worker available?          → it takes the task
        all busy, below max_workers?    → start one more worker for it
        all busy, at max_workers?       → the task waits in the queue

A worker waiting on a silent client counts as busy, so a few idle
connections make the pool grow instead of holding up everyone else.
Workers started above min_workers exit after idle_timeout seconds
without work.

Bookkeeping: each submitted task either claims an idle worker or gets a
new one. Tasks that could do neither are counted in _backlog and claim
the next worker to finish.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


logger = logging.getLogger(__name__)


@dataclass
class Task:
    """A deferred call: func(*args) on some worker."""

    func: Callable[..., Any]
    args: tuple = ()
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Pulls tasks off the pool's queue until it receives None.

    A task that raises is logged; the worker keeps going. A worker with
    an idle_timeout asks the pool to retire it when no work arrives in
    time.
    """

    def __init__(
        self,
        pool: "ThreadPool",
        worker_id: int,
        idle_timeout: Optional[float] = None,
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.pool = pool
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")
        task_queue = self.pool._task_queue

        while True:
            try:
                task = task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                if self.pool._retire(self):
                    break
                continue

            try:
                if task is None:
                    break
                self._execute(task)
            finally:
                task_queue.task_done()
            self.pool._task_finished()

        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute(self, task: Task):
        start = time.monotonic()
        waited = start - task.submitted_at

        try:
            task.func(*task.args)
            logger.debug(
                f"Worker {self.worker_id} finished task in "
                f"{time.monotonic() - start:.3f}s (queued {waited:.3f}s)"
            )
        except Exception as e:
            logger.exception(f"Worker {self.worker_id} task failed: {e}")


class ThreadPool:
    """
    Pool of worker threads that grows while every worker is busy.

    Example:
        pool = ThreadPool(workers=4, max_workers=64, queue_size=100)
        pool.start()
        if not pool.submit(handle, (conn,)):
            reject(conn)
        ...
        pool.shutdown()
    """

    def __init__(
        self,
        workers: int,
        max_workers: Optional[int] = None,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        """
        Args:
            workers: Threads started up front, at least 1.
            max_workers: Ceiling for growth; defaults to workers (no growth).
            queue_size: Tasks that may wait for a free worker.
            idle_timeout: Seconds an extra worker waits before exiting.
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")
        if max_workers is None:
            max_workers = workers
        if max_workers < workers:
            raise ValueError(
                f"max_workers ({max_workers}) must be >= workers ({workers})"
            )
        if queue_size < 1:
            raise ValueError(f"queue_size must be at least 1, got {queue_size}")
        if idle_timeout <= 0:
            raise ValueError(f"idle_timeout must be > 0, got {idle_timeout}")

        self.min_workers = workers
        self.max_workers = max_workers
        self.max_queued = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._next_id = 0
        self._idle = 0
        self._backlog = 0
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    @property
    def size(self) -> int:
        """Worker threads currently alive."""
        with self._lock:
            return len(self._workers)

    def start(self):
        with self._lock:
            if self._started:
                return
            logger.info(
                f"Starting thread pool with {self.min_workers} workers "
                f"(up to {self.max_workers})"
            )
            for _ in range(self.min_workers):
                self._spawn(idle_timeout=None)
            self._idle = self.min_workers
            self._backlog = 0
            self._shutdown = False
            self._started = True

    def _spawn(self, idle_timeout: Optional[float]):
        # Caller holds the lock
        worker = Worker(self, self._next_id, idle_timeout)
        self._next_id += 1
        self._workers.append(worker)
        worker.start()

    def submit(self, func: Callable[..., Any], args: tuple = ()) -> bool:
        """
        Queue func(*args) for a worker, growing the pool if all are busy.

        Returns:
            True if queued, False if the queue is full.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        with self._lock:
            try:
                self._task_queue.put_nowait(Task(func=func, args=args))
            except queue.Full:
                logger.warning(f"Task queue full ({self.max_queued} waiting)")
                return False

            if self._idle > 0:
                self._idle -= 1
            elif len(self._workers) < self.max_workers:
                self._spawn(idle_timeout=self.idle_timeout)
                logger.debug(f"All workers busy, scaled up to {len(self._workers)}")
            else:
                self._backlog += 1
        return True

    def _task_finished(self):
        with self._lock:
            if self._backlog > 0:
                self._backlog -= 1
            else:
                self._idle += 1

    def _retire(self, worker: Worker) -> bool:
        """Let an idle extra worker exit unless the pool still needs it."""
        with self._lock:
            if (
                self._shutdown
                or self._idle == 0
                or len(self._workers) <= self.min_workers
            ):
                return False
            self._idle -= 1
            self._workers.remove(worker)
        logger.debug(f"{worker.name} idle for {self.idle_timeout}s, retiring")
        return True

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait: Let queued tasks finish before stopping the workers.
            timeout: Upper bound, in seconds, on waiting for the queue to
                     drain and for each worker to exit.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        with self._lock:
            self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while self._task_queue.unfinished_tasks:
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued tasks")
                    self._discard_queued()
                    break
                time.sleep(0.05)
        else:
            self._discard_queued()

        with self._lock:
            workers = list(self._workers)

        for _ in workers:
            self._task_queue.put(None)

        for worker in workers:
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"{worker.name} did not stop in time")

        with self._lock:
            self._workers.clear()
        self._started = False
        logger.info("Thread pool shutdown complete")

    def _discard_queued(self):
        while True:
            try:
                self._task_queue.get_nowait()
            except queue.Empty:
                return
            self._task_queue.task_done()
