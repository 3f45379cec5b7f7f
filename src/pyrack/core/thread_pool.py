"""
=============================================================================
THREAD POOL
=============================================================================

Bounded worker pool that runs one connection per task.

    ┌──────────────┐   submit()   ┌─────────────────┐   get()   ┌──────────┐
    │ accept loop  │ ───────────► │ queue (bounded) │ ────────► │ Worker-0 │
    └──────────────┘              └─────────────────┘           │ Worker-1 │
                                          │                     │   ...    │
                                    full → submit()             └──────────┘
                                    returns False (503)

The pool starts min_workers threads and adds one more, up to
max_workers, whenever every worker is busy and work is queued. A full
queue rejects the task instead of blocking, so overload becomes a fast
503 rather than an ever-growing backlog.

Workers stop when they take a None ("poison pill") from the queue.

A task that is never run, because it waited past its timeout or was
still queued at shutdown, gets its on_drop callback instead, so the
submitter can still answer and close its connection.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """A deferred call. Tasks that waited longer than `timeout` are dropped."""

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)
    timeout: Optional[float] = None
    on_drop: Optional[Callable[[], Any]] = None
    submitted_at: float = field(default_factory=time.monotonic)

    def drop(self) -> None:
        """Run the on_drop callback, if any, in place of the task."""
        if self.on_drop is None:
            return
        try:
            self.on_drop()
        except Exception:
            logger.exception("on_drop callback failed")


class Worker(threading.Thread):
    """Takes tasks from the queue until it receives None or is shut down."""

    def __init__(self, task_queue: queue.Queue, worker_id: int, idle_timeout: float = 60.0):
        super().__init__(name=f"pyrack-worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.state = WorkerState.IDLE
        self._shutdown = threading.Event()
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")
        while not self._shutdown.is_set():
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                continue
            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task) -> None:
        self.state = WorkerState.BUSY
        start_time = time.monotonic()
        try:
            waited = start_time - task.submitted_at
            if task.timeout and waited > task.timeout:
                logger.warning(
                    f"Task dropped: waited {waited:.2f}s in queue (timeout {task.timeout}s)"
                )
                self.tasks_failed += 1
                task.drop()
                return

            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(
                f"Worker {self.worker_id} completed task in {time.monotonic() - start_time:.3f}s"
            )
        except Exception:
            # One failing task must not take the worker down with it
            logger.exception(f"Worker {self.worker_id} task failed")
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE

    def shutdown(self) -> None:
        self._shutdown.set()


class ThreadPool:
    """
    Worker pool.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        if not pool.submit(handle_connection, args=(conn,)):
            ...  # overloaded, answer 503
        pool.shutdown(wait=True, timeout=30.0)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        if min_workers < 1 or max_workers < min_workers:
            raise ValueError("Need 1 <= min_workers <= max_workers")
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: "queue.Queue[Optional[Task]]" = queue.Queue(maxsize=queue_size)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

    def start(self) -> None:
        if self._started:
            return
        logger.info(f"Starting thread pool with {self.min_workers} workers")
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn_worker()
        self._shutdown = False
        self._started = True

    def _spawn_worker(self) -> Worker:
        # Caller holds the lock
        worker = Worker(self._task_queue, self._next_worker_id, self.idle_timeout)
        self._next_worker_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None,
        on_drop: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """
        Queue a task.

        Returns:
            True if queued, False if the queue is full.
            A queued task that is never run calls `on_drop` instead.

        Raises:
            RuntimeError: if the pool is not running.
        """
        if not self._started or self._shutdown:
            raise RuntimeError("Thread pool is not running")

        task = Task(func=func, args=args, kwargs=kwargs or {}, timeout=timeout, on_drop=on_drop)
        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._maybe_scale_up()
        return True

    def _maybe_scale_up(self) -> None:
        """Add a worker when all are busy and work is waiting."""
        with self._lock:
            if len(self._workers) >= self.max_workers or self._task_queue.empty():
                return
            if all(worker.state == WorkerState.BUSY for worker in self._workers):
                logger.debug(f"Scaling up: {len(self._workers)} -> {len(self._workers) + 1} workers")
                self._spawn_worker()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """
        Stop the pool. With wait=True queued tasks run first, for at most
        `timeout` seconds. Tasks still queued after that are dropped, then
        every worker gets a poison pill.
        """
        if not self._started:
            return
        logger.info("Shutting down thread pool...")
        self._shutdown = True

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            while not self._task_queue.empty():
                if deadline is not None and time.monotonic() > deadline:
                    logger.warning("Shutdown timeout, dropping queued tasks")
                    break
                time.sleep(0.05)

        with self._lock:
            workers = list(self._workers)
            self._workers.clear()

        for worker in workers:
            worker.shutdown()
        self._drain()

        for worker in workers:
            try:
                self._task_queue.put_nowait(None)
            except queue.Full:
                pass  # The worker also exits on its shutdown flag
        for worker in workers:
            worker.join(timeout=2.0)

        self._started = False
        logger.info("Thread pool shutdown complete")

    def _drain(self) -> None:
        dropped = 0
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                break
            try:
                if task is not None:
                    task.drop()
                    dropped += 1
            finally:
                self._task_queue.task_done()
        if dropped:
            logger.warning(f"Dropped {dropped} queued tasks at shutdown")

    @property
    def busy_workers(self) -> int:
        return sum(1 for worker in self._workers if worker.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for worker in self._workers if worker.state == WorkerState.IDLE)

    @property
    def queue_size(self) -> int:
        """Tasks currently waiting."""
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.queue_size,
                "completed": sum(worker.tasks_completed for worker in self._workers),
                "failed": sum(worker.tasks_failed for worker in self._workers),
            },
        }
