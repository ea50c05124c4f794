"""
=============================================================================
THREAD POOL
=============================================================================

A fixed set of worker threads pulling connection tasks from a shared queue.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Thread Pool                                   │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   accept loop ──submit()──►  TASK QUEUE  [conn] [conn] [conn] ...   │
    │                                   │                                  │
    │                                   │ get()                            │
    │                                   ▼                                  │
    │        ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐          │
    │        │ Worker 0 │ │ Worker 1 │ │ Worker 2 │ │ Worker 3 │          │
    │        └──────────┘ └──────────┘ └──────────┘ └──────────┘          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

One task is one connection: the worker that picks it up owns the socket
until it closes, which is what keeps a connection's requests in order.

The pool does not grow. An admin port sees a few probes per second from
an orchestrator, and a fixed pool gives it a predictable footprint inside
the host process. When every worker is busy, new connections wait in the
queue.

=============================================================================
SHUTDOWN: THE POISON PILL
=============================================================================

    pool.shutdown()
        └─ for each worker: queue.put(None)
        └─ a worker that gets None leaves its loop

Pills go to the back of the queue, so connections queued before shutdown
are still handed to a worker (which closes them straight away once the
server has stopped running).

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) later".

    Attributes:
        func: The function to execute.
        args: Positional arguments.
        kwargs: Keyword arguments.
        submitted_at: When the task was queued (for wait-time logging).
    """
    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    Worker thread that runs tasks from the queue until it gets a poison pill.

        1. task = queue.get()          (blocks)
        2. task is None?  → exit
        3. run task, log any exception (the worker survives it)
        4. queue.task_done(), back to 1
    """

    def __init__(self, task_queue: queue.Queue, worker_id: int, name_prefix: str = "admin-worker"):
        super().__init__(name=f"{name_prefix}-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id

        self.state = WorkerState.IDLE
        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while True:
            task = self.task_queue.get()
            try:
                if task is None:
                    break
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        self.state = WorkerState.BUSY
        start_time = time.monotonic()

        waited = start_time - task.submitted_at
        if waited > 1.0:
            logger.debug(f"Worker {self.worker_id} picked up task after {waited:.2f}s in queue")

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
        except Exception as e:
            elapsed = time.monotonic() - start_time
            logger.exception(
                f"Worker {self.worker_id} task failed after {elapsed:.3f}s: {e}"
            )
            self.tasks_failed += 1
        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size thread pool.

        pool = ThreadPool(workers=4)
        pool.start()
        pool.submit(handle_connection, args=(conn,))
        ...
        pool.shutdown(timeout=5.0)

    submit() raises RuntimeError before start() and after shutdown().
    """

    def __init__(self, workers: int = 4, name_prefix: str = "admin-worker"):
        if workers < 1:
            raise ValueError(f"workers must be >= 1, got {workers}")

        self.num_workers = workers
        self.name_prefix = name_prefix

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue()
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False

    def start(self):
        """Start the worker threads. Idempotent."""
        with self._lock:
            if self._started:
                return

            logger.debug(f"Starting thread pool with {self.num_workers} workers")
            for worker_id in range(self.num_workers):
                worker = Worker(self._task_queue, worker_id, self.name_prefix)
                self._workers.append(worker)
                worker.start()

            self._started = True

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
    ) -> None:
        """
        Queue func(*args, **kwargs) for a worker.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        self._task_queue.put(Task(func=func, args=args, kwargs=kwargs or {}))

    def shutdown(self, timeout: Optional[float] = None):
        """
        Stop all workers.

        Queued tasks still run before the poison pills are reached. If
        called from one of the pool's own workers, that worker is not
        joined (a thread cannot join itself); it exits when its current
        task returns.

        Args:
            timeout: Per-worker join timeout in seconds (None waits forever).
        """
        with self._lock:
            if not self._started or self._shutdown:
                return
            self._shutdown = True

        logger.debug("Shutting down thread pool...")

        for _ in self._workers:
            self._task_queue.put(None)

        current = threading.current_thread()
        for worker in self._workers:
            if worker is current:
                continue
            worker.join(timeout=timeout)
            if worker.is_alive():
                logger.warning(f"Worker {worker.worker_id} did not stop within {timeout}s")

        logger.debug("Thread pool shutdown complete")

    @property
    def is_running(self) -> bool:
        return self._started and not self._shutdown

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def idle_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.IDLE)

    @property
    def pending_tasks(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for debug logging."""
        return {
            "workers": {
                "total": len(self._workers),
                "busy": self.busy_workers,
                "idle": self.idle_workers,
            },
            "tasks": {
                "queued": self.pending_tasks,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
