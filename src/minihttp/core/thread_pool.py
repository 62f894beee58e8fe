"""
=============================================================================
THREAD POOL IMPLEMENTATION
=============================================================================

A fixed set of worker threads processing tasks from a bounded queue.
Each task here is "handle this connection".

=============================================================================
WHY A FIXED POOL?
=============================================================================

Thread-per-connection without a limit:

    for conn in accept_connections():
        Thread(target=handle, args=(conn,)).start()

lets 10,000 slow clients create 10,000 threads. A fixed pool caps the
number of connections being handled at once (64 by default) and makes
everyone else wait their turn.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          ThreadPool                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   submit(task) ──► ┌───────────────────────────┐                    │
    │                    │  Queue (bounded, FIFO)    │                    │
    │                    │  [task][task][task]...    │                    │
    │                    └─────────────┬─────────────┘                    │
    │                                  │ get()                            │
    │             ┌────────────────────┼────────────────────┐             │
    │             ▼                    ▼                    ▼             │
    │       ┌──────────┐         ┌──────────┐         ┌──────────┐        │
    │       │ Worker-0 │         │ Worker-1 │   ...   │ Worker-N │        │
    │       └──────────┘         └──────────┘         └──────────┘        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
BACKPRESSURE POLICY
=============================================================================

When every worker is busy, tasks queue. When the queue is also full,
submit() BLOCKS. In the server that means the accept loop stops calling
accept(), so new clients wait in the kernel's listen backlog, and once
that fills, the OS refuses them. Nothing is dropped by the pool itself.

While blocked, submit() re-checks every poll_interval whether shutdown
has started and gives up (returns False) if it has, so a full queue can
never wedge stop().

=============================================================================
SHUTDOWN: GRACEFUL, THEN FORCED
=============================================================================

    shutdown(grace_period=5.0)
        │
        ├── 1. refuse new submissions
        ├── 2. workers finish queued + running tasks, then exit
        ├── 3. wait up to grace_period for them
        │
        └── still running after the grace period (or wait interrupted)?
              ├── queued tasks are discarded and cancelled
              ├── running tasks are cancelled
              └── workers get a short final join

Python can't kill a thread. "Cancelling" a task means calling the
on_cancel hook it was submitted with. For a connection, that hook shuts
the socket down, which makes the worker's blocked recv() return and the
task finish on its own.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"        # Waiting for task
    BUSY = "busy"        # Executing task
    STOPPED = "stopped"  # Thread exited


@dataclass
class Task:
    """
    A deferred function call, plus how to cancel it.

    Attributes:
        func: The function to execute.
        args: Positional arguments for the function.
        kwargs: Keyword arguments for the function.
        on_cancel: Called if the pool gives up on this task during a forced
                   shutdown, whether it was running or still queued.
        submitted_at: When the task was submitted.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    on_cancel: Optional[Callable[[], None]] = None
    submitted_at: float = field(default_factory=time.time)

    def cancel(self):
        if self.on_cancel is None:
            return
        try:
            self.on_cancel()
        except Exception as e:
            logger.exception(f"Task cancel hook failed: {e}")


class Worker(threading.Thread):
    """
    Worker thread: take a task, run it, repeat.

    Exits when the pool is closing and the queue is empty, or as soon as
    the pool is cancelled.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        closing: threading.Event,
        cancelled: threading.Event,
        poll_interval: float = 0.1,
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)

        self.task_queue = task_queue
        self.worker_id = worker_id
        self.poll_interval = poll_interval

        self._closing = closing
        self._cancelled = cancelled

        self.state = WorkerState.IDLE
        self.current_task: Optional[Task] = None

        self.tasks_completed = 0
        self.tasks_failed = 0

    def run(self):
        logger.debug(f"Worker {self.worker_id} started")

        while not self._cancelled.is_set():
            try:
                task = self.task_queue.get(timeout=self.poll_interval)
            except queue.Empty:
                if self._closing.is_set():
                    break  # Queue drained and no more work is coming
                continue

            try:
                self._execute_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"Worker {self.worker_id} stopped")

    def _execute_task(self, task: Task):
        """
        Run one task. Exceptions are logged and counted; they never take
        the worker down with them.
        """
        self.state = WorkerState.BUSY
        self.current_task = task
        start_time = time.time()

        try:
            task.func(*task.args, **task.kwargs)
            self.tasks_completed += 1
            logger.debug(f"Worker {self.worker_id} completed task in {time.time() - start_time:.3f}s")
        except Exception as e:
            self.tasks_failed += 1
            logger.exception(
                f"Worker {self.worker_id} task failed after {time.time() - start_time:.3f}s: {e}"
            )
        finally:
            self.current_task = None
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Fixed-size thread pool with a bounded queue.

    Usage:
        pool = ThreadPool(max_workers=64, queue_size=128)
        pool.start()
        pool.submit(handle, args=(conn,), on_cancel=conn.abort)
        ...
        pool.shutdown(grace_period=5.0)
    """

    def __init__(
        self,
        max_workers: int = 64,
        queue_size: int = 128,
        poll_interval: float = 0.1,
        force_join_timeout: float = 1.0,
    ):
        """
        Args:
            max_workers: Number of worker threads, all created by start().
            queue_size: Tasks that may wait for a free worker.
            poll_interval: How often blocked workers and a blocked submit()
                           re-check for shutdown, in seconds.
            force_join_timeout: How long a forced shutdown waits for each
                                cancelled worker to exit.
        """
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.poll_interval = poll_interval
        self.force_join_timeout = force_join_timeout

        self._task_queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._closing = threading.Event()
        self._cancelled = threading.Event()
        self._started = False

    def start(self):
        """Create and start all workers."""
        with self._lock:
            if self._started:
                return
            if self._closing.is_set():
                raise RuntimeError("Thread pool has been shut down")

            logger.info(f"Starting thread pool with {self.max_workers} workers")
            for worker_id in range(self.max_workers):
                worker = Worker(
                    task_queue=self._task_queue,
                    worker_id=worker_id,
                    closing=self._closing,
                    cancelled=self._cancelled,
                    poll_interval=self.poll_interval,
                )
                self._workers.append(worker)
                worker.start()

            self._started = True

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        on_cancel: Optional[Callable[[], None]] = None,
        block: bool = True,
        timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue a task.

        Args:
            func: The function to execute.
            args: Positional arguments for the function.
            kwargs: Keyword arguments for the function.
            on_cancel: Hook called if a forced shutdown gives up on the task.
            block: Wait for queue space when the queue is full.
            timeout: Longest wait for queue space (None = until shutdown).

        Returns:
            True if queued. False if the queue stayed full, or shutdown
            began while waiting.

        Raises:
            RuntimeError: If the pool isn't started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._closing.is_set():
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {}, on_cancel=on_cancel)
        deadline = time.monotonic() + timeout if timeout is not None else None

        while True:
            if self._closing.is_set():
                return False

            wait = self.poll_interval
            if deadline is not None:
                wait = min(wait, deadline - time.monotonic())

            try:
                if block and wait > 0:
                    self._task_queue.put(task, timeout=wait)
                else:
                    self._task_queue.put(task, block=False)
                return True
            except queue.Full:
                if not block:
                    return False
                if deadline is not None and time.monotonic() >= deadline:
                    return False

    def shutdown(self, grace_period: float = 5.0) -> bool:
        """
        Stop the pool: finish what's queued within `grace_period`, then
        cancel whatever is left. Idempotent.

        Returns:
            True if every task finished on its own, False if any were
            cancelled.
        """
        with self._lock:
            if not self._started or self._closing.is_set():
                self._closing.set()
                return True
            self._closing.set()
            # A task may shut down its own pool; never join the calling worker.
            current = threading.current_thread()
            workers = [w for w in self._workers if w is not current]

        logger.info(f"Shutting down thread pool (grace period {grace_period}s)...")

        deadline = time.monotonic() + grace_period
        try:
            for worker in workers:
                worker.join(timeout=max(0.0, deadline - time.monotonic()))
        except KeyboardInterrupt:
            logger.warning("Interrupted while waiting for workers, forcing shutdown")

        stragglers = [w for w in workers if w.is_alive()]
        clean = not stragglers and self._task_queue.empty()

        if not clean:
            self._force_stop(stragglers)

        with self._lock:
            self._workers.clear()
            self._started = False

        logger.info("Thread pool shutdown complete")
        return clean

    def _force_stop(self, stragglers: list[Worker]):
        self._cancelled.set()

        dropped = 0
        while True:
            try:
                task = self._task_queue.get_nowait()
            except queue.Empty:
                break
            self._task_queue.task_done()
            task.cancel()
            dropped += 1

        running = [w.current_task for w in stragglers if w.current_task is not None]
        logger.warning(
            f"Grace period over: cancelling {len(running)} running "
            f"and {dropped} queued task(s)"
        )
        for task in running:
            task.cancel()

        for worker in stragglers:
            worker.join(timeout=self.force_join_timeout)

        remaining = sum(1 for w in stragglers if w.is_alive())
        if remaining:
            logger.error(f"{remaining} worker(s) still running after cancellation")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def active_workers(self) -> int:
        return sum(1 for w in self._workers if w.state != WorkerState.STOPPED)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state == WorkerState.BUSY)

    @property
    def queued_tasks(self) -> int:
        return self._task_queue.qsize()

    @property
    def stats(self) -> dict:
        """Worker and task counts, for logs and tests."""
        return {
            "workers": {
                "total": len(self._workers),
                "active": self.active_workers,
                "busy": self.busy_workers,
            },
            "tasks": {
                "queued": self.queued_tasks,
                "completed": sum(w.tasks_completed for w in self._workers),
                "failed": sum(w.tasks_failed for w in self._workers),
            },
        }
