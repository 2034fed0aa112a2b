import asyncio
import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Registered task functions, keyed by task id (e.g. 'ocr-process')
_TASKS: Dict[str, Callable[[Any], Any]] = {}


class TaskError(Exception):
    """Base class for task runner failures."""

class UnknownTaskError(TaskError):
    pass

class TaskRunnerBusyError(TaskError):
    pass

class TaskRunnerClosedError(TaskError):
    pass


def task(task_id: str):
    """
    Registers the decorated function as the task named `task_id`.
    The function receives the submitted payload and returns the job result.
    """
    def decorator(fn):
        existing = _TASKS.get(task_id)
        if existing is not None and existing is not fn:
            raise ValueError(f"Task '{task_id}' is already registered.")
        _TASKS[task_id] = fn
        return fn
    return decorator


def get_task(task_id: str) -> Callable[[Any], Any]:
    try:
        return _TASKS[task_id]
    except KeyError:
        raise UnknownTaskError(f"No task registered as '{task_id}'.") from None


class JobHandle:
    """A submitted job. Await `result()` to block on it, or check `done()` to poll."""

    def __init__(self, handle_id: str, task_id: str, future: Future):
        self.id = handle_id
        self.task_id = task_id
        self.submitted_at = time.monotonic()
        self.finished_at: Optional[float] = None
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    async def result(self):
        """
        Suspends the caller until the job finishes and returns its result.
        Cancelling the caller does not cancel the job itself.
        """
        return await asyncio.shield(asyncio.wrap_future(self._future))


class TaskRunner:
    """
    Runs registered tasks on a thread pool.
    At most `max_pending` jobs may be queued or running; further submissions are rejected.
    Finished handles stay retrievable for `retention_seconds` so poll clients can collect them.
    """

    def __init__(self, max_workers: int = 2, max_pending: int = 32, retention_seconds: float = 600.0):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="task-runner")
        self._max_pending = max_pending
        self._retention = retention_seconds
        self._handles: Dict[str, JobHandle] = {}
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False

    @property
    def pending(self) -> int:
        return self._pending

    @property
    def retained(self) -> int:
        """Number of handles currently retrievable through get()."""
        with self._lock:
            return len(self._handles)

    def submit(self, task_id: str, payload, *, retain: bool = True, **options) -> JobHandle:
        """
        Queues `payload` for the task. Extra keyword `options` are passed to the task function.
        With `retain=False` the handle is not kept for `get()`; only the caller can await it.
        """
        fn = get_task(task_id)

        with self._lock:
            if self._closed:
                raise TaskRunnerClosedError("Task runner is shut down.")
            self._prune()
            if self._pending >= self._max_pending:
                raise TaskRunnerBusyError(
                    f"Task runner is at capacity ({self._max_pending} jobs in flight)."
                )

            handle_id = f"run_{uuid.uuid4().hex}"
            future = self._executor.submit(fn, payload, **options)
            handle = JobHandle(handle_id, task_id, future)
            if retain:
                self._handles[handle_id] = handle
            self._pending += 1

        logger.info("Submitted job %s (%s)", handle_id, task_id)
        # Runs right away in this thread if the job already finished
        future.add_done_callback(lambda _: self._finished(handle))
        return handle

    def get(self, handle_id: str) -> Optional[JobHandle]:
        with self._lock:
            self._prune()
            return self._handles.get(handle_id)

    def shutdown(self, wait: bool = True):
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Task runner stopped.")

    def _finished(self, handle: JobHandle):
        with self._lock:
            self._pending -= 1
            handle.finished_at = time.monotonic()

        error = handle._future.exception()
        if error is not None:
            logger.error("Job %s (%s) raised: %r", handle.id, handle.task_id, error)
        else:
            logger.info("Job %s (%s) finished", handle.id, handle.task_id)

    def _prune(self):
        # Caller holds self._lock
        now = time.monotonic()
        expired = [
            handle_id for handle_id, handle in self._handles.items()
            if handle.finished_at is not None and now - handle.finished_at > self._retention
        ]
        for handle_id in expired:
            del self._handles[handle_id]
