"""
Background execution of long-running job actions (validate, import, rollback).

A small thread pool keeps imports from starving the API. Each job has at
most one active task; callers poll the returned ``TaskHandle``.
"""
import logging
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from migration_engine.core.logging_config import job_log_context
from migration_engine.domain.migrations.errors import JobBusy, MigrationError
from migration_engine.utils.date import utcnow

logger = logging.getLogger(__name__)

MAX_WORKERS = 2
MAX_FINISHED_TASKS = 500

PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class TaskHandle:
    task_id: str
    job_id: str
    action: str
    status: str = PENDING
    message: Optional[str] = None
    result: Any = None
    created_at: Any = field(default_factory=utcnow)
    finished_at: Any = None

    @property
    def active(self) -> bool:
        return self.status in (PENDING, RUNNING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "job_id": self.job_id,
            "action": self.action,
            "status": self.status,
            "message": self.message,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }


class MigrationWorkerPool:
    def __init__(self, max_workers: int = 1, history_size: int = MAX_FINISHED_TASKS):
        self.max_workers = max(1, min(MAX_WORKERS, int(max_workers or 1)))
        self.history_size = max(1, history_size)
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="migration")
        self._lock = threading.Lock()
        self._tasks: Dict[str, TaskHandle] = {}
        self._active_by_job: Dict[str, str] = {}
        self._futures: Dict[str, Future] = {}
        # Oldest first; handles beyond history_size are forgotten.
        self._finished: "OrderedDict[str, None]" = OrderedDict()

    def submit(
        self,
        job_id: str,
        action: str,
        fn: Callable[[], Any],
        prepare: Optional[Callable[[], Any]] = None,
    ) -> TaskHandle:
        """
        Queue ``fn`` for ``job_id``; raises ``JobBusy`` if the job already has a live task.

        ``prepare`` runs under the pool lock after the busy check and before
        queuing; if it raises, nothing is queued.
        """
        with self._lock:
            active_id = self._active_by_job.get(job_id)
            if active_id and self._tasks[active_id].active:
                raise JobBusy(f"Job {job_id} already has a running {self._tasks[active_id].action} task")
            if prepare is not None:
                prepare()
            handle = TaskHandle(task_id=str(uuid.uuid4()), job_id=job_id, action=action)
            self._tasks[handle.task_id] = handle
            self._active_by_job[job_id] = handle.task_id
            self._futures[handle.task_id] = self._executor.submit(self._run, handle, fn)
        logger.info("Queued %s for job %s (task %s)", action, job_id, handle.task_id)
        return handle

    def _run(self, handle: TaskHandle, fn: Callable[[], Any]) -> None:
        with job_log_context(handle.job_id):
            self._execute(handle, fn)

    def _execute(self, handle: TaskHandle, fn: Callable[[], Any]) -> None:
        handle.status = RUNNING
        try:
            handle.result = fn()
            handle.status = COMPLETED
        except MigrationError as exc:
            handle.status = FAILED
            handle.message = str(exc)
            logger.warning("%s for job %s failed: %s", handle.action, handle.job_id, exc)
        except Exception as exc:
            handle.status = FAILED
            handle.message = f"{handle.action} failed: {exc}"
            logger.exception("Unexpected error in %s for job %s", handle.action, handle.job_id)
        finally:
            handle.finished_at = utcnow()
            self._forget(handle)

    def _forget(self, handle: TaskHandle) -> None:
        """Drop the finished task's future and trim the finished-task history."""
        with self._lock:
            self._futures.pop(handle.task_id, None)
            if self._active_by_job.get(handle.job_id) == handle.task_id:
                del self._active_by_job[handle.job_id]
            self._finished[handle.task_id] = None
            while len(self._finished) > self.history_size:
                oldest, _ = self._finished.popitem(last=False)
                self._tasks.pop(oldest, None)

    def get_task(self, task_id: str) -> Optional[TaskHandle]:
        with self._lock:
            return self._tasks.get(task_id)

    def active_task(self, job_id: str) -> Optional[TaskHandle]:
        with self._lock:
            task_id = self._active_by_job.get(job_id)
            handle = self._tasks.get(task_id) if task_id else None
            return handle if handle is not None and handle.active else None

    def wait(self, task_id: str, timeout: Optional[float] = None) -> TaskHandle:
        """Block until the task finishes (tests and CLI use)."""
        with self._lock:
            handle = self._tasks[task_id]
            future = self._futures.get(task_id)
        if future is not None:
            future.result(timeout=timeout)
        return handle

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
