"""
ROBOSTORE Worker Thread Pool

ThreadPoolExecutor for CPU-bound pose inference so camera frames
never block the async event loop.
"""

import asyncio
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.config import settings

logger = logging.getLogger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Task:
    """Bookkeeping for one submitted call."""
    task_id: str
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class WorkerPool:
    """
    Fixed-size thread pool with task tracking.

    Finished tasks are forgotten once counted; only in-flight tasks
    are kept in the table.
    """

    def __init__(self, max_workers: Optional[int] = None, name: str = "worker_pool"):
        self.max_workers = max_workers or settings.THREAD_POOL_SIZE
        self.name = name

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix=f"{name}_"
        )

        self._tasks: Dict[str, Task] = {}
        self._lock = threading.Lock()

        # Stats
        self._completed_count = 0
        self._failed_count = 0

        logger.info(f"🧵 WorkerPool '{name}' initialized (workers: {self.max_workers})")

    def submit(self, func: Callable, *args, **kwargs) -> Future:
        """Submit a call to the pool and return its future."""
        task = Task(task_id=uuid.uuid4().hex[:12])

        with self._lock:
            self._tasks[task.task_id] = task

        return self._executor.submit(self._run_task, task, func, *args, **kwargs)

    async def submit_async(self, func: Callable, *args, **kwargs) -> Any:
        """Submit a call and await its result from the event loop."""
        return await asyncio.wrap_future(self.submit(func, *args, **kwargs))

    def _run_task(self, task: Task, func: Callable, *args, **kwargs) -> Any:
        task.status = TaskStatus.RUNNING

        try:
            result = func(*args, **kwargs)
            task.status = TaskStatus.COMPLETED
            with self._lock:
                self._completed_count += 1
            return result

        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            with self._lock:
                self._failed_count += 1
            logger.error(f"Task {task.task_id} failed: {e}")
            raise

        finally:
            task.completed_at = datetime.now(timezone.utc)
            with self._lock:
                self._tasks.pop(task.task_id, None)

    # ========================================
    # Lifecycle
    # ========================================

    def shutdown(self, wait: bool = True):
        """Shutdown the thread pool."""
        logger.info(f"Shutting down WorkerPool '{self.name}'...")
        self._executor.shutdown(wait=wait)
        logger.info(f"WorkerPool '{self.name}' shutdown complete")

    def get_stats(self) -> dict:
        """Get pool statistics."""
        with self._lock:
            in_flight = list(self._tasks.values())
        return {
            "name": self.name,
            "max_workers": self.max_workers,
            "pending_tasks": len([t for t in in_flight if t.status == TaskStatus.PENDING]),
            "running_tasks": len([t for t in in_flight if t.status == TaskStatus.RUNNING]),
            "completed_tasks": self._completed_count,
            "failed_tasks": self._failed_count,
        }


# ============================================
# Global Worker Pool
# ============================================

# ML inference pool (pose estimation)
ml_worker_pool = WorkerPool(name="ml_inference")


def get_ml_pool() -> WorkerPool:
    """Get the ML inference worker pool."""
    return ml_worker_pool


async def run_ml_inference(model_fn: Callable, *args, **kwargs) -> Any:
    """
    Run ML inference using the ML worker pool.

    Usage:
        result = await run_ml_inference(tracker.infer, rgb_frame)
    """
    return await ml_worker_pool.submit_async(model_fn, *args, **kwargs)
