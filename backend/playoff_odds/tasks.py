"""
In-memory tracking of background simulation tasks.

Tasks live in process memory only and are lost on restart.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from uuid import uuid4


PENDING = "pending"
RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

FINISHED_STATUSES = (COMPLETED, FAILED, CANCELLED)


@dataclass
class SimulationTask:
    """A simulation run and its outcome."""

    id: str
    n_simulations: int
    status: str = PENDING
    progress: int = 0
    results: Optional[dict] = None
    error_message: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()


class SimulationTaskStore:
    """Thread-safe store for simulation tasks."""

    def __init__(self):
        self._tasks: Dict[str, SimulationTask] = {}
        self._lock = threading.Lock()

    def create(self, n_simulations: int) -> SimulationTask:
        """Create a new pending task."""
        task = SimulationTask(id=str(uuid4()), n_simulations=n_simulations)
        with self._lock:
            self._tasks[task.id] = task
        return task

    def get_by_id(self, task_id: str) -> Optional[SimulationTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def update_progress(self, task: SimulationTask, progress: int) -> None:
        """Update task progress."""
        with self._lock:
            task.progress = max(0, min(100, int(progress)))
            if task.status == PENDING:
                task.status = RUNNING

    def complete(self, task: SimulationTask, results: dict) -> None:
        """Mark task as completed with results."""
        with self._lock:
            task.status = COMPLETED
            task.progress = 100
            task.results = results
            task.completed_at = datetime.now(timezone.utc)

    def fail(self, task: SimulationTask, error_message: str) -> None:
        """Mark task as failed with error message."""
        with self._lock:
            task.status = FAILED
            task.error_message = error_message
            task.completed_at = datetime.now(timezone.utc)

    def mark_cancelled(self, task: SimulationTask) -> None:
        with self._lock:
            task.status = CANCELLED
            task.completed_at = datetime.now(timezone.utc)

    def cancel(self, task_id: str) -> Optional[SimulationTask]:
        """
        Request cancellation of a task.

        A pending task is cancelled immediately; a running one stops after
        its current trial. Finished tasks are left unchanged.

        Returns:
            The task, or None if not found
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task.is_finished:
                return task
            task.cancel_event.set()
            if task.status == PENDING:
                task.status = CANCELLED
                task.completed_at = datetime.now(timezone.utc)
            return task

    def cleanup_old_tasks(self, hours: int = 24) -> int:
        """
        Remove finished tasks older than specified hours.

        Returns:
            Number of tasks deleted
        """
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        with self._lock:
            stale = [
                task_id for task_id, task in self._tasks.items()
                if task.is_finished and task.created_at < cutoff
            ]
            for task_id in stale:
                del self._tasks[task_id]
        return len(stale)


task_store = SimulationTaskStore()


def get_task_store() -> SimulationTaskStore:
    """FastAPI dependency returning the process-wide task store."""
    return task_store
