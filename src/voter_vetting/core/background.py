"""Background task runner abstraction.

Provides a protocol for submitting and tracking long-running bulk operations
(re-vetting, duplicate scans) off the request path, with an in-process asyncio
implementation.  Jobs receive a stop event that they check between chunks, so a
supervisor can stop them cooperatively.
"""

import asyncio
import enum
import uuid
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any, Protocol

from loguru import logger

JobFactory = Callable[[asyncio.Event], Coroutine[Any, Any, Any]]


class JobStatus(enum.StrEnum):
    """Status of a background job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


@dataclass
class JobRecord:
    """Tracking state for one submitted job."""

    name: str
    status: JobStatus = JobStatus.PENDING
    result: Any = None
    error: str | None = None
    stop_event: asyncio.Event = field(default_factory=asyncio.Event)


class BackgroundTaskRunner(Protocol):
    """Protocol for background task execution."""

    def submit_task(self, factory: JobFactory, *, name: str = "job") -> str:
        """Submit a job factory for background execution.

        Args:
            factory: Callable receiving the job's stop event and returning the coroutine to run.
            name: Human-readable job name for logs.

        Returns:
            A job ID string for tracking.
        """
        ...

    def get_job(self, job_id: str) -> JobRecord:
        """Return the tracking record of a job.

        Args:
            job_id: The job ID returned by submit_task.
        """
        ...

    def request_stop(self, job_id: str) -> None:
        """Ask a running job to stop at its next chunk boundary.

        Args:
            job_id: The job ID returned by submit_task.
        """
        ...


class InProcessTaskRunner:
    """In-process background task runner using asyncio.

    Tasks run in the same process as the API server using asyncio.create_task().
    Only the ``max_finished`` most recently finished jobs are kept; older
    records are forgotten and look up as unknown.
    """

    def __init__(self, max_finished: int = 1000) -> None:
        self._jobs: dict[str, JobRecord] = {}
        self._tasks: dict[str, asyncio.Task[Any]] = {}
        self._finished: deque[str] = deque()
        self._max_finished = max_finished

    def _task_done(self, job_id: str) -> None:
        self._tasks.pop(job_id, None)
        self._finished.append(job_id)
        while len(self._finished) > self._max_finished:
            self._jobs.pop(self._finished.popleft(), None)

    def submit_task(self, factory: JobFactory, *, name: str = "job") -> str:
        """Submit a job factory for background execution.

        Args:
            factory: Callable receiving the job's stop event and returning the coroutine to run.
            name: Human-readable job name for logs.

        Returns:
            A job ID string for tracking.
        """
        job_id = str(uuid.uuid4())
        record = JobRecord(name=name)
        self._jobs[job_id] = record

        async def _run() -> None:
            record.status = JobStatus.RUNNING
            logger.info(f"Background job {name} ({job_id}) started")
            try:
                record.result = await factory(record.stop_event)
            except Exception as exc:
                record.status = JobStatus.FAILED
                record.error = str(exc)
                logger.exception(f"Background job {name} ({job_id}) failed")
                raise
            record.status = JobStatus.STOPPED if record.stop_event.is_set() else JobStatus.COMPLETED
            logger.info(f"Background job {name} ({job_id}) finished with status {record.status}")

        task = asyncio.create_task(_run())
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._task_done(job_id))
        return job_id

    def get_job(self, job_id: str) -> JobRecord:
        """Return the tracking record of a job.

        Raises:
            KeyError: If the job ID is not found.
        """
        return self._jobs[job_id]

    def get_status(self, job_id: str) -> JobStatus:
        """Get the current status of a background job.

        Raises:
            KeyError: If the job ID is not found.
        """
        return self._jobs[job_id].status

    def request_stop(self, job_id: str) -> None:
        """Ask a running job to stop at its next chunk boundary.

        Raises:
            KeyError: If the job ID is not found.
        """
        self._jobs[job_id].stop_event.set()


# Singleton instance for the application
task_runner = InProcessTaskRunner()
