"""Persistent background job queue.

Jobs are rows in ``scheduled_jobs`` naming a hook and its JSON arguments.
A failed job is retried with exponential backoff until it runs out of
attempts. Retrying is the queue's job; handlers just raise.
"""

import logging
import time
from typing import Any, Callable, Optional

from sqlalchemy import func, select, update

from ..config import get_config
from ..db.models import ScheduledJob
from ..db.schemas import JobStatus, ScheduledJobResponse
from ..db.sqlite import Database
from ..utils import utcnow_iso

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]
FailureHandler = Callable[[dict, str], None]


class JobQueue:
    """Runs registered handlers for queued jobs."""

    def __init__(
        self,
        db: Database,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the job queue.

        Args:
            db: Database instance
            max_attempts: Attempts before a job is marked failed (uses config if not provided)
            base_delay: Initial retry delay in seconds (uses config if not provided)
            clock: Time source, replaceable in tests
            sleep: Sleep function used while waiting for delayed jobs
        """
        config = get_config()
        self.db = db
        self.max_attempts = max_attempts or config.job_max_attempts
        self.base_delay = config.job_retry_base_delay if base_delay is None else base_delay
        self.clock = clock
        self.sleep = sleep
        self._handlers: dict[str, Handler] = {}
        self._failure_handlers: dict[str, FailureHandler] = {}

    def register(
        self, hook: str, handler: Handler, on_failure: Optional[FailureHandler] = None
    ) -> None:
        """Register the handler for a hook.

        Args:
            hook: Hook name stored on queued jobs
            handler: Called with the job arguments as keyword arguments
            on_failure: Called with (args, error) once a job has used all attempts
        """
        self._handlers[hook] = handler
        if on_failure is not None:
            self._failure_handlers[hook] = on_failure

    def enqueue(
        self,
        hook: str,
        args: Optional[dict] = None,
        group: Optional[str] = None,
        delay: float = 0,
    ) -> int:
        """Queue a job.

        Args:
            hook: Registered hook name
            args: JSON-serializable keyword arguments for the handler
            group: Group key used for cancellation
            delay: Seconds before the job becomes due

        Returns:
            The job ID
        """
        with self.db.get_session() as session:
            job = ScheduledJob(
                hook=hook,
                group_key=group,
                status=JobStatus.PENDING.value,
                max_attempts=self.max_attempts,
                run_after=self.clock() + max(0.0, delay),
            )
            job.set_args(args or {})
            session.add(job)
            session.flush()
            logger.debug("Queued job %d (%s)", job.id, hook)
            return job.id

    def cancel_group(self, group: str) -> int:
        """Cancel pending jobs of a group. Running jobs are not interrupted.

        Returns:
            Number of jobs cancelled
        """
        with self.db.get_session() as session:
            result = session.execute(
                update(ScheduledJob)
                .where(
                    ScheduledJob.group_key == group,
                    ScheduledJob.status == JobStatus.PENDING.value,
                )
                .values(status=JobStatus.CANCELLED.value, updated_at=utcnow_iso())
            )
            return result.rowcount

    def pending_count(self, group: Optional[str] = None) -> int:
        """Count pending jobs, due or not."""
        with self.db.get_session() as session:
            stmt = select(func.count(ScheduledJob.id)).where(
                ScheduledJob.status == JobStatus.PENDING.value
            )
            if group is not None:
                stmt = stmt.where(ScheduledJob.group_key == group)
            return session.execute(stmt).scalar_one()

    def get_jobs(
        self, group: Optional[str] = None, status: Optional[JobStatus] = None
    ) -> list[ScheduledJobResponse]:
        """List jobs in queue order."""
        with self.db.get_session() as session:
            stmt = select(ScheduledJob).order_by(ScheduledJob.run_after, ScheduledJob.id)
            if group is not None:
                stmt = stmt.where(ScheduledJob.group_key == group)
            if status is not None:
                stmt = stmt.where(ScheduledJob.status == JobStatus(status).value)
            return [
                ScheduledJobResponse.model_validate(j) for j in session.execute(stmt).scalars()
            ]

    # ========================================================================
    # Execution
    # ========================================================================

    def _claim_next(self) -> Optional[tuple[int, str, dict, int, int]]:
        """Mark the next due job as running."""
        with self.db.get_session() as session:
            job = session.execute(
                select(ScheduledJob)
                .where(
                    ScheduledJob.status == JobStatus.PENDING.value,
                    ScheduledJob.run_after <= self.clock(),
                )
                .order_by(ScheduledJob.run_after, ScheduledJob.id)
                .limit(1)
            ).scalar_one_or_none()
            if job is None:
                return None

            job.status = JobStatus.RUNNING.value
            job.attempts += 1
            return job.id, job.hook, job.get_args(), job.attempts, job.max_attempts

    def _finish(self, job_id: int, **values) -> None:
        values["updated_at"] = utcnow_iso()
        with self.db.get_session() as session:
            session.execute(
                update(ScheduledJob).where(ScheduledJob.id == job_id).values(**values)
            )

    def _run_job(
        self, job_id: int, hook: str, args: dict, attempts: int, max_attempts: int
    ) -> None:
        handler = self._handlers.get(hook)
        if handler is None:
            logger.error("No handler registered for job %d (%s)", job_id, hook)
            self._finish(
                job_id,
                status=JobStatus.FAILED.value,
                last_error=f"No handler registered for '{hook}'",
            )
            return

        try:
            handler(**args)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            if attempts >= max_attempts:
                logger.error("Job %d (%s) failed after %d attempts: %s", job_id, hook, attempts, error)
                self._finish(job_id, status=JobStatus.FAILED.value, last_error=error)
                on_failure = self._failure_handlers.get(hook)
                if on_failure is not None:
                    on_failure(args, error)
                return

            delay = self.base_delay * 2 ** (attempts - 1)
            logger.warning(
                "Job %d (%s) failed (attempt %d/%d), retrying in %.1fs: %s",
                job_id, hook, attempts, max_attempts, delay, error,
            )
            self._finish(
                job_id,
                status=JobStatus.PENDING.value,
                run_after=self.clock() + delay,
                last_error=error,
            )
            return

        self._finish(job_id, status=JobStatus.COMPLETED.value, last_error=None)

    def run_pending(self, limit: Optional[int] = None) -> int:
        """Run due jobs in FIFO order, including jobs queued along the way.

        Args:
            limit: Maximum number of jobs to run

        Returns:
            Number of jobs run
        """
        ran = 0
        while limit is None or ran < limit:
            claimed = self._claim_next()
            if claimed is None:
                break
            self._run_job(*claimed)
            ran += 1
        return ran

    def _next_due(self) -> Optional[float]:
        with self.db.get_session() as session:
            return session.execute(
                select(func.min(ScheduledJob.run_after)).where(
                    ScheduledJob.status == JobStatus.PENDING.value
                )
            ).scalar_one_or_none()

    def run_until_idle(self, wait: bool = True, max_jobs: int = 100_000) -> int:
        """Drain the queue.

        Args:
            wait: Sleep until delayed retries become due instead of stopping
            max_jobs: Upper bound on jobs run in this call

        Returns:
            Number of jobs run
        """
        ran = 0
        while ran < max_jobs:
            count = self.run_pending(limit=max_jobs - ran)
            ran += count
            if count:
                continue

            next_due = self._next_due()
            if next_due is None or not wait:
                break
            self.sleep(max(0.0, next_due - self.clock()))
        return ran
