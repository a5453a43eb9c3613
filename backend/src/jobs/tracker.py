"""
Job lifecycle tracking for submitted analysis jobs.

A JobTracker follows one job through INITIALIZING -> QUEUED -> PROCESSING ->
COMPLETED | FAILED. Status only changes inside `check_status()`, which makes
exactly one remote status query per tick. `start()` runs those ticks in a
single asyncio task, sleeping between ticks only after the previous query has
resolved, so requests for a job never overlap.
"""
import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from config import JOB_POLL_INTERVAL_MS, JOB_SIMULATED_DELAY_SEC
from clients.pathtrack import AnalysisBackend
from jobs.display import display_status
from models.job import Job, JobStatus, normalize_remote_status
from utils.errors import DashboardError, JobFailed, TransientFetchError
from utils.logger import get_logger

logger = get_logger(__name__)

Callback = Callable[..., Union[None, Awaitable[None]]]

# Position of each state along the lifecycle; status never moves backwards
_LIFECYCLE_ORDER: Dict[JobStatus, int] = {
    JobStatus.INITIALIZING: 0,
    JobStatus.QUEUED: 1,
    JobStatus.PROCESSING: 2,
    JobStatus.COMPLETED: 3,
    JobStatus.FAILED: 3,
}


async def _invoke(callback: Optional[Callback], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class PollingTask:
    """
    Cancelable handle for one polling loop.

    Cancellation state lives on the handle: once `cancel()` has been called no
    completion callback fires for this loop, even for a tick already in flight.
    """

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._cancelled = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        """Whether ticks may still run for this loop."""
        return not (self._cancelled or self._stopped)

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def _attach(self, task: asyncio.Task) -> None:
        self._task = task

    def _stop(self) -> None:
        self._stopped = True

    def cancel(self) -> None:
        """Stop the loop. Safe to call any number of times."""
        if self._cancelled:
            return
        self._cancelled = True
        task = self._task
        if task is not None and not task.done() and not task.get_loop().is_closed():
            if task is not asyncio.current_task(task.get_loop()):
                task.cancel()
        logger.info(f"Polling for job {self.job_id} cancelled")

    async def wait(self) -> None:
        """Wait until the loop has finished, whatever the reason."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._cancelled:
                raise


class JobTracker:
    """Owns the state machine of one submitted analysis job."""

    def __init__(
        self,
        backend: AnalysisBackend,
        on_complete: Optional[Callback] = None,
        on_error: Optional[Callback] = None,
        on_status_change: Optional[Callback] = None,
        simulated_delay_sec: float = JOB_SIMULATED_DELAY_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize a tracker.

        Args:
            backend: Remote API used for status queries
            on_complete: Called once with the completed Job
            on_error: Called with a DashboardError (JobFailed or a transport error)
            on_status_change: Called with (Job, displayed JobStatus) on every status change
            simulated_delay_sec: Hold the displayed status at PROCESSING this long after start
            clock: Monotonic time source (seconds)
        """
        self.backend = backend
        self.on_complete = on_complete
        self.on_error = on_error
        self.on_status_change = on_status_change
        self.simulated_delay_sec = simulated_delay_sec
        self._clock = clock

        self._job: Optional[Job] = None
        self._polling: Optional[PollingTask] = None
        self._started_at: Optional[float] = None
        self._completion_fired = False
        self._polling_jobs: Set[str] = set()

    @property
    def job(self) -> Optional[Job]:
        """A copy of the tracked job, or None before `start()`."""
        return self._job.snapshot() if self._job is not None else None

    @property
    def polling(self) -> Optional[PollingTask]:
        return self._polling

    def is_polling(self, job_id: str) -> bool:
        """Whether a polling loop currently holds the marker for job_id."""
        return job_id in self._polling_jobs

    def display_status(self) -> Optional[JobStatus]:
        """Status to show the user, with the simulated delay applied."""
        if self._job is None:
            return None
        elapsed = self._clock() - self._started_at if self._started_at is not None else 0.0
        return display_status(self._job.status, elapsed, self.simulated_delay_sec)

    def track(self, job_id: str) -> PollingTask:
        """
        Begin tracking job_id without starting the loop (ticks are driven by the caller).

        Re-tracking the same non-terminal job keeps its observed status so a
        manual retry resumes where it stopped.
        """
        if self._polling is not None and self._polling.job_id != job_id:
            self._polling.cancel()

        if self._job is None or self._job.job_id != job_id:
            self._job = Job(job_id=job_id)
            self._started_at = self._clock()
            self._completion_fired = False

        self._polling = PollingTask(job_id)
        return self._polling

    def start(self, job_id: str, interval_ms: int = JOB_POLL_INTERVAL_MS) -> PollingTask:
        """
        Start polling job_id every interval_ms milliseconds.

        Must be called from a running event loop. If a loop for the same job is
        already running its handle is returned instead of starting a second one.

        Args:
            job_id: Remote job identifier
            interval_ms: Delay between the end of one tick and the start of the next

        Returns:
            PollingTask handle whose `cancel()` stops the loop
        """
        if interval_ms < 0:
            raise ValueError(f"interval_ms must be >= 0, got {interval_ms}")
        if self._polling is not None and self._polling.job_id == job_id and self._polling.active and not self._polling.done:
            logger.info(f"Job {job_id} is already being polled")
            return self._polling

        polling = self.track(job_id)
        self._polling_jobs.add(job_id)
        task = asyncio.get_running_loop().create_task(self._run(polling, interval_ms / 1000.0))
        polling._attach(task)
        logger.info(f"Started polling job {job_id} every {interval_ms} ms")
        return polling

    def cancel(self) -> None:
        """Cancel the current polling loop, if any."""
        if self._polling is not None:
            self._polling.cancel()
            self._polling_jobs.discard(self._polling.job_id)

    async def _run(self, polling: PollingTask, interval_sec: float) -> None:
        try:
            while polling.active:
                await self._tick(polling)
                if not polling.active:
                    break
                await asyncio.sleep(interval_sec)
        finally:
            self._polling_jobs.discard(polling.job_id)

    async def check_status(self) -> Optional[Job]:
        """
        Perform one tick: query the remote status once and apply the transition.

        Returns:
            Copy of the job after the tick, or None if nothing is being tracked
        """
        if self._polling is None:
            return None
        return await self._tick(self._polling)

    async def _tick(self, polling: PollingTask) -> Optional[Job]:
        job = self._job
        if job is None or not polling.active:
            return self.job

        try:
            payload = await self.backend.check_job_status(job.job_id)
        except Exception as e:
            error = e if isinstance(e, DashboardError) else TransientFetchError(str(e))
            if polling.cancelled:
                return self.job
            logger.error(f"Error checking status of job {job.job_id}: {error}")
            polling._stop()
            self._polling_jobs.discard(job.job_id)
            await _invoke(self.on_error, error)
            return self.job

        if polling.cancelled:
            logger.info(f"Ignoring status of job {job.job_id} received after cancellation")
            return self.job

        if not isinstance(payload, dict):
            logger.warning(f"Malformed status response for job {job.job_id}: {payload!r}")
            payload = {}
        remote = normalize_remote_status(payload.get("status"))
        if remote is None:
            logger.warning(f"Unrecognised status {payload.get('status')!r} for job {job.job_id}, treating as processing")
            remote = JobStatus.PROCESSING

        previous = job.status
        if _LIFECYCLE_ORDER[remote] < _LIFECYCLE_ORDER[previous]:
            logger.debug(f"Job {job.job_id} reported {remote.value} after {previous.value}; keeping {previous.value}")
            remote = previous

        job.status = remote
        if remote == JobStatus.COMPLETED:
            job.result = payload.get("result") if isinstance(payload.get("result"), dict) else job.result
        elif remote == JobStatus.FAILED:
            job.error = _failure_message(payload)

        if remote != previous:
            logger.info(f"Job {job.job_id}: {previous.value} -> {remote.value}")
            await _invoke(self.on_status_change, job.snapshot(), self.display_status())

        if remote == JobStatus.COMPLETED:
            polling._stop()
            self._polling_jobs.discard(job.job_id)
            if not self._completion_fired and not polling.cancelled:
                self._completion_fired = True
                await _invoke(self.on_complete, job.snapshot())
        elif remote == JobStatus.FAILED:
            polling._stop()
            self._polling_jobs.discard(job.job_id)
            if not polling.cancelled:
                await _invoke(self.on_error, JobFailed(job.job_id, job.error))

        return self.job


def _failure_message(payload: Dict[str, Any]) -> str:
    result = payload.get("result")
    nested = result.get("error") if isinstance(result, dict) else None
    return str(payload.get("error") or nested or "Job failed")
