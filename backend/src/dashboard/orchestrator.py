"""
Dashboard orchestration.

The DashboardOrchestrator owns one instance of every core component (reference
cache and feed, resolver, job tracker, result assembler, highlight
synchronizer) and the views fed by them. It submits uploads, reacts to the
tracker's callbacks, loads assembled results into the views and records the
notices shown to the user.
"""
from typing import Dict, List, Optional, Sequence

from clients.pathtrack import AnalysisBackend
from config import DEFAULT_EMBEDDING_MODEL, JOB_POLL_INTERVAL_MS, JOB_SIMULATED_DELAY_SEC
from dashboard.models import Notice, NoticeLevel
from highlight.synchronizer import HighlightSynchronizer, Treatment
from highlight.views import DetailList, MapView, ScatterView, SequenceView
from jobs.display import progress_for
from jobs.tracker import JobTracker, PollingTask
from matching.models import ResolutionReport
from matching.resolver import MatchResolver
from models.job import Job, JobDTO, JobStatus
from models.reference import CacheLoadReport
from models.sequences import AssembledView
from reference_cache.cache import CacheSources, ReferenceCache
from reference_cache.feed import ReferenceFeed
from results.assembler import ResultAssembler
from utils.errors import AuthError, DashboardError, JobFailed, MalformedResponse
from utils.logger import get_logger

logger = get_logger(__name__)

MAX_NOTICES = 50


class DashboardOrchestrator:
    """Wires the dashboard components together for one user session."""

    def __init__(
        self,
        backend: AnalysisBackend,
        model: str = DEFAULT_EMBEDDING_MODEL,
        cache: Optional[ReferenceCache] = None,
        resolver: Optional[MatchResolver] = None,
        assembler: Optional[ResultAssembler] = None,
        synchronizer: Optional[HighlightSynchronizer] = None,
        poll_interval_ms: int = JOB_POLL_INTERVAL_MS,
        simulated_delay_sec: float = JOB_SIMULATED_DELAY_SEC,
    ):
        """
        Initialize the orchestrator.

        Args:
            backend: Remote analysis API
            model: Embedding model used for uploads and the reference feed
            cache: Reference cache (a new one is created if omitted)
            resolver: Accession resolver (a new one is created if omitted)
            assembler: Result assembler (built on the cache and resolver if omitted)
            synchronizer: Highlight synchronizer (a new one is created if omitted)
            poll_interval_ms: Job status polling interval
            simulated_delay_sec: Minimum time before completion is displayed
        """
        self.backend = backend
        self.model = model
        self.cache = cache or ReferenceCache()
        self.feed = ReferenceFeed(backend, model)
        self.resolver = resolver or MatchResolver()
        self.assembler = assembler or ResultAssembler(backend, cache=self.cache, resolver=self.resolver)
        self.synchronizer = synchronizer or HighlightSynchronizer()
        self.poll_interval_ms = poll_interval_ms
        self.simulated_delay_sec = simulated_delay_sec

        self.tracker = self._new_tracker()
        self.views: Dict[str, SequenceView] = {
            "scatter": ScatterView(),
            "map": MapView(),
            "details": DetailList(),
        }
        for name, view in self.views.items():
            self.synchronizer.bus.register(name, view.on_highlight)

        self.view: Optional[AssembledView] = None
        self.notices: List[Notice] = []
        self.last_error: Optional[DashboardError] = None

    def _new_tracker(self) -> JobTracker:
        return JobTracker(
            self.backend,
            on_complete=self._on_job_complete,
            on_error=self._on_job_error,
            on_status_change=self._on_status_change,
            simulated_delay_sec=self.simulated_delay_sec,
        )

    def notify(self, level: NoticeLevel, message: str, code: Optional[str] = None) -> Notice:
        """Record a user-facing notice, keeping only the most recent ones."""
        notice = Notice(level=level, message=message, code=code)
        self.notices.append(notice)
        del self.notices[:-MAX_NOTICES]
        return notice

    # Reference data

    def cache_sources(self) -> CacheSources:
        """Sources for the reference cache chain: the feed, then a direct bulk fetch."""

        async def direct_fetch():
            return await self.backend.fetch_all_sequences(self.model)

        return CacheSources(primary=self.feed, batch_fetch=self.feed.fetch, direct_fetch=direct_fetch)

    async def initialize_reference(self, force_refresh: bool = False) -> CacheLoadReport:
        """
        Populate the reference cache through its fallback chain.

        Returns:
            CacheLoadReport describing the source that was used
        """
        await self.cache.initialize(self.cache_sources(), force_refresh=force_refresh)
        report = self.cache.last_report
        if report is not None and report.auth_error:
            self.notify(
                NoticeLevel.ERROR,
                f"Authentication with the analysis service failed while loading reference data: {report.auth_error}",
                code=AuthError.code,
            )
        if report is not None and report.is_fallback:
            self.notify(
                NoticeLevel.WARNING,
                f"Reference data unavailable; showing {report.synthetic} placeholder sequences",
                code="SYNTHETIC_CACHE",
            )
        return report

    async def resolve(self, accessions: Sequence[str]) -> ResolutionReport:
        """Resolve accessions against the reference cache, initializing it if needed."""
        if self.cache.get() is None:
            await self.initialize_reference()
        report = self.resolver.resolve_all(list(accessions), self.cache.get())
        if report.unmatched:
            self.notify(NoticeLevel.INFO, f"{report.summary()} in the reference data", code="UNMATCHED")
        return report

    # Job lifecycle

    async def submit_sequence(self, content: bytes, filename: str, model: Optional[str] = None) -> str:
        """
        Upload a sequence file and start tracking the resulting job.

        Must be awaited on the event loop that will run the polling task.

        Args:
            content: Raw file bytes (FASTA)
            filename: Original file name
            model: Embedding model (defaults to the orchestrator's model)

        Returns:
            The new job id

        Raises:
            ValueError: If the file is empty
            DashboardError: If the upload request fails
        """
        if not content:
            raise ValueError("Uploaded sequence file is empty")

        self.tracker.cancel()
        self._clear_results()

        logger.info(f"Uploading {filename} ({len(content)} bytes) with model {model or self.model}")
        try:
            response = await self.backend.upload_sequence(content, filename, model or self.model)
        except DashboardError as e:
            self._record_error(e)
            raise

        job_id = response.get("job_id") if isinstance(response, dict) else None
        if not job_id:
            error = MalformedResponse("Upload response did not include a job id")
            self._record_error(error)
            raise error

        self.tracker.start(str(job_id), self.poll_interval_ms)
        self.notify(NoticeLevel.INFO, f"Analysis job {job_id} submitted", code="JOB_SUBMITTED")
        return str(job_id)

    def retry(self) -> Optional[PollingTask]:
        """
        Resume polling the current job after a transport error.

        Returns:
            The polling handle, or None if there is no job left to poll
        """
        job = self.tracker.job
        if job is None or job.status.is_terminal:
            logger.info("Nothing to retry")
            return None
        logger.info(f"Retrying status polling for job {job.job_id}")
        self.last_error = None
        return self.tracker.start(job.job_id, self.poll_interval_ms)

    async def load_results(self, job_id: str, job_result: Optional[dict] = None) -> AssembledView:
        """
        Assemble the results of a completed job and load them into every view.

        Raises:
            DashboardError: If the projection or similar-sequence request fails
        """
        if self.cache.get() is None:
            await self.initialize_reference()

        view = await self.assembler.assemble(job_id, job_result)
        self.synchronizer.clear(source="results")
        self.views["scatter"].load(view.contextual)
        self.views["map"].load(view.geo_subset)
        self.views["details"].load(view.top10)
        self.view = view

        warnings = view.warnings
        if warnings.projection_placeholder:
            self.notify(NoticeLevel.WARNING, "Projection of the uploaded sequence is unavailable", code="PLACEHOLDER")
        if warnings.malformed_similar_response:
            self.notify(NoticeLevel.WARNING, "Similar-sequence response was malformed", code="MALFORMED_RESPONSE")
        if warnings.missing_coordinates:
            self.notify(
                NoticeLevel.WARNING,
                f"{warnings.missing_coordinates} of {view.raw_count} similar sequences have no coordinates",
                code="MISSING_COORDINATES",
            )
        logger.info(f"Loaded {len(view.contextual)} similar sequences into the views for job {job_id}")
        return view

    async def _on_job_complete(self, job: Job) -> None:
        try:
            await self.load_results(job.job_id, job.result)
        except DashboardError as e:
            logger.error(f"Failed to load results for job {job.job_id}: {e}")
            self._record_error(e)
            return
        self.notify(NoticeLevel.INFO, "Analysis complete!", code="JOB_COMPLETED")

    def _on_job_error(self, error: DashboardError) -> None:
        self._record_error(error)

    def _on_status_change(self, job: Job, shown: JobStatus) -> None:
        logger.debug(f"Job {job.job_id} now displayed as {shown.value}")

    def _record_error(self, error: DashboardError) -> None:
        self.last_error = error
        if isinstance(error, JobFailed):
            self.notify(NoticeLevel.ERROR, f"Analysis failed: {error.message}", code=error.code)
        elif isinstance(error, AuthError):
            self.notify(NoticeLevel.ERROR, "Authentication with the analysis service failed", code=error.code)
        else:
            self.notify(NoticeLevel.WARNING, f"{error.message}. Retry to resume.", code=error.code)

    def job_dto(self) -> Optional[JobDTO]:
        """The tracked job as shown to the user, or None before any upload."""
        job = self.tracker.job
        if job is None:
            return None
        shown = self.tracker.display_status()
        progress, message = progress_for(shown)
        return JobDTO(
            job_id=job.job_id,
            status=job.status,
            display_status=shown,
            message=message,
            progress=progress,
            error=job.error,
            polling=self.tracker.is_polling(job.job_id),
        )

    # Highlighting

    def hover(self, sequence_id: str, on: bool, source: str = "unknown") -> Treatment:
        return self.synchronizer.hover(sequence_id, on, source)

    def click(self, sequence_id: str, source: str = "unknown") -> Treatment:
        return self.synchronizer.click(sequence_id, source)

    def clear_highlights(self) -> None:
        self.synchronizer.clear(source="user")

    def highlight_state(self) -> dict:
        """Current selection plus each view's applied treatments."""
        return {
            "clicked": self.synchronizer.clicked_id,
            "hovered": self.synchronizer.hovered_ids,
            "views": {
                name: {sequence_id: treatment.value for sequence_id, treatment in view.highlights.items()}
                for name, view in self.views.items()
            },
        }

    # Reset

    def _clear_results(self) -> None:
        self.synchronizer.clear(source="reset")
        for view in self.views.values():
            view.clear()
        self.view = None
        self.last_error = None

    def reset(self) -> None:
        """Cancel tracking, clear highlights and empty every view. The reference cache is kept."""
        self.tracker.cancel()
        self.tracker = self._new_tracker()
        self._clear_results()
        self.notices = []
        logger.info("Dashboard reset")
