"""Tests for the dashboard orchestrator wiring."""
import asyncio

import pytest

from conftest import FakeBackend, make_reference_entry, make_similar_entry
from dashboard.models import NoticeLevel
from dashboard.orchestrator import DashboardOrchestrator
from highlight.synchronizer import Treatment
from models.job import JobStatus
from reference_cache.cache import ReferenceCache
from utils.errors import AuthError, TransientFetchError


def make_orchestrator(backend, **kwargs):
    kwargs.setdefault("cache", ReferenceCache(retry_delay_sec=0, synthetic_count=10))
    kwargs.setdefault("poll_interval_ms", 0)
    return DashboardOrchestrator(backend, **kwargs)


def run_job(orchestrator, content=b">seq\nACGT\n"):
    async def scenario():
        job_id = await orchestrator.submit_sequence(content, "seq.fasta")
        await orchestrator.tracker.polling.wait()
        return job_id

    return asyncio.run(scenario())


def completed_backend(count=15):
    return FakeBackend(
        statuses=["queued", "processing", "completed"],
        similar={"result": [make_similar_entry(rank) for rank in range(count)]},
        reference=[make_reference_entry(i) for i in range(5)],
    )


def test_submit_to_completion_loads_every_view():
    backend = completed_backend()
    orchestrator = make_orchestrator(backend)

    job_id = run_job(orchestrator)

    assert job_id == "job-1"
    assert backend.uploads[0][1] == "seq.fasta"
    assert backend.uploads[0][2] == "DNABERT-S"
    assert orchestrator.view is not None
    assert len(orchestrator.views["scatter"]) == 15
    assert len(orchestrator.views["map"]) == 15
    assert len(orchestrator.views["details"]) == 10
    assert orchestrator.cache.last_report.source == "batch"
    codes = [n.code for n in orchestrator.notices]
    assert codes == ["JOB_SUBMITTED", "JOB_COMPLETED"]

    job = orchestrator.job_dto()
    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert not job.polling


def test_empty_upload_is_rejected():
    orchestrator = make_orchestrator(FakeBackend())
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.submit_sequence(b"", "empty.fasta"))


def test_upload_failure_is_recorded_and_raised():
    backend = FakeBackend()
    backend.upload_error = AuthError("bad key", status_code=401)
    orchestrator = make_orchestrator(backend)

    with pytest.raises(AuthError):
        asyncio.run(orchestrator.submit_sequence(b">s\nA\n", "s.fasta"))

    assert orchestrator.notices[-1].level == NoticeLevel.ERROR
    assert orchestrator.job_dto() is None


def test_failed_job_adds_error_notice():
    backend = FakeBackend(statuses=[{"status": "failed", "error": "bad FASTA"}])
    orchestrator = make_orchestrator(backend)

    run_job(orchestrator)

    notice = orchestrator.notices[-1]
    assert notice.level == NoticeLevel.ERROR
    assert notice.message == "Analysis failed: bad FASTA"
    assert orchestrator.view is None
    assert orchestrator.job_dto().status == JobStatus.FAILED


def test_transport_error_then_retry_completes():
    backend = completed_backend()
    backend.status_error = TransientFetchError("status endpoint down")
    orchestrator = make_orchestrator(backend)

    run_job(orchestrator)
    assert isinstance(orchestrator.last_error, TransientFetchError)
    assert orchestrator.notices[-1].level == NoticeLevel.WARNING

    backend.status_error = None

    async def retry():
        polling = orchestrator.retry()
        await polling.wait()

    asyncio.run(retry())
    assert orchestrator.view is not None
    assert orchestrator.last_error is None


def test_retry_without_unfinished_job_returns_none():
    orchestrator = make_orchestrator(FakeBackend())
    assert orchestrator.retry() is None


def test_missing_coordinates_notice():
    entries = [make_similar_entry(rank, with_coordinates=rank % 4 != 0) for rank in range(8)]
    backend = FakeBackend(statuses=["completed"], similar={"result": entries})
    orchestrator = make_orchestrator(backend)

    run_job(orchestrator)

    messages = [n.message for n in orchestrator.notices]
    assert "2 of 8 similar sequences have no coordinates" in messages


def test_synthetic_cache_notice():
    orchestrator = make_orchestrator(FakeBackend())
    report = asyncio.run(orchestrator.initialize_reference())

    assert report.is_fallback
    assert orchestrator.notices[-1].code == "SYNTHETIC_CACHE"
    assert len(orchestrator.cache) == 10


def test_rejected_api_key_is_surfaced_without_retrying_the_cache():
    backend = FakeBackend(reference=[make_reference_entry(1)])
    backend.fetch_error = AuthError("bad key", 401)
    orchestrator = make_orchestrator(backend)

    report = asyncio.run(orchestrator.initialize_reference())

    assert backend.fetch_calls == 1
    assert report.auth_error == "bad key"
    assert report.errors == ["batch: bad key"]
    codes = [(n.level, n.code) for n in orchestrator.notices]
    assert (NoticeLevel.ERROR, "AUTH") in codes
    assert codes[-1] == (NoticeLevel.WARNING, "SYNTHETIC_CACHE")


def test_resolve_reports_unmatched():
    backend = FakeBackend(reference=[make_reference_entry(1, accession="NZ_AB123.1")])
    orchestrator = make_orchestrator(backend)

    report = asyncio.run(orchestrator.resolve(["ab123", "ZZZ"]))

    assert report.results[0].matched_id == "ref-1"
    assert report.unmatched == ["ZZZ"]
    assert orchestrator.notices[-1].message == "1 of 2 not found in the reference data"


def test_highlighting_reaches_every_view():
    orchestrator = make_orchestrator(completed_backend())
    run_job(orchestrator)

    orchestrator.click("sim-3", source="details")
    orchestrator.hover("sim-12", True)

    state = orchestrator.highlight_state()
    assert state["clicked"] == "sim-3"
    assert state["views"]["scatter"] == {"sim-3": "clicked", "sim-12": "hover"}
    assert state["views"]["details"] == {"sim-3": "clicked"}

    orchestrator.clear_highlights()
    assert orchestrator.synchronizer.treatment("sim-3") == Treatment.NONE


def test_reset_empties_views_and_keeps_cache():
    orchestrator = make_orchestrator(completed_backend())
    run_job(orchestrator)
    orchestrator.click("sim-1")

    orchestrator.reset()

    assert orchestrator.view is None
    assert all(len(view) == 0 for view in orchestrator.views.values())
    assert orchestrator.highlight_state()["clicked"] is None
    assert orchestrator.notices == []
    assert orchestrator.job_dto() is None
    assert len(orchestrator.cache) == 5


def test_notices_are_bounded():
    orchestrator = make_orchestrator(FakeBackend())
    for i in range(60):
        orchestrator.notify(NoticeLevel.INFO, f"notice {i}")
    assert len(orchestrator.notices) == 50
    assert orchestrator.notices[0].message == "notice 10"
