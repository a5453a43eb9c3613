"""Reference data API routes (cache inspection and accession resolution)."""
from typing import List

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from matching.models import ResolutionReportDTO
from matching.resolver import check_accessions
from models.reference import CacheLoadReportDTO
from models.store import get_orchestrator
from reference_cache.inspection import inspect_cache
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/reference", tags=["reference"])


class AccessionsRequest(BaseModel):
    """Request body listing accessions to resolve or check."""
    accessions: List[str] = Field(default_factory=list)


@router.get("/cache")
async def get_cache_stats():
    """
    Describe the reference cache content.

    Returns:
        JSON with cache statistics, the feed status and the last load report
    """
    orchestrator = get_orchestrator()
    stats = inspect_cache(orchestrator.cache.get())
    report = orchestrator.cache.last_report
    return {
        "stats": stats.to_dict(),
        "feed": orchestrator.feed.status(),
        "lastLoad": CacheLoadReportDTO.from_report(report).model_dump(by_alias=True) if report else None,
    }


@router.post("/cache/refresh")
async def refresh_cache():
    """
    Rebuild the reference cache from its source chain.

    Never fails on data problems: if no source yields records the cache holds
    synthetic placeholders and the load report says so.
    """
    orchestrator = get_orchestrator()
    logger.info("Refreshing reference cache")
    report = await orchestrator.initialize_reference(force_refresh=True)
    return CacheLoadReportDTO.from_report(report).model_dump(by_alias=True)


@router.post("/resolve")
async def resolve_accessions(request: AccessionsRequest):
    """
    Resolve accessions against the reference cache.

    Returns:
        JSON with one result per accession (in request order) and the unmatched batch
    """
    if not request.accessions:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one accession is required"
        )
    orchestrator = get_orchestrator()
    report = await orchestrator.resolve(request.accessions)
    return ResolutionReportDTO.from_report(report).model_dump(by_alias=True)


@router.post("/check")
async def check_reference_accessions(request: AccessionsRequest):
    """Tally how each accession resolves, per match tier."""
    orchestrator = get_orchestrator()
    if orchestrator.cache.get() is None:
        await orchestrator.initialize_reference()
    return check_accessions(request.accessions, orchestrator.cache.get(), orchestrator.resolver)
