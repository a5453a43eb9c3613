"""Dashboard API routes: sequence upload, job tracking, results and highlighting."""
from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from config import DEFAULT_EMBEDDING_MODEL
from dashboard.models import NoticeDTO
from models.sequences import AssembledViewDTO
from models.store import get_orchestrator
from utils.errors import AuthError, DashboardError
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class HoverRequest(BaseModel):
    """Request body for hover highlight updates."""
    sequence_id: str = Field(..., alias="sequenceId", min_length=1)
    on: bool = True
    source: str = "unknown"

    class Config:
        populate_by_name = True


class ClickRequest(BaseModel):
    """Request body for click selection toggles."""
    sequence_id: str = Field(..., alias="sequenceId", min_length=1)
    source: str = "unknown"

    class Config:
        populate_by_name = True


def _http_error(error: DashboardError) -> HTTPException:
    if isinstance(error, AuthError):
        code = status.HTTP_401_UNAUTHORIZED
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=f"{error.code}: {error.message}")


@router.post("/upload")
async def upload_sequence(
    file: UploadFile = File(...),
    model: str = Form(DEFAULT_EMBEDDING_MODEL),
):
    """
    Upload a FASTA file and start tracking its analysis job.

    Any job tracked before is cancelled and the views are emptied.

    Returns:
        JSON with the jobId of the submitted job
    """
    content = await file.read()
    if not content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded sequence file is empty"
        )

    orchestrator = get_orchestrator()
    try:
        job_id = await orchestrator.submit_sequence(content, file.filename or "sequence.fasta", model)
    except DashboardError as e:
        logger.error(f"Upload of {file.filename} failed: {e}")
        raise _http_error(e)

    return {"jobId": job_id}


@router.get("/job")
async def get_job():
    """Current job with its displayed status, progress and message."""
    job = get_orchestrator().job_dto()
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No analysis job has been submitted"
        )
    return job.model_dump(by_alias=True)


@router.post("/job/retry")
async def retry_job():
    """Resume polling the current job after a transport error."""
    orchestrator = get_orchestrator()
    polling = orchestrator.retry()
    if polling is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="There is no unfinished job to retry"
        )
    return orchestrator.job_dto().model_dump(by_alias=True)


@router.get("/results")
async def get_results():
    """
    Assembled view data for the completed job.

    Returns:
        JSON with the user sequence, the similar sequences and their subsets,
        the year range, the country and year aggregates and the warnings
    """
    view = get_orchestrator().view
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Results not available yet. Wait for the job to complete."
        )
    return AssembledViewDTO.from_view(view).model_dump(by_alias=True)


@router.get("/highlight")
async def get_highlight():
    """Current highlight selection and the treatment applied in each view."""
    return get_orchestrator().highlight_state()


@router.post("/highlight/hover")
async def hover_sequence(request: HoverRequest):
    orchestrator = get_orchestrator()
    orchestrator.hover(request.sequence_id, request.on, request.source)
    return orchestrator.highlight_state()


@router.post("/highlight/click")
async def click_sequence(request: ClickRequest):
    orchestrator = get_orchestrator()
    orchestrator.click(request.sequence_id, request.source)
    return orchestrator.highlight_state()


@router.post("/highlight/clear")
async def clear_highlight():
    orchestrator = get_orchestrator()
    orchestrator.clear_highlights()
    return orchestrator.highlight_state()


@router.get("/notices")
async def get_notices():
    """Notices shown to the user, oldest first."""
    return {
        "notices": [NoticeDTO.from_notice(n).model_dump(by_alias=True) for n in get_orchestrator().notices]
    }


@router.post("/reset")
async def reset_dashboard():
    """Cancel tracking, clear highlights and empty every view."""
    get_orchestrator().reset()
    return {"message": "dashboard reset"}
