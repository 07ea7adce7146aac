"""Voice pipeline HTTP routes."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..pipeline import AggregateStatus, CleanupFilter, PipelineService
from ..voice import VoiceProviderClient

router = APIRouter(prefix="/api/voice", tags=["voice"])


class BatchProcessRequest(BaseModel):
    """Submissions to process in one batch."""

    submission_ids: List[int] = Field(..., min_length=1, max_length=100)


def get_pipeline(request: Request) -> PipelineService:
    pipeline = request.app.state.container.pipeline
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return pipeline


def get_provider(request: Request) -> VoiceProviderClient:
    return get_pipeline(request).provider


# =============================================================================
# Clone and generate
# =============================================================================


@router.post("/clone/{submission_id}")
async def clone_voice(submission_id: int, pipeline: PipelineService = Depends(get_pipeline)):
    """Clone the doctor's voice from the submission's samples."""
    outcome = await pipeline.cloner.clone_for_submission(submission_id)
    return {"message": "Voice cloned successfully", **outcome.to_dict()}


@router.post("/speech-to-speech/{submission_id}")
async def generate_languages(submission_id: int, pipeline: PipelineService = Depends(get_pipeline)):
    """Generate audio for every selected language."""
    report = await pipeline.generator.generate_all_languages(submission_id)
    message = {
        AggregateStatus.COMPLETED: "Audio generation completed",
        AggregateStatus.PARTIAL: "Audio generation partially completed",
        AggregateStatus.FAILED: "Audio generation failed for all languages",
    }[report.aggregate]
    return {"message": message, **report.to_dict()}


@router.post("/process/{submission_id}")
async def process_submission(submission_id: int, pipeline: PipelineService = Depends(get_pipeline)):
    """Clone (or reuse) the voice, then generate every selected language."""
    result = await pipeline.process_submission(submission_id)
    return result.to_dict()


@router.post("/process")
async def process_batch(body: BatchProcessRequest, pipeline: PipelineService = Depends(get_pipeline)):
    """Process several submissions concurrently."""
    items = await pipeline.process_many(body.submission_ids)
    return {
        "total": len(items),
        "succeeded": sum(1 for item in items if item.ok),
        "items": [item.to_dict() for item in items],
    }


# =============================================================================
# Voice slot lifecycle
# =============================================================================


@router.delete("/{submission_id}")
async def delete_voice(submission_id: int, pipeline: PipelineService = Depends(get_pipeline)):
    """Delete the submission's cloned voice."""
    result = await pipeline.lifecycle.delete_for_submission(submission_id)
    return {"message": "Voice deleted successfully", **result}


@router.post("/cleanup")
async def cleanup_voices(
    max_age_hours: Optional[int] = Query(None, ge=0),
    status_filter: CleanupFilter = Query(CleanupFilter.COMPLETED),
    dry_run: bool = Query(False),
    pipeline: PipelineService = Depends(get_pipeline),
):
    """Scheduled cleanup of voices older than ``max_age_hours`` (0 or omitted uses the default)."""
    report = await pipeline.lifecycle.cleanup(max_age_hours, status_filter, dry_run)
    message = "Dry run - no voices deleted" if dry_run else "Cleanup completed"
    return {"message": message, **report.to_dict()}


@router.delete("/cleanup/all")
async def emergency_cleanup(
    confirm: bool = Query(False),
    pipeline: PipelineService = Depends(get_pipeline),
):
    """Delete ALL active voices. Requires ``?confirm=true``."""
    report = await pipeline.lifecycle.delete_all_active(confirmed=confirm)
    return {"message": "Emergency cleanup completed", **report.to_dict()}


@router.get("/active")
async def list_active_voices(pipeline: PipelineService = Depends(get_pipeline)):
    """Submissions currently holding a provider voice."""
    voices = await pipeline.lifecycle.list_active()
    return {"count": len(voices), "voices": [v.to_dict() for v in voices]}


# =============================================================================
# Provider
# =============================================================================


@router.get("/status")
async def provider_status(provider: VoiceProviderClient = Depends(get_provider)):
    health = await provider.health_check()
    return health.to_dict()


@router.get("/list")
async def list_provider_voices(provider: VoiceProviderClient = Depends(get_provider)):
    voices = await provider.list_voices()
    return {"count": len(voices), "voices": [v.to_dict() for v in voices]}
