"""
Pipeline service.

Wires the orchestrator, fan-out and lifecycle manager around one shared
provider client, object store and lock registry.
"""

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

import structlog

from ..config import Settings
from ..database import DatabaseManager
from ..exceptions import AlreadyClonedError, PipelineError
from ..storage import ObjectStore, SourceResolver
from ..voice import VoiceProviderClient
from .cloner import VoiceCloneOrchestrator
from .generator import GenerationReport, LanguageGenerator
from .lifecycle import VoiceLifecycleManager
from .locks import SubmissionLocks

logger = structlog.get_logger(__name__)


@dataclass
class ProcessResult:
    """Clone-then-generate result for one submission."""

    submission_id: int
    voice_id: str
    voice_reused: bool
    report: GenerationReport

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "voice_id": self.voice_id,
            "voice_reused": self.voice_reused,
            "generation": self.report.to_dict(),
        }


@dataclass
class BatchItem:
    """One submission's entry in a batch run."""

    submission_id: int
    result: Optional[ProcessResult] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "ok": self.ok,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


class PipelineService:
    """Entry point for the voice generation pipeline."""

    def __init__(
        self,
        db: DatabaseManager,
        provider: VoiceProviderClient,
        settings: Settings,
        object_store: Optional[ObjectStore] = None,
        locks: Optional[SubmissionLocks] = None,
    ):
        self.db = db
        self.provider = provider
        self.settings = settings
        self.object_store = object_store
        self.locks = locks or SubmissionLocks()

        pipeline = settings.pipeline
        self.resolver_factory = partial(
            SourceResolver,
            pipeline.project_root,
            pipeline.temp_dir,
            object_store,
            http_timeout=settings.elevenlabs.timeout_s,
        )

        self.cloner = VoiceCloneOrchestrator(
            db,
            provider,
            self.resolver_factory,
            locks=self.locks,
            voice_name_prefix=settings.elevenlabs.voice_name_prefix,
            max_attempts=pipeline.clone_max_attempts,
            retry_delay_s=pipeline.clone_retry_delay_s,
            call_timeout_s=pipeline.provider_call_timeout_s,
        )
        self.generator = LanguageGenerator(
            db,
            provider,
            self.resolver_factory,
            output_dir=str(pipeline.resolved_output_dir),
            object_store=object_store,
            locks=self.locks,
            upload_enabled=settings.storage.upload_generated_audio,
            make_public=settings.storage.make_public,
            local_url_prefix=pipeline.local_url_prefix,
            call_timeout_s=pipeline.provider_call_timeout_s,
        )
        self.lifecycle = VoiceLifecycleManager(
            db,
            provider,
            locks=self.locks,
            default_max_age_hours=pipeline.cleanup_default_max_age_hours,
            call_timeout_s=pipeline.provider_call_timeout_s,
        )

    async def process_submission(self, submission_id: int) -> ProcessResult:
        """Clone (or reuse) the voice, then generate every selected language."""
        try:
            outcome = await self.cloner.clone_for_submission(submission_id)
            voice_id, reused = outcome.voice_id, False
        except AlreadyClonedError as e:
            voice_id, reused = e.voice_id, True

        report = await self.generator.generate_all_languages(submission_id)
        return ProcessResult(
            submission_id=submission_id,
            voice_id=voice_id,
            voice_reused=reused,
            report=report,
        )

    async def process_many(
        self,
        submission_ids: Sequence[int],
        max_concurrency: Optional[int] = None,
    ) -> List[BatchItem]:
        """Process several submissions concurrently; failures stay per item."""
        semaphore = asyncio.Semaphore(max_concurrency or self.settings.pipeline.max_concurrent_submissions)

        async def _run(submission_id: int) -> BatchItem:
            async with semaphore:
                try:
                    result = await self.process_submission(submission_id)
                except PipelineError as e:
                    logger.error("submission_processing_failed", submission_id=submission_id, error=e.message)
                    return BatchItem(submission_id=submission_id, error=e.to_dict())
                except Exception as e:
                    logger.exception("submission_processing_crashed", submission_id=submission_id)
                    return BatchItem(
                        submission_id=submission_id,
                        error={"error": e.__class__.__name__, "message": str(e)},
                    )
                return BatchItem(submission_id=submission_id, result=result)

        unique_ids = list(dict.fromkeys(submission_ids))
        return list(await asyncio.gather(*(_run(sid) for sid in unique_ids)))


__all__ = [
    "ProcessResult",
    "BatchItem",
    "PipelineService",
]
