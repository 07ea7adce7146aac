"""
Voice Clone Orchestrator

Drives one submission from "no voice" to "cloned":

    pending -> in_progress -> completed | failed

``in_progress`` is committed before the provider call so a crash mid-clone
stays visible. A failed clone never leaves a voice id behind.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from ..core.logging import log_context
from ..database import (
    AuditLogRepository,
    DatabaseManager,
    SubmissionRecord,
    SubmissionRepository,
)
from ..exceptions import (
    AlreadyClonedError,
    NoAudioSamplesError,
    PipelineError,
    ProviderError,
    SubmissionNotFoundError,
)
from ..storage import SourceResolver
from ..voice import CloneResult, VoiceProviderClient
from .locks import SubmissionLocks

logger = structlog.get_logger(__name__)


@dataclass
class CloneOutcome:
    """Result of a successful clone."""

    submission_id: int
    voice_id: str
    voice_name: str
    samples_used: int
    attempts: int = 1
    provider_metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "voice_id": self.voice_id,
            "voice_name": self.voice_name,
            "samples_used": self.samples_used,
            "attempts": self.attempts,
        }


def build_voice_name(prefix: str, doctor_name: str, submission_id: int) -> str:
    """Deterministic provider-side name, traceable back to the submission."""
    doctor = re.sub(r"\s+", "_", doctor_name.strip())
    return f"{prefix}_{doctor}_{submission_id}"


def _is_retryable(error: Exception) -> bool:
    # Transport failures and provider 5xx; client errors will not change on retry
    if isinstance(error, ProviderError):
        return error.status_code is None or error.status_code >= 500
    return isinstance(error, asyncio.TimeoutError)


class VoiceCloneOrchestrator:
    """
    Clone a doctor's voice for a submission.

    Usage:
        orchestrator = VoiceCloneOrchestrator(db, provider, resolver_factory, locks)
        outcome = await orchestrator.clone_for_submission(42)
    """

    def __init__(
        self,
        db: DatabaseManager,
        provider: VoiceProviderClient,
        resolver_factory: Callable[[], SourceResolver],
        locks: Optional[SubmissionLocks] = None,
        voice_name_prefix: str = "DocVoice",
        max_attempts: int = 1,
        retry_delay_s: float = 2.0,
        call_timeout_s: Optional[float] = None,
    ):
        self.db = db
        self.provider = provider
        self.resolver_factory = resolver_factory
        self.locks = locks or SubmissionLocks()
        self.voice_name_prefix = voice_name_prefix
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_s = retry_delay_s
        self.call_timeout_s = call_timeout_s

    async def clone_for_submission(self, submission_id: int) -> CloneOutcome:
        """
        Clone the voice for one submission.

        Raises:
            SubmissionNotFoundError: Unknown submission
            AlreadyClonedError: Voice already cloned; carries the existing id
            NoAudioSamplesError: Submission has no sample references
            PipelineError: Resolution or provider failure (status is ``failed``)
        """
        async with self.locks.hold(submission_id):
            with log_context(submission_id=submission_id):
                return await self._clone(submission_id)

    async def _load(self, submission_id: int) -> SubmissionRecord:
        async with self.db.session() as session:
            record = await SubmissionRepository(session).get_record(submission_id)
        if record is None:
            raise SubmissionNotFoundError(submission_id)
        return record

    async def _clone(self, submission_id: int) -> CloneOutcome:
        record = await self._load(submission_id)

        if record.is_cloned:
            logger.info("voice_already_cloned", voice_id=record.voice_id)
            raise AlreadyClonedError(submission_id, record.voice_id)

        refs = record.audio_sources.refs
        if not refs:
            raise NoAudioSamplesError(submission_id)

        voice_name = build_voice_name(self.voice_name_prefix, record.doctor_name, submission_id)

        async with self.resolver_factory() as resolver:
            try:
                sample_paths: List[str] = []
                for ref in refs:
                    source = await resolver.resolve(ref.reference)
                    sample_paths.append(source.path)

                async with self.db.session() as session:
                    await SubmissionRepository(session).mark_clone_in_progress(submission_id)

                logger.info("voice_clone_started", voice_name=voice_name, samples=len(sample_paths))
                result, attempts = await self._clone_with_retry(
                    voice_name,
                    sample_paths,
                    f"Voice clone for Dr. {record.doctor_name} - Submission {submission_id}",
                )

                async with self.db.session() as session:
                    await SubmissionRepository(session).mark_clone_completed(submission_id, result.voice_id)
                    await AuditLogRepository(session).record(
                        "submission",
                        submission_id,
                        "voice_cloned",
                        {"voice_id": result.voice_id, "voice_name": voice_name},
                    )
            except asyncio.CancelledError:
                await self._mark_failed(submission_id, "cancelled: voice clone interrupted")
                raise
            except Exception as e:
                await self._mark_failed(submission_id, _error_message(e))
                raise

        logger.info("voice_clone_completed", voice_id=result.voice_id, attempts=attempts)
        return CloneOutcome(
            submission_id=submission_id,
            voice_id=result.voice_id,
            voice_name=voice_name,
            samples_used=len(sample_paths),
            attempts=attempts,
            provider_metadata=result.provider_metadata,
        )

    async def _clone_with_retry(
        self,
        voice_name: str,
        sample_paths: List[str],
        description: str,
    ) -> Tuple[CloneResult, int]:
        last_error: Optional[Exception] = None

        for attempt in range(self.max_attempts):
            try:
                call = self.provider.clone_voice(voice_name, sample_paths, description)
                if self.call_timeout_s:
                    result = await asyncio.wait_for(call, timeout=self.call_timeout_s)
                else:
                    result = await call
                return result, attempt + 1
            except (PipelineError, asyncio.TimeoutError) as e:
                last_error = e
                if not _is_retryable(e) or attempt + 1 >= self.max_attempts:
                    if isinstance(e, asyncio.TimeoutError):
                        raise ProviderError(
                            f"Voice clone timed out after {self.call_timeout_s}s"
                        ) from e
                    raise
                logger.warning(
                    "voice_clone_attempt_failed",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    error=_error_message(e),
                )
                await asyncio.sleep(self.retry_delay_s * (attempt + 1))

        raise last_error

    async def _mark_failed(self, submission_id: int, message: str) -> None:
        logger.error("voice_clone_failed", error=message)
        # Shielded so a cancelled caller still records the failure
        await asyncio.shield(self._write_failure(submission_id, message))

    async def _write_failure(self, submission_id: int, message: str) -> None:
        async with self.db.session() as session:
            await SubmissionRepository(session).mark_clone_failed(submission_id, message)


def _error_message(error: BaseException) -> str:
    if isinstance(error, PipelineError):
        return error.message
    if isinstance(error, asyncio.TimeoutError):
        return "provider call timed out"
    return str(error) or error.__class__.__name__


__all__ = [
    "CloneOutcome",
    "VoiceCloneOrchestrator",
    "build_voice_name",
]
