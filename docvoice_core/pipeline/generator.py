"""
Per-Language Generation Fan-Out

For a cloned voice, converts each selected language's master script
through speech-to-speech and records exactly one ``generated_audio`` row
per language. Languages run one after another; a failure in one language
is recorded and the loop moves on.
"""

import asyncio
import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from ..config import BucketType, SubmissionStatus
from ..core.logging import log_context
from ..database import (
    AudioMasterRepository,
    DatabaseManager,
    GeneratedAudioRepository,
    SubmissionRecord,
    SubmissionRepository,
)
from ..exceptions import (
    NoLanguagesSelectedError,
    NoMasterFoundError,
    PipelineError,
    SubmissionNotFoundError,
    VoiceNotClonedError,
)
from ..storage import ObjectStore, SourceResolver
from ..voice import VoiceProviderClient
from .locks import SubmissionLocks

logger = structlog.get_logger(__name__)

CANCELLED_PREFIX = "cancelled:"


class LanguageOutcome(str, Enum):
    """Outcome of one language in a fan-out run."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AggregateStatus(str, Enum):
    """Outcome of a whole fan-out run."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class LanguageResult:
    """Result for a single language."""

    language: str
    outcome: LanguageOutcome
    generated_audio_id: Optional[int] = None
    audio_master_id: Optional[int] = None
    file_path: Optional[str] = None
    gcs_path: Optional[str] = None
    public_url: Optional[str] = None
    audio_url: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "status": self.outcome.value,
            "generated_audio_id": self.generated_audio_id,
            "audio_master_id": self.audio_master_id,
            "file_path": self.file_path,
            "gcs_path": self.gcs_path,
            "public_url": self.public_url,
            "audio_url": self.audio_url,
            "error": self.error,
        }


@dataclass
class GenerationReport:
    """Full per-language breakdown of a fan-out run."""

    submission_id: int
    voice_id: str
    results: List[LanguageResult] = field(default_factory=list)

    def _with(self, outcome: LanguageOutcome) -> List[LanguageResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def completed(self) -> List[LanguageResult]:
        return self._with(LanguageOutcome.COMPLETED)

    @property
    def failed(self) -> List[LanguageResult]:
        return self._with(LanguageOutcome.FAILED)

    @property
    def cancelled(self) -> List[LanguageResult]:
        return self._with(LanguageOutcome.CANCELLED)

    @property
    def errors(self) -> List[Dict[str, str]]:
        return [
            {"language": r.language, "status": r.outcome.value, "error": r.error or ""}
            for r in self.results
            if r.outcome != LanguageOutcome.COMPLETED
        ]

    @property
    def aggregate(self) -> AggregateStatus:
        if not self.completed:
            return AggregateStatus.FAILED
        if len(self.completed) == len(self.results):
            return AggregateStatus.COMPLETED
        return AggregateStatus.PARTIAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "voice_id": self.voice_id,
            "status": self.aggregate.value,
            "results": [r.to_dict() for r in self.results],
            "errors": self.errors,
        }


class LanguageGenerator:
    """
    Generate every selected language for a submission's cloned voice.

    The voice is kept after generation; reclaiming it is the lifecycle
    manager's job.
    """

    def __init__(
        self,
        db: DatabaseManager,
        provider: VoiceProviderClient,
        resolver_factory: Callable[[], SourceResolver],
        output_dir: str,
        object_store: Optional[ObjectStore] = None,
        locks: Optional[SubmissionLocks] = None,
        upload_enabled: bool = True,
        make_public: bool = True,
        local_url_prefix: str = "/api/uploads/generated_audio",
        call_timeout_s: Optional[float] = 300.0,
    ):
        self.db = db
        self.provider = provider
        self.resolver_factory = resolver_factory
        self.output_dir = str(output_dir)
        self.object_store = object_store
        self.locks = locks or SubmissionLocks()
        self.upload_enabled = upload_enabled
        self.make_public = make_public
        self.local_url_prefix = local_url_prefix.rstrip("/")
        self.call_timeout_s = call_timeout_s

    async def generate_all_languages(self, submission_id: int) -> GenerationReport:
        """
        Run the fan-out for one submission.

        Raises:
            SubmissionNotFoundError: Unknown submission
            VoiceNotClonedError: Submission has no voice id
            NoLanguagesSelectedError: Submission has no selected languages
        """
        async with self.locks.hold(submission_id):
            with log_context(submission_id=submission_id):
                return await self._generate(submission_id)

    async def _generate(self, submission_id: int) -> GenerationReport:
        async with self.db.session() as session:
            record = await SubmissionRepository(session).get_record(submission_id)
        if record is None:
            raise SubmissionNotFoundError(submission_id)
        if not record.voice_id:
            raise VoiceNotClonedError(submission_id)
        if not record.selected_languages:
            raise NoLanguagesSelectedError(submission_id)

        await self._set_status(submission_id, SubmissionStatus.AUDIO_GENERATION)
        logger.info(
            "generation_started",
            voice_id=record.voice_id,
            languages=list(record.selected_languages),
        )

        report = GenerationReport(submission_id=submission_id, voice_id=record.voice_id)
        try:
            async with self.resolver_factory() as resolver:
                for language in record.selected_languages:
                    with log_context(language=language):
                        report.results.append(await self._generate_language(record, language, resolver))
        except asyncio.CancelledError:
            await asyncio.shield(self._set_status(submission_id, SubmissionStatus.FAILED))
            raise

        final_status = (
            SubmissionStatus.PENDING_QC
            if report.aggregate == AggregateStatus.COMPLETED
            else SubmissionStatus.FAILED
        )
        await self._set_status(submission_id, final_status)

        logger.info(
            "generation_finished",
            status=report.aggregate.value,
            completed=len(report.completed),
            failed=len(report.failed),
            cancelled=len(report.cancelled),
        )
        return report

    async def _generate_language(
        self,
        record: SubmissionRecord,
        language: str,
        resolver: SourceResolver,
    ) -> LanguageResult:
        master_id: Optional[int] = None
        try:
            async with self.db.session() as session:
                master = await AudioMasterRepository(session).get_active_for_language(language)
            if master is None:
                raise NoMasterFoundError(language)
            master_id = master.id

            source = await resolver.resolve(master.reference, BucketType.AUDIO_MASTERS)
            output_path = self.build_output_path(record.id, language)

            conversion = self.provider.speech_to_speech_stream(
                record.voice_id, source.path, output_path, language
            )
            if self.call_timeout_s:
                await asyncio.wait_for(conversion, timeout=self.call_timeout_s)
            else:
                await conversion

            gcs_path, public_url = await self._publish(record.id, output_path)
            async with self.db.session() as session:
                row = await GeneratedAudioRepository(session).add_completed(
                    submission_id=record.id,
                    language_code=language,
                    audio_master_id=master_id,
                    file_path=output_path,
                    gcs_path=gcs_path,
                    public_url=public_url,
                )

            logger.info("language_generated", output_path=output_path, gcs_path=gcs_path)
            return LanguageResult(
                language=language,
                outcome=LanguageOutcome.COMPLETED,
                generated_audio_id=row.id,
                audio_master_id=master_id,
                file_path=output_path,
                gcs_path=gcs_path,
                public_url=public_url,
                audio_url=public_url or self.local_url(record.id, output_path),
            )

        except asyncio.TimeoutError:
            message = f"{CANCELLED_PREFIX} provider call timed out after {self.call_timeout_s}s"
            logger.error("language_cancelled", error=message)
            row_id = await self._record_failure(record.id, language, message, master_id)
            return LanguageResult(
                language=language,
                outcome=LanguageOutcome.CANCELLED,
                generated_audio_id=row_id,
                audio_master_id=master_id,
                error=message,
            )
        except asyncio.CancelledError:
            message = f"{CANCELLED_PREFIX} generation interrupted"
            logger.error("language_cancelled", error=message)
            await asyncio.shield(self._record_failure(record.id, language, message, master_id))
            raise
        except Exception as e:
            message = e.message if isinstance(e, PipelineError) else (str(e) or e.__class__.__name__)
            logger.error("language_failed", error=message, error_type=e.__class__.__name__)
            row_id = await self._record_failure(record.id, language, message, master_id)
            return LanguageResult(
                language=language,
                outcome=LanguageOutcome.FAILED,
                generated_audio_id=row_id,
                audio_master_id=master_id,
                error=message,
            )

    def build_output_path(self, submission_id: int, language: str) -> str:
        """Collision-free output path under the submission's directory."""
        directory = os.path.join(self.output_dir, str(submission_id))
        os.makedirs(directory, exist_ok=True)
        return os.path.join(directory, f"{uuid.uuid4().hex}_{language}.mp3")

    def local_url(self, submission_id: int, output_path: str) -> str:
        return f"{self.local_url_prefix}/{submission_id}/{os.path.basename(output_path)}"

    async def _publish(self, submission_id: int, output_path: str) -> Tuple[Optional[str], Optional[str]]:
        """Best-effort upload of a generated file."""
        if not self.upload_enabled or self.object_store is None:
            return None, None

        key = f"submissions/{submission_id}/generated_audio/{os.path.basename(output_path)}"
        try:
            uploaded = await self.object_store.upload_file(
                output_path,
                BucketType.GENERATED_AUDIO,
                key,
                content_type="audio/mpeg",
                make_public=self.make_public,
            )
        except Exception as e:
            logger.warning("generated_audio_upload_failed", key=key, error=str(e))
            return None, None
        return uploaded.gcs_path, uploaded.public_url

    async def _record_failure(
        self,
        submission_id: int,
        language: str,
        message: str,
        master_id: Optional[int],
    ) -> int:
        async with self.db.session() as session:
            row = await GeneratedAudioRepository(session).add_failed(
                submission_id=submission_id,
                language_code=language,
                error_message=message,
                audio_master_id=master_id,
            )
        return row.id

    async def _set_status(self, submission_id: int, status: SubmissionStatus) -> None:
        async with self.db.session() as session:
            await SubmissionRepository(session).set_status(submission_id, status)


__all__ = [
    "LanguageOutcome",
    "AggregateStatus",
    "LanguageResult",
    "GenerationReport",
    "LanguageGenerator",
]
