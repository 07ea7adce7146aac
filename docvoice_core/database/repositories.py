"""
Database Repositories

Repository pattern implementation for data access. Repositories hand the
pipeline typed records; the JSON-encoded submission columns are decoded
here and nowhere else.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import and_, desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import GenerationStatus, SubmissionStatus, VoiceCloneStatus
from .base import Base, utcnow
from .models import AudioMaster, AuditLogEntry, GeneratedAudio, Submission
from .sources import AudioSources, parse_audio_sources, parse_language_codes


ModelType = TypeVar("ModelType", bound=Base)


# =============================================================================
# Typed Records
# =============================================================================


@dataclass(frozen=True)
class SubmissionRecord:
    """Decoded, read-only view of a submission row."""

    id: int
    doctor_name: str
    audio_sources: AudioSources
    selected_languages: tuple
    voice_id: Optional[str]
    voice_clone_status: VoiceCloneStatus
    voice_clone_error: Optional[str]
    status: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_cloned(self) -> bool:
        return bool(self.voice_id) and self.voice_clone_status == VoiceCloneStatus.COMPLETED

    @classmethod
    def from_model(cls, submission: Submission) -> "SubmissionRecord":
        return cls(
            id=submission.id,
            doctor_name=submission.doctor_name,
            audio_sources=parse_audio_sources(submission.audio_path),
            selected_languages=parse_language_codes(submission.selected_languages),
            voice_id=submission.elevenlabs_voice_id,
            voice_clone_status=VoiceCloneStatus(submission.voice_clone_status),
            voice_clone_error=submission.voice_clone_error,
            status=submission.status,
            created_at=submission.created_at,
            updated_at=submission.updated_at,
        )


@dataclass(frozen=True)
class AudioMasterRecord:
    """Read-only view of an audio master row."""

    id: int
    language_code: str
    file_path: str
    gcs_path: Optional[str]

    @property
    def reference(self) -> str:
        return self.file_path or self.gcs_path or ""

    @classmethod
    def from_model(cls, master: AudioMaster) -> "AudioMasterRecord":
        return cls(
            id=master.id,
            language_code=master.language_code,
            file_path=master.file_path,
            gcs_path=master.gcs_path,
        )


# =============================================================================
# Base Repository
# =============================================================================


class BaseRepository(Generic[ModelType]):
    """Session-scoped access to one table; callers own the transaction."""

    model: Type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def create(self, **columns: Any) -> ModelType:
        """Insert a row and return it with its generated id and defaults."""
        row = self.model(**columns)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row


# =============================================================================
# Submission Repository
# =============================================================================


class SubmissionRepository(BaseRepository[Submission]):
    """Repository for Submission entities."""

    model = Submission

    async def get_record(self, id: int) -> Optional[SubmissionRecord]:
        """Get a decoded submission record."""
        submission = await self.get_by_id(id)
        return SubmissionRecord.from_model(submission) if submission else None

    async def _update(self, id: int, **values: Any) -> None:
        values["updated_at"] = utcnow()
        await self.session.execute(
            update(Submission).where(Submission.id == id).values(**values)
        )

    async def mark_clone_in_progress(self, id: int) -> None:
        await self._update(
            id,
            voice_clone_status=VoiceCloneStatus.IN_PROGRESS.value,
            voice_clone_error=None,
        )

    async def mark_clone_completed(self, id: int, voice_id: str) -> None:
        await self._update(
            id,
            elevenlabs_voice_id=voice_id,
            voice_clone_status=VoiceCloneStatus.COMPLETED.value,
            voice_clone_error=None,
            status=SubmissionStatus.CONSENT_VERIFIED.value,
        )

    async def mark_clone_failed(self, id: int, error: str) -> None:
        """Record a failed clone; any stale voice id is cleared."""
        await self._update(
            id,
            elevenlabs_voice_id=None,
            voice_clone_status=VoiceCloneStatus.FAILED.value,
            voice_clone_error=error,
        )

    async def mark_voice_deleted(self, id: int) -> None:
        """
        Flip the clone to ``deleted`` and clear the voice id.

        The id is dropped from the row only; the ``voice_deleted`` audit entry
        written in the same transaction keeps it.
        """
        await self._update(
            id,
            elevenlabs_voice_id=None,
            voice_clone_status=VoiceCloneStatus.DELETED.value,
        )

    async def set_status(self, id: int, status: SubmissionStatus) -> None:
        await self._update(id, status=status.value)

    async def list_with_voice(
        self,
        statuses: Iterable[VoiceCloneStatus],
        updated_before: Optional[datetime] = None,
    ) -> List[SubmissionRecord]:
        """List submissions holding a provider voice in one of ``statuses``."""
        conditions = [
            Submission.elevenlabs_voice_id.is_not(None),
            Submission.voice_clone_status.in_([s.value for s in statuses]),
        ]
        if updated_before is not None:
            conditions.append(Submission.updated_at < updated_before)

        result = await self.session.execute(
            select(Submission)
            .where(and_(*conditions))
            .order_by(desc(Submission.updated_at), Submission.id)
        )
        return [SubmissionRecord.from_model(s) for s in result.scalars().all()]


# =============================================================================
# Audio Master Repository
# =============================================================================


class AudioMasterRepository(BaseRepository[AudioMaster]):
    """Repository for AudioMaster entities (read-only to the pipeline)."""

    model = AudioMaster

    async def get_active_for_language(self, language_code: str) -> Optional[AudioMasterRecord]:
        """Get the most recently created active master for a language."""
        result = await self.session.execute(
            select(AudioMaster)
            .where(
                and_(
                    AudioMaster.language_code == language_code,
                    AudioMaster.is_active == True,  # noqa: E712
                )
            )
            .order_by(desc(AudioMaster.created_at), desc(AudioMaster.id))
            .limit(1)
        )
        master = result.scalar_one_or_none()
        return AudioMasterRecord.from_model(master) if master else None


# =============================================================================
# Generated Audio Repository
# =============================================================================


class GeneratedAudioRepository(BaseRepository[GeneratedAudio]):
    """Repository for GeneratedAudio entities. Rows are only ever inserted."""

    model = GeneratedAudio

    async def add_completed(
        self,
        submission_id: int,
        language_code: str,
        audio_master_id: int,
        file_path: str,
        gcs_path: Optional[str] = None,
        public_url: Optional[str] = None,
    ) -> GeneratedAudio:
        return await self.create(
            submission_id=submission_id,
            language_code=language_code,
            audio_master_id=audio_master_id,
            file_path=file_path,
            gcs_path=gcs_path,
            public_url=public_url,
            status=GenerationStatus.COMPLETED.value,
        )

    async def add_failed(
        self,
        submission_id: int,
        language_code: str,
        error_message: str,
        audio_master_id: Optional[int] = None,
    ) -> GeneratedAudio:
        return await self.create(
            submission_id=submission_id,
            language_code=language_code,
            audio_master_id=audio_master_id,
            status=GenerationStatus.FAILED.value,
            error_message=error_message,
        )

    async def list_for_submission(self, submission_id: int) -> List[GeneratedAudio]:
        """All attempts for a submission, oldest first."""
        result = await self.session.execute(
            select(GeneratedAudio)
            .where(GeneratedAudio.submission_id == submission_id)
            .order_by(GeneratedAudio.id)
        )
        return list(result.scalars().all())

    async def completed_languages(self, submission_ids: Sequence[int]) -> Dict[int, List[str]]:
        """Map submission id to the distinct languages generated successfully."""
        if not submission_ids:
            return {}
        result = await self.session.execute(
            select(GeneratedAudio.submission_id, GeneratedAudio.language_code)
            .where(
                and_(
                    GeneratedAudio.submission_id.in_(list(submission_ids)),
                    GeneratedAudio.status == GenerationStatus.COMPLETED.value,
                )
            )
            .order_by(GeneratedAudio.id)
        )
        languages: Dict[int, List[str]] = {sid: [] for sid in submission_ids}
        for submission_id, language_code in result.all():
            if language_code not in languages[submission_id]:
                languages[submission_id].append(language_code)
        return languages


# =============================================================================
# Audit Log Repository
# =============================================================================


class AuditLogRepository(BaseRepository[AuditLogEntry]):
    """Append-only audit log."""

    model = AuditLogEntry

    async def record(
        self,
        entity_type: str,
        entity_id: int,
        action: str,
        details: Optional[Dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> AuditLogEntry:
        return await self.create(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            details=details,
            actor=actor,
        )

    async def list_for_entity(self, entity_type: str, entity_id: int) -> List[AuditLogEntry]:
        result = await self.session.execute(
            select(AuditLogEntry)
            .where(
                and_(
                    AuditLogEntry.entity_type == entity_type,
                    AuditLogEntry.entity_id == entity_id,
                )
            )
            .order_by(AuditLogEntry.id)
        )
        return list(result.scalars().all())


__all__ = [
    "SubmissionRecord",
    "AudioMasterRecord",
    "BaseRepository",
    "SubmissionRepository",
    "AudioMasterRepository",
    "GeneratedAudioRepository",
    "AuditLogRepository",
]
