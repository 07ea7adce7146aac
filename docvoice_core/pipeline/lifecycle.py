"""
Voice Lifecycle Manager

Reclaims provider-side voice slots. Cloned voices are kept after
generation so languages can be regenerated; they are deleted here, either
on a schedule (by age), in an emergency sweep, or one at a time.

A provider "not found" on delete means the slot is already free: the
submission is still marked ``deleted``.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

from ..config import VoiceCloneStatus
from ..core.logging import log_context
from ..database import (
    AuditLogRepository,
    DatabaseManager,
    GeneratedAudioRepository,
    SubmissionRecord,
    SubmissionRepository,
    utcnow,
)
from ..exceptions import (
    ConfirmationRequiredError,
    PipelineError,
    ProviderError,
    SubmissionNotFoundError,
    VoiceNotClonedError,
)
from ..voice import VoiceProviderClient
from .locks import SubmissionLocks

logger = structlog.get_logger(__name__)


# Statuses that can hold a live provider voice
ACTIVE_VOICE_STATUSES = (VoiceCloneStatus.COMPLETED, VoiceCloneStatus.PENDING)


class CleanupFilter(str, Enum):
    """Which submissions scheduled cleanup considers."""

    COMPLETED = "completed"
    ALL = "all"

    @property
    def statuses(self) -> Sequence[VoiceCloneStatus]:
        if self == CleanupFilter.COMPLETED:
            return (VoiceCloneStatus.COMPLETED,)
        return (*ACTIVE_VOICE_STATUSES, VoiceCloneStatus.FAILED)


class DeletionReason(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled_cleanup"
    EMERGENCY = "emergency_cleanup"


def age_hours(updated_at: datetime, now: Optional[datetime] = None) -> float:
    now = now or utcnow()
    return round((now - updated_at).total_seconds() / 3600, 1)


@dataclass
class VoiceSummary:
    """A submission holding a provider voice."""

    submission_id: int
    doctor_name: str
    voice_id: str
    voice_clone_status: str
    submission_status: str
    age_hours: float
    created_at: datetime
    updated_at: datetime
    languages_generated: List[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: SubmissionRecord, now: Optional[datetime] = None) -> "VoiceSummary":
        return cls(
            submission_id=record.id,
            doctor_name=record.doctor_name,
            voice_id=record.voice_id or "",
            voice_clone_status=record.voice_clone_status.value,
            submission_status=record.status,
            age_hours=age_hours(record.updated_at, now),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "doctor_name": self.doctor_name,
            "voice_id": self.voice_id,
            "voice_clone_status": self.voice_clone_status,
            "submission_status": self.submission_status,
            "age_hours": self.age_hours,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "languages_generated": self.languages_generated,
            "generated_audio_count": len(self.languages_generated),
        }


@dataclass
class CleanupReport:
    """Outcome of a cleanup sweep; partial success is normal."""

    dry_run: bool
    candidates: List[VoiceSummary] = field(default_factory=list)
    deleted: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "dry_run": self.dry_run,
            "summary": {
                "total_eligible": len(self.candidates),
                "deleted": len(self.deleted),
                "skipped": len(self.skipped),
                "failed": len(self.failed),
            },
        }
        if self.dry_run:
            data["voices"] = [c.to_dict() for c in self.candidates]
        else:
            data["results"] = {
                "deleted": self.deleted,
                "skipped": self.skipped,
                "failed": self.failed,
            }
        return data


class VoiceLifecycleManager:
    """
    Reclaim provider voice slots.

    Usage:
        manager = VoiceLifecycleManager(db, provider, locks)
        preview = await manager.cleanup(max_age_hours=24, dry_run=True)
        report = await manager.cleanup(max_age_hours=24)
    """

    def __init__(
        self,
        db: DatabaseManager,
        provider: VoiceProviderClient,
        locks: Optional[SubmissionLocks] = None,
        default_max_age_hours: int = 24,
        call_timeout_s: Optional[float] = None,
    ):
        self.db = db
        self.provider = provider
        self.locks = locks or SubmissionLocks()
        self.default_max_age_hours = default_max_age_hours
        self.call_timeout_s = call_timeout_s

    # =========================================================================
    # Operations
    # =========================================================================

    async def cleanup(
        self,
        max_age_hours: Optional[int] = None,
        status_filter: Union[CleanupFilter, str] = CleanupFilter.COMPLETED,
        dry_run: bool = False,
    ) -> CleanupReport:
        """Delete voices whose submission was last updated over ``max_age_hours`` ago."""
        # 0 is treated like an omitted age, not as "every voice"
        if not max_age_hours:
            max_age_hours = self.default_max_age_hours
        status_filter = CleanupFilter(status_filter)

        now = utcnow()
        async with self.db.session() as session:
            records = await SubmissionRepository(session).list_with_voice(
                status_filter.statuses,
                updated_before=now - timedelta(hours=max_age_hours),
            )

        report = CleanupReport(
            dry_run=dry_run,
            candidates=[VoiceSummary.from_record(r, now) for r in records],
        )
        logger.info(
            "voice_cleanup_started",
            max_age_hours=max_age_hours,
            status_filter=status_filter.value,
            dry_run=dry_run,
            eligible=len(records),
        )

        if dry_run:
            return report

        await self._delete_each(records, DeletionReason.SCHEDULED, report)
        logger.info(
            "voice_cleanup_finished",
            deleted=len(report.deleted),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    async def delete_all_active(self, confirmed: bool = False) -> CleanupReport:
        """Delete every live voice. Fails closed without confirmation."""
        if not confirmed:
            raise ConfirmationRequiredError()

        logger.warning("emergency_voice_cleanup_started")
        async with self.db.session() as session:
            records = await SubmissionRepository(session).list_with_voice(ACTIVE_VOICE_STATUSES)

        report = CleanupReport(
            dry_run=False,
            candidates=[VoiceSummary.from_record(r) for r in records],
        )
        await self._delete_each(records, DeletionReason.EMERGENCY, report)
        logger.warning(
            "emergency_voice_cleanup_finished",
            deleted=len(report.deleted),
            skipped=len(report.skipped),
            failed=len(report.failed),
        )
        return report

    async def list_active(self) -> List[VoiceSummary]:
        """Read-only inventory of live voices, newest activity first."""
        async with self.db.session() as session:
            records = await SubmissionRepository(session).list_with_voice(ACTIVE_VOICE_STATUSES)
            languages = await GeneratedAudioRepository(session).completed_languages(
                [r.id for r in records]
            )

        now = utcnow()
        summaries = []
        for record in records:
            summary = VoiceSummary.from_record(record, now)
            summary.languages_generated = languages.get(record.id, [])
            summaries.append(summary)
        return summaries

    async def delete_for_submission(self, submission_id: int) -> Dict[str, Any]:
        """
        Delete one submission's voice.

        Raises:
            SubmissionNotFoundError: Unknown submission
            VoiceNotClonedError: Submission holds no voice id
            ProviderError: Provider refused the delete (state untouched)
        """
        async with self.locks.hold(submission_id):
            with log_context(submission_id=submission_id):
                async with self.db.session() as session:
                    record = await SubmissionRepository(session).get_record(submission_id)
                if record is None:
                    raise SubmissionNotFoundError(submission_id)
                if not record.voice_id:
                    raise VoiceNotClonedError(submission_id)

                not_found = await self._delete_provider_voice(record.voice_id)
                await self._mark_deleted(record, DeletionReason.MANUAL, not_found)

        return {
            "submission_id": submission_id,
            "voice_id": record.voice_id,
            "provider_not_found": not_found,
        }

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _delete_each(
        self,
        records: List[SubmissionRecord],
        reason: DeletionReason,
        report: CleanupReport,
    ) -> None:
        for candidate in records:
            async with self.locks.hold(candidate.id):
                with log_context(submission_id=candidate.id, voice_id=candidate.voice_id):
                    await self._delete_candidate(candidate, reason, report)

    async def _delete_candidate(
        self,
        candidate: SubmissionRecord,
        reason: DeletionReason,
        report: CleanupReport,
    ) -> None:
        # Re-read under the lock; a concurrent delete may have freed the slot
        async with self.db.session() as session:
            record = await SubmissionRepository(session).get_record(candidate.id)
        if record is None or record.voice_id != candidate.voice_id:
            report.skipped.append({
                "submission_id": candidate.id,
                "voice_id": candidate.voice_id,
                "reason": "Voice changed since selection",
            })
            return

        entry = {
            "submission_id": record.id,
            "doctor_name": record.doctor_name,
            "voice_id": record.voice_id,
        }
        try:
            not_found = await self._delete_provider_voice(record.voice_id)
        except PipelineError as e:
            logger.error("voice_delete_failed", error=e.message)
            report.failed.append({**entry, "error": e.message})
            return

        await self._mark_deleted(record, reason, not_found)
        if not_found:
            report.skipped.append({
                **entry,
                "reason": "Voice not found on ElevenLabs - marked as deleted",
            })
        else:
            report.deleted.append(entry)

    async def _delete_provider_voice(self, voice_id: str) -> bool:
        """Delete on the provider; returns True when the voice was already gone."""
        try:
            call = self.provider.delete_voice(voice_id)
            if self.call_timeout_s:
                await asyncio.wait_for(call, timeout=self.call_timeout_s)
            else:
                await call
        except ProviderError as e:
            if e.is_not_found:
                logger.info("voice_already_absent_on_provider", voice_id=voice_id)
                return True
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Voice delete timed out after {self.call_timeout_s}s") from e
        return False

    async def _mark_deleted(
        self,
        record: SubmissionRecord,
        reason: DeletionReason,
        provider_not_found: bool,
    ) -> None:
        async with self.db.session() as session:
            await SubmissionRepository(session).mark_voice_deleted(record.id)
            await AuditLogRepository(session).record(
                "submission",
                record.id,
                "voice_deleted",
                {
                    "voice_id": record.voice_id,
                    "reason": reason.value,
                    "provider_not_found": provider_not_found,
                },
            )
        logger.info("voice_deleted", voice_id=record.voice_id, reason=reason.value)


__all__ = [
    "ACTIVE_VOICE_STATUSES",
    "CleanupFilter",
    "DeletionReason",
    "VoiceSummary",
    "CleanupReport",
    "VoiceLifecycleManager",
    "age_hours",
]
