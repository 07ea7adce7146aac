"""
Database Models

SQLAlchemy ORM models for submissions, audio masters, generated audio
and the audit log.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ..config import GenerationStatus, SubmissionStatus, VoiceCloneStatus
from .base import Base, TimestampMixin, utcnow


# =============================================================================
# Submission
# =============================================================================


class Submission(Base, TimestampMixin):
    """One doctor's campaign entry."""

    __tablename__ = "submissions"

    doctor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    doctor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Single reference or JSON-encoded list of sample references
    audio_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # JSON-encoded list of language codes
    selected_languages: Mapped[str] = mapped_column(Text, default="[]", nullable=False)

    # Voice cloning
    elevenlabs_voice_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    voice_clone_status: Mapped[str] = mapped_column(
        String(20),
        default=VoiceCloneStatus.PENDING.value,
        nullable=False,
    )
    voice_clone_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(
        String(30),
        default=SubmissionStatus.DRAFT.value,
        nullable=False,
    )

    __table_args__ = (
        Index("ix_submissions_status", "status"),
        Index("ix_submissions_voice_clone_status", "voice_clone_status"),
    )


# =============================================================================
# Audio Master
# =============================================================================


class AudioMaster(Base, TimestampMixin):
    """Canonical per-language script recording."""

    __tablename__ = "audio_masters"

    language_code: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    gcs_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[Optional[float]] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        Index("ix_audio_masters_language", "language_code", "is_active"),
    )


# =============================================================================
# Generated Audio
# =============================================================================


class GeneratedAudio(Base, TimestampMixin):
    """One speech-to-speech outcome per (submission, language) attempt."""

    __tablename__ = "generated_audio"

    submission_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("submissions.id"),
        nullable=False,
    )
    language_code: Mapped[str] = mapped_column(String(10), nullable=False)
    audio_master_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("audio_masters.id"),
        nullable=True,
    )

    file_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    gcs_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    public_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        default=GenerationStatus.FAILED.value,
        nullable=False,
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_generated_audio_submission", "submission_id", "language_code"),
    )


# =============================================================================
# Audit Log
# =============================================================================


class AuditLogEntry(Base):
    """Append-only record of pipeline actions."""

    __tablename__ = "audit_log"

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    actor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )


__all__ = [
    "Submission",
    "AudioMaster",
    "GeneratedAudio",
    "AuditLogEntry",
]
