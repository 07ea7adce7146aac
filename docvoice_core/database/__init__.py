"""
Persistence layer for the voice generation pipeline.
"""

from .base import Base, DatabaseManager, TimestampMixin, utcnow
from .models import AudioMaster, AuditLogEntry, GeneratedAudio, Submission
from .repositories import (
    AudioMasterRecord,
    AudioMasterRepository,
    AuditLogRepository,
    BaseRepository,
    GeneratedAudioRepository,
    SubmissionRecord,
    SubmissionRepository,
)
from .sources import (
    AudioSources,
    PathList,
    SampleRef,
    SinglePath,
    encode_audio_sources,
    encode_language_codes,
    parse_audio_sources,
    parse_language_codes,
)

__all__ = [
    # Base
    "Base",
    "DatabaseManager",
    "TimestampMixin",
    "utcnow",
    # Models
    "Submission",
    "AudioMaster",
    "GeneratedAudio",
    "AuditLogEntry",
    # Repositories
    "BaseRepository",
    "SubmissionRepository",
    "SubmissionRecord",
    "AudioMasterRepository",
    "AudioMasterRecord",
    "GeneratedAudioRepository",
    "AuditLogRepository",
    # Column decoding
    "AudioSources",
    "SampleRef",
    "SinglePath",
    "PathList",
    "parse_audio_sources",
    "encode_audio_sources",
    "parse_language_codes",
    "encode_language_codes",
]
