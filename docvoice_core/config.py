"""
Configuration for the Voice Generation Pipeline.
"""

import os
import tempfile
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VoiceCloneStatus(str, Enum):
    """Provider-side voice state of a submission."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"


class SubmissionStatus(str, Enum):
    """Workflow status of a submission."""

    DRAFT = "draft"
    PENDING_CONSENT = "pending_consent"
    CONSENT_VERIFIED = "consent_verified"
    PROCESSING = "processing"
    VOICE_CLONING = "voice_cloning"
    AUDIO_GENERATION = "audio_generation"
    VIDEO_GENERATION = "video_generation"
    PENDING_QC = "pending_qc"
    QC_APPROVED = "qc_approved"
    QC_REJECTED = "qc_rejected"
    COMPLETED = "completed"
    FAILED = "failed"


class GenerationStatus(str, Enum):
    """Terminal status of a generated audio row."""

    COMPLETED = "completed"
    FAILED = "failed"


class BucketType(str, Enum):
    """Object store buckets used by the pipeline."""

    UPLOADS = "uploads"
    AUDIO_MASTERS = "audio_masters"
    GENERATED_AUDIO = "generated_audio"


class ElevenLabsSettings(BaseSettings):
    """ElevenLabs API configuration."""

    model_config = SettingsConfigDict(env_prefix="ELEVENLABS_", extra="ignore")

    api_key: str = Field(default="", description="ElevenLabs API key")
    base_url: str = Field(
        default="https://api.elevenlabs.io/v1",
        description="ElevenLabs API base URL",
    )
    timeout_s: float = Field(default=120.0, gt=0, description="HTTP timeout per request")
    stream_chunk_size: int = Field(default=64 * 1024, ge=1024, description="Bytes per streamed chunk")
    default_sts_model: str = Field(
        default="eleven_multilingual_sts_v2",
        description="Speech-to-speech model when a language has none configured",
    )
    default_tts_model: str = Field(
        default="eleven_multilingual_v2",
        description="Text-to-speech model when a language has none configured",
    )
    voice_name_prefix: str = Field(default="DocVoice", description="Prefix of cloned voice names")
    label_source: str = Field(
        default="docvoice-video-platform",
        description="Value of the 'source' label attached to cloned voices",
    )


class StorageSettings(BaseSettings):
    """Google Cloud Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="GCS_", extra="ignore")

    project_id: Optional[str] = Field(default=None, description="GCP project id")
    credentials_path: Optional[str] = Field(default=None, description="Service account JSON path")

    bucket_uploads: str = Field(default="docvoice-uploads", description="Doctor media bucket")
    bucket_audio_masters: str = Field(default="docvoice-audio-masters", description="Master scripts bucket")
    bucket_generated_audio: str = Field(
        default="docvoice-generated-audio",
        description="Generated audio bucket",
    )

    upload_generated_audio: bool = Field(default=True, description="Upload generated audio to GCS")
    make_public: bool = Field(default=True, description="Set a public-read ACL on uploads")

    def bucket_for(self, bucket_type: BucketType) -> str:
        """Get the bucket name for a bucket type."""
        return {
            BucketType.UPLOADS: self.bucket_uploads,
            BucketType.AUDIO_MASTERS: self.bucket_audio_masters,
            BucketType.GENERATED_AUDIO: self.bucket_generated_audio,
        }[bucket_type]


class PipelineSettings(BaseSettings):
    """Voice generation pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_", extra="ignore")

    project_root: str = Field(default_factory=os.getcwd, description="Base for relative media paths")
    temp_dir: str = Field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "docvoice-voice"),
        description="Directory for downloaded temporary media",
    )
    output_dir: Optional[str] = Field(
        default=None,
        description="Generated audio directory (defaults to <project_root>/uploads/generated_audio)",
    )
    local_url_prefix: str = Field(
        default="/api/uploads/generated_audio",
        description="URL prefix used when generated audio is only available locally",
    )

    provider_call_timeout_s: float = Field(default=300.0, gt=0, description="Timeout per provider call")
    clone_max_attempts: int = Field(default=1, ge=1, le=10, description="Clone attempts before failing")
    clone_retry_delay_s: float = Field(default=2.0, ge=0, description="Base delay between clone attempts")
    max_concurrent_submissions: int = Field(default=4, ge=1, le=64, description="Parallel submissions")
    cleanup_default_max_age_hours: int = Field(default=24, ge=0, description="Default voice age limit")

    @property
    def resolved_output_dir(self) -> Path:
        if self.output_dir:
            return Path(self.output_dir)
        return Path(self.project_root) / "uploads" / "generated_audio"


class DatabaseSettings(BaseSettings):
    """Database configuration."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./docvoice.db",
        description="Database connection URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="docvoice-pipeline", description="Service name")
    environment: str = Field(default="development", description="Deployment environment")
    host: str = Field(default="0.0.0.0", description="Host to bind")
    port: int = Field(default=8090, ge=1024, le=65535, description="Port to listen on")
    log_level: str = Field(default="info", description="Logging level")
    log_format: Optional[str] = Field(default=None, description="json or console")

    elevenlabs: ElevenLabsSettings = Field(default_factory=ElevenLabsSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"debug", "info", "warning", "error", "critical"}
        if v.lower() not in valid:
            raise ValueError(f"Invalid log level: {v}")
        return v.lower()

    @property
    def resolved_log_format(self) -> str:
        if self.log_format:
            return self.log_format
        return "json" if self.environment == "production" else "console"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
