"""Shared pytest fixtures for testing."""

import os
from datetime import timedelta
from functools import partial
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy import update
from unittest.mock import AsyncMock

from docvoice_core.config import (
    DatabaseSettings,
    ElevenLabsSettings,
    PipelineSettings,
    Settings,
    StorageSettings,
    VoiceCloneStatus,
)
from docvoice_core.database import (
    AudioMaster,
    DatabaseManager,
    Submission,
    encode_audio_sources,
    encode_language_codes,
    utcnow,
)
from docvoice_core.pipeline import SubmissionLocks
from docvoice_core.storage import ObjectStore, SourceResolver, UploadedObject
from docvoice_core.voice import CloneResult, ProviderHealth, VoiceProviderClient


# =============================================================================
# Settings and Database
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing every path at the test's tmp directory."""
    project_root = tmp_path / "project"
    project_root.mkdir()
    return Settings(
        environment="test",
        elevenlabs=ElevenLabsSettings(api_key="test-key"),
        storage=StorageSettings(),
        pipeline=PipelineSettings(
            project_root=str(project_root),
            temp_dir=str(tmp_path / "tmp"),
            output_dir=str(tmp_path / "generated"),
            clone_retry_delay_s=0,
            provider_call_timeout_s=5,
        ),
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"),
    )


@pytest_asyncio.fixture
async def db(settings: Settings) -> AsyncGenerator[DatabaseManager, None]:
    """File-backed SQLite database with all tables created."""
    manager = DatabaseManager(settings.database.url)
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def locks() -> SubmissionLocks:
    return SubmissionLocks()


# =============================================================================
# Fakes
# =============================================================================


@pytest.fixture
def provider() -> AsyncMock:
    """Voice provider fake; streamed conversions write a small file."""
    mock = AsyncMock(spec=VoiceProviderClient)
    mock.name = "fake"
    mock.clone_voice.return_value = CloneResult(voice_id="voice_abc", name="cloned")
    mock.health_check.return_value = ProviderHealth(healthy=True, detail="ok", voices_available=0)
    mock.list_voices.return_value = []

    async def _stream(voice_id, source_path, output_path, language_code="en"):
        with open(output_path, "wb") as f:
            f.write(f"{voice_id}:{language_code}".encode())
        return output_path

    mock.speech_to_speech_stream.side_effect = _stream
    return mock


@pytest.fixture
def object_store() -> AsyncMock:
    """Object store fake; downloads write the URI as file content."""
    mock = AsyncMock(spec=ObjectStore)

    async def _download(uri, destination, bucket_type=None):
        os.makedirs(os.path.dirname(destination), exist_ok=True)
        with open(destination, "wb") as f:
            f.write(uri.encode())
        return destination

    async def _upload(file_path, bucket_type, key, content_type=None, make_public=False):
        return UploadedObject(bucket="docvoice-generated-audio", key=key)

    mock.download_to_file.side_effect = _download
    mock.upload_file.side_effect = _upload
    return mock


@pytest.fixture
def resolver_factory(settings: Settings, object_store: AsyncMock):
    return partial(
        SourceResolver,
        settings.pipeline.project_root,
        settings.pipeline.temp_dir,
        object_store,
    )


# =============================================================================
# Test Data Fixtures
# =============================================================================


@pytest.fixture
def sample_file(settings: Settings) -> str:
    """A local voice sample inside the project root."""
    path = os.path.join(settings.pipeline.project_root, "sample.mp3")
    with open(path, "wb") as f:
        f.write(b"ID3-sample-audio")
    return path


@pytest.fixture
def make_submission(db: DatabaseManager):
    """Insert a submission and return its id."""

    async def _make(
        doctor_name: str = "Jane Doe",
        audio=None,
        languages=("hi",),
        voice_id: Optional[str] = None,
        clone_status: VoiceCloneStatus = VoiceCloneStatus.PENDING,
        raw_audio_path: Optional[str] = None,
    ) -> int:
        if raw_audio_path is None:
            raw_audio_path = encode_audio_sources(audio or [])
        async with db.session() as session:
            submission = Submission(
                doctor_name=doctor_name,
                audio_path=raw_audio_path,
                selected_languages=encode_language_codes(languages),
                elevenlabs_voice_id=voice_id,
                voice_clone_status=clone_status.value,
            )
            session.add(submission)
            await session.flush()
            return submission.id

    return _make


@pytest.fixture
def make_master(db: DatabaseManager):
    """Insert an audio master and return its id."""

    async def _make(language_code: str, file_path: str, is_active: bool = True, created_at=None) -> int:
        async with db.session() as session:
            master = AudioMaster(
                language_code=language_code,
                name=f"{language_code} master",
                file_path=file_path,
                is_active=is_active,
            )
            if created_at is not None:
                master.created_at = created_at
            session.add(master)
            await session.flush()
            return master.id

    return _make


@pytest.fixture
def age_submission(db: DatabaseManager):
    """Push a submission's updated_at into the past."""

    async def _age(submission_id: int, hours: float) -> None:
        async with db.session() as session:
            await session.execute(
                update(Submission)
                .where(Submission.id == submission_id)
                .values(updated_at=utcnow() - timedelta(hours=hours))
            )

    return _age
