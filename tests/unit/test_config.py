"""Unit tests for configuration."""

import pytest
from pydantic import ValidationError

from docvoice_core.config import BucketType, PipelineSettings, Settings, StorageSettings


class TestSettings:
    """Tests for Settings."""

    def test_environment_overrides(self, monkeypatch):
        """Test nested groups read their own env prefix."""
        monkeypatch.setenv("ELEVENLABS_API_KEY", "from-env")
        monkeypatch.setenv("PIPELINE_CLONE_MAX_ATTEMPTS", "3")
        monkeypatch.setenv("GCS_BUCKET_UPLOADS", "my-uploads")

        settings = Settings(_env_file=None)

        assert settings.elevenlabs.api_key == "from-env"
        assert settings.pipeline.clone_max_attempts == 3
        assert settings.storage.bucket_for(BucketType.UPLOADS) == "my-uploads"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="loud")

    def test_log_format_follows_environment(self):
        assert Settings(_env_file=None, environment="production").resolved_log_format == "json"
        assert Settings(_env_file=None, environment="development").resolved_log_format == "console"
        assert Settings(_env_file=None, log_format="json").resolved_log_format == "json"

    def test_output_dir_defaults_under_project_root(self, tmp_path):
        pipeline = PipelineSettings(project_root=str(tmp_path))

        assert pipeline.resolved_output_dir == tmp_path / "uploads" / "generated_audio"

    def test_bucket_for(self):
        storage = StorageSettings()

        assert storage.bucket_for(BucketType.GENERATED_AUDIO) == storage.bucket_generated_audio
