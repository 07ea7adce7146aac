"""Unit tests for source resolution."""

import os
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from docvoice_core.config import BucketType
from docvoice_core.exceptions import DownloadError, SourceNotFoundError
from docvoice_core.storage import SourceResolver


REMOTE_AUDIO = bytes(range(256)) * 64


def _http_client(status_code: int = 200, content: bytes = REMOTE_AUDIO) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=content, headers={"content-type": "audio/mpeg"})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestLocalReferences:
    """Tests for references that already exist on disk."""

    @pytest.mark.asyncio
    async def test_absolute_path_returned_unchanged(self, settings, sample_file):
        """Test existing absolute paths are not temporary."""
        resolver = SourceResolver(settings.pipeline.project_root, settings.pipeline.temp_dir)

        source = await resolver.resolve(sample_file)

        assert source.path == sample_file
        assert not source.is_temporary
        await resolver.cleanup()
        assert os.path.exists(sample_file)

    @pytest.mark.asyncio
    async def test_relative_path_resolved_against_project_root(self, settings, sample_file):
        """Test relative paths are joined to the project root."""
        resolver = SourceResolver(settings.pipeline.project_root, settings.pipeline.temp_dir)

        source = await resolver.resolve("sample.mp3")

        assert source.path == os.path.join(settings.pipeline.project_root, "sample.mp3")
        assert resolver.temporary_paths == []

    @pytest.mark.asyncio
    async def test_missing_reference(self, settings):
        """Test unresolvable references name the original reference."""
        resolver = SourceResolver(settings.pipeline.project_root, settings.pipeline.temp_dir)

        with pytest.raises(SourceNotFoundError) as exc_info:
            await resolver.resolve("uploads/nope.mp3")

        assert exc_info.value.reference == "uploads/nope.mp3"
        assert "uploads/nope.mp3" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_reference(self, settings):
        """Test empty references fail."""
        resolver = SourceResolver(settings.pipeline.project_root, settings.pipeline.temp_dir)

        with pytest.raises(SourceNotFoundError):
            await resolver.resolve("")


class TestObjectStoreReferences:
    """Tests for gs:// references."""

    @pytest.mark.asyncio
    async def test_download_to_temp(self, settings, object_store):
        """Test gs:// references land in a tracked temp file."""
        resolver = SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            object_store,
        )

        source = await resolver.resolve("gs://masters/hi/master.mp3", BucketType.AUDIO_MASTERS)

        assert source.is_temporary
        assert source.path.startswith(settings.pipeline.temp_dir)
        assert source.path.endswith("_master.mp3")
        object_store.download_to_file.assert_awaited_once_with(
            "gs://masters/hi/master.mp3", source.path, BucketType.AUDIO_MASTERS
        )

        await resolver.cleanup()
        assert not os.path.exists(source.path)

    @pytest.mark.asyncio
    async def test_unique_temp_paths(self, settings, object_store):
        """Test two resolutions of the same URI never share a file."""
        async with SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            object_store,
        ) as resolver:
            first = await resolver.resolve("gs://bucket/a.mp3")
            second = await resolver.resolve("gs://bucket/a.mp3")

            assert first.path != second.path
            assert len(resolver.temporary_paths) == 2

        assert not os.path.exists(first.path)
        assert not os.path.exists(second.path)


class TestHttpReferences:
    """Tests for public and generic HTTP(S) references."""

    @pytest.mark.asyncio
    async def test_download_is_byte_identical_and_removed(self, settings):
        """Test downloaded content matches and is deleted on cleanup."""
        client = _http_client()
        async with SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            http_client=client,
        ) as resolver:
            source = await resolver.resolve("https://storage.googleapis.com/bucket/voice.mp3?x=1")

            assert source.is_temporary
            assert source.path.endswith("_voice.mp3")
            with open(source.path, "rb") as f:
                assert f.read() == REMOTE_AUDIO

        assert not os.path.exists(source.path)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_2xx_raises_download_error(self, settings):
        """Test error statuses raise DownloadError and leave nothing behind."""
        client = _http_client(status_code=403, content=b"denied")
        resolver = SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            http_client=client,
        )

        with pytest.raises(DownloadError) as exc_info:
            await resolver.resolve("https://cdn.example.com/a.mp3")

        assert exc_info.value.status_code == 403
        await resolver.cleanup()
        assert not os.listdir(settings.pipeline.temp_dir)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unfollowed_redirect_raises_download_error(self, settings):
        """Test a 3xx from a client that does not follow redirects is not saved as audio."""
        client = _http_client(status_code=302, content=b"<html>moved</html>")
        resolver = SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            http_client=client,
        )

        with pytest.raises(DownloadError) as exc_info:
            await resolver.resolve("https://cdn.example.com/a.mp3")

        assert exc_info.value.status_code == 302
        await resolver.cleanup()
        assert not os.listdir(settings.pipeline.temp_dir)
        await client.aclose()


class TestCleanup:
    """Tests for temp file cleanup."""

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_logged_not_raised(self, settings, object_store):
        """Test deletion errors never escape cleanup."""
        resolver = SourceResolver(
            settings.pipeline.project_root,
            settings.pipeline.temp_dir,
            object_store,
        )
        source = await resolver.resolve("gs://bucket/a.mp3")

        with patch(
            "docvoice_core.storage.resolver.aiofiles.os.remove",
            new=AsyncMock(side_effect=OSError("busy")),
        ):
            await resolver.cleanup()

        assert resolver.temporary_paths == []
        assert os.path.exists(source.path)
