"""
Source resolution.

Turns a media reference (local path, ``gs://`` URI, public bucket URL or
generic HTTP(S) URL) into a local file. Downloads land in uniquely named
temporary files that the resolver tracks and deletes on ``cleanup()``.
One resolver belongs to one operation; temporary files are never shared.
"""

import os
import uuid
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

import aiofiles
import aiofiles.os
import httpx
import structlog

from ..config import BucketType
from ..exceptions import DownloadError, SourceNotFoundError
from .gcs import GS_SCHEME, PUBLIC_HOST, ObjectStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedSource:
    """A local file produced by the resolver."""

    path: str
    reference: str
    is_temporary: bool = False


class SourceResolver:
    """
    Resolve media references to local files.

    Usage:
        async with SourceResolver(project_root, temp_dir, store) as resolver:
            source = await resolver.resolve("gs://bucket/sample.mp3")
            ...
        # temporary downloads are gone here
    """

    def __init__(
        self,
        project_root: str,
        temp_dir: str,
        object_store: Optional[ObjectStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        http_timeout: float = 120.0,
    ):
        self.project_root = project_root
        self.temp_dir = temp_dir
        self.object_store = object_store
        self.http_timeout = http_timeout

        self._http_client = http_client
        self._temporary: List[str] = []

    async def __aenter__(self) -> "SourceResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.cleanup()

    @property
    def temporary_paths(self) -> List[str]:
        return list(self._temporary)

    def is_temporary(self, path: str) -> bool:
        return path in self._temporary

    def build_temp_path(self, filename: Optional[str] = None) -> str:
        """Fresh, collision-free path under the temp directory."""
        os.makedirs(self.temp_dir, exist_ok=True)
        name = os.path.basename(filename or "") or "temp"
        path = os.path.join(self.temp_dir, f"{uuid.uuid4().hex}_{name}")
        self._temporary.append(path)
        return path

    def _local_candidate(self, reference: str) -> Optional[str]:
        if os.path.isfile(reference):
            return reference
        if not os.path.isabs(reference):
            candidate = os.path.join(self.project_root, reference.lstrip("/"))
            if os.path.isfile(candidate):
                return candidate
        return None

    async def resolve(
        self,
        reference: str,
        bucket_type: BucketType = BucketType.UPLOADS,
    ) -> ResolvedSource:
        """
        Resolve ``reference`` to an existing local file.

        Raises:
            SourceNotFoundError: Reference is empty, or local and missing
            DownloadError: HTTP(S) download returned a non-2xx status
            StorageError: Object store download failed
        """
        reference = (reference or "").strip()
        if not reference:
            raise SourceNotFoundError(reference)

        local = self._local_candidate(reference)
        if local:
            return ResolvedSource(path=local, reference=reference)

        if reference.startswith(GS_SCHEME):
            if self.object_store is None:
                raise SourceNotFoundError(reference)
            destination = self.build_temp_path(reference.rsplit("/", 1)[-1])
            await self.object_store.download_to_file(reference, destination, bucket_type)
            return ResolvedSource(path=destination, reference=reference, is_temporary=True)

        parsed = urlparse(reference)
        if parsed.scheme in ("http", "https") or PUBLIC_HOST in reference:
            destination = await self._download_http(reference)
            return ResolvedSource(path=destination, reference=reference, is_temporary=True)

        raise SourceNotFoundError(reference)

    async def _download_http(self, url: str) -> str:
        destination = self.build_temp_path(urlparse(url).path.rsplit("/", 1)[-1] or "audio.mp3")

        client = self._http_client or httpx.AsyncClient(
            timeout=self.http_timeout,
            follow_redirects=True,
        )
        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    logger.error("source_download_failed", url=url, status_code=response.status_code)
                    raise DownloadError(url, status_code=response.status_code)

                async with aiofiles.open(destination, "wb") as sink:
                    async for chunk in response.aiter_bytes():
                        await sink.write(chunk)
        except httpx.HTTPError as e:
            logger.error("source_download_failed", url=url, error=str(e))
            raise DownloadError(url, reason=str(e)) from e
        finally:
            if client is not self._http_client:
                await client.aclose()

        logger.info("source_downloaded", url=url, destination=destination)
        return destination

    async def cleanup(self) -> None:
        """Delete every temporary file this resolver created. Never raises."""
        paths, self._temporary = self._temporary, []
        for path in paths:
            try:
                if os.path.exists(path):
                    await aiofiles.os.remove(path)
            except OSError as e:
                logger.warning("temp_file_cleanup_failed", path=path, error=str(e))


__all__ = [
    "ResolvedSource",
    "SourceResolver",
]
