"""Object storage backends for source media and generated audio."""

import asyncio
import mimetypes
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import structlog

from ..config import BucketType, StorageSettings
from ..exceptions import StorageError

logger = structlog.get_logger(__name__)

GS_SCHEME = "gs://"
PUBLIC_HOST = "storage.googleapis.com"
PUBLIC_URL_PREFIX = f"https://{PUBLIC_HOST}/"


def parse_gs_uri(uri: str) -> Tuple[str, str]:
    """Split ``gs://bucket/key`` into bucket and key."""
    if not uri.startswith(GS_SCHEME):
        raise ValueError(f"Not a gs:// URI: {uri}")
    bucket, _, key = uri[len(GS_SCHEME):].partition("/")
    if not bucket or not key:
        raise ValueError(f"Malformed gs:// URI: {uri}")
    return bucket, key


def gs_to_http_url(uri: str) -> str:
    if not uri.startswith(GS_SCHEME):
        return uri
    return PUBLIC_URL_PREFIX + uri[len(GS_SCHEME):]


@dataclass
class UploadedObject:
    """Location of an uploaded object."""

    bucket: str
    key: str

    @property
    def gcs_path(self) -> str:
        return f"{GS_SCHEME}{self.bucket}/{self.key}"

    @property
    def public_url(self) -> str:
        return f"{PUBLIC_URL_PREFIX}{self.bucket}/{self.key}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "gcs_path": self.gcs_path,
            "public_url": self.public_url,
        }


class ObjectStore(ABC):
    """Abstract object store used by the pipeline."""

    @abstractmethod
    async def download_to_file(
        self,
        uri: str,
        destination: str,
        bucket_type: BucketType = BucketType.UPLOADS,
    ) -> str:
        """
        Download an object to a local file.

        Args:
            uri: ``gs://bucket/key`` or a bare key in the bucket for ``bucket_type``
            destination: Local file path to write
            bucket_type: Bucket used when ``uri`` carries no bucket

        Returns:
            The destination path
        """
        pass

    @abstractmethod
    async def upload_file(
        self,
        file_path: str,
        bucket_type: BucketType,
        key: str,
        content_type: Optional[str] = None,
        make_public: bool = False,
    ) -> UploadedObject:
        """Upload a local file."""
        pass


class GCSStorage(ObjectStore):
    """
    Google Cloud Storage backend.

    Usage:
        storage = GCSStorage.from_settings(settings.storage)
        uploaded = await storage.upload_file(path, BucketType.GENERATED_AUDIO, "a/b.mp3")
    """

    def __init__(
        self,
        buckets: Dict[BucketType, str],
        project_id: Optional[str] = None,
        credentials_path: Optional[str] = None,
    ):
        self.buckets = buckets
        self.project_id = project_id
        self.credentials_path = credentials_path
        self._client = None

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "GCSStorage":
        return cls(
            buckets={bucket_type: settings.bucket_for(bucket_type) for bucket_type in BucketType},
            project_id=settings.project_id,
            credentials_path=settings.credentials_path,
        )

    def _get_client(self):
        """Get the google-cloud-storage client."""
        if self._client is None:
            from google.cloud import storage

            if self.credentials_path:
                self._client = storage.Client.from_service_account_json(
                    self.credentials_path,
                    project=self.project_id,
                )
            else:
                self._client = storage.Client(project=self.project_id)
        return self._client

    def _locate(self, uri: str, bucket_type: BucketType) -> Tuple[str, str]:
        if uri.startswith(GS_SCHEME):
            return parse_gs_uri(uri)
        return self.buckets[bucket_type], uri.lstrip("/")

    async def download_to_file(
        self,
        uri: str,
        destination: str,
        bucket_type: BucketType = BucketType.UPLOADS,
    ) -> str:
        try:
            bucket_name, key = self._locate(uri, bucket_type)
        except ValueError as e:
            raise StorageError(str(e), details={"uri": uri}) from e

        os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)

        def _download() -> None:
            blob = self._get_client().bucket(bucket_name).blob(key)
            blob.download_to_filename(destination)

        # google-cloud-storage is not async
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _download)
        except Exception as e:
            logger.error("gcs_download_failed", uri=uri, error=str(e))
            raise StorageError(f"GCS download failed: {e}", details={"uri": uri}) from e

        logger.info("gcs_downloaded", uri=uri, destination=destination)
        return destination

    async def upload_file(
        self,
        file_path: str,
        bucket_type: BucketType,
        key: str,
        content_type: Optional[str] = None,
        make_public: bool = False,
    ) -> UploadedObject:
        bucket_name = self.buckets[bucket_type]
        content_type = content_type or mimetypes.guess_type(file_path)[0] or "application/octet-stream"

        def _upload():
            blob = self._get_client().bucket(bucket_name).blob(key)
            blob.upload_from_filename(file_path, content_type=content_type)
            return blob

        loop = asyncio.get_running_loop()
        try:
            blob = await loop.run_in_executor(None, _upload)
        except Exception as e:
            logger.error("gcs_upload_failed", file_path=file_path, bucket=bucket_name, key=key, error=str(e))
            raise StorageError(
                f"GCS upload failed: {e}",
                details={"bucket": bucket_name, "key": key},
            ) from e

        if make_public:
            try:
                await loop.run_in_executor(None, blob.make_public)
            except Exception as e:
                # Uniform bucket-level access rejects object ACLs; bucket IAM governs reads
                logger.warning("gcs_acl_not_set", bucket=bucket_name, key=key, error=str(e))

        uploaded = UploadedObject(bucket=bucket_name, key=key)
        logger.info("gcs_uploaded", gcs_path=uploaded.gcs_path)
        return uploaded


__all__ = [
    "ObjectStore",
    "GCSStorage",
    "UploadedObject",
    "parse_gs_uri",
    "gs_to_http_url",
    "GS_SCHEME",
    "PUBLIC_HOST",
]
