"""
Object storage and source resolution.
"""

from .gcs import GCSStorage, ObjectStore, UploadedObject, gs_to_http_url, parse_gs_uri
from .resolver import ResolvedSource, SourceResolver

__all__ = [
    "ObjectStore",
    "GCSStorage",
    "UploadedObject",
    "parse_gs_uri",
    "gs_to_http_url",
    "ResolvedSource",
    "SourceResolver",
]
