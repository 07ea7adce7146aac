"""
Typed decoding of the JSON-encoded submission columns.

``submissions.audio_path`` holds either a single media reference or a JSON
list whose entries are plain strings or upload records
(``{"gcsPath": ..., "publicUrl": ...}``). ``submissions.selected_languages``
holds a JSON list of language codes. Both are decoded here, once, so the
pipeline only ever sees ordered tuples of typed records.
"""

import json
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, Union


@dataclass(frozen=True)
class SampleRef:
    """One audio sample reference as stored by the upload flow."""

    path: Optional[str] = None
    gcs_path: Optional[str] = None
    public_url: Optional[str] = None

    @property
    def reference(self) -> str:
        """The reference to resolve: gcs_path, then public_url, then path."""
        return self.gcs_path or self.public_url or self.path or ""

    @classmethod
    def from_value(cls, value: Any) -> Optional["SampleRef"]:
        if isinstance(value, str):
            value = value.strip()
            return cls(path=value) if value else None
        if isinstance(value, dict):
            ref = cls(
                path=_first(value, "path", "file_path", "filePath", "localPath", "local_path"),
                gcs_path=_first(value, "gcsPath", "gcs_path"),
                public_url=_first(value, "publicUrl", "public_url"),
            )
            return ref if ref.reference else None
        return None

    def to_value(self) -> Any:
        if self.gcs_path is None and self.public_url is None:
            return self.path
        data = {}
        if self.path:
            data["path"] = self.path
        if self.gcs_path:
            data["gcsPath"] = self.gcs_path
        if self.public_url:
            data["publicUrl"] = self.public_url
        return data


@dataclass(frozen=True)
class SinglePath:
    """Legacy shape: the column holds one bare reference."""

    ref: SampleRef

    @property
    def refs(self) -> Tuple[SampleRef, ...]:
        return (self.ref,)


@dataclass(frozen=True)
class PathList:
    """The column holds a JSON list of references."""

    refs: Tuple[SampleRef, ...] = ()


AudioSources = Union[SinglePath, PathList]


def _first(data: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_audio_sources(raw: Optional[str]) -> AudioSources:
    """Decode ``submissions.audio_path``."""
    if raw is None or not raw.strip():
        return PathList()

    try:
        decoded = json.loads(raw)
    except ValueError:
        return SinglePath(SampleRef(path=raw.strip()))

    if isinstance(decoded, list):
        refs = (SampleRef.from_value(item) for item in decoded)
        return PathList(tuple(ref for ref in refs if ref is not None))

    ref = SampleRef.from_value(decoded)
    if ref is None:
        # Numbers, booleans and empty objects are not references
        return PathList()
    return SinglePath(ref)


def encode_audio_sources(refs: Iterable[Union[SampleRef, str, dict]]) -> str:
    """Encode sample references for storage as a JSON list."""
    values = []
    for item in refs:
        ref = item if isinstance(item, SampleRef) else SampleRef.from_value(item)
        if ref is not None:
            values.append(ref.to_value())
    return json.dumps(values)


def parse_language_codes(raw: Optional[str]) -> Tuple[str, ...]:
    """Decode ``submissions.selected_languages`` into unique codes, in order."""
    if raw is None or not raw.strip():
        return ()

    try:
        decoded = json.loads(raw)
    except ValueError:
        decoded = raw.split(",")

    if isinstance(decoded, str):
        decoded = [decoded]
    if not isinstance(decoded, list):
        return ()

    codes = []
    for item in decoded:
        if not isinstance(item, str):
            continue
        code = item.strip()
        if code and code not in codes:
            codes.append(code)
    return tuple(codes)


def encode_language_codes(codes: Iterable[str]) -> str:
    """Encode language codes for storage as a JSON list."""
    unique = []
    for code in codes:
        if code not in unique:
            unique.append(code)
    return json.dumps(unique)


__all__ = [
    "SampleRef",
    "SinglePath",
    "PathList",
    "AudioSources",
    "parse_audio_sources",
    "encode_audio_sources",
    "parse_language_codes",
    "encode_language_codes",
]
