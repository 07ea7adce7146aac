"""Base voice provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence


@dataclass
class CloneResult:
    """Result of a voice cloning call."""

    voice_id: str
    name: str
    provider_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VoiceInfo:
    """Information about a provider-side voice."""

    voice_id: str
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    labels: Optional[dict] = None
    preview_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VoiceInfo":
        return cls(
            voice_id=payload["voice_id"],
            name=payload.get("name", ""),
            category=payload.get("category"),
            description=payload.get("description"),
            labels=payload.get("labels"),
            preview_url=payload.get("preview_url"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "voice_id": self.voice_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "labels": self.labels,
            "preview_url": self.preview_url,
        }


@dataclass
class ProviderHealth:
    """Outcome of a provider health check."""

    healthy: bool
    detail: str
    voices_available: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "detail": self.detail,
            "voices_available": self.voices_available,
        }


class VoiceProviderClient(ABC):
    """
    Abstract voice-cloning provider.

    Implementations raise ProviderError for any non-2xx response and
    never retry internally; retry policy belongs to the caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        pass

    @abstractmethod
    async def clone_voice(
        self,
        name: str,
        sample_paths: Sequence[str],
        description: Optional[str] = None,
    ) -> CloneResult:
        """
        Clone a voice from local audio samples.

        Args:
            name: Provider-side voice name
            sample_paths: Local sample files; missing paths are skipped
            description: Optional voice description

        Returns:
            CloneResult carrying the provider voice id
        """
        pass

    @abstractmethod
    async def delete_voice(self, voice_id: str) -> None:
        """Delete a voice. A missing voice raises ProviderError(404)."""
        pass

    @abstractmethod
    async def speech_to_speech(
        self,
        voice_id: str,
        source_path: str,
        language_code: str = "en",
        model_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
        remove_background_noise: bool = False,
    ) -> bytes:
        """Convert a source recording into the target voice, buffered."""
        pass

    @abstractmethod
    async def speech_to_speech_stream(
        self,
        voice_id: str,
        source_path: str,
        output_path: str,
        language_code: str = "en",
    ) -> str:
        """Convert a source recording, streaming the audio to ``output_path``."""
        pass

    @abstractmethod
    async def list_voices(self) -> List[VoiceInfo]:
        """List voices in the provider account."""
        pass

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        """Check provider availability. Never raises."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass
