"""ElevenLabs voice cloning and speech-to-speech client."""

import json
import mimetypes
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import aiofiles
import httpx
import structlog

from ..config import ElevenLabsSettings
from ..exceptions import NoValidSamplesError, PipelineError, ProviderError
from .base import CloneResult, ProviderHealth, VoiceInfo, VoiceProviderClient
from .languages import get_language_config

logger = structlog.get_logger(__name__)


class ElevenLabsClient(VoiceProviderClient):
    """
    ElevenLabs API client.

    Features:
    - Instant voice cloning from one or more local samples
    - Speech-to-speech conversion, buffered or streamed to disk
    - Text-to-speech with the language's TTS model
    - Voice inventory, quota and health endpoints

    Usage:
        async with ElevenLabsClient(api_key) as client:
            result = await client.clone_voice("DocVoice_Jane_1", ["sample.mp3"])
    """

    BASE_URL = "https://api.elevenlabs.io/v1"

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        stream_chunk_size: int = 64 * 1024,
        default_sts_model: str = "eleven_multilingual_sts_v2",
        default_tts_model: str = "eleven_multilingual_v2",
        label_source: str = "docvoice-video-platform",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("ElevenLabs API key is required")

        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.stream_chunk_size = stream_chunk_size
        self.default_sts_model = default_sts_model
        self.default_tts_model = default_tts_model
        self.label_source = label_source

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.logger = logger.bind(provider="elevenlabs")

    @classmethod
    def from_settings(
        cls,
        settings: ElevenLabsSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ElevenLabsClient":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_s,
            stream_chunk_size=settings.stream_chunk_size,
            default_sts_model=settings.default_sts_model,
            default_tts_model=settings.default_tts_model,
            label_source=settings.label_source,
            transport=transport,
        )

    @property
    def name(self) -> str:
        return "elevenlabs"

    async def __aenter__(self) -> "ElevenLabsClient":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"xi-api-key": self.api_key},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # Request helpers
    # =========================================================================

    @staticmethod
    def _raise_for_status(response: httpx.Response, body: str) -> None:
        if response.is_error:
            raise ProviderError(
                f"ElevenLabs API error: {response.status_code} - {response.reason_phrase}",
                status_code=response.status_code,
                body=body,
            )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            self.logger.error("provider_request_failed", method=method, path=path, error=str(e))
            raise ProviderError(f"ElevenLabs request failed: {e}") from e

        if response.is_error:
            self.logger.error(
                "provider_error_response",
                method=method,
                path=path,
                status_code=response.status_code,
                body=response.text,
            )
        self._raise_for_status(response, response.text)
        return response

    @staticmethod
    async def _read_upload(path: str) -> tuple:
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        return (os.path.basename(path), data, content_type)

    def _sts_form(
        self,
        language_code: str,
        model_id: Optional[str],
        voice_settings: Optional[Dict[str, Any]],
    ) -> Dict[str, str]:
        config = get_language_config(language_code)
        return {
            # Speech-to-speech needs an STS model; TTS model ids are rejected
            "model_id": model_id or config.sts_model or self.default_sts_model,
            "voice_settings": json.dumps(config.voice_settings.merged(voice_settings)),
        }

    # =========================================================================
    # Voices
    # =========================================================================

    async def clone_voice(
        self,
        name: str,
        sample_paths: Sequence[str],
        description: Optional[str] = None,
    ) -> CloneResult:
        """Clone a voice using ElevenLabs Instant Voice Cloning."""
        valid_paths = [p for p in sample_paths if p and os.path.isfile(p)]
        if not valid_paths:
            raise NoValidSamplesError()

        files = [("files", await self._read_upload(p)) for p in valid_paths]
        data = {
            "name": name,
            "description": description or f"Voice clone for {name}",
            "labels": json.dumps({
                "source": self.label_source,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }),
        }

        self.logger.info("voice_clone_started", voice_name=name, samples=len(files))
        response = await self._request("POST", "/voices/add", data=data, files=files)

        payload = response.json()
        voice_id = payload.get("voice_id")
        if not voice_id:
            raise ProviderError(
                "ElevenLabs clone response carried no voice_id",
                status_code=response.status_code,
                body=response.text,
            )

        self.logger.info("voice_cloned", voice_name=name, voice_id=voice_id)
        return CloneResult(voice_id=voice_id, name=name, provider_metadata=payload)

    async def delete_voice(self, voice_id: str) -> None:
        await self._request("DELETE", f"/voices/{voice_id}")
        self.logger.info("voice_deleted", voice_id=voice_id)

    async def get_voice(self, voice_id: str) -> VoiceInfo:
        response = await self._request("GET", f"/voices/{voice_id}")
        return VoiceInfo.from_payload(response.json())

    async def list_voices(self) -> List[VoiceInfo]:
        response = await self._request("GET", "/voices")
        return [VoiceInfo.from_payload(v) for v in response.json().get("voices", [])]

    # =========================================================================
    # Conversion
    # =========================================================================

    async def speech_to_speech(
        self,
        voice_id: str,
        source_path: str,
        language_code: str = "en",
        model_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
        remove_background_noise: bool = False,
    ) -> bytes:
        """Convert ``source_path`` into the cloned voice and return the audio."""
        data = self._sts_form(language_code, model_id, voice_settings)
        if remove_background_noise:
            data["remove_background_noise"] = "true"

        response = await self._request(
            "POST",
            f"/speech-to-speech/{voice_id}",
            data=data,
            files={"audio": await self._read_upload(source_path)},
            headers={"Accept": "audio/mpeg"},
        )

        self.logger.info(
            "speech_to_speech_completed",
            voice_id=voice_id,
            language=language_code,
            model_id=data["model_id"],
            audio_size=len(response.content),
        )
        return response.content

    async def speech_to_speech_stream(
        self,
        voice_id: str,
        source_path: str,
        output_path: str,
        language_code: str = "en",
    ) -> str:
        """
        Convert ``source_path`` into the cloned voice, streaming to disk.

        The output file is closed on every exit path; a partial file left
        by a failed or cancelled transfer is removed before the error
        propagates.
        """
        client = await self._get_client()
        data = self._sts_form(language_code, None, None)
        files = {"audio": await self._read_upload(source_path)}

        written = 0
        try:
            async with client.stream(
                "POST",
                f"/speech-to-speech/{voice_id}/stream",
                data=data,
                files=files,
                headers={"Accept": "audio/mpeg"},
            ) as response:
                if response.is_error:
                    body = (await response.aread()).decode("utf-8", errors="replace")
                    self.logger.error(
                        "provider_error_response",
                        path="speech-to-speech/stream",
                        status_code=response.status_code,
                        body=body,
                    )
                    self._raise_for_status(response, body)

                async with aiofiles.open(output_path, "wb") as sink:
                    async for chunk in response.aiter_bytes(chunk_size=self.stream_chunk_size):
                        if chunk:
                            await sink.write(chunk)
                            written += len(chunk)
        except httpx.HTTPError as e:
            self._discard_partial(output_path)
            raise ProviderError(f"ElevenLabs stream failed: {e}") from e
        except BaseException:
            self._discard_partial(output_path)
            raise

        self.logger.info(
            "speech_to_speech_streamed",
            voice_id=voice_id,
            language=language_code,
            model_id=data["model_id"],
            output_path=output_path,
            audio_size=written,
        )
        return output_path

    def _discard_partial(self, output_path: str) -> None:
        try:
            if os.path.exists(output_path):
                os.remove(output_path)
        except OSError as e:
            self.logger.warning("partial_output_cleanup_failed", path=output_path, error=str(e))

    async def text_to_speech(
        self,
        voice_id: str,
        text: str,
        language_code: str = "en",
        model_id: Optional[str] = None,
        voice_settings: Optional[Dict[str, Any]] = None,
    ) -> bytes:
        """Synthesize ``text`` with the language's text-to-speech model."""
        config = get_language_config(language_code)
        payload = {
            "text": text,
            "model_id": model_id or config.tts_model or self.default_tts_model,
            "voice_settings": config.voice_settings.merged(voice_settings),
        }

        response = await self._request(
            "POST",
            f"/text-to-speech/{voice_id}",
            json=payload,
            headers={"Accept": "audio/mpeg"},
        )

        self.logger.info(
            "text_to_speech_completed",
            voice_id=voice_id,
            language=language_code,
            text_length=len(text),
            audio_size=len(response.content),
        )
        return response.content

    # =========================================================================
    # Account
    # =========================================================================

    async def get_subscription_info(self) -> Dict[str, Any]:
        response = await self._request("GET", "/user/subscription")
        return response.json()

    async def get_user_info(self) -> Dict[str, Any]:
        response = await self._request("GET", "/user")
        return response.json()

    async def health_check(self) -> ProviderHealth:
        """List voices as a liveness probe."""
        try:
            voices = await self.list_voices()
        except PipelineError as e:
            self.logger.error("provider_health_check_failed", error=e.message)
            return ProviderHealth(healthy=False, detail=e.message)

        return ProviderHealth(
            healthy=True,
            detail="ElevenLabs API is operational",
            voices_available=len(voices),
        )
