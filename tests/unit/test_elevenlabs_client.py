"""Unit tests for the ElevenLabs client."""

import json
import os

import httpx
import pytest

from docvoice_core.exceptions import NoValidSamplesError, ProviderError
from docvoice_core.voice import ElevenLabsClient
from docvoice_core.voice.languages import STS_MODEL, TTS_MODEL, get_language_config, is_supported


CONVERTED = b"converted-audio-" * 512


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"detail": "not found"})
        if isinstance(route, Exception):
            raise route
        return route


def _client(routes) -> "tuple[ElevenLabsClient, Recorder]":
    recorder = Recorder(routes)
    client = ElevenLabsClient(api_key="test-key", transport=httpx.MockTransport(recorder))
    return client, recorder


class TestConstruction:
    """Tests for client construction."""

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            ElevenLabsClient(api_key="")

    def test_name(self):
        assert ElevenLabsClient(api_key="k").name == "elevenlabs"


class TestCloneVoice:
    """Tests for instant voice cloning."""

    @pytest.mark.asyncio
    async def test_clone_sends_samples_and_labels(self, sample_file):
        """Test multipart upload carries the name, sample and source label."""
        client, recorder = _client({
            ("POST", "/v1/voices/add"): httpx.Response(200, json={"voice_id": "v123"}),
        })

        async with client:
            result = await client.clone_voice("DocVoice_Jane_1", [sample_file, "/missing.mp3"])

        assert result.voice_id == "v123"
        assert result.name == "DocVoice_Jane_1"

        request = recorder.requests[0]
        body = request.content
        assert request.headers["xi-api-key"] == "test-key"
        assert b"DocVoice_Jane_1" in body
        assert b"ID3-sample-audio" in body
        assert b"docvoice-video-platform" in body
        assert body.count(b'name="files"') == 1

    @pytest.mark.asyncio
    async def test_no_valid_samples(self):
        """Test cloning with only missing files fails before any request."""
        client, recorder = _client({})

        with pytest.raises(NoValidSamplesError):
            await client.clone_voice("v", ["/nope.mp3", ""])

        assert recorder.requests == []
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_voice_id_is_error(self, sample_file):
        """Test a 2xx without a voice id is a provider error."""
        client, _ = _client({
            ("POST", "/v1/voices/add"): httpx.Response(200, json={}),
        })

        with pytest.raises(ProviderError):
            await client.clone_voice("v", [sample_file])
        await client.close()

    @pytest.mark.asyncio
    async def test_error_carries_status_and_body(self, sample_file):
        """Test non-2xx responses surface status code and body."""
        client, _ = _client({
            ("POST", "/v1/voices/add"): httpx.Response(422, text="voice limit reached"),
        })

        with pytest.raises(ProviderError) as exc_info:
            await client.clone_voice("v", [sample_file])

        assert exc_info.value.status_code == 422
        assert exc_info.value.body == "voice limit reached"
        assert "422" in exc_info.value.message
        await client.close()


class TestDeleteVoice:
    """Tests for voice deletion."""

    @pytest.mark.asyncio
    async def test_delete(self):
        client, recorder = _client({
            ("DELETE", "/v1/voices/v1"): httpx.Response(200, json={"status": "ok"}),
        })

        await client.delete_voice("v1")

        assert recorder.requests[0].method == "DELETE"
        await client.close()

    @pytest.mark.asyncio
    async def test_delete_not_found(self):
        """Test a 404 is distinguishable from other failures."""
        client, _ = _client({})

        with pytest.raises(ProviderError) as exc_info:
            await client.delete_voice("gone")

        assert exc_info.value.is_not_found
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        """Test transport errors become provider errors without a status."""
        client, _ = _client({
            ("DELETE", "/v1/voices/v1"): httpx.ConnectError("refused"),
        })

        with pytest.raises(ProviderError) as exc_info:
            await client.delete_voice("v1")

        assert exc_info.value.status_code is None
        assert not exc_info.value.is_not_found
        await client.close()


class TestSpeechToSpeech:
    """Tests for buffered and streamed conversion."""

    @pytest.mark.asyncio
    async def test_buffered_uses_sts_model(self, sample_file):
        """Test the speech-to-speech model is sent, never the TTS one."""
        client, recorder = _client({
            ("POST", "/v1/speech-to-speech/v1"): httpx.Response(200, content=CONVERTED),
        })

        audio = await client.speech_to_speech("v1", sample_file, language_code="hi", remove_background_noise=True)

        body = recorder.requests[0].content
        assert audio == CONVERTED
        assert STS_MODEL.encode() in body
        assert b'name="remove_background_noise"' in body
        assert b'"stability": 0.5' in body
        await client.close()

    @pytest.mark.asyncio
    async def test_stream_matches_buffered(self, sample_file, tmp_path):
        """Test streamed output is byte-identical to the buffered response."""
        client, recorder = _client({
            ("POST", "/v1/speech-to-speech/v1"): httpx.Response(200, content=CONVERTED),
            ("POST", "/v1/speech-to-speech/v1/stream"): httpx.Response(200, content=CONVERTED),
        })
        output_path = str(tmp_path / "out.mp3")

        buffered = await client.speech_to_speech("v1", sample_file, language_code="ta")
        returned = await client.speech_to_speech_stream("v1", sample_file, output_path, language_code="ta")

        assert returned == output_path
        with open(output_path, "rb") as f:
            assert f.read() == buffered
        assert STS_MODEL.encode() in recorder.requests[1].content
        await client.close()

    @pytest.mark.asyncio
    async def test_stream_error_leaves_no_file(self, sample_file, tmp_path):
        """Test a failed stream raises and leaves no output behind."""
        client, _ = _client({
            ("POST", "/v1/speech-to-speech/v1/stream"): httpx.Response(500, text="upstream exploded"),
        })
        output_path = str(tmp_path / "out.mp3")

        with pytest.raises(ProviderError) as exc_info:
            await client.speech_to_speech_stream("v1", sample_file, output_path)

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "upstream exploded"
        assert not os.path.exists(output_path)
        await client.close()

    @pytest.mark.asyncio
    async def test_stream_transport_failure(self, sample_file, tmp_path):
        client, _ = _client({
            ("POST", "/v1/speech-to-speech/v1/stream"): httpx.ReadTimeout("slow"),
        })
        output_path = str(tmp_path / "out.mp3")

        with pytest.raises(ProviderError):
            await client.speech_to_speech_stream("v1", sample_file, output_path)

        assert not os.path.exists(output_path)
        await client.close()


class TestTextToSpeech:
    """Tests for text-to-speech."""

    @pytest.mark.asyncio
    async def test_uses_tts_model(self):
        client, recorder = _client({
            ("POST", "/v1/text-to-speech/v1"): httpx.Response(200, content=b"speech"),
        })

        audio = await client.text_to_speech("v1", "Namaste", language_code="hi")

        payload = json.loads(recorder.requests[0].content)
        assert audio == b"speech"
        assert payload["model_id"] == TTS_MODEL
        assert payload["voice_settings"]["similarity_boost"] == 0.75
        await client.close()


class TestInventoryAndHealth:
    """Tests for voice listing and health checks."""

    @pytest.mark.asyncio
    async def test_list_voices(self):
        client, _ = _client({
            ("GET", "/v1/voices"): httpx.Response(200, json={
                "voices": [
                    {"voice_id": "a", "name": "DocVoice_A_1", "category": "cloned"},
                    {"voice_id": "b", "name": "Rachel"},
                ],
            }),
        })

        voices = await client.list_voices()

        assert [v.voice_id for v in voices] == ["a", "b"]
        assert voices[0].to_dict()["category"] == "cloned"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_voice(self):
        client, recorder = _client({
            ("GET", "/v1/voices/a"): httpx.Response(200, json={
                "voice_id": "a",
                "name": "DocVoice_A_1",
                "category": "cloned",
                "labels": {"source": "doctor_submission"},
            }),
        })

        voice = await client.get_voice("a")

        assert voice.voice_id == "a"
        assert voice.name == "DocVoice_A_1"
        assert voice.labels == {"source": "doctor_submission"}
        assert recorder.requests[0].headers["xi-api-key"] == "test-key"
        await client.close()

    @pytest.mark.asyncio
    async def test_get_voice_not_found(self):
        client, _ = _client({})

        with pytest.raises(ProviderError) as exc_info:
            await client.get_voice("gone")

        assert exc_info.value.is_not_found
        await client.close()

    @pytest.mark.asyncio
    async def test_healthy(self):
        client, _ = _client({
            ("GET", "/v1/voices"): httpx.Response(200, json={"voices": [{"voice_id": "a"}]}),
        })

        health = await client.health_check()

        assert health.healthy
        assert health.voices_available == 1
        await client.close()

    @pytest.mark.asyncio
    async def test_unhealthy(self):
        """Test provider failures are reported, not raised."""
        client, _ = _client({
            ("GET", "/v1/voices"): httpx.Response(401, text="invalid api key"),
        })

        health = await client.health_check()

        assert not health.healthy
        assert "401" in health.detail
        await client.close()


class TestLanguages:
    """Tests for language configuration."""

    def test_unknown_language_falls_back_to_english(self):
        assert get_language_config("xx").code == "en"
        assert get_language_config(None).code == "en"

    def test_supported_languages(self):
        assert is_supported("hi")
        assert is_supported("ta")
        assert not is_supported("xx")
        assert get_language_config("ta").sts_model == STS_MODEL


class TestAccount:
    """Tests for subscription and user lookups."""

    @pytest.mark.asyncio
    async def test_subscription_info(self):
        client, recorder = _client({
            ("GET", "/v1/user/subscription"): httpx.Response(200, json={
                "tier": "creator",
                "voice_limit": 30,
                "voice_slots_used": 12,
            }),
        })

        info = await client.get_subscription_info()

        assert info["voice_limit"] == 30
        assert info["voice_slots_used"] == 12
        assert recorder.requests[0].method == "GET"
        await client.close()

    @pytest.mark.asyncio
    async def test_user_info(self):
        client, _ = _client({
            ("GET", "/v1/user"): httpx.Response(200, json={
                "user_id": "u1",
                "subscription": {"tier": "creator"},
            }),
        })

        info = await client.get_user_info()

        assert info["user_id"] == "u1"
        assert info["subscription"]["tier"] == "creator"
        await client.close()

    @pytest.mark.asyncio
    async def test_account_error(self):
        client, _ = _client({
            ("GET", "/v1/user/subscription"): httpx.Response(401, json={"detail": "invalid api key"}),
        })

        with pytest.raises(ProviderError) as exc_info:
            await client.get_subscription_info()

        assert exc_info.value.status_code == 401
        await client.close()
