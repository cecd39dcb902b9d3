"""Tests for media generators."""

import base64
import json
import wave
from pathlib import Path

import httpx
import pytest

from core.anchor import ImageRequest
from core.errors import AuthorizationError, EmptyPayloadError, GenerationError, GenerationTimeoutError, PreconditionError
from core.media_generator import (
    GeminiMediaGenerator,
    MediaGeneratorFactory,
    MockMediaGenerator,
    VideoRequest,
    encode_media_ref,
    probe_audio_duration,
    write_wav,
)

BASE_URL = "https://gemini.test/v1beta"
PNG_BYTES = b"\x89PNG fake image"


def _inline_response(data: bytes, mime_type: str) -> dict:
    return {
        "candidates": [{
            "content": {"parts": [{"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode()}}]},
        }],
    }


def _generator(handler, tmp_path, **kwargs) -> GeminiMediaGenerator:
    return GeminiMediaGenerator(
        api_key="test-key",
        base_url=BASE_URL,
        output_dir=tmp_path,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _image_request(**kwargs) -> ImageRequest:
    defaults = dict(prompt="A pier at dawn", style="Watercolor", aspect_ratio="16:9", seed=7)
    defaults.update(kwargs)
    return ImageRequest(**defaults)


class TestGeminiImages:
    """Tests for image generation over REST."""

    @pytest.mark.asyncio
    async def test_generate_image(self, tmp_path):
        """The anchored request is sent and the image is stored."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=_inline_response(PNG_BYTES, "image/png"))

        path = await _generator(handler, tmp_path).generate_image(_image_request())

        assert Path(path).read_bytes() == PNG_BYTES
        sent = requests[0]
        assert sent.url.path.endswith(":generateContent")
        assert sent.headers["x-goog-api-key"] == "test-key"
        body = json.loads(sent.content)
        assert body["generationConfig"]["seed"] == 7
        assert body["generationConfig"]["imageConfig"]["aspectRatio"] == "16:9"
        assert "A pier at dawn" in body["contents"][0]["parts"][-1]["text"]

    @pytest.mark.asyncio
    async def test_reference_image_sent_first(self, tmp_path):
        """The portrait precedes the text prompt."""
        portrait = tmp_path / "portrait.png"
        portrait.write_bytes(b"portrait")
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=_inline_response(PNG_BYTES, "image/png"))

        await _generator(handler, tmp_path).generate_image(_image_request(reference_image=str(portrait)))

        parts = bodies[0]["contents"][0]["parts"]
        assert base64.b64decode(parts[0]["inline_data"]["data"]) == b"portrait"
        assert "text" in parts[1]

    @pytest.mark.asyncio
    async def test_empty_payload(self, tmp_path):
        """A response without image data is an error."""
        handler = lambda request: httpx.Response(200, json={"candidates": []})

        with pytest.raises(EmptyPayloadError):
            await _generator(handler, tmp_path).generate_image(_image_request())

    @pytest.mark.asyncio
    async def test_auth_rejected(self, tmp_path):
        """401 responses are authorization errors."""
        handler = lambda request: httpx.Response(401, text="bad key")

        with pytest.raises(AuthorizationError):
            await _generator(handler, tmp_path).generate_image(_image_request())

    @pytest.mark.asyncio
    async def test_server_error(self, tmp_path):
        """Test other HTTP failures."""
        handler = lambda request: httpx.Response(500, text="internal")

        with pytest.raises(GenerationError):
            await _generator(handler, tmp_path).generate_image(_image_request())

    @pytest.mark.asyncio
    async def test_missing_key(self, tmp_path):
        """No request is made without a key."""
        gen = GeminiMediaGenerator(api_key="", base_url=BASE_URL, output_dir=tmp_path)

        with pytest.raises(AuthorizationError):
            await gen.generate_image(_image_request())


class TestGeminiSpeech:
    """Tests for speech synthesis."""

    @pytest.mark.asyncio
    async def test_generate_speech_writes_wav(self, tmp_path):
        """Raw PCM is wrapped in a WAV container."""
        pcm = b"\x00\x00" * 24000  # one second
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=_inline_response(pcm, "audio/L16;rate=24000"))

        path = await _generator(handler, tmp_path).generate_speech("Hello there", "Puck")

        voice = bodies[0]["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]
        assert voice["voiceName"] == "Puck"
        assert probe_audio_duration(path) == pytest.approx(1.0)


class TestGeminiVideo:
    """Tests for the long-running video job."""

    @pytest.mark.asyncio
    async def test_generate_video(self, tmp_path):
        """Start, poll until done, then download."""
        source = tmp_path / "shot.png"
        source.write_bytes(PNG_BYTES)
        polls = {"n": 0}

        def handler(request):
            if request.url.path.endswith(":predictLongRunning"):
                return httpx.Response(200, json={"name": "operations/op-1"})
            if request.url.path.endswith("operations/op-1"):
                polls["n"] += 1
                if polls["n"] < 2:
                    return httpx.Response(200, json={"done": False})
                return httpx.Response(200, json={
                    "done": True,
                    "response": {"generateVideoResponse": {
                        "generatedSamples": [{"video": {"uri": "https://files.test/video.mp4"}}],
                    }},
                })
            if request.url.host == "files.test":
                return httpx.Response(200, content=b"MP4DATA")
            return httpx.Response(404)

        gen = _generator(handler, tmp_path, poll_interval=0, max_wait_time=5)
        request = VideoRequest(prompt="Waves", source_image=str(source), aspect_ratio="16:9", camera_movement="Pan Left")

        path = await gen.generate_video(request)

        assert Path(path).read_bytes() == b"MP4DATA"
        assert polls["n"] == 2

    @pytest.mark.asyncio
    async def test_video_requires_source(self, tmp_path):
        """Test a request without a source image."""
        gen = _generator(lambda request: httpx.Response(500), tmp_path)

        with pytest.raises(PreconditionError):
            await gen.generate_video(VideoRequest(prompt="x", source_image=None, aspect_ratio="16:9"))

    @pytest.mark.asyncio
    async def test_entity_not_found_is_auth_error(self, tmp_path):
        """The 'entity not found' job failure means the key must be re-selected."""
        source = tmp_path / "shot.png"
        source.write_bytes(PNG_BYTES)

        def handler(request):
            if request.url.path.endswith(":predictLongRunning"):
                return httpx.Response(200, json={"name": "operations/op-2"})
            return httpx.Response(200, json={
                "done": True,
                "error": {"message": "Requested entity was not found."},
            })

        gen = _generator(handler, tmp_path, poll_interval=0)

        with pytest.raises(AuthorizationError):
            await gen.generate_video(VideoRequest(prompt="x", source_image=str(source), aspect_ratio="16:9"))

    @pytest.mark.asyncio
    async def test_polling_is_bounded(self, tmp_path):
        """A job that never finishes times out."""
        source = tmp_path / "shot.png"
        source.write_bytes(PNG_BYTES)

        def handler(request):
            if request.url.path.endswith(":predictLongRunning"):
                return httpx.Response(200, json={"name": "operations/op-3"})
            return httpx.Response(200, json={"done": False})

        gen = _generator(handler, tmp_path, poll_interval=0.01, max_wait_time=0.05)

        with pytest.raises(GenerationTimeoutError):
            await gen.generate_video(VideoRequest(prompt="x", source_image=str(source), aspect_ratio="16:9"))


class TestMockMediaGenerator:
    """Tests for the offline generator."""

    @pytest.mark.asyncio
    async def test_mock_outputs(self, tmp_path):
        """The mock writes real files, and speech has a plausible length."""
        gen = MockMediaGenerator(delay=0, output_dir=tmp_path)

        image = await gen.generate_image(_image_request())
        video = await gen.generate_video(VideoRequest(prompt="x", source_image=image, aspect_ratio="16:9"))
        speech = await gen.generate_speech("one two three four five", "Kore")

        assert image.endswith(".png") and video.endswith(".mp4")
        assert probe_audio_duration(speech) == pytest.approx(2.0)


class TestHelpers:
    """Tests for media helpers."""

    def test_encode_data_url(self):
        """Data URLs are passed through."""
        data, mime = encode_media_ref("data:image/jpeg;base64,QUJD")
        assert data == "QUJD"
        assert mime == "image/jpeg"

    def test_encode_missing_file(self, tmp_path):
        """Test a reference to a missing file."""
        with pytest.raises(GenerationError):
            encode_media_ref(str(tmp_path / "missing.png"))

    def test_write_wav(self, tmp_path):
        """Test the WAV container header."""
        path = write_wav(b"\x00\x00" * 12000, tmp_path)

        with wave.open(str(path), "rb") as wav:
            assert wav.getframerate() == 24000
            assert wav.getnchannels() == 1
        assert probe_audio_duration(path) == pytest.approx(0.5)

    def test_factory(self):
        """Test creating generators by name."""
        assert MediaGeneratorFactory.create("mock").get_name() == "mock"
        assert MediaGeneratorFactory.create("gemini", api_key="k").get_name() == "gemini"
        assert "mock" in MediaGeneratorFactory.get_available_models()

        with pytest.raises(ValueError):
            MediaGeneratorFactory.create("dalle")
