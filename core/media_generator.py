"""Media generator module - handles image, video and speech generation API calls."""

import asyncio
import base64
import logging
import mimetypes
import subprocess
import time
import uuid
import wave
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict

from config.prompts import VIDEO_MOTION_TEMPLATE
from config.settings import settings
from core.anchor import ImageRequest
from core.errors import (
    AuthorizationError,
    EmptyPayloadError,
    GenerationError,
    GenerationTimeoutError,
    PreconditionError,
)
from models.project import AspectRatio

logger = logging.getLogger(__name__)

# Gemini TTS returns raw 16-bit mono PCM at 24 kHz
TTS_SAMPLE_RATE = 24000
TTS_SAMPLE_WIDTH = 2

ENTITY_NOT_FOUND = "Requested entity was not found"


class VideoRequest(BaseModel):
    """Everything a video collaborator needs for one image-to-video call."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    source_image: Optional[str]
    aspect_ratio: AspectRatio
    camera_movement: str = "Static"

    def render_prompt(self) -> str:
        return VIDEO_MOTION_TEMPLATE.format(prompt=self.prompt, movement=self.camera_movement)


class MediaGenerator(ABC):
    """Abstract base class for media generation backends."""

    @abstractmethod
    async def generate_image(self, request: ImageRequest) -> str:
        """
        Generate a still image.

        Args:
            request: Fully anchored image request

        Returns:
            Reference to the stored image
        """
        pass

    @abstractmethod
    async def generate_video(self, request: VideoRequest) -> str:
        """Generate a short clip animating ``request.source_image``."""
        pass

    @abstractmethod
    async def generate_speech(self, text: str, voice_id: str) -> str:
        """Synthesize ``text`` with a prebuilt voice and return the audio reference."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return the name of this generator."""
        pass


def encode_media_ref(ref: str) -> tuple[str, str]:
    """Load a stored media reference as (base64 data, mime type)."""
    if ref.startswith("data:"):
        header, _, data = ref.partition(",")
        mime_type = header[5:].split(";")[0] or "image/png"
        return data, mime_type

    path = Path(ref)
    if not path.exists():
        raise GenerationError(f"Reference media not found: {ref}")

    mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
    return base64.b64encode(path.read_bytes()).decode("ascii"), mime_type


def write_artifact(data: bytes, kind: str, suffix: str, output_dir: Optional[Path] = None) -> Path:
    """Store generated bytes and return their path."""
    output_dir = output_dir or settings.media_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{kind}_{uuid.uuid4().hex[:12]}{suffix}"
    output_path.write_bytes(data)
    return output_path


def write_wav(pcm: bytes, output_dir: Optional[Path] = None, sample_rate: int = TTS_SAMPLE_RATE) -> Path:
    """Wrap raw mono 16-bit PCM in a WAV container so players can read it."""
    output_dir = output_dir or settings.media_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"speech_{uuid.uuid4().hex[:12]}.wav"

    with wave.open(str(output_path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(TTS_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)

    return output_path


def probe_audio_duration(path: Path) -> float:
    """Measure the native duration of an audio clip in seconds."""
    path = Path(path)
    if path.suffix.lower() == ".wav":
        with wave.open(str(path), "rb") as wav:
            return wav.getnframes() / float(wav.getframerate())

    try:
        from pydub import AudioSegment
        audio = AudioSegment.from_file(path)
        return len(audio) / 1000.0  # pydub uses milliseconds
    except Exception as e:
        logger.warning(f"Could not get duration with pydub: {e}")
        return _probe_duration_ffprobe(path)


def _probe_duration_ffprobe(path: Path) -> float:
    """Get duration using ffprobe."""
    result = subprocess.run(
        [
            "ffprobe",
            "-v", "quiet",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(path),
        ],
        capture_output=True,
        text=True,
    )
    return float(result.stdout.strip())


class GeminiMediaGenerator(MediaGenerator):
    """
    Media generator using the Gemini REST API.

    - Images: ``generateContent`` on an image model, with the focus character's
      portrait sent first as the identity reference.
    - Speech: ``generateContent`` on a TTS model with a prebuilt voice.
    - Video: Veo ``predictLongRunning`` plus a bounded operation polling loop.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        output_dir: Optional[Path] = None,
        poll_interval: Optional[float] = None,
        max_wait_time: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.output_dir = output_dir
        self.poll_interval = settings.video_poll_interval if poll_interval is None else poll_interval
        self.max_wait_time = settings.video_max_wait if max_wait_time is None else max_wait_time
        self._transport = transport

    def get_name(self) -> str:
        return "gemini"

    def _client(self) -> httpx.AsyncClient:
        if not self.api_key:
            raise AuthorizationError("GEMINI_API_KEY not set")
        return httpx.AsyncClient(
            timeout=settings.http_timeout,
            headers={"x-goog-api-key": self.api_key},
            transport=self._transport,
            follow_redirects=True,
        )

    def _check_response(self, response: httpx.Response, action: str) -> None:
        """Map HTTP failures onto the error taxonomy."""
        if response.status_code < 400:
            return

        body = response.text
        if response.status_code in (401, 403) or ENTITY_NOT_FOUND in body:
            raise AuthorizationError(f"{action} rejected credentials ({response.status_code})")

        raise GenerationError(f"{action} failed: {response.status_code} - {body[:300]}")

    @staticmethod
    def _inline_parts(data: dict) -> list[dict]:
        """Collect inline data parts from a generateContent response."""
        parts = []
        for candidate in data.get("candidates") or []:
            for part in (candidate.get("content") or {}).get("parts") or []:
                inline = part.get("inlineData") or part.get("inline_data")
                if inline and inline.get("data"):
                    parts.append(inline)
        return parts

    async def generate_image(self, request: ImageRequest) -> str:
        """Generate an image with the anchored prompt and optional reference portrait."""
        parts: list[dict] = []

        # The reference portrait goes first so the model treats it as ground truth
        if request.reference_image:
            data, mime_type = encode_media_ref(request.reference_image)
            parts.append({"inline_data": {"mime_type": mime_type, "data": data}})

        parts.append({"text": request.render_prompt()})

        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "imageConfig": {"aspectRatio": request.aspect_ratio},
                "seed": request.seed,
            },
        }

        logger.debug(f"Image request: seed={request.seed} ratio={request.aspect_ratio}")

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/models/{settings.image_model}:generateContent",
                json=body,
            )
            self._check_response(response, "Image generation")
            inline = self._inline_parts(response.json())

        if not inline:
            raise EmptyPayloadError("No image data returned from model")

        suffix = mimetypes.guess_extension(inline[0].get("mimeType", "image/png")) or ".png"
        data = base64.b64decode(inline[0]["data"])
        path = await asyncio.to_thread(write_artifact, data, "image", suffix, self.output_dir)
        logger.info(f"Image saved to {path}")
        return str(path)

    async def generate_speech(self, text: str, voice_id: str) -> str:
        """Synthesize narration and store it as a WAV file."""
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice_id}},
                },
            },
        }

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/models/{settings.tts_model}:generateContent",
                json=body,
            )
            self._check_response(response, "Speech generation")
            inline = self._inline_parts(response.json())

        if not inline:
            raise EmptyPayloadError("No audio data returned")

        path = await asyncio.to_thread(write_wav, base64.b64decode(inline[0]["data"]), self.output_dir)
        logger.info(f"Speech saved to {path}")
        return str(path)

    async def generate_video(self, request: VideoRequest) -> str:
        """Animate a source image with Veo."""
        if not request.source_image:
            raise PreconditionError("Video generation requires a source image")

        data, mime_type = encode_media_ref(request.source_image)
        body = {
            "instances": [{
                "prompt": request.render_prompt(),
                "image": {"bytesBase64Encoded": data, "mimeType": mime_type},
            }],
            "parameters": {
                "aspectRatio": request.aspect_ratio,
                "resolution": settings.video_resolution,
                "sampleCount": 1,
            },
        }

        logger.info(f"Starting video generation with camera move: {request.camera_movement}")

        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/models/{settings.video_model}:predictLongRunning",
                json=body,
            )
            self._check_response(response, "Video generation")
            operation_name = response.json().get("name")
            if not operation_name:
                raise GenerationError("Failed to get operation name from video API")

            video_uri = await self._poll_for_result(client, operation_name)

            download = await client.get(video_uri)
            self._check_response(download, "Video download")

        path = await asyncio.to_thread(write_artifact, download.content, "video", ".mp4", self.output_dir)
        logger.info(f"Video saved to {path}")
        return str(path)

    async def _poll_for_result(self, client: httpx.AsyncClient, operation_name: str) -> str:
        """Poll the long-running operation until done, failed, or out of time."""
        start_time = time.monotonic()

        while time.monotonic() - start_time < self.max_wait_time:
            response = await client.get(f"{self.base_url}/{operation_name}")
            self._check_response(response, "Video status poll")
            operation = response.json()

            if operation.get("done"):
                error = operation.get("error")
                if error:
                    message = error.get("message", str(error))
                    if ENTITY_NOT_FOUND in message:
                        raise AuthorizationError(message)
                    raise GenerationError(f"Video generation error: {message}")

                samples = (
                    operation.get("response", {})
                    .get("generateVideoResponse", {})
                    .get("generatedSamples", [])
                )
                uri = samples[0].get("video", {}).get("uri") if samples else None
                if not uri:
                    raise EmptyPayloadError("No video URI returned")
                return uri

            logger.debug(f"Operation {operation_name} still running")
            await asyncio.sleep(self.poll_interval)

        raise GenerationTimeoutError(
            f"Video generation timed out after {self.max_wait_time:.0f}s"
        )


class MockMediaGenerator(MediaGenerator):
    """Mock media generator for testing without API calls."""

    # Placeholder narration pace
    SECONDS_PER_WORD = 0.4

    def __init__(self, delay: float = 0.2, output_dir: Optional[Path] = None):
        self.delay = delay
        self.output_dir = output_dir

    def get_name(self) -> str:
        return "mock"

    async def generate_image(self, request: ImageRequest) -> str:
        logger.info(f"[MOCK] Generating image (seed {request.seed})...")
        await asyncio.sleep(self.delay)
        path = await asyncio.to_thread(write_artifact, b"MOCK IMAGE FILE", "image", ".png", self.output_dir)
        return str(path)

    async def generate_video(self, request: VideoRequest) -> str:
        if not request.source_image:
            raise PreconditionError("Video generation requires a source image")
        logger.info(f"[MOCK] Animating {request.source_image}...")
        await asyncio.sleep(self.delay)
        path = await asyncio.to_thread(write_artifact, b"MOCK VIDEO FILE", "video", ".mp4", self.output_dir)
        return str(path)

    async def generate_speech(self, text: str, voice_id: str) -> str:
        logger.info(f"[MOCK] Speaking with voice {voice_id}...")
        await asyncio.sleep(self.delay)
        seconds = len(text.split()) * self.SECONDS_PER_WORD
        silence = b"\x00\x00" * int(seconds * TTS_SAMPLE_RATE)
        return str(await asyncio.to_thread(write_wav, silence, self.output_dir))


class MediaGeneratorFactory:
    """Factory for creating media generators."""

    @staticmethod
    def create(model: Optional[str] = None, api_key: Optional[str] = None) -> MediaGenerator:
        """
        Create a media generator for the specified backend.

        Args:
            model: Backend name: gemini, or mock for offline runs
            api_key: Optional API key override

        Returns:
            MediaGenerator instance
        """
        model = model or settings.default_media_model

        if model == "gemini":
            return GeminiMediaGenerator(api_key)
        elif model == "mock":
            return MockMediaGenerator()
        else:
            raise ValueError(f"Unknown media model: {model}. Available: gemini, mock")

    @staticmethod
    def get_available_models() -> list[str]:
        """Get list of backends with configured API keys."""
        available = []
        if settings.gemini_api_key:
            available.append("gemini")
        available.append("mock")  # Always available
        return available
