"""Shared fixtures and fakes for tests."""

import pytest

from core.anchor import ImageRequest
from core.media_generator import MediaGenerator, VideoRequest
from core.store import ProjectStore
from models.character import Character
from models.project import Project, ProjectSettings
from models.shot import Shot


class FakeMediaGenerator(MediaGenerator):
    """In-memory media generator that records every call."""

    def __init__(self):
        self.calls: list[tuple[str, object]] = []
        self.failures: dict[str, Exception] = {}
        self.on_call = None
        self._counter = 0

    def get_name(self) -> str:
        return "fake"

    def fail(self, kind: str, error: Exception) -> None:
        self.failures[kind] = error

    async def _record(self, kind: str, payload: object, suffix: str) -> str:
        self.calls.append((kind, payload))
        if self.on_call:
            self.on_call(kind, payload)
        if kind in self.failures:
            raise self.failures[kind]
        self._counter += 1
        return f"/media/{kind}_{self._counter}{suffix}"

    async def generate_image(self, request: ImageRequest) -> str:
        return await self._record("image", request, ".png")

    async def generate_video(self, request: VideoRequest) -> str:
        return await self._record("video", request, ".mp4")

    async def generate_speech(self, text: str, voice_id: str) -> str:
        return await self._record("speech", (text, voice_id), ".wav")

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.calls]


def make_project(durations=(3.0, 2.0), with_characters=True) -> Project:
    characters = []
    if with_characters:
        characters = [
            Character(name="Mika", appearance_prompt="short silver hair, red scarf", voice_id="Puck"),
            Character(name="Old Tomo", appearance_prompt="white beard, straw hat", voice_id="Charon"),
        ]

    shots = [
        Shot(
            id=i + 1,
            scene_description=f"Scene {i + 1}",
            visual_prompt=f"Visual {i + 1}",
            character_focus="Mika" if i % 2 == 0 else "None",
            dialogue="We have to hurry before the tide" if i == 0 else "",
            duration=d,
        )
        for i, d in enumerate(durations)
    ]

    return Project(
        title="Tide Runner",
        location_description="A foggy fishing village at dawn",
        settings=ProjectSettings(aspect_ratio="16:9", global_style="Watercolor anime", seed=4242),
        characters=characters,
        shots=shots,
    )


@pytest.fixture
def project() -> Project:
    return make_project()


@pytest.fixture
def store(project) -> ProjectStore:
    return ProjectStore(project)


@pytest.fixture
def generator() -> FakeMediaGenerator:
    return FakeMediaGenerator()


class FakeClock:
    """Controllable wall clock for the timeline."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def wall() -> FakeClock:
    return FakeClock()
