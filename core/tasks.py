"""Generation tasks - one asynchronous unit of work per (entity, artifact kind)."""

import asyncio
import inspect
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from config.settings import settings
from core.anchor import ConsistencyAnchor, resolve_focus_character
from core.errors import (
    AuthorizationError,
    GenerationTimeoutError,
    PreconditionError,
)
from core.media_generator import MediaGenerator, VideoRequest, probe_audio_duration
from core.store import ProjectStore
from models.character import Character
from models.generation import ArtifactKind, GenerationTaskState
from models.project import Project
from models.shot import Shot, artifact_fields

logger = logging.getLogger(__name__)

DurationProbe = Callable[[str], float]
ReauthCallback = Callable[[], Any]


class ErrorKind(str, Enum):
    """How a task failed, so callers can tell actionable failures apart."""

    PRECONDITION = "precondition"
    TRANSIENT = "transient"
    AUTHORIZATION = "authorization"
    TIMEOUT = "timeout"


def classify_error(error: Exception) -> ErrorKind:
    if isinstance(error, PreconditionError):
        return ErrorKind.PRECONDITION
    if isinstance(error, AuthorizationError):
        return ErrorKind.AUTHORIZATION
    if isinstance(error, GenerationTimeoutError):
        return ErrorKind.TIMEOUT
    return ErrorKind.TRANSIENT


@dataclass(frozen=True)
class TaskKey:
    """Identity of a task: character name or shot id, plus artifact kind."""

    entity: Union[str, int]
    kind: ArtifactKind

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.entity}"


@dataclass
class TaskOutcome:
    """Result of running one generation task."""

    key: TaskKey
    state: GenerationTaskState
    artifact: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def succeeded(self) -> bool:
        return self.state == GenerationTaskState.SUCCEEDED


def fitted_duration(
    measured: Optional[float],
    current: float,
    padding: Optional[float] = None,
    floor: Optional[float] = None,
) -> float:
    """
    Shot duration after narration of length ``measured`` was generated.

    Clips at or below the floor leave the duration alone. Otherwise the
    duration becomes measured + padding rounded up to the next 0.1s, and is
    never shortened below ``current``.
    """
    padding = settings.narration_padding if padding is None else padding
    floor = settings.narration_min_duration if floor is None else floor

    if not measured or measured <= floor:
        return current

    # round() first so float noise like 47.000000001 does not ceil to 48
    fitted = math.ceil(round((measured + padding) * 10, 6)) / 10
    return max(current, fitted)


class GenerationTask(ABC):
    """
    Base class for all generation tasks.

    Lifecycle: ``idle -> generating -> succeeded | failed``. The task holds no
    project state of its own: it reads ``store.current()`` when it issues the
    request and again when it commits, and writes exactly one entity's fields
    by key. Failures are absorbed here and reported through the outcome;
    precondition errors are raised before anything is issued.
    """

    kind: ArtifactKind

    def __init__(self, entity: Union[str, int]):
        self.entity = entity

    @property
    def key(self) -> TaskKey:
        return TaskKey(self.entity, self.kind)

    async def run(self, store: ProjectStore, generator: MediaGenerator) -> TaskOutcome:
        """Run the task against the store. Raises PreconditionError only."""
        self.check_preconditions(store.current())

        self._update(store, **{self._state_field: GenerationTaskState.GENERATING})
        logger.info(f"Task {self.key} started")

        try:
            artifact = await self._execute(store.current(), generator)
        except Exception as e:
            error_kind = classify_error(e)
            logger.error(f"Task {self.key} failed ({error_kind.value}): {e}")
            self._commit_failure(store)

            message = str(e)
            if isinstance(e, AuthorizationError):
                message = AuthorizationError.user_message
                await self._on_authorization_error()

            return TaskOutcome(self.key, GenerationTaskState.FAILED, error=message, error_kind=error_kind)

        try:
            entity = self._entity(store.current())
            fields = self._result_fields(artifact, entity)
            fields[self._state_field] = GenerationTaskState.SUCCEEDED
            self._update(store, **fields)
        except KeyError:
            logger.warning(f"Task {self.key} finished but its entity was removed")
            return TaskOutcome(
                self.key,
                GenerationTaskState.FAILED,
                error="Entity was removed while generating",
                error_kind=ErrorKind.TRANSIENT,
            )

        logger.info(f"Task {self.key} succeeded")
        return TaskOutcome(self.key, GenerationTaskState.SUCCEEDED, artifact=artifact)

    def check_preconditions(self, project: Project) -> None:
        """Reject the task before any state change or external call."""
        try:
            self._entity(project)
        except KeyError as e:
            raise PreconditionError(str(e.args[0]) if e.args else str(e)) from None

    def _commit_failure(self, store: ProjectStore) -> None:
        try:
            self._update(store, **{self._state_field: GenerationTaskState.FAILED})
        except KeyError:
            logger.warning(f"Task {self.key} failed and its entity was removed")

    async def _on_authorization_error(self) -> None:
        pass

    def _result_fields(self, artifact: str, entity: Any) -> dict:
        """Fields committed on success, computed from the entity's current state."""
        return {self._artifact_field: artifact}

    @property
    @abstractmethod
    def _artifact_field(self) -> str:
        pass

    @property
    @abstractmethod
    def _state_field(self) -> str:
        pass

    @abstractmethod
    def _entity(self, project: Project) -> Any:
        """Look up the task's entity in ``project``; raise KeyError if absent."""
        pass

    @abstractmethod
    def _update(self, store: ProjectStore, **fields: Any) -> None:
        pass

    @abstractmethod
    async def _execute(self, project: Project, generator: MediaGenerator) -> str:
        """Issue the external call and return the artifact reference."""
        pass


class PortraitTask(GenerationTask):
    """Generates a character's reference portrait."""

    kind = ArtifactKind.PORTRAIT
    _artifact_field = "portrait_url"
    _state_field = "portrait_state"

    def __init__(self, character_name: str):
        super().__init__(character_name)

    def _entity(self, project: Project) -> Character:
        char = project.get_character(self.entity)
        if char is None:
            raise KeyError(f"Character {self.entity!r} not found")
        return char

    def _update(self, store: ProjectStore, **fields: Any) -> None:
        store.update_character(self.entity, **fields)

    async def _execute(self, project: Project, generator: MediaGenerator) -> str:
        anchor = ConsistencyAnchor.from_project(project)
        request = anchor.portrait_request(self._entity(project))
        return await generator.generate_image(request)


class ShotTask(GenerationTask):
    """Base for tasks producing one of a shot's artifacts."""

    def __init__(self, shot_id: int):
        super().__init__(shot_id)

    @property
    def _artifact_field(self) -> str:
        return artifact_fields(self.kind)[0]

    @property
    def _state_field(self) -> str:
        return artifact_fields(self.kind)[1]

    def _entity(self, project: Project) -> Shot:
        shot = project.get_shot(self.entity)
        if shot is None:
            raise KeyError(f"Shot {self.entity} not found")
        return shot

    def _update(self, store: ProjectStore, **fields: Any) -> None:
        store.update_shot(self.entity, **fields)


class ShotImageTask(ShotTask):
    """Generates a shot's still image, anchored on environment and focus character."""

    kind = ArtifactKind.IMAGE

    async def _execute(self, project: Project, generator: MediaGenerator) -> str:
        anchor = ConsistencyAnchor.from_project(project)
        request = anchor.shot_request(
            self._entity(project),
            project.characters,
            project.settings.aspect_ratio,
        )
        return await generator.generate_image(request)


class ShotVideoTask(ShotTask):
    """Animates a shot's existing image into a clip."""

    kind = ArtifactKind.VIDEO

    def __init__(self, shot_id: int, reauthenticate: Optional[ReauthCallback] = None):
        super().__init__(shot_id)
        self.reauthenticate = reauthenticate

    def check_preconditions(self, project: Project) -> None:
        super().check_preconditions(project)
        if not self._entity(project).image_url:
            raise PreconditionError("Image must be generated first")

    async def _execute(self, project: Project, generator: MediaGenerator) -> str:
        shot = self._entity(project)
        request = VideoRequest(
            prompt=shot.visual_prompt,
            source_image=shot.image_url,
            aspect_ratio=project.settings.aspect_ratio,
            camera_movement=shot.camera_movement,
        )
        return await generator.generate_video(request)

    async def _on_authorization_error(self) -> None:
        if self.reauthenticate is None:
            return
        try:
            result = self.reauthenticate()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Re-authentication for task {self.key} failed")


class NarrationTask(ShotTask):
    """Synthesizes a shot's dialogue and stretches the shot to fit it."""

    kind = ArtifactKind.NARRATION

    def __init__(self, shot_id: int, duration_probe: Optional[DurationProbe] = None):
        super().__init__(shot_id)
        self.duration_probe = duration_probe or probe_audio_duration
        self._measured: Optional[float] = None

    async def _execute(self, project: Project, generator: MediaGenerator) -> str:
        shot = self._entity(project)
        focus = resolve_focus_character(shot.character_focus, project.characters)
        voice_id = focus.voice_id if focus else settings.default_voice_id

        audio_url = await generator.generate_speech(shot.dialogue, voice_id)

        try:
            # pydub/ffprobe decoding blocks; keep it off the event loop
            self._measured = await asyncio.to_thread(self.duration_probe, audio_url)
        except Exception as e:
            logger.warning(f"Could not measure narration for shot {self.entity}, keeping duration: {e}")
            self._measured = None

        return audio_url

    def _result_fields(self, artifact: str, entity: Shot) -> dict:
        fields = super()._result_fields(artifact, entity)
        new_duration = fitted_duration(self._measured, entity.duration)
        if new_duration != entity.duration:
            logger.info(f"Shot {self.entity} duration {entity.duration}s -> {new_duration}s")
            fields["duration"] = new_duration
        return fields
