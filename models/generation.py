"""Generation task state shared by characters and shots."""

from enum import Enum


class GenerationTaskState(str, Enum):
    """State of one (entity, artifact kind) generation task."""

    IDLE = "idle"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (GenerationTaskState.SUCCEEDED, GenerationTaskState.FAILED)


class ArtifactKind(str, Enum):
    """Kind of artifact a generation task produces.

    A character has a single kind (``PORTRAIT``); a shot has three
    independent kinds (``IMAGE``, ``VIDEO``, ``NARRATION``).
    """

    PORTRAIT = "portrait"
    IMAGE = "image"
    VIDEO = "video"
    NARRATION = "narration"


SHOT_ARTIFACT_KINDS = (ArtifactKind.IMAGE, ArtifactKind.VIDEO, ArtifactKind.NARRATION)
