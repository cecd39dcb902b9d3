"""Shot data model."""

from typing import Optional

from pydantic import BaseModel, Field

from .generation import ArtifactKind, GenerationTaskState

NO_FOCUS = "None"

_ARTIFACT_FIELDS = {
    ArtifactKind.IMAGE: ("image_url", "image_state"),
    ArtifactKind.VIDEO: ("video_url", "video_state"),
    ArtifactKind.NARRATION: ("audio_url", "audio_state"),
}


def artifact_fields(kind: ArtifactKind) -> tuple[str, str]:
    """Return the (artifact field, state field) names for a shot artifact kind."""
    try:
        return _ARTIFACT_FIELDS[kind]
    except KeyError:
        raise ValueError(f"Shots have no {kind.value} artifact") from None


class Shot(BaseModel):
    """One timeline segment with its own prompt, camera directives and media."""

    # Identity
    id: int = Field(description="Unique, stable shot id assigned at creation")

    # Story content
    scene_description: str = Field(default="", description="Narrative description of the shot")
    visual_prompt: str = Field(default="", description="Visual description for image generation")

    # Cinematography
    camera_movement: str = Field(default="Static", description="e.g. Static, Pan Left, Zoom In")
    camera_angle: str = Field(default="Eye Level", description="e.g. Eye Level, Low Angle")
    shot_size: str = Field(default="Medium Shot", description="e.g. Close-up, Wide Shot")
    camera_reasoning: str = Field(default="", description="Why this framing was chosen")

    # Acting
    character_emotion: str = Field(default="", description="Per-shot facial expression override")
    dialogue: str = Field(default="", description="Spoken line for narration")
    character_focus: str = Field(
        default=NO_FOCUS,
        description="Name of the character in shot, or 'None'",
    )

    # Timing
    duration: float = Field(gt=0, description="Shot length in seconds; authoritative for the timeline")
    sound_effect: Optional[str] = Field(default=None)
    audio_asset_ref: Optional[str] = Field(default=None, description="Opaque catalog asset id")

    # Generated artifacts
    image_url: Optional[str] = Field(default=None)
    video_url: Optional[str] = Field(default=None)
    audio_url: Optional[str] = Field(default=None)

    # Generation state, one per artifact kind
    image_state: GenerationTaskState = Field(default=GenerationTaskState.IDLE)
    video_state: GenerationTaskState = Field(default=GenerationTaskState.IDLE)
    audio_state: GenerationTaskState = Field(default=GenerationTaskState.IDLE)

    @property
    def has_focus(self) -> bool:
        return bool(self.character_focus) and self.character_focus.lower() != NO_FOCUS.lower()

    @property
    def has_dialogue(self) -> bool:
        return bool(self.dialogue.strip())

    def artifact_for(self, kind: ArtifactKind) -> Optional[str]:
        return getattr(self, artifact_fields(kind)[0])

    def state_for(self, kind: ArtifactKind) -> GenerationTaskState:
        return getattr(self, artifact_fields(kind)[1])

    def is_generating(self, kind: ArtifactKind) -> bool:
        return self.state_for(kind) == GenerationTaskState.GENERATING

    def to_summary(self) -> str:
        """Generate a human-readable summary."""
        marks = "".join(
            "■" if self.artifact_for(kind) else "□"
            for kind in (ArtifactKind.IMAGE, ArtifactKind.VIDEO, ArtifactKind.NARRATION)
        )
        return (
            f"{marks} Shot {self.id} [{self.duration:.1f}s] "
            f"({self.shot_size}, {self.camera_angle}) - {self.scene_description[:50]}"
        )

    @classmethod
    def blank(cls, shot_id: int) -> "Shot":
        """Create the default shot appended by 'add shot'."""
        return cls(
            id=shot_id,
            scene_description="New Scene",
            visual_prompt="Describe the new shot here...",
            camera_movement="Static",
            camera_angle="Eye Level",
            shot_size="Medium Shot",
            character_emotion="Neutral",
            character_focus=NO_FOCUS,
            duration=3.0,
        )
