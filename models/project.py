"""Project data model."""

import random
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from config.settings import settings
from .character import Character
from .generation import ArtifactKind, GenerationTaskState
from .shot import Shot

AspectRatio = Literal["16:9", "9:16", "1:1", "3:4", "4:3"]

SEED_RANGE = 1_000_000


def new_seed() -> int:
    """Draw a fresh project seed."""
    return random.randrange(SEED_RANGE)


class ProjectSettings(BaseModel):
    """Per-project settings; style and seed double as consistency anchors."""

    aspect_ratio: AspectRatio = Field(default_factory=lambda: settings.default_aspect_ratio)
    global_style: str = Field(default_factory=lambda: settings.default_style)
    seed: int = Field(default_factory=new_seed, ge=0)
    bgm_asset_id: Optional[str] = Field(default=None, description="Opaque background music asset id")


class Project(BaseModel):
    """A complete animated sequence project."""

    title: str = Field(default="Untitled Project")
    location_description: str = Field(
        default="",
        description="Static environment text reused by every shot",
    )
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    characters: list[Character] = Field(default_factory=list)
    shots: list[Shot] = Field(
        default_factory=list,
        description="Shots in timeline order; never resorted",
    )

    @model_validator(mode="after")
    def _check_unique_keys(self) -> "Project":
        names = [c.name for c in self.characters]
        if len(names) != len(set(names)):
            raise ValueError("Character names must be unique")
        ids = [s.id for s in self.shots]
        if len(ids) != len(set(ids)):
            raise ValueError("Shot ids must be unique")
        return self

    @property
    def total_duration(self) -> float:
        """Sum of shot durations, recomputed on every read."""
        return sum(s.duration for s in self.shots)

    @property
    def shot_count(self) -> int:
        return len(self.shots)

    def get_shot(self, shot_id: int) -> Optional[Shot]:
        """Get a shot by its id."""
        for shot in self.shots:
            if shot.id == shot_id:
                return shot
        return None

    def get_character(self, name: str) -> Optional[Character]:
        """Get a character by its exact name."""
        for char in self.characters:
            if char.name == name:
                return char
        return None

    def next_shot_id(self) -> int:
        return max((s.id for s in self.shots), default=0) + 1

    def shots_missing(self, kind: ArtifactKind) -> list[Shot]:
        """Shots that have no artifact of the given kind yet, in timeline order."""
        return [s for s in self.shots if not s.artifact_for(kind)]

    def count_state(self, kind: ArtifactKind, state: GenerationTaskState) -> int:
        if kind == ArtifactKind.PORTRAIT:
            return sum(1 for c in self.characters if c.portrait_state == state)
        return sum(1 for s in self.shots if s.state_for(kind) == state)

    def to_summary(self) -> str:
        """Generate a human-readable summary."""
        images = sum(1 for s in self.shots if s.image_url)
        lines = [
            f"Project: {self.title}",
            f"Style: {self.settings.global_style} ({self.settings.aspect_ratio}, seed {self.settings.seed})",
            f"Duration: {self.total_duration:.1f}s",
            f"Characters: {len(self.characters)}",
            f"Shots: {images}/{self.shot_count} with images",
        ]
        return "\n".join(lines)
