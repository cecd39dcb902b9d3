"""Consistency anchor - re-injects per-project values into every image request.

Independent external calls share no memory. Visual coherence across them is
achieved purely by sending the same seed, style and environment text with
every request, plus the focus character's appearance text and portrait as a
reference image for shot-level requests.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from config.prompts import (
    DEFAULT_EXPRESSION,
    NEGATIVE_CONSTRAINTS,
    PORTRAIT_PROMPT_TEMPLATE,
    REFERENCE_IMAGE_INSTRUCTION,
)
from models.character import Character
from models.project import AspectRatio, Project
from models.shot import NO_FOCUS, Shot

logger = logging.getLogger(__name__)


class ImageRequest(BaseModel):
    """Everything an image collaborator needs for one call."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    style: str
    aspect_ratio: AspectRatio
    seed: int
    character_appearance: Optional[str] = None
    reference_image: Optional[str] = Field(default=None, description="Portrait ref of the focus character")
    environment: Optional[str] = None
    shot_size: Optional[str] = None
    camera_angle: Optional[str] = None
    emotion: Optional[str] = None

    def render_prompt(self) -> str:
        """Build the full text prompt sent alongside the optional reference image."""
        parts = [f"Art Style: {self.style}."]

        if self.shot_size or self.camera_angle:
            lens = ", ".join(p for p in (self.shot_size, self.camera_angle) if p)
            parts.append(f"CAMERA COMPOSITION: {lens}.")

        if self.reference_image:
            parts.append(REFERENCE_IMAGE_INSTRUCTION)

        if self.environment:
            parts.append(f"PERMANENT SETTING: {self.environment}")

        if self.character_appearance:
            parts.append(f"CHARACTER IDENTITY: {self.character_appearance}")

        if self.emotion:
            parts.append(f"CURRENT FACIAL EXPRESSION: {self.emotion} !!!IMPORTANT!!!")
        else:
            parts.append(f"CURRENT FACIAL EXPRESSION: {DEFAULT_EXPRESSION}")

        parts.append(f"CURRENT SHOT ACTION: {self.prompt}")
        parts.append(f"NEGATIVE CONSTRAINTS: {NEGATIVE_CONSTRAINTS}")
        return "\n\n".join(parts)


def resolve_focus_character(
    focus: Optional[str],
    characters: list[Character],
) -> Optional[Character]:
    """
    Best-effort lookup of the character a shot focuses on.

    This is a heuristic, not a foreign key: a character matches when its name
    is contained in the focus text or the focus text is contained in its name.
    The first match in list order wins, so when one name is a substring of
    another ("Kai" / "Kaiden") the earlier character is returned.
    """
    focus = (focus or "").strip()
    if not focus or focus.lower() == NO_FOCUS.lower():
        return None

    for char in characters:
        if char.name and (char.name in focus or focus in char.name):
            return char

    logger.debug(f"Focus '{focus}' did not resolve to any character")
    return None


class ConsistencyAnchor(BaseModel):
    """Immutable per-project anchor values."""

    model_config = ConfigDict(frozen=True)

    seed: int
    style: str
    environment: str = ""

    @classmethod
    def from_project(cls, project: Project) -> "ConsistencyAnchor":
        return cls(
            seed=project.settings.seed,
            style=project.settings.global_style,
            environment=project.location_description,
        )

    def portrait_request(self, character: Character) -> ImageRequest:
        """Request for a character's reference portrait (square, no environment)."""
        return ImageRequest(
            prompt=PORTRAIT_PROMPT_TEMPLATE.format(
                name=character.name,
                appearance=character.appearance_prompt,
            ),
            style=self.style,
            aspect_ratio="1:1",
            seed=self.seed,
        )

    def shot_request(
        self,
        shot: Shot,
        characters: list[Character],
        aspect_ratio: AspectRatio,
    ) -> ImageRequest:
        """Request for a shot image, anchored on environment and focus character."""
        focus = resolve_focus_character(shot.character_focus, characters)

        return ImageRequest(
            prompt=shot.visual_prompt,
            style=self.style,
            aspect_ratio=aspect_ratio,
            seed=self.seed,
            character_appearance=focus.appearance_prompt if focus else None,
            reference_image=focus.portrait_url if focus else None,
            environment=self.environment or None,
            shot_size=shot.shot_size or None,
            camera_angle=shot.camera_angle or None,
            emotion=shot.character_emotion or None,
        )
