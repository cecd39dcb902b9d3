"""Character data model."""

from typing import Optional

from pydantic import BaseModel, Field

from .generation import GenerationTaskState


class Character(BaseModel):
    """A character in the animated sequence."""

    name: str = Field(description="Unique character name, used for cross-reference")
    core_traits: str = Field(default="", description="Short list of visual traits")
    appearance_prompt: str = Field(
        default="",
        description="Rigid appearance text reused by every shot focusing this character",
    )
    voice_id: str = Field(default="Kore", description="Prebuilt voice used for narration")

    # Generation state
    portrait_url: Optional[str] = Field(
        default=None,
        description="Reference portrait, the visual ground truth for shot images",
    )
    portrait_state: GenerationTaskState = Field(default=GenerationTaskState.IDLE)

    @property
    def has_portrait(self) -> bool:
        return bool(self.portrait_url)

    @property
    def is_generating(self) -> bool:
        return self.portrait_state == GenerationTaskState.GENERATING

    def to_prompt_description(self) -> str:
        """Convert to a description suitable for prompts."""
        return f"{self.name}: {self.appearance_prompt}"
