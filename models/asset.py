"""Asset catalog data model."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class AssetType(str, Enum):
    """Type of a catalog asset."""

    MUSIC = "music"
    SOUND_EFFECT = "sound_effect"
    OVERLAY = "overlay"


class Asset(BaseModel):
    """A read-only item from the external asset catalog.

    Shots and project settings only ever store the asset ``id``; the
    reference is opaque to the generation pipeline.
    """

    model_config = {"frozen": True}

    id: str
    type: AssetType
    name: str = ""
    url: str
    tags: list[str] = Field(default_factory=list)
    duration: Optional[float] = Field(default=None, description="Length in seconds, if known")
