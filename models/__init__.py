"""AniFlow Data Models"""

from .generation import ArtifactKind, GenerationTaskState
from .character import Character
from .shot import Shot, NO_FOCUS
from .asset import Asset, AssetType
from .project import Project, ProjectSettings

__all__ = [
    "ArtifactKind",
    "GenerationTaskState",
    "Character",
    "Shot",
    "NO_FOCUS",
    "Asset",
    "AssetType",
    "Project",
    "ProjectSettings",
]
