"""AniFlow Configuration Module"""

from .settings import settings
from .prompts import STORY_DIRECTOR_SYSTEM_PROMPT, STORY_DIRECTOR_USER_TEMPLATE

__all__ = [
    "settings",
    "STORY_DIRECTOR_SYSTEM_PROMPT",
    "STORY_DIRECTOR_USER_TEMPLATE",
]
