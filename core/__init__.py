"""AniFlow Core Processing Modules"""

from .anchor import ConsistencyAnchor, ImageRequest, resolve_focus_character
from .media_generator import MediaGenerator, MediaGeneratorFactory, VideoRequest
from .story_generator import StoryGenerator
from .store import ProjectStore
from .tasks import NarrationTask, PortraitTask, ShotImageTask, ShotVideoTask, TaskOutcome
from .pipeline import PipelineOrchestrator, PipelineConfig, run_pipeline_sync
from .timeline import TimelineClock, locate
from .playback import PlaybackController

__all__ = [
    "ConsistencyAnchor",
    "ImageRequest",
    "resolve_focus_character",
    "MediaGenerator",
    "MediaGeneratorFactory",
    "VideoRequest",
    "StoryGenerator",
    "ProjectStore",
    "NarrationTask",
    "PortraitTask",
    "ShotImageTask",
    "ShotVideoTask",
    "TaskOutcome",
    "PipelineOrchestrator",
    "PipelineConfig",
    "run_pipeline_sync",
    "TimelineClock",
    "locate",
    "PlaybackController",
]
