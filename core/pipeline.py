"""Pipeline orchestrator - sequences generation tasks across a project."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from config.settings import settings
from core.errors import PreconditionError
from core.media_generator import MediaGenerator
from core.pacing import PacingPolicy
from core.store import ProjectStore
from core.story_generator import StoryGenerator
from core.tasks import (
    DurationProbe,
    ErrorKind,
    GenerationTask,
    NarrationTask,
    PortraitTask,
    ReauthCallback,
    ShotImageTask,
    ShotVideoTask,
    TaskOutcome,
)
from models.generation import ArtifactKind, GenerationTaskState
from models.project import AspectRatio, Project

logger = logging.getLogger(__name__)


@dataclass
class PipelineConfig:
    """Configuration for the pipeline."""

    pacing_delay: float = field(default_factory=lambda: settings.pacing_delay)
    duration_probe: Optional[DurationProbe] = None
    reauthenticate: Optional[ReauthCallback] = None


@dataclass
class PipelineProgress:
    """Progress information for callbacks."""

    stage: str
    completed: int
    total: int
    message: str


@dataclass
class PipelineReport:
    """Per-entity outcomes of one batch run."""

    outcomes: list[TaskOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[TaskOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


ProgressCallback = Callable[[PipelineProgress], None]


class PipelineOrchestrator:
    """
    Drives generation for a project, one task at a time.

    All tasks run strictly sequentially with a pacing pause after each
    request. ``is_running`` is the single "batch in progress" signal callers
    use to disable conflicting manual actions. There is no cancellation:
    once started, a batch visits every entity and records failures without
    stopping.

    Usage:
        orchestrator = PipelineOrchestrator(store, generator)
        report = await orchestrator.run()
    """

    def __init__(
        self,
        store: ProjectStore,
        generator: MediaGenerator,
        config: Optional[PipelineConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.store = store
        self.generator = generator
        self.config = config or PipelineConfig()
        self.progress_callback = progress_callback
        self.pacing = PacingPolicy(self.config.pacing_delay)
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def _report_progress(self, stage: str, completed: int, total: int, message: str):
        """Report progress to callback if set."""
        if self.progress_callback:
            self.progress_callback(PipelineProgress(
                stage=stage,
                completed=completed,
                total=total,
                message=message,
            ))

    async def create_project(
        self,
        topic: str,
        story_generator: StoryGenerator,
        aspect_ratio: Optional[AspectRatio] = None,
    ) -> PipelineReport:
        """Generate a story for ``topic``, load it, and run the full pipeline."""
        self._report_progress("story", 0, 1, "Writing story...")
        project = await story_generator.generate(topic, aspect_ratio)
        self.store.load(project)
        self._report_progress("story", 1, 1, f"Story ready: {project.title}")
        return await self.run()

    async def run(self) -> PipelineReport:
        """
        Run the two ordered phases over the current project.

        Anchor phase: every character portrait, in list order, to completion.
        Shot phase: every shot image, in timeline order. Shot images use
        portraits as reference, so no shot request is issued before every
        portrait task has reached a terminal state.
        """
        if self._running:
            logger.warning("Pipeline already running")
            return PipelineReport()

        self._running = True
        report = PipelineReport()
        try:
            # Phase 1: character portraits (the anchors)
            names = [c.name for c in self.store.current().characters]
            logger.info(f"Anchor phase: {len(names)} portraits")

            for i, name in enumerate(names):
                self._report_progress("portraits", i, len(names), f"Portrait {i + 1}/{len(names)}: {name}")
                await self._run_task(PortraitTask(name), report)
            self._report_progress("portraits", len(names), len(names), "Portraits done")

            await self.pacing.pause()

            # Phase 2: shot images; ids fixed now, everything else read at issue time
            shot_ids = [s.id for s in self.store.current().shots]
            logger.info(f"Shot phase: {len(shot_ids)} images")
            await self._run_shot_batch("images", shot_ids, ShotImageTask, report)

            logger.info(
                f"Pipeline complete: {len(report.succeeded)} succeeded, {len(report.failed)} failed"
            )
            return report
        finally:
            self._running = False

    async def generate_missing_images(self) -> PipelineReport:
        """Generate images only for shots that have none yet."""
        return await self._run_batch(
            "images",
            lambda project: [s.id for s in project.shots_missing(ArtifactKind.IMAGE)],
            ShotImageTask,
        )

    async def generate_missing_narration(self) -> PipelineReport:
        """Generate narration for shots with dialogue and no audio yet."""
        return await self._run_batch(
            "narration",
            lambda project: [
                s.id for s in project.shots_missing(ArtifactKind.NARRATION) if s.has_dialogue
            ],
            self._narration_task,
        )

    async def generate_missing_videos(self) -> PipelineReport:
        """Animate shots that have an image but no video yet."""
        return await self._run_batch(
            "videos",
            lambda project: [
                s.id for s in project.shots_missing(ArtifactKind.VIDEO) if s.image_url
            ],
            self._video_task,
        )

    def _narration_task(self, shot_id: int) -> NarrationTask:
        return NarrationTask(shot_id, duration_probe=self.config.duration_probe)

    def _video_task(self, shot_id: int) -> ShotVideoTask:
        return ShotVideoTask(shot_id, reauthenticate=self.config.reauthenticate)

    async def _run_batch(
        self,
        stage: str,
        select: Callable[[Project], list[int]],
        make_task: Callable[[int], GenerationTask],
    ) -> PipelineReport:
        if self._running:
            logger.warning(f"Batch {stage} skipped: another batch is running")
            return PipelineReport()

        self._running = True
        report = PipelineReport()
        try:
            shot_ids = select(self.store.current())
            logger.info(f"Batch {stage}: {len(shot_ids)} shots")
            await self._run_shot_batch(stage, shot_ids, make_task, report)
            return report
        finally:
            self._running = False

    async def _run_shot_batch(
        self,
        stage: str,
        shot_ids: list[int],
        make_task: Callable[[int], GenerationTask],
        report: PipelineReport,
    ) -> None:
        total = len(shot_ids)
        for i, shot_id in enumerate(shot_ids):
            if self.store.current().get_shot(shot_id) is None:
                logger.info(f"Shot {shot_id} was removed, skipping")
                continue

            self._report_progress(stage, i, total, f"Shot {i + 1}/{total}")
            await self._run_task(make_task(shot_id), report)
            await self.pacing.pause()

        self._report_progress(stage, total, total, f"{stage.capitalize()} done")

    async def _run_task(self, task: GenerationTask, report: PipelineReport) -> None:
        try:
            outcome = await task.run(self.store, self.generator)
        except PreconditionError as e:
            logger.warning(f"Task {task.key} rejected: {e}")
            outcome = TaskOutcome(
                task.key,
                GenerationTaskState.IDLE,
                error=str(e),
                error_kind=ErrorKind.PRECONDITION,
            )
        report.outcomes.append(outcome)


def run_pipeline_sync(
    store: ProjectStore,
    generator: MediaGenerator,
    config: Optional[PipelineConfig] = None,
) -> PipelineReport:
    """
    Synchronous wrapper for running the pipeline.

    Useful for CLI and simple scripts.
    """
    orchestrator = PipelineOrchestrator(store, generator, config=config)
    return asyncio.run(orchestrator.run())
