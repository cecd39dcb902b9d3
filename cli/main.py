"""AniFlow Command Line Interface."""

import asyncio
import logging
import sys
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from rich.table import Table
from rich.panel import Panel

from config.settings import settings
from core.errors import AniFlowError
from core.media_generator import GeminiMediaGenerator, MediaGenerator, MediaGeneratorFactory
from core.pipeline import PipelineConfig, PipelineOrchestrator, PipelineProgress, PipelineReport
from core.playback import PlaybackController
from core.store import ProjectStore
from core.story_generator import StoryGenerator
from core.timeline import shot_offsets
from models.generation import ArtifactKind, GenerationTaskState
from models.project import Project

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

console = Console()

ASPECT_RATIOS = ["16:9", "9:16", "1:1", "3:4", "4:3"]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def cli(verbose: bool):
    """AniFlow - Turn a one-line idea into an animated storyboard."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command()
@click.argument("topic")
@click.option("--model", "-m", type=click.Choice(["gemini", "mock"]), default=None, help="Media generation backend")
@click.option("--ratio", "-r", type=click.Choice(ASPECT_RATIOS), default=None, help="Aspect ratio for the project")
@click.option("--narrate", is_flag=True, help="Generate narration for shots with dialogue")
@click.option("--video", is_flag=True, help="Animate every shot that has an image")
@click.option("--play", "preview", is_flag=True, help="Preview the finished timeline")
def generate(
    topic: str,
    model: Optional[str],
    ratio: Optional[str],
    narrate: bool,
    video: bool,
    preview: bool,
):
    """Generate a complete storyboard from a short TOPIC."""

    if not settings.has_anthropic_key:
        console.print("[red]ANTHROPIC_API_KEY not set. Story generation needs it.[/red]")
        sys.exit(1)

    console.print(Panel.fit(
        "[bold magenta]AniFlow[/bold magenta]\n"
        "Turning your idea into an animated sequence",
        border_style="magenta",
    ))

    store = ProjectStore()

    try:
        generator = MediaGeneratorFactory.create(model)
        story_generator = StoryGenerator()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print(f"\n[bold]Generating with {generator.get_name()}...[/bold]")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            bars: dict[str, int] = {}

            def progress_callback(update: PipelineProgress):
                if update.stage not in bars:
                    bars[update.stage] = progress.add_task(
                        f"[cyan]{update.stage.capitalize()}...",
                        total=update.total or None,
                    )
                progress.update(
                    bars[update.stage],
                    completed=update.completed,
                    total=update.total or None,
                    description=f"[cyan]{update.message}",
                )

            orchestrator = PipelineOrchestrator(
                store,
                generator,
                config=PipelineConfig(reauthenticate=lambda: _prompt_reauthentication(generator)),
                progress_callback=progress_callback,
            )

            # Stage 1 + 2: story, portraits and shot images
            report = asyncio.run(orchestrator.create_project(topic, story_generator, ratio))
            _print_report("Images", report)

            # Stage 3: narration
            if narrate:
                report = asyncio.run(orchestrator.generate_missing_narration())
                _print_report("Narration", report)

            # Stage 4: video
            if video:
                report = asyncio.run(orchestrator.generate_missing_videos())
                _print_report("Video", report)

    except AniFlowError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        logger.exception("Pipeline failed")
        sys.exit(1)

    # Show final summary
    project = store.current()
    _show_project_summary(project)

    if preview:
        _preview(store)


@cli.command()
def check():
    """Check API configuration and available backends."""

    console.print("[bold]API Keys[/bold]")

    if settings.has_anthropic_key:
        console.print("  ✓ Anthropic API key configured")
    else:
        console.print("  ✗ Anthropic API key not set (needed for story generation)")

    if settings.has_gemini_key:
        console.print("  ✓ Gemini API key configured")
    else:
        console.print("  ✗ Gemini API key not set (needed for images, speech and video)")

    console.print("\n[bold]Models[/bold]")
    console.print(f"  Story: {settings.claude_model}")
    console.print(f"  Image: {settings.image_model}")
    console.print(f"  Speech: {settings.tts_model}")
    console.print(f"  Video: {settings.video_model}")

    available = MediaGeneratorFactory.get_available_models()
    console.print(f"\n  Available backends: {', '.join(available)}")


def _prompt_reauthentication(generator: MediaGenerator):
    """Ask the user for a fresh Gemini key after the backend rejected ours."""
    console.print("\n[yellow]The media backend rejected the API key.[/yellow]")
    key = click.prompt("New GEMINI_API_KEY (leave empty to skip)", default="", show_default=False, hide_input=True)
    if key and isinstance(generator, GeminiMediaGenerator):
        generator.api_key = key
        console.print("[green]Key updated. Later requests in this run use the new key.[/green]")


def _print_report(label: str, report: PipelineReport):
    console.print(f"  ✓ {label}: {len(report.succeeded)} succeeded")
    for outcome in report.failed:
        console.print(f"  ⚠ {outcome.key}: {outcome.error}")


STATE_COLORS = {
    GenerationTaskState.IDLE: "dim",
    GenerationTaskState.GENERATING: "blue",
    GenerationTaskState.SUCCEEDED: "green",
    GenerationTaskState.FAILED: "red",
}


def _state_cell(state: GenerationTaskState) -> str:
    color = STATE_COLORS[state]
    return f"[{color}]{state.value}[/{color}]"


def _show_project_summary(project: Project):
    """Display project summary tables."""

    console.print("\n")

    # Project info
    table = Table(title=f"Project: {project.title}")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Style", project.settings.global_style)
    table.add_row("Aspect ratio", project.settings.aspect_ratio)
    table.add_row("Seed", str(project.settings.seed))
    table.add_row("Duration", f"{project.total_duration:.1f}s")
    table.add_row(
        "Images",
        f"{project.count_state(ArtifactKind.IMAGE, GenerationTaskState.SUCCEEDED)}/{project.shot_count}",
    )

    console.print(table)

    # Cast
    if project.characters:
        console.print("\n")
        cast_table = Table(title="Characters")
        cast_table.add_column("Name", style="cyan")
        cast_table.add_column("Voice")
        cast_table.add_column("Portrait")
        cast_table.add_column("Traits", max_width=50)

        for char in project.characters:
            cast_table.add_row(
                char.name,
                char.voice_id,
                _state_cell(char.portrait_state),
                char.core_traits[:50],
            )

        console.print(cast_table)

    # Shot breakdown
    if project.shots:
        console.print("\n")
        shot_table = Table(title="Shots")
        shot_table.add_column("#", style="dim")
        shot_table.add_column("Time")
        shot_table.add_column("Camera")
        shot_table.add_column("Image")
        shot_table.add_column("Video")
        shot_table.add_column("Audio")
        shot_table.add_column("Scene", max_width=50)

        for shot, start in shot_offsets(project.shots):
            desc = shot.scene_description
            shot_table.add_row(
                str(shot.id),
                f"{start:.1f}s - {start + shot.duration:.1f}s",
                f"{shot.shot_size}, {shot.camera_movement}",
                _state_cell(shot.image_state),
                _state_cell(shot.video_state),
                _state_cell(shot.audio_state),
                desc[:50] + "..." if len(desc) > 50 else desc,
            )

        console.print(shot_table)


def _render_playhead(controller: PlaybackController) -> Panel:
    clock = controller.clock
    total = clock.total_duration
    width = 50
    filled = int(width * clock.time / total) if total else 0
    bar = "█" * filled + "░" * (width - filled)

    shot = controller.get_active_shot()
    caption = shot.to_summary() if shot else "No shot"
    line = f'"{shot.dialogue}"' if shot and shot.has_dialogue else ""

    return Panel(
        f"{bar}  {clock.time:5.1f}s / {total:.1f}s\n\n{caption}\n{line}",
        title="Preview",
        border_style="magenta",
    )


def _preview(store: ProjectStore):
    """Play the timeline once with a live playhead."""
    controller = PlaybackController(store)

    async def _play():
        with Live(_render_playhead(controller), console=console, refresh_per_second=settings.clock_tick_hz) as live:
            controller.clock.subscribe(lambda event, clock: live.update(_render_playhead(controller)))
            controller.play()
            await controller.run()

    console.print("\n")
    try:
        asyncio.run(_play())
    except KeyboardInterrupt:
        controller.pause()
    finally:
        controller.close()


if __name__ == "__main__":
    cli()
