"""Playback controller - binds the timeline clock to the active shot and its media."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from core.store import ProjectStore
from core.timeline import ClockEvent, TimelineClock, locate
from models.project import Project
from models.shot import Shot

logger = logging.getLogger(__name__)

ActiveShotListener = Callable[[Optional[Shot]], None]


class MediaElement(ABC):
    """A playable media sink, e.g. a video surface or an audio channel."""

    @abstractmethod
    def load(self, url: str, loop: bool = False, muted: bool = False) -> None:
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class NullMediaElement(MediaElement):
    """Media element that only records what it was asked to do."""

    def __init__(self, name: str = "media"):
        self.name = name
        self.url: Optional[str] = None
        self.playing = False

    def load(self, url: str, loop: bool = False, muted: bool = False) -> None:
        self.url = url
        self.playing = False
        logger.debug(f"[{self.name}] load {url} (loop={loop}, muted={muted})")

    def play(self) -> None:
        if self.url:
            self.playing = True
            logger.debug(f"[{self.name}] play")

    def pause(self) -> None:
        self.playing = False
        logger.debug(f"[{self.name}] pause")

    def clear(self) -> None:
        self.url = None
        self.playing = False


class PlaybackController:
    """
    Keeps the active shot in sync with the clock and drives media playback.

    While playing, the active shot is whichever shot contains the current
    time; while stopped it is the editing selection, which the user may move
    freely without touching the playhead. Media elements never drive the
    clock: a clip that ends early simply loops or stops.

    Usage:
        controller = PlaybackController(store)
        controller.play()
        await controller.run()
    """

    def __init__(
        self,
        store: ProjectStore,
        clock: Optional[TimelineClock] = None,
        video: Optional[MediaElement] = None,
        audio: Optional[MediaElement] = None,
    ):
        self.store = store
        self.clock = clock or TimelineClock(lambda: self.store.current().total_duration)
        self.video = video or NullMediaElement("video")
        self.audio = audio or NullMediaElement("audio")

        shots = store.current().shots
        self._active_id: Optional[int] = shots[0].id if shots else None
        self._loaded: tuple[Optional[str], Optional[str]] = (None, None)
        self._listeners: list[ActiveShotListener] = []

        self.clock.subscribe(self._on_clock)
        self.store.subscribe(self._on_project)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.clock.is_playing

    def get_active_shot(self) -> Optional[Shot]:
        if self._active_id is None:
            return None
        return self.store.current().get_shot(self._active_id)

    def subscribe(self, listener: ActiveShotListener) -> None:
        """Be notified whenever the active shot changes."""
        self._listeners.append(listener)

    def close(self) -> None:
        """Detach from the clock and the store."""
        self.clock.unsubscribe(self._on_clock)
        self.store.unsubscribe(self._on_project)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def play(self) -> None:
        self.clock.play()

    def pause(self) -> None:
        self.clock.pause()

    def toggle(self) -> None:
        self.clock.toggle()

    def seek(self, t: float) -> None:
        self.clock.seek(t)

    def select_shot(self, shot_id: int) -> None:
        """Change the editing selection. The playhead does not move."""
        if self.store.current().get_shot(shot_id) is None:
            raise KeyError(f"Shot {shot_id} not found")
        self._set_active(shot_id)

    async def run(self) -> None:
        """Drive the clock until playback stops."""
        await self.clock.run()

    def run_sync(self) -> None:
        asyncio.run(self.run())

    # ------------------------------------------------------------------
    # Reactions
    # ------------------------------------------------------------------

    def _on_clock(self, event: ClockEvent, clock: TimelineClock) -> None:
        if event == ClockEvent.STATE:
            if clock.is_playing:
                self._relocate(self.store.current())
                self._start_media()
            else:
                self._stop_media()
        elif event == ClockEvent.TIME and clock.is_playing:
            self._relocate(self.store.current())

    def _on_project(self, project: Project) -> None:
        self.clock.refresh()

        if self.clock.is_playing:
            self._relocate(project)
        elif self._active_id is not None and project.get_shot(self._active_id) is None:
            # Selected shot was deleted
            self._set_active(project.shots[0].id if project.shots else None)

        # Media for the active shot may just have been generated
        if self.clock.is_playing:
            self._start_media()

    def _relocate(self, project: Project) -> None:
        shot_id = locate(self.clock.time, project.shots)
        if shot_id is not None:
            self._set_active(shot_id)

    def _set_active(self, shot_id: Optional[int]) -> None:
        if shot_id == self._active_id:
            return

        self._active_id = shot_id
        shot = self.get_active_shot()
        logger.debug(f"Active shot -> {shot_id}")

        if self.clock.is_playing:
            self._start_media()

        for listener in list(self._listeners):
            listener(shot)

    def _start_media(self) -> None:
        shot = self.get_active_shot()
        video_url = shot.video_url if shot else None
        audio_url = shot.audio_url if shot else None

        if (video_url, audio_url) == self._loaded:
            return
        self._loaded = (video_url, audio_url)

        if video_url:
            self.video.load(video_url, loop=True, muted=False)
            self.video.play()
        else:
            self.video.clear()

        if audio_url:
            self.audio.load(audio_url)
            self.audio.play()
        else:
            self.audio.clear()

    def _stop_media(self) -> None:
        self.video.pause()
        self.audio.pause()
        self._loaded = (None, None)
