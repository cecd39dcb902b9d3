"""Project store - the single authoritative, mutable project graph."""

import logging
from typing import Any, Callable, Optional

from core.errors import PreconditionError
from models.character import Character
from models.project import Project, ProjectSettings
from models.shot import Shot

logger = logging.getLogger(__name__)

StoreListener = Callable[[Project], None]

# Consistency anchors: set by load() only
ANCHOR_SETTINGS_FIELDS = frozenset({"seed"})
ANCHOR_PROJECT_FIELDS = frozenset({"location_description"})


class ProjectStore:
    """
    Holds the current project and commits targeted updates to it.

    Every write reads the committed state at the moment it commits, merges the
    given fields into exactly one entity, and swaps in a new project value.
    Commits are copy-on-write: a project returned by ``current()`` is never
    mutated afterwards, so readers holding an older value are unaffected and a
    slow writer can never overwrite fields it did not touch.
    """

    def __init__(self, project: Optional[Project] = None):
        self._project = project or Project()
        self._listeners: list[StoreListener] = []

    def current(self) -> Project:
        """Latest committed project state."""
        return self._project

    def subscribe(self, listener: StoreListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: StoreListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def load(self, project: Project) -> None:
        """Install a freshly created project, replacing the previous one."""
        logger.info(f"Loading project '{project.title}' ({len(project.shots)} shots)")
        self._commit(project)

    # ------------------------------------------------------------------
    # Targeted writes
    # ------------------------------------------------------------------

    def update_shot(self, shot_id: int, **fields: Any) -> Shot:
        """Merge ``fields`` into one shot, keyed by id."""
        project = self._project
        index = self._shot_index(project, shot_id)
        updated = _merge(project.shots[index], fields)

        shots = list(project.shots)
        shots[index] = updated
        self._commit(project.model_copy(update={"shots": shots}))
        return updated

    def update_character(self, character_name: str, /, **fields: Any) -> Character:
        """Merge ``fields`` into one character, keyed by name. ``name`` may be among the fields."""
        project = self._project
        index = next((i for i, c in enumerate(project.characters) if c.name == character_name), None)
        if index is None:
            raise KeyError(f"Character {character_name!r} not found")

        updated = _merge(project.characters[index], fields)
        if updated.name != character_name and project.get_character(updated.name):
            raise ValueError(f"Character {updated.name!r} already exists")

        characters = list(project.characters)
        characters[index] = updated
        self._commit(project.model_copy(update={"characters": characters}))
        return updated

    def update_settings(self, **fields: Any) -> ProjectSettings:
        """Update project settings. The seed is fixed once the project is loaded."""
        _reject_anchor_fields(fields, ANCHOR_SETTINGS_FIELDS)
        project = self._project
        updated = _merge(project.settings, fields)
        self._commit(project.model_copy(update={"settings": updated}))
        return updated

    def update_project(self, **fields: Any) -> Project:
        """Update top-level text fields such as ``title``. The environment is fixed."""
        forbidden = {"settings", "characters", "shots"} & fields.keys()
        if forbidden:
            raise ValueError(f"Use the targeted update methods for: {', '.join(sorted(forbidden))}")
        _reject_anchor_fields(fields, ANCHOR_PROJECT_FIELDS)
        project = _merge(self._project, fields)
        self._commit(project)
        return project

    def add_shot(self) -> Shot:
        """Append a blank shot at the end of the timeline."""
        project = self._project
        shot = Shot.blank(project.next_shot_id())
        self._commit(project.model_copy(update={"shots": [*project.shots, shot]}))
        return shot

    def delete_shot(self, shot_id: int) -> None:
        project = self._project
        index = self._shot_index(project, shot_id)
        if len(project.shots) <= 1:
            raise PreconditionError("Cannot delete the last shot")

        shots = [s for i, s in enumerate(project.shots) if i != index]
        self._commit(project.model_copy(update={"shots": shots}))

    def assign_asset(self, asset_id: str, shot_id: Optional[int] = None) -> None:
        """Attach a catalog asset to a shot, or as project background music."""
        if shot_id is not None:
            self.update_shot(shot_id, audio_asset_ref=asset_id)
        else:
            self.update_settings(bgm_asset_id=asset_id)

    # ------------------------------------------------------------------

    @staticmethod
    def _shot_index(project: Project, shot_id: int) -> int:
        for i, shot in enumerate(project.shots):
            if shot.id == shot_id:
                return i
        raise KeyError(f"Shot {shot_id} not found")

    def _commit(self, project: Project) -> None:
        self._project = project
        for listener in list(self._listeners):
            listener(project)


def _reject_anchor_fields(fields: dict, anchored: frozenset) -> None:
    fixed = anchored & fields.keys()
    if fixed:
        raise PreconditionError(
            f"{', '.join(sorted(fixed))} is fixed for the project's lifetime; generate a new project to change it"
        )


def _merge(model, fields: dict):
    """Return a validated copy of ``model`` with ``fields`` applied."""
    unknown = set(fields) - set(type(model).model_fields)
    if unknown:
        raise ValueError(f"Unknown field(s) for {type(model).__name__}: {', '.join(sorted(unknown))}")
    data = dict(model)
    data.update(fields)
    return type(model).model_validate(data)
