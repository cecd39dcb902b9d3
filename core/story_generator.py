"""Story generator module - turns a text idea into a structured project."""

import json
import logging
from typing import Any, Optional

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from config.prompts import STORY_DIRECTOR_SYSTEM_PROMPT, STORY_DIRECTOR_USER_TEMPLATE
from config.settings import settings
from core.errors import StoryGenerationError
from models.character import Character
from models.project import AspectRatio, Project, ProjectSettings, new_seed
from models.shot import NO_FOCUS, Shot

logger = logging.getLogger(__name__)

EXPECTED_SHOT_COUNT = 5
DEFAULT_SHOT_DURATION = 3.0
FALLBACK_STYLE = "Anime style, high quality"

_SHOT_TEXT_FIELDS = (
    "scene_description",
    "visual_prompt",
    "camera_movement",
    "camera_angle",
    "shot_size",
    "camera_reasoning",
    "character_emotion",
    "dialogue",
)


class StoryGenerator:
    """Expands a short idea into characters and shots using Claude."""

    def __init__(self, anthropic_api_key: Optional[str] = None, client: Optional[AsyncAnthropic] = None):
        """Initialize with API key or a preconfigured client."""
        self.client = client or AsyncAnthropic(
            api_key=anthropic_api_key or settings.anthropic_api_key
        )

    async def generate(self, topic: str, aspect_ratio: Optional[AspectRatio] = None) -> Project:
        """
        Generate a new project from a topic.

        Args:
            topic: The user's short idea
            aspect_ratio: User-selected aspect ratio, overrides the model's choice

        Returns:
            A fresh Project with a newly drawn seed
        """
        if not topic.strip():
            raise StoryGenerationError("Topic is empty")

        logger.info(f"Generating story for topic: {topic[:80]}")

        try:
            response = await self.client.messages.create(
                model=settings.claude_model,
                max_tokens=settings.max_tokens_story,
                temperature=settings.story_temperature,
                system=STORY_DIRECTOR_SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": STORY_DIRECTOR_USER_TEMPLATE.format(topic=topic)}
                ],
            )
        except Exception as e:
            logger.error(f"Story generation request failed: {e}")
            raise StoryGenerationError(f"Story generation failed: {e}") from e

        if not response.content:
            raise StoryGenerationError("No response from story model")

        data = self._parse_story_response(response.content[0].text)
        project = self.build_project(data, aspect_ratio)

        logger.info(
            f"Story generated: '{project.title}' with {len(project.characters)} characters, "
            f"{len(project.shots)} shots"
        )
        return project

    def build_project(self, data: dict, aspect_ratio: Optional[AspectRatio] = None) -> Project:
        """Map the story JSON onto the project model."""
        try:
            return Project(
                title=_text(data.get("title")) or "Untitled Project",
                location_description=_text(data.get("location_visuals")),
                settings=self._build_settings(data.get("projectSettings"), aspect_ratio),
                characters=self._build_characters(data.get("characters")),
                shots=self._build_shots(data.get("shots")),
            )
        except ValidationError as e:
            raise StoryGenerationError(f"Story response did not form a valid project: {e}") from e

    def _build_settings(self, raw: Any, aspect_ratio: Optional[AspectRatio]) -> ProjectSettings:
        raw = raw if isinstance(raw, dict) else {}
        return ProjectSettings(
            aspect_ratio=aspect_ratio or settings.default_aspect_ratio,
            global_style=_text(raw.get("global_style")) or FALLBACK_STYLE,
            seed=new_seed(),
            bgm_asset_id=_text(raw.get("bgm_asset_id")) or None,
        )

    def _build_characters(self, raw: Any) -> list[Character]:
        characters: list[Character] = []
        for char_dict in _dicts(raw):
            name = _text(char_dict.get("name")).strip()
            if not name or any(c.name == name for c in characters):
                logger.warning(f"Skipping unnamed or duplicate character: {name!r}")
                continue
            characters.append(Character(
                name=name,
                core_traits=_text(char_dict.get("core_traits")),
                appearance_prompt=_text(char_dict.get("appearance_prompt")),
                voice_id=_text(char_dict.get("voice_id")) or settings.default_voice_id,
            ))
        return characters

    def _build_shots(self, raw: Any) -> list[Shot]:
        shots: list[Shot] = []
        used_ids: set[int] = set()
        for shot_dict in _dicts(raw):
            shot_id = shot_dict.get("id")
            if not isinstance(shot_id, int) or isinstance(shot_id, bool) or shot_id in used_ids:
                shot_id = max(used_ids, default=0) + 1
            used_ids.add(shot_id)

            duration = shot_dict.get("duration")
            if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration <= 0:
                duration = DEFAULT_SHOT_DURATION

            fields = {k: _text(shot_dict.get(k)) for k in _SHOT_TEXT_FIELDS if shot_dict.get(k)}
            shots.append(Shot(
                id=shot_id,
                duration=float(duration),
                character_focus=_text(shot_dict.get("character_focus")) or NO_FOCUS,
                sound_effect=_text(shot_dict.get("sound_effect")) or None,
                **fields,
            ))

        if len(shots) != EXPECTED_SHOT_COUNT:
            logger.warning(f"Expected {EXPECTED_SHOT_COUNT} shots, story has {len(shots)}")
        return shots

    def _parse_story_response(self, response_text: str) -> dict:
        """Parse the JSON response from Claude."""
        logger.debug(f"Raw response length: {len(response_text)} chars")

        json_text = self._extract_json(response_text)
        if not json_text.strip():
            logger.error(f"Full response: {response_text}")
            raise StoryGenerationError("No JSON found in story response")

        try:
            data = json.loads(json_text)
        except json.JSONDecodeError as e:
            logger.error(f"Extracted JSON text: {json_text[:1000]}...")
            raise StoryGenerationError(f"Failed to parse story response: {e}") from e

        if not isinstance(data, dict):
            raise StoryGenerationError("Story response is not a JSON object")
        return data

    def _extract_json(self, text: str) -> str:
        """Extract JSON from text that might contain markdown code blocks."""
        if not text:
            return ""

        if "```" in text:
            start = text.find("```") + 3
            # Skip any language identifier on the same line
            newline = text.find("\n", start)
            if newline > start:
                start = newline + 1
            end = text.find("```", start)
            if end > start:
                return text[start:end].strip()

        start = text.find("{")
        if start >= 0:
            return self._extract_json_object(text[start:])

        return ""

    def _extract_json_object(self, text: str) -> str:
        """Extract a complete JSON object by matching braces."""
        depth = 0
        in_string = False
        escape_next = False

        for i, char in enumerate(text):
            if escape_next:
                escape_next = False
                continue

            if char == "\\" and in_string:
                escape_next = True
                continue

            if char == '"':
                in_string = not in_string
                continue

            if in_string:
                continue

            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[:i + 1]

        logger.warning("Unbalanced braces in JSON, attempting partial extraction")
        return text


def _text(value: Any) -> str:
    """Coerce a loosely typed JSON value to text; null becomes empty."""
    if value is None:
        return ""
    return str(value)


def _dicts(value: Any) -> list[dict]:
    """Keep only the object entries of a JSON list."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
