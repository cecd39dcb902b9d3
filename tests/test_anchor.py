"""Tests for the consistency anchor."""

import pytest

from core.anchor import ConsistencyAnchor, ImageRequest, resolve_focus_character
from models.character import Character

from conftest import make_project


class TestResolveFocusCharacter:
    """Tests for the best-effort focus lookup."""

    def setup_method(self):
        self.characters = [
            Character(name="Kai"),
            Character(name="Kaiden"),
            Character(name="Old Tomo"),
        ]

    def test_exact_name(self):
        """Test an exact match."""
        assert resolve_focus_character("Old Tomo", self.characters).name == "Old Tomo"

    def test_focus_contains_name(self):
        """A focus text containing the name resolves to it."""
        assert resolve_focus_character("Old Tomo (background)", self.characters).name == "Old Tomo"

    def test_name_contains_focus(self):
        """A partial focus resolves to the character containing it."""
        assert resolve_focus_character("Tomo", self.characters).name == "Old Tomo"

    def test_first_match_wins(self):
        """When names overlap the earlier character is returned."""
        assert resolve_focus_character("Kaiden", self.characters).name == "Kai"

    @pytest.mark.parametrize("focus", ["None", "none", "", "   ", None])
    def test_no_focus(self, focus):
        """Empty or 'None' focus resolves to nobody."""
        assert resolve_focus_character(focus, self.characters) is None

    def test_unknown_name(self):
        """Test a focus that matches nobody."""
        assert resolve_focus_character("Ghost", self.characters) is None


class TestConsistencyAnchor:
    """Every request re-injects the same project anchors."""

    def test_portrait_request(self):
        """Portraits are square and carry no environment."""
        project = make_project()
        anchor = ConsistencyAnchor.from_project(project)

        request = anchor.portrait_request(project.characters[0])

        assert request.aspect_ratio == "1:1"
        assert request.seed == 4242
        assert request.style == "Watercolor anime"
        assert request.environment is None
        assert "Mika" in request.prompt
        assert "red scarf" in request.prompt

    def test_shot_request_with_focus(self):
        """Focused shots carry appearance text and the portrait reference."""
        project = make_project()
        mika = project.characters[0].model_copy(update={"portrait_url": "mika.png"})
        anchor = ConsistencyAnchor.from_project(project)

        request = anchor.shot_request(project.shots[0], [mika, project.characters[1]], "16:9")

        assert request.seed == 4242
        assert request.aspect_ratio == "16:9"
        assert request.environment == "A foggy fishing village at dawn"
        assert request.character_appearance == "short silver hair, red scarf"
        assert request.reference_image == "mika.png"
        assert request.prompt == "Visual 1"

    def test_shot_request_without_focus(self):
        """Unfocused shots still carry seed, style and environment."""
        project = make_project()
        anchor = ConsistencyAnchor.from_project(project)

        request = anchor.shot_request(project.shots[1], project.characters, "9:16")

        assert request.character_appearance is None
        assert request.reference_image is None
        assert request.environment == project.location_description
        assert request.seed == project.settings.seed

    def test_requests_are_deterministic(self):
        """Building the same request twice yields identical values."""
        project = make_project()
        anchor = ConsistencyAnchor.from_project(project)

        first = anchor.shot_request(project.shots[0], project.characters, "16:9")
        second = ConsistencyAnchor.from_project(project).shot_request(
            project.shots[0], project.characters, "16:9"
        )

        assert first == second
        assert first.render_prompt() == second.render_prompt()


class TestImageRequestPrompt:
    """Tests for prompt rendering."""

    def test_full_prompt(self):
        """All anchors appear in the rendered prompt."""
        request = ImageRequest(
            prompt="Mika runs along the pier",
            style="Watercolor anime",
            aspect_ratio="16:9",
            seed=1,
            character_appearance="silver hair",
            reference_image="mika.png",
            environment="foggy village",
            shot_size="Wide Shot",
            camera_angle="Low Angle",
            emotion="Desperate",
        )

        prompt = request.render_prompt()

        assert prompt.startswith("Art Style: Watercolor anime.")
        assert "CAMERA COMPOSITION: Wide Shot, Low Angle." in prompt
        assert "GROUND TRUTH" in prompt
        assert "PERMANENT SETTING: foggy village" in prompt
        assert "CHARACTER IDENTITY: silver hair" in prompt
        assert "CURRENT FACIAL EXPRESSION: Desperate" in prompt
        assert "CURRENT SHOT ACTION: Mika runs along the pier" in prompt

    def test_minimal_prompt(self):
        """Without a reference image there is no identity instruction."""
        request = ImageRequest(prompt="Empty pier", style="Ink", aspect_ratio="1:1", seed=1)

        prompt = request.render_prompt()

        assert "GROUND TRUTH" not in prompt
        assert "PERMANENT SETTING" not in prompt
        assert "CURRENT SHOT ACTION: Empty pier" in prompt
