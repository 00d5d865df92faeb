"""
Tests for pipeline.prompt_deriver module.
"""

import pytest

from core.constants import OVERALL_PROMPT_FALLBACK, SCENE_PROMPT_FALLBACK
from pipeline.prompt_deriver import RegexPromptDeriver, derive


STORYBOARD = """### Part 1: Lyrical & Narrative Analysis

1.  Core Theme(s): (Loss, Redemption)
2.  Tone & Mood: (Somber)

---

### Part 3: Scene-by-Scene Storyboard

**Scene 1**
**Est. Timecode:** 0:00 - 0:15
**Visual Direction (Remington Style): A lone rider crosses a canyon at dusk.
**Scene 2**
**Visual Direction (Remington Style): A campfire flickers under a dark sky.
"""

BULLETED_STORYBOARD = """*   **Scene 1**
    *   **Est. Timecode:** 0:00 - 0:15
    *   **Scene Description:** The rider reins in his horse.
    *   **Visual Direction (Remington Style): Dusty light cuts through a saloon door.

*   **Scene 2**
    *   **Visual Direction (Remington Style): Night.
"""


class TestOverallPrompt:
    """Tests for overall prompt extraction."""

    def test_core_themes_found(self):
        """Test the themes value is wrapped in the overall template."""
        result = derive(STORYBOARD)

        assert result.overall_prompt == "Create a music video reflecting the themes: Loss, Redemption."

    def test_core_themes_missing(self):
        """Test fallback when there is no themes label."""
        result = derive("Just some prose about a song.")

        assert result.overall_prompt == OVERALL_PROMPT_FALLBACK

    def test_bold_label_not_matched(self):
        """Markdown bold between the label and value defeats the pattern."""
        result = derive("**Core Theme(s):** (Betrayal)")

        assert result.overall_prompt == OVERALL_PROMPT_FALLBACK

    def test_first_match_wins(self):
        """Test that only the first themes label is used."""
        doc = "Core Theme(s): (Hope)\nCore Theme(s): (Despair)"

        assert derive(doc).overall_prompt == "Create a music video reflecting the themes: Hope."


class TestSceneOnePrompt:
    """Tests for first-scene visual direction extraction."""

    def test_text_between_markers(self):
        """Test direction text up to the next scene heading."""
        result = derive(STORYBOARD)

        assert result.scene_one_prompt == "A lone rider crosses a canyon at dusk."

    def test_bulleted_layout(self):
        """The next heading's bare bullet marker stays in the prompt."""
        result = derive(BULLETED_STORYBOARD)

        assert result.scene_one_prompt == "Dusty light cuts through a saloon door.\n\n*"

    @pytest.mark.parametrize("line", ["*", "*\tTabbed aside", "  * Indented aside"])
    def test_only_star_space_lines_dropped(self, line):
        """Test lines not starting with '* ' are kept."""
        doc = (
            "**Scene 1**\n"
            "**Visual Direction (Remington Style): Open range.\n"
            f"{line}\n"
            "* Dropped aside\n"
            "**Scene 2**\n"
        )

        assert derive(doc).scene_one_prompt == f"Open range.\n{line}".strip()

    def test_sub_bullets_removed(self):
        """Test that nested list items do not leak into the prompt."""
        doc = (
            "**Scene 1**\n"
            "**Visual Direction (Remington Style): Golden hour over the plains.\n"
            "* Rim light on the hat\n"
            "* Long shadows\n"
            "Warm ochre palette.\n"
            "**Scene 2**\n"
        )

        result = derive(doc)

        assert result.scene_one_prompt == "Golden hour over the plains.\nWarm ochre palette."

    def test_section_break_terminates(self):
        """Test that a --- break ends the field."""
        doc = (
            "**Scene 1**\n"
            "**Visual Direction (Remington Style): Storm clouds gather.\n"
            "---\n"
            "Appendix notes"
        )

        assert derive(doc).scene_one_prompt == "Storm clouds gather."

    def test_end_of_document_terminates(self):
        """Test a field running to the end of the text."""
        doc = "**Scene 1**\n**Visual Direction (Remington Style):   Cattle drive at noon.  \n"

        assert derive(doc).scene_one_prompt == "Cattle drive at noon."

    def test_no_scene_one(self):
        """Test fallback when there is no first scene."""
        doc = "**Scene 10**\n**Visual Direction (Remington Style): Late scene."

        assert derive(doc).scene_one_prompt == SCENE_PROMPT_FALLBACK

    def test_custom_style_tag(self):
        """Test a deriver built for another treatment style."""
        doc = "**Scene 1**\n**Visual Direction (Noir Style): Rain on neon.\n**Scene 2**"
        deriver = RegexPromptDeriver(style_tag="Noir Style")

        assert deriver.derive(doc).scene_one_prompt == "Rain on neon."
        assert derive(doc).scene_one_prompt == SCENE_PROMPT_FALLBACK


class TestDeriveTotal:
    """derive never raises."""

    def test_empty_document(self):
        """Test both fallbacks for empty input."""
        result = derive("")

        assert result.overall_prompt == OVERALL_PROMPT_FALLBACK
        assert result.scene_one_prompt == SCENE_PROMPT_FALLBACK

    @pytest.mark.parametrize("doc", [
        "(((",
        "**Scene 1**",
        "**Scene 1****Visual Direction (Remington Style):",
        "Core Theme(s): ()",
        "\n\n\n",
        "Core Theme(s): (unterminated",
    ])
    def test_malformed_input(self, doc):
        """Test malformed documents produce strings, not errors."""
        result = derive(doc)

        assert isinstance(result.overall_prompt, str)
        assert isinstance(result.scene_one_prompt, str)

    def test_deterministic(self):
        """Test repeated derivation gives identical output."""
        assert derive(STORYBOARD) == derive(STORYBOARD)
