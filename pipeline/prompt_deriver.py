"""
Storyteller - Prompt Deriver

Extract follow-on video prompts from a generated storyboard document.

The storyboard is free-form model output, so matching is best-effort:
a missing pattern yields fixed fallback text, never an error.
"""

import re
from typing import Protocol

from core.constants import (
    DEFAULT_STYLE_TAG,
    OVERALL_PROMPT_FALLBACK,
    OVERALL_PROMPT_TEMPLATE,
    SCENE_PROMPT_FALLBACK,
)
from core.models import DerivedPrompts

CORE_THEMES_PATTERN = re.compile(r"Core Theme\(s\):\s*\(([^)]+)\)")

# Sub-bullet list items leak nested markup into the prompt
BULLET_PREFIX = "* "


def _scene_one_pattern(style_tag: str) -> re.Pattern:
    # Field body ends at the next scene heading, a section break, or end of text
    return re.compile(
        r"\*\*Scene 1\*\*[\s\S]*?"
        rf"\*\*Visual Direction \({re.escape(style_tag)}\):\s*"
        r"([\s\S]+?)"
        r"(?=(?:\s*\*\*\s*Scene \d+\s*\*\*|\s*---|\Z))"
    )


class PromptDeriver(Protocol):
    """Strategy turning a storyboard document into video prompts."""

    def derive(self, document: str) -> DerivedPrompts:
        ...


class RegexPromptDeriver:
    """Pattern-matching deriver for the three-part storyboard layout."""

    def __init__(self, style_tag: str = DEFAULT_STYLE_TAG):
        self.style_tag = style_tag
        self._scene_pattern = _scene_one_pattern(style_tag)

    def overall_prompt(self, document: str) -> str:
        match = CORE_THEMES_PATTERN.search(document)
        if match and match.group(1):
            return OVERALL_PROMPT_TEMPLATE.format(themes=match.group(1))
        return OVERALL_PROMPT_FALLBACK

    def scene_one_prompt(self, document: str) -> str:
        match = self._scene_pattern.search(document)
        if not match or not match.group(1):
            return SCENE_PROMPT_FALLBACK

        direction = match.group(1).strip()
        lines = [line for line in direction.split("\n") if not line.startswith(BULLET_PREFIX)]

        return "\n".join(lines).strip()

    def derive(self, document: str) -> DerivedPrompts:
        document = document or ""
        return DerivedPrompts(
            overall_prompt=self.overall_prompt(document),
            scene_one_prompt=self.scene_one_prompt(document),
        )


_default_deriver = RegexPromptDeriver()


def derive(document: str) -> DerivedPrompts:
    """
    Derive the overall and first-scene video prompts from a storyboard.

    Args:
        document: Storyboard text (may be empty)

    Returns:
        DerivedPrompts; fallback texts where a pattern is absent
    """
    return _default_deriver.derive(document)
