"""
Storyteller - Pydantic Models

Data models for the song, its generated artifacts and per-stage task state.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.constants import (
    DEFAULT_LYRICS_MODEL,
    DEFAULT_MAX_SCENES,
    DEFAULT_MIN_SCENES,
    DEFAULT_STYLE_LABEL,
    DEFAULT_STYLE_NOTES,
    DEFAULT_STYLE_TAG,
    DEFAULT_TARGET_DURATION,
    AspectRatio,
    ErrorKind,
    Resolution,
    TaskKind,
)


# ============================================================================
# Song
# ============================================================================


class SongIdentity(BaseModel):
    """Title and artist of the song being visualized."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    artist: str = ""

    def is_complete(self) -> bool:
        return bool(self.title.strip() and self.artist.strip())


class LyricsRecord(BaseModel):
    """Lyrics text plus the web sources it was grounded on."""

    text: str = ""
    source_citations: Optional[list[str]] = None
    # Song the lyrics were looked up for; None for pasted or cleared lyrics
    identity: Optional[SongIdentity] = None


# ============================================================================
# Generation configuration
# ============================================================================


class TextGenerationConfig(BaseModel):
    """Model identity and sampling parameters for a text stage."""

    model: str = DEFAULT_LYRICS_MODEL
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_output_tokens: Optional[int] = None
    thinking_budget: Optional[int] = None
    use_search: bool = False


class StoryboardConfig(BaseModel):
    """Fixed treatment parameters for storyboard generation."""

    style_label: str = DEFAULT_STYLE_LABEL
    style_notes: str = DEFAULT_STYLE_NOTES
    # Parenthesized label of each scene's visual direction field
    style_tag: str = DEFAULT_STYLE_TAG
    target_duration: str = DEFAULT_TARGET_DURATION
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    min_scenes: int = DEFAULT_MIN_SCENES
    max_scenes: int = DEFAULT_MAX_SCENES


class VideoGenerationConfig(BaseModel):
    """Per-request video settings."""

    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    resolution: Resolution = Resolution.HD


class VideoGenerationRequest(BaseModel):
    """A single video generation request as issued by the controller."""

    prompt: str
    config: VideoGenerationConfig = Field(default_factory=VideoGenerationConfig)


# ============================================================================
# Session state
# ============================================================================


class GenerationTask(BaseModel):
    """
    Ephemeral state of one asynchronous stage.

    Starting a task clears result and error before busy is set;
    completion sets exactly one of result/error and clears busy.
    """

    busy: bool = False
    result: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    def start(self) -> None:
        self.result = None
        self.error = None
        self.error_kind = None
        self.busy = True

    def succeed(self, result: Any = None) -> None:
        self.result = result
        self.error = None
        self.error_kind = None
        self.busy = False

    def fail(self, message: str, kind: ErrorKind) -> None:
        self.result = None
        self.error = message
        self.error_kind = kind
        self.busy = False

    def clear(self) -> None:
        self.busy = False
        self.result = None
        self.error = None
        self.error_kind = None


class DerivedPrompts(BaseModel):
    """Video prompts extracted from a storyboard document."""

    overall_prompt: str = ""
    scene_one_prompt: str = ""


def _initial_tasks() -> dict[TaskKind, GenerationTask]:
    return {kind: GenerationTask() for kind in TaskKind}


class SessionState(BaseModel):
    """All state owned by the controller for one session."""

    identity: SongIdentity = Field(default_factory=SongIdentity)
    lyrics: LyricsRecord = Field(default_factory=LyricsRecord)
    storyboard: str = ""
    overall_prompt: str = ""
    custom_prompt: str = ""
    tasks: dict[TaskKind, GenerationTask] = Field(default_factory=_initial_tasks)
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
