"""
Storyteller - Constants

Enums, fallback texts and fixed generation defaults.
"""

from enum import Enum


class AspectRatio(str, Enum):
    """Supported video aspect ratios."""

    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class Resolution(str, Enum):
    """Supported video resolutions."""

    HD = "720p"
    FULL_HD = "1080p"


class VideoSlot(str, Enum):
    """The two independent video generation slots."""

    OVERALL = "overall"
    CUSTOM = "custom"


class TaskKind(str, Enum):
    """Asynchronous stages tracked by the controller."""

    LYRICS_LOOKUP = "lyrics_lookup"
    STORYBOARD_GENERATION = "storyboard_generation"
    OVERALL_VIDEO = "overall_video"
    CUSTOM_VIDEO = "custom_video"


class ErrorKind(str, Enum):
    """Failure kinds recorded in a task's error slot."""

    VALIDATION = "validation"
    UPSTREAM = "upstream"
    AUTH = "auth"
    TIMEOUT = "timeout"


class Artifact(str, Enum):
    """Session fields that an upstream stage can invalidate."""

    LYRICS = "lyrics"
    STORYBOARD = "storyboard"
    OVERALL_VIDEO = "overall_video"
    CUSTOM_VIDEO = "custom_video"


VIDEO_TASKS: dict[VideoSlot, TaskKind] = {
    VideoSlot.OVERALL: TaskKind.OVERALL_VIDEO,
    VideoSlot.CUSTOM: TaskKind.CUSTOM_VIDEO,
}


# ============================================================================
# Prompt derivation
# ============================================================================

OVERALL_PROMPT_TEMPLATE = "Create a music video reflecting the themes: {themes}."
OVERALL_PROMPT_FALLBACK = "Create an animated music video based on the provided storyboard themes."
SCENE_PROMPT_FALLBACK = "Enter a visual direction from a scene to generate its video."


# ============================================================================
# Upstream service
# ============================================================================

# Substring of the service error raised for an invalid or expired API key
AUTH_FAILURE_SIGNATURE = "Requested entity was not found."

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "API_KEY")

DEFAULT_LYRICS_MODEL = "gemini-2.5-flash"
DEFAULT_STORYBOARD_MODEL = "gemini-2.5-pro"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"

DEFAULT_POLL_INTERVAL = 10.0  # seconds between operation status checks
DEFAULT_MAX_WAIT = 600.0  # seconds before a video job is abandoned

# Storyboard treatment defaults
DEFAULT_STYLE_LABEL = "School of Remington"
DEFAULT_STYLE_NOTES = "emphasis on dramatic lighting, rugged emotion, and dynamic compositions"
DEFAULT_STYLE_TAG = "Remington Style"
DEFAULT_TARGET_DURATION = "2 minutes"
DEFAULT_MIN_SCENES = 8
DEFAULT_MAX_SCENES = 12
