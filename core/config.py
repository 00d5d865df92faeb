"""
Storyteller - Configuration

Load configuration from YAML files and environment variables.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel

from core.constants import (
    API_KEY_ENV_VARS,
    DEFAULT_LYRICS_MODEL,
    DEFAULT_MAX_WAIT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STORYBOARD_MODEL,
    DEFAULT_VIDEO_MODEL,
    Resolution,
)
from core.logging import get_logger
from core.models import StoryboardConfig, TextGenerationConfig

logger = get_logger(__name__)

# Default paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

DEFAULT_CONFIG_FILE = CONFIG_DIR / "storyteller.yaml"


class VideoSettings(BaseModel):
    """Video model identity and polling policy."""

    model: str = DEFAULT_VIDEO_MODEL
    resolution: Resolution = Resolution.HD
    poll_interval: float = DEFAULT_POLL_INTERVAL
    # None waits forever
    max_wait: Optional[float] = DEFAULT_MAX_WAIT


def load_config(config_path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file (default: config/storyteller.yaml)

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}, using defaults")
        return _default_config()

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    logger.debug(f"Loaded config from {config_path}")
    return config


def _default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "api_key": "",
        "lyrics": {
            "model": DEFAULT_LYRICS_MODEL,
            "use_search": True,
        },
        "storyboard": {
            "model": DEFAULT_STORYBOARD_MODEL,
            "temperature": 0.9,
            "top_p": 0.95,
            "top_k": 64,
            "max_output_tokens": 2048,
            "thinking_budget": 512,
            "treatment": {},
        },
        "video": {
            "model": DEFAULT_VIDEO_MODEL,
            "resolution": Resolution.HD.value,
            "poll_interval": DEFAULT_POLL_INTERVAL,
            "max_wait": DEFAULT_MAX_WAIT,
        },
    }


def get_api_key(config: Optional[dict[str, Any]] = None) -> str:
    """
    Resolve the generation service API key.

    Env vars (first non-empty wins):
        GEMINI_API_KEY
        API_KEY

    Falls back to the `api_key` entry of the config file.
    """
    for var in API_KEY_ENV_VARS:
        value = os.environ.get(var, "")
        if value:
            return value

    if config is None:
        config = load_config()
    return config.get("api_key", "") or ""


def get_lyrics_config(config: Optional[dict[str, Any]] = None) -> TextGenerationConfig:
    """
    Get the text generation config for lyric lookup.

    Env vars:
        STORYTELLER_LYRICS_MODEL
    """
    if config is None:
        config = load_config()

    lyrics_config = config.get("lyrics", {})

    return TextGenerationConfig(
        model=os.environ.get("STORYTELLER_LYRICS_MODEL", lyrics_config.get("model", DEFAULT_LYRICS_MODEL)),
        use_search=bool(lyrics_config.get("use_search", True)),
    )


def get_storyboard_generation_config(config: Optional[dict[str, Any]] = None) -> TextGenerationConfig:
    """
    Get the text generation config for storyboard generation.

    Env vars:
        STORYTELLER_STORYBOARD_MODEL
    """
    if config is None:
        config = load_config()

    sb_config = config.get("storyboard", {})

    return TextGenerationConfig(
        model=os.environ.get("STORYTELLER_STORYBOARD_MODEL", sb_config.get("model", DEFAULT_STORYBOARD_MODEL)),
        temperature=float(sb_config.get("temperature", 0.9)),
        top_p=float(sb_config.get("top_p", 0.95)),
        top_k=int(sb_config.get("top_k", 64)),
        max_output_tokens=int(sb_config.get("max_output_tokens", 2048)),
        thinking_budget=int(sb_config.get("thinking_budget", 512)),
    )


def get_storyboard_config(config: Optional[dict[str, Any]] = None) -> StoryboardConfig:
    """Get the fixed treatment parameters (style, duration, scene range)."""
    if config is None:
        config = load_config()

    treatment = config.get("storyboard", {}).get("treatment", {}) or {}
    return StoryboardConfig(**treatment)


def get_video_settings(config: Optional[dict[str, Any]] = None) -> VideoSettings:
    """
    Get video model and polling settings.

    Env vars:
        STORYTELLER_VIDEO_MODEL
        STORYTELLER_POLL_INTERVAL
        STORYTELLER_MAX_WAIT (0 or negative waits forever)
    """
    if config is None:
        config = load_config()

    video_config = config.get("video", {})

    max_wait = os.environ.get("STORYTELLER_MAX_WAIT", video_config.get("max_wait", DEFAULT_MAX_WAIT))
    max_wait = float(max_wait) if max_wait is not None else None
    if max_wait is not None and max_wait <= 0:
        max_wait = None

    return VideoSettings(
        model=os.environ.get("STORYTELLER_VIDEO_MODEL", video_config.get("model", DEFAULT_VIDEO_MODEL)),
        resolution=Resolution(video_config.get("resolution", Resolution.HD.value)),
        poll_interval=float(
            os.environ.get("STORYTELLER_POLL_INTERVAL", video_config.get("poll_interval", DEFAULT_POLL_INTERVAL))
        ),
        max_wait=max_wait,
    )

