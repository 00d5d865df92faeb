"""
Tests for core.config module.
"""

import pytest

from core.config import (
    DEFAULT_CONFIG_FILE,
    get_api_key,
    get_lyrics_config,
    get_storyboard_config,
    get_storyboard_generation_config,
    get_video_settings,
    load_config,
)
from core.constants import (
    DEFAULT_MAX_WAIT,
    DEFAULT_STYLE_TAG,
    DEFAULT_VIDEO_MODEL,
    AspectRatio,
    Resolution,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "GEMINI_API_KEY",
        "API_KEY",
        "STORYTELLER_LYRICS_MODEL",
        "STORYTELLER_STORYBOARD_MODEL",
        "STORYTELLER_VIDEO_MODEL",
        "STORYTELLER_POLL_INTERVAL",
        "STORYTELLER_MAX_WAIT",
    ):
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    """Tests for load_config."""

    def test_shipped_config_loads(self):
        """Test the bundled YAML has every section."""
        config = load_config(DEFAULT_CONFIG_FILE)

        for section in ("lyrics", "storyboard", "video"):
            assert section in config

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test defaults when the file does not exist."""
        config = load_config(tmp_path / "missing.yaml")

        assert get_video_settings(config).model == DEFAULT_VIDEO_MODEL
        assert get_video_settings(config).max_wait == DEFAULT_MAX_WAIT
        assert get_lyrics_config(config).use_search is True

    def test_empty_file(self, tmp_path):
        """Test an empty YAML file yields an empty dict."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path) == {}
        assert get_storyboard_config({}).style_tag == DEFAULT_STYLE_TAG


class TestApiKey:
    """Tests for get_api_key."""

    def test_env_precedence(self, monkeypatch):
        """Test GEMINI_API_KEY wins over API_KEY and the file."""
        monkeypatch.setenv("API_KEY", "fallback")
        monkeypatch.setenv("GEMINI_API_KEY", "primary")

        assert get_api_key({"api_key": "from-file"}) == "primary"

    def test_api_key_env(self, monkeypatch):
        """Test API_KEY is used when GEMINI_API_KEY is unset."""
        monkeypatch.setenv("API_KEY", "fallback")

        assert get_api_key({"api_key": ""}) == "fallback"

    def test_config_file_fallback(self):
        """Test the config entry is used last."""
        assert get_api_key({"api_key": "from-file"}) == "from-file"
        assert get_api_key({}) == ""


class TestStageConfig:
    """Tests for per-stage getters."""

    def test_storyboard_generation(self):
        """Test sampling values are read from the storyboard section."""
        config = {"storyboard": {"model": "gemini-x", "temperature": 0.5, "thinking_budget": 128}}

        result = get_storyboard_generation_config(config)

        assert result.model == "gemini-x"
        assert result.temperature == 0.5
        assert result.thinking_budget == 128
        assert result.top_k == 64

    def test_model_env_overrides(self, monkeypatch):
        """Test model env vars take precedence."""
        monkeypatch.setenv("STORYTELLER_LYRICS_MODEL", "lyrics-env")
        monkeypatch.setenv("STORYTELLER_STORYBOARD_MODEL", "storyboard-env")
        monkeypatch.setenv("STORYTELLER_VIDEO_MODEL", "video-env")
        config = {"lyrics": {"model": "a"}, "storyboard": {"model": "b"}, "video": {"model": "c"}}

        assert get_lyrics_config(config).model == "lyrics-env"
        assert get_storyboard_generation_config(config).model == "storyboard-env"
        assert get_video_settings(config).model == "video-env"

    def test_treatment(self):
        """Test treatment parameters map onto StoryboardConfig."""
        config = {"storyboard": {"treatment": {
            "style_label": "Film Noir",
            "style_tag": "Noir Style",
            "aspect_ratio": "9:16",
            "min_scenes": 4,
        }}}

        result = get_storyboard_config(config)

        assert result.style_label == "Film Noir"
        assert result.style_tag == "Noir Style"
        assert result.aspect_ratio == AspectRatio.PORTRAIT
        assert result.min_scenes == 4


class TestVideoSettings:
    """Tests for get_video_settings."""

    def test_from_file(self):
        """Test values from the video section."""
        config = {"video": {"resolution": "1080p", "poll_interval": 5, "max_wait": 120}}

        settings = get_video_settings(config)

        assert settings.resolution == Resolution.FULL_HD
        assert settings.poll_interval == 5.0
        assert settings.max_wait == 120.0

    def test_env_overrides(self, monkeypatch):
        """Test polling env vars take precedence."""
        monkeypatch.setenv("STORYTELLER_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("STORYTELLER_MAX_WAIT", "30")

        settings = get_video_settings({"video": {"poll_interval": 10, "max_wait": 600}})

        assert settings.poll_interval == 2.5
        assert settings.max_wait == 30.0

    @pytest.mark.parametrize("max_wait", [0, -1, "0"])
    def test_non_positive_max_wait_is_unbounded(self, max_wait):
        """Test zero or negative max_wait disables the timeout."""
        assert get_video_settings({"video": {"max_wait": max_wait}}).max_wait is None

    def test_null_max_wait_is_unbounded(self):
        """Test an explicit null disables the timeout."""
        assert get_video_settings({"video": {"max_wait": None}}).max_wait is None
