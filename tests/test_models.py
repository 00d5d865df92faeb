"""
Tests for core models and credential providers.
"""

import os

import pytest
from unittest.mock import patch

from core.constants import ErrorKind, TaskKind
from core.credentials import EnvironmentCredentials, PromptCredentials
from core.models import GenerationTask, SessionState, SongIdentity


# ============================================================================
# Model Tests
# ============================================================================


@pytest.mark.parametrize("title,artist,expected", [
    ("Hurt", "Johnny Cash", True),
    ("Hurt", "", False),
    ("", "Johnny Cash", False),
    ("  ", "Johnny Cash", False),
    ("Hurt", "\t", False),
])
def test_song_identity_is_complete(title, artist, expected):
    """Test both fields must be non-blank."""
    assert SongIdentity(title=title, artist=artist).is_complete() is expected


def test_generation_task_lifecycle():
    """Test start/succeed/fail keep result and error exclusive."""
    task = GenerationTask()

    task.fail("Failed to generate video: boom", ErrorKind.UPSTREAM)
    assert (task.busy, task.result, task.error_kind) == (False, None, ErrorKind.UPSTREAM)

    task.start()
    assert task.busy is True
    assert task.error is None
    assert task.error_kind is None

    task.succeed("https://video/x")
    assert (task.busy, task.result, task.error) == (False, "https://video/x", None)

    task.clear()
    assert task == GenerationTask()


def test_session_state_defaults():
    """Test a fresh session has one idle task per stage."""
    state = SessionState()

    assert set(state.tasks) == set(TaskKind)
    assert all(not task.busy for task in state.tasks.values())
    assert state.lyrics.source_citations is None
    assert state.storyboard == ""


def test_session_states_do_not_share_tasks():
    """Test task dicts are independent between sessions."""
    first, second = SessionState(), SessionState()

    first.tasks[TaskKind.LYRICS_LOOKUP].start()

    assert second.tasks[TaskKind.LYRICS_LOOKUP].busy is False


# ============================================================================
# Credential Tests
# ============================================================================


class TestEnvironmentCredentials:
    """Tests for EnvironmentCredentials."""

    @pytest.mark.asyncio
    async def test_has_credential(self, monkeypatch):
        """Test the key is read from the environment."""
        monkeypatch.setenv("GEMINI_API_KEY", "secret")

        assert await EnvironmentCredentials().has_credential() is True

    @pytest.mark.asyncio
    async def test_missing_credential(self):
        """Test no key in env or config."""
        with patch("core.credentials.get_api_key", return_value=""):
            assert await EnvironmentCredentials().has_credential() is False

    @pytest.mark.asyncio
    async def test_request_does_not_raise(self):
        """Test requesting only logs."""
        assert await EnvironmentCredentials().request_credential() is None


class TestPromptCredentials:
    """Tests for PromptCredentials."""

    @pytest.mark.asyncio
    async def test_prompted_key_stored(self, monkeypatch):
        """Test an entered key is exported for the session."""
        monkeypatch.setenv("GEMINI_API_KEY", "")

        with patch("typer.prompt", return_value="entered-key"):
            await PromptCredentials().request_credential()

        assert os.environ["GEMINI_API_KEY"] == "entered-key"

    @pytest.mark.asyncio
    async def test_empty_entry_leaves_env(self, monkeypatch):
        """Test an empty answer changes nothing."""
        monkeypatch.delenv("API_KEY", raising=False)

        with patch("typer.prompt", return_value=""):
            await PromptCredentials(env_var="API_KEY").request_credential()

        assert "API_KEY" not in os.environ
