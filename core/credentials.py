"""
Storyteller - Credentials

Host capability for checking and re-selecting the generation API key.
The controller depends only on the CredentialProvider protocol.
"""

import os
from typing import Protocol

from core.config import get_api_key
from core.constants import API_KEY_ENV_VARS
from core.logging import get_logger

logger = get_logger(__name__)


class CredentialProvider(Protocol):
    """Check for and request an API credential from the hosting environment."""

    async def has_credential(self) -> bool:
        ...

    async def request_credential(self) -> None:
        ...


class EnvironmentCredentials:
    """
    Credentials read from the process environment.

    Requesting a credential cannot open a dialog here, so it only tells the
    operator which variable to set; the key is re-read on the next call.
    """

    async def has_credential(self) -> bool:
        return bool(get_api_key())

    async def request_credential(self) -> None:
        logger.warning(
            f"API key missing or rejected. Set one of: {', '.join(API_KEY_ENV_VARS)} "
            "(billing info: ai.google.dev/gemini-api/docs/billing)"
        )


class PromptCredentials(EnvironmentCredentials):
    """Interactive credentials for the CLI: asks for a key on the terminal."""

    def __init__(self, env_var: str = API_KEY_ENV_VARS[0]):
        self.env_var = env_var

    async def request_credential(self) -> None:
        import typer

        key = typer.prompt("Gemini API key", hide_input=True, default="", show_default=False)
        if key:
            os.environ[self.env_var] = key
            logger.info(f"API key stored in {self.env_var} for this session")
        else:
            await super().request_credential()
