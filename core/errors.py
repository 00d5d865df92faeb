"""
Storyteller - Errors

Failure kinds raised by the generation client and caught by the controller.
"""

from core.constants import ErrorKind


class StorytellerError(Exception):
    """Base class for all storyteller failures."""

    kind: ErrorKind = ErrorKind.UPSTREAM


class ValidationError(StorytellerError):
    """Required input is missing; raised before any upstream call."""

    kind = ErrorKind.VALIDATION


class UpstreamError(StorytellerError):
    """The generation service call failed."""

    kind = ErrorKind.UPSTREAM


class AuthError(UpstreamError):
    """The generation service rejected the API key."""

    kind = ErrorKind.AUTH


class GenerationTimeout(StorytellerError):
    """A long-running video job did not finish within the allowed wait."""

    kind = ErrorKind.TIMEOUT
