"""
Storyteller - Generation Client

Async wrapper around the Google GenAI SDK for the three remote stages:
grounded lyric lookup, storyboard text generation and Veo video generation.

Video workflow: submit prompt -> poll operation -> return download locator

Environment Variables:
    GEMINI_API_KEY / API_KEY: API key (re-read on every call)
    STORYTELLER_*_MODEL: Model overrides (see core/config.py)
"""

from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from google import genai
from google.genai import types
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_delay,
    stop_never,
    wait_fixed,
)

from core.config import (
    VideoSettings,
    get_api_key,
    get_lyrics_config,
    get_storyboard_config,
    get_storyboard_generation_config,
    get_video_settings,
    load_config,
)
from core.constants import AUTH_FAILURE_SIGNATURE
from core.errors import AuthError, GenerationTimeout, StorytellerError, UpstreamError
from core.logging import get_logger
from core.models import (
    LyricsRecord,
    SongIdentity,
    StoryboardConfig,
    TextGenerationConfig,
    VideoGenerationConfig,
)
from pipeline.prompt_templates import build_lyrics_prompt, build_storyboard_prompt

logger = get_logger(__name__)


def classify_error(error: Exception, context: str) -> UpstreamError:
    """
    Convert an SDK/transport failure into an UpstreamError.

    Failures carrying the invalid-key signature become AuthError so the
    caller can ask for a new credential.

    Args:
        error: Original exception
        context: Stage description, e.g. "lyric lookup"

    Returns:
        UpstreamError or AuthError embedding the original message
    """
    message = str(error)
    if AUTH_FAILURE_SIGNATURE in message:
        return AuthError(
            f"API key might be invalid or has expired during {context}. "
            f"Please select your API key again and retry. Original error: {message}"
        )
    return UpstreamError(f"Failed {context}: {message}")


def extract_source_urls(response: Any) -> list[str]:
    """Collect grounding web URIs from a generate_content response."""
    urls: list[str] = []

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return urls

    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []
    for chunk in chunks:
        web = getattr(chunk, "web", None)
        uri = getattr(web, "uri", None)
        if uri:
            urls.append(uri)

    return urls


def append_credential(locator: str, api_key: str) -> str:
    """Append the API key as a query parameter so the asset can be fetched."""
    separator = "&" if "?" in locator else "?"
    return f"{locator}{separator}{urlencode({'key': api_key})}"


class GenerationClient:
    """
    Stateless client for the generation service.

    Holds no session state; each in-flight video call owns its own
    operation handle. The SDK client is rebuilt whenever the API key
    changes so a re-selected key takes effect immediately.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        lyrics_config: Optional[TextGenerationConfig] = None,
        storyboard_generation_config: Optional[TextGenerationConfig] = None,
        video_settings: Optional[VideoSettings] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize the generation client.

        Args:
            api_key: Fixed API key (default: resolved from env on each call)
            lyrics_config: Model for lyric lookup
            storyboard_generation_config: Model and sampling for storyboards
            video_settings: Video model and polling policy
            client: Pre-built SDK client (tests)
        """
        self.api_key = api_key
        self.lyrics_config = lyrics_config or TextGenerationConfig(use_search=True)
        self.storyboard_generation_config = storyboard_generation_config or TextGenerationConfig()
        self.video_settings = video_settings or VideoSettings()

        self._injected = client is not None
        self._client: Optional[Any] = client
        self._client_key: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "GenerationClient":
        """
        Create client from configuration.

        Args:
            config: Config dict (loads from file if None)

        Returns:
            GenerationClient instance
        """
        if config is None:
            config = load_config()

        return cls(
            lyrics_config=get_lyrics_config(config),
            storyboard_generation_config=get_storyboard_generation_config(config),
            video_settings=get_video_settings(config),
        )

    def current_api_key(self) -> str:
        return self.api_key or get_api_key()

    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return self._injected or bool(self.current_api_key())

    @property
    def client(self) -> genai.Client:
        """Get the SDK client, recreating it if the API key changed."""
        if self._injected:
            return self._client

        api_key = self.current_api_key()
        if not api_key:
            raise AuthError("GEMINI_API_KEY environment variable is not set.")

        if self._client is None or api_key != self._client_key:
            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
        return self._client

    # ------------------------------------------------------------------
    # Text stages
    # ------------------------------------------------------------------

    async def lookup_lyrics(self, title: str, artist: str) -> LyricsRecord:
        """
        Look up existing lyrics using Google Search grounding.

        Args:
            title: Song title
            artist: Song artist

        Returns:
            LyricsRecord with text and grounding source URLs
        """
        config = self.lyrics_config
        tools = [types.Tool(google_search=types.GoogleSearch())] if config.use_search else None

        logger.info(f"Looking up lyrics: '{title}' by {artist}")
        try:
            response = await self.client.aio.models.generate_content(
                model=config.model,
                contents=build_lyrics_prompt(title, artist),
                config=types.GenerateContentConfig(tools=tools),
            )
        except StorytellerError:
            raise
        except Exception as e:
            logger.error(f"Error looking up lyrics: {e}")
            raise classify_error(e, "to look up lyrics") from e

        source_urls = extract_source_urls(response)
        logger.info(f"Lyrics found with {len(source_urls)} source(s)")

        return LyricsRecord(
            text=response.text or "",
            source_citations=source_urls,
            identity=SongIdentity(title=title, artist=artist),
        )

    async def generate_storyboard(
        self,
        identity: SongIdentity,
        lyrics: str,
        config: Optional[StoryboardConfig] = None,
    ) -> str:
        """
        Generate a storyboard and visual treatment for a song.

        Args:
            identity: Song title and artist
            lyrics: Lyrics text
            config: Treatment parameters (default: from config file)

        Returns:
            Storyboard document (markdown text)
        """
        if config is None:
            config = get_storyboard_config()

        gen = self.storyboard_generation_config
        thinking = (
            types.ThinkingConfig(thinking_budget=gen.thinking_budget)
            if gen.thinking_budget is not None
            else None
        )

        logger.info(f"Generating storyboard for '{identity.title}' ({config.style_label})")
        try:
            response = await self.client.aio.models.generate_content(
                model=gen.model,
                contents=build_storyboard_prompt(identity, lyrics, config),
                config=types.GenerateContentConfig(
                    temperature=gen.temperature,
                    top_p=gen.top_p,
                    top_k=gen.top_k,
                    max_output_tokens=gen.max_output_tokens,
                    thinking_config=thinking,
                ),
            )
        except StorytellerError:
            raise
        except Exception as e:
            logger.error(f"Error generating storyboard: {e}")
            raise classify_error(e, "to generate storyboard") from e

        document = response.text or ""
        logger.info(f"Storyboard generated ({len(document)} chars)")
        return document

    # ------------------------------------------------------------------
    # Video stage
    # ------------------------------------------------------------------

    async def generate_video(self, prompt: str, config: VideoGenerationConfig) -> str:
        """
        Generate a video and wait for the long-running operation.

        Polls every `poll_interval` seconds; gives up after `max_wait`
        seconds (never, if max_wait is None). Cancelling the awaiting task
        abandons the poll loop.

        Args:
            prompt: Video prompt
            config: Aspect ratio and resolution

        Returns:
            Download locator with the API key appended

        Raises:
            UpstreamError: No operation handle or no video URI
            AuthError: API key rejected
            GenerationTimeout: Operation not done within max_wait
        """
        settings = self.video_settings
        logger.info(
            f"Generating video ({config.aspect_ratio.value}, {config.resolution.value}): {prompt[:100]}"
        )

        try:
            operation = await self.client.aio.models.generate_videos(
                model=settings.model,
                prompt=prompt,
                config=types.GenerateVideosConfig(
                    number_of_videos=1,
                    resolution=config.resolution.value,
                    aspect_ratio=config.aspect_ratio.value,
                ),
            )
            if operation is None:
                raise UpstreamError("Video generation did not return an operation handle.")

            logger.info("Video generation initiated. Polling for completion...")
            operation = await self._wait_for_operation(operation)
        except StorytellerError:
            raise
        except Exception as e:
            logger.error(f"Error generating video: {e}")
            raise classify_error(e, "to generate video") from e

        if getattr(operation, "error", None):
            raise UpstreamError(f"Video generation failed: {operation.error}")

        uri = self._video_uri(operation)
        if not uri:
            raise UpstreamError("Video generation completed, but no download link was found in the response.")

        logger.info("Video generation successful. Download link obtained.")
        return append_credential(uri, self.current_api_key())

    async def _wait_for_operation(self, operation: Any) -> Any:
        """Poll the operation until done, bounded by max_wait."""
        settings = self.video_settings
        stop = stop_after_delay(settings.max_wait) if settings.max_wait is not None else stop_never

        retrying = AsyncRetrying(
            retry=retry_if_result(lambda op: not op.done),
            wait=wait_fixed(settings.poll_interval),
            stop=stop,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    # The submitted handle is checked first; later attempts refresh it
                    if attempt.retry_state.attempt_number > 1:
                        operation = await self.client.aio.operations.get(operation)
                        logger.info(f"Video generation status: {'Done' if operation.done else 'Processing...'}")
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(operation)
        except RetryError as e:
            raise GenerationTimeout(
                f"Video generation did not complete within {settings.max_wait:.0f}s"
            ) from e

        return operation

    @staticmethod
    def _video_uri(operation: Any) -> Optional[str]:
        response = getattr(operation, "response", None)
        videos = getattr(response, "generated_videos", None) or []
        if not videos:
            return None
        video = getattr(videos[0], "video", None)
        return getattr(video, "uri", None)

    async def download_video(self, locator: str, output_path: Path, timeout: float = 120.0) -> Path:
        """
        Download a generated video asset.

        Args:
            locator: Locator returned by generate_video (key already appended)
            output_path: Where to save the video
            timeout: Request timeout in seconds

        Returns:
            Path of the written file
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as http:
                response = await http.get(locator)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Video download failed: {e}")
            raise UpstreamError(f"Failed to download video: {e}") from e

        output_path.write_bytes(response.content)
        logger.info(f"Saved video: {output_path} ({len(response.content)} bytes)")
        return output_path
