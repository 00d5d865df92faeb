"""
Storyteller - Session Controller

Owns the session state and sequences the remote stages:

    song identity -> lyric lookup -> storyboard -> derived prompts -> videos

Each stage has its own GenerationTask (busy / result / error). Starting an
upstream stage invalidates everything downstream of it, as declared in
INVALIDATION_TABLE. Failures never escape an operation; they are recorded
in the stage's error slot.
"""

import asyncio
from typing import Optional

from core.config import get_storyboard_config, get_video_settings
from core.constants import (
    VIDEO_TASKS,
    Artifact,
    AspectRatio,
    Resolution,
    TaskKind,
    VideoSlot,
)
from core.credentials import CredentialProvider, EnvironmentCredentials
from core.errors import AuthError, StorytellerError, UpstreamError, ValidationError
from core.logging import get_logger
from core.models import (
    GenerationTask,
    LyricsRecord,
    SessionState,
    SongIdentity,
    StoryboardConfig,
    VideoGenerationConfig,
    VideoGenerationRequest,
)
from pipeline.genai_client import GenerationClient
from pipeline.prompt_deriver import PromptDeriver, RegexPromptDeriver

logger = get_logger(__name__)


# Downstream artifacts reset when a stage starts
INVALIDATION_TABLE: dict[TaskKind, tuple[Artifact, ...]] = {
    TaskKind.LYRICS_LOOKUP: (Artifact.STORYBOARD, Artifact.OVERALL_VIDEO, Artifact.CUSTOM_VIDEO),
    TaskKind.STORYBOARD_GENERATION: (Artifact.STORYBOARD, Artifact.OVERALL_VIDEO, Artifact.CUSTOM_VIDEO),
    TaskKind.OVERALL_VIDEO: (),
    TaskKind.CUSTOM_VIDEO: (),
}

# A material lyrics edit invalidates the same set as a storyboard run
LYRICS_EDIT_INVALIDATES = INVALIDATION_TABLE[TaskKind.STORYBOARD_GENERATION]


class StoryboardController:
    """
    State machine for one storyboard session.

    Single-threaded and cooperative: every remote call is an await point.
    The caller is expected not to re-invoke a stage while its task is busy,
    except for video slots, where a relaunch cancels the previous job.
    """

    def __init__(
        self,
        client: GenerationClient,
        credentials: Optional[CredentialProvider] = None,
        deriver: Optional[PromptDeriver] = None,
        storyboard_config: Optional[StoryboardConfig] = None,
        resolution: Optional[Resolution] = None,
    ):
        """
        Initialize the controller.

        Args:
            client: Generation service client
            credentials: Host credential capability (default: environment)
            deriver: Prompt derivation strategy (default: regex)
            storyboard_config: Fixed treatment parameters (default: config file)
            resolution: Video resolution (default: config file)
        """
        self.client = client
        self.credentials = credentials or EnvironmentCredentials()
        self.storyboard_config = storyboard_config or get_storyboard_config()
        self.deriver = deriver or RegexPromptDeriver(style_tag=self.storyboard_config.style_tag)
        self.resolution = resolution or get_video_settings().resolution

        self._state = SessionState()
        self._video_jobs: dict[VideoSlot, asyncio.Task] = {}
        self._side_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def identity(self) -> SongIdentity:
        return self._state.identity

    @property
    def lyrics(self) -> LyricsRecord:
        return self._state.lyrics

    @property
    def storyboard(self) -> str:
        return self._state.storyboard

    @property
    def overall_prompt(self) -> str:
        return self._state.overall_prompt

    @property
    def custom_prompt(self) -> str:
        return self._state.custom_prompt

    @property
    def aspect_ratio(self) -> AspectRatio:
        return self._state.aspect_ratio

    def task(self, kind: TaskKind) -> GenerationTask:
        return self._state.tasks[kind]

    def video_task(self, slot: VideoSlot) -> GenerationTask:
        return self._state.tasks[VIDEO_TASKS[slot]]

    def video_prompt(self, slot: VideoSlot) -> str:
        """Current prompt for a video slot."""
        if slot == VideoSlot.OVERALL:
            return self._state.overall_prompt
        return self._state.custom_prompt

    def snapshot(self) -> SessionState:
        """Deep copy of the current session state."""
        return self._state.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Plain setters
    # ------------------------------------------------------------------

    def update_identity(self, identity: SongIdentity) -> None:
        """Replace the song identity. Validation happens at lookup time."""
        self._state.identity = identity

    def update_lyrics(self, text: str) -> None:
        """
        Replace the lyrics with user-supplied text.

        Pasted lyrics carry no citations. A material change (different text
        after trimming) invalidates the storyboard and both videos.
        """
        changed = text.strip() != self._state.lyrics.text.strip()
        self._state.lyrics = LyricsRecord(text=text)
        if changed:
            self._invalidate(LYRICS_EDIT_INVALIDATES)

    def set_custom_prompt(self, prompt: str) -> None:
        self._state.custom_prompt = prompt

    def set_aspect_ratio(self, ratio: AspectRatio) -> None:
        """Applies to the next video request only."""
        self._state.aspect_ratio = AspectRatio(ratio)

    def reset(self) -> None:
        """Cancel in-flight video jobs and restore the initial state."""
        for slot in list(self._video_jobs):
            self._cancel_video_job(slot)
        self._state = SessionState()
        logger.info("Session reset")

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def _invalidate(self, artifacts: tuple[Artifact, ...]) -> None:
        for artifact in artifacts:
            if artifact == Artifact.LYRICS:
                self._state.lyrics = LyricsRecord()
            elif artifact == Artifact.STORYBOARD:
                self._set_storyboard("")
                if not self._state.tasks[TaskKind.STORYBOARD_GENERATION].busy:
                    self._state.tasks[TaskKind.STORYBOARD_GENERATION].clear()
            elif artifact == Artifact.OVERALL_VIDEO:
                self._state.tasks[TaskKind.OVERALL_VIDEO].result = None
                self._state.tasks[TaskKind.OVERALL_VIDEO].error = None
                self._state.tasks[TaskKind.OVERALL_VIDEO].error_kind = None
            elif artifact == Artifact.CUSTOM_VIDEO:
                self._state.tasks[TaskKind.CUSTOM_VIDEO].result = None
                self._state.tasks[TaskKind.CUSTOM_VIDEO].error = None
                self._state.tasks[TaskKind.CUSTOM_VIDEO].error_kind = None

    def _begin(self, kind: TaskKind) -> GenerationTask:
        """Start a stage: reset downstream state, then mark the task busy."""
        task = self._state.tasks[kind]
        task.start()
        self._invalidate(INVALIDATION_TABLE[kind])
        return task

    def _set_storyboard(self, document: str) -> None:
        """Store the storyboard and recompute the derived prompts."""
        self._state.storyboard = document
        if document:
            prompts = self.deriver.derive(document)
            self._state.overall_prompt = prompts.overall_prompt
            self._state.custom_prompt = prompts.scene_one_prompt
        else:
            self._state.overall_prompt = ""
            self._state.custom_prompt = ""

    @staticmethod
    def _fail(task: GenerationTask, error: StorytellerError, prefix: str) -> None:
        task.fail(f"{prefix} {error}", error.kind)

    @staticmethod
    def _as_error(error: Exception) -> StorytellerError:
        """Failures from injected collaborators are reported as upstream errors."""
        if isinstance(error, StorytellerError):
            return error
        return UpstreamError(str(error) or type(error).__name__)

    def _superseded(self, state: SessionState, kind: TaskKind) -> bool:
        """True if reset() replaced the session while a stage was suspended."""
        if self._state is state:
            return False
        logger.info(f"Session reset during {kind.value}, discarding its outcome")
        return True

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def lookup_lyrics(self) -> GenerationTask:
        """
        Look up lyrics for the current song identity.

        Returns:
            The lyrics lookup task after completion
        """
        task = self._state.tasks[TaskKind.LYRICS_LOOKUP]
        identity = self._state.identity

        if not identity.is_complete():
            error = ValidationError("Please provide both song title and artist to look up lyrics.")
            logger.warning(str(error))
            self._fail(task, error, "Failed to look up lyrics.")
            return task

        state = self._state
        self._begin(TaskKind.LYRICS_LOOKUP)
        if state.lyrics.identity is not None and state.lyrics.identity != identity:
            self._invalidate((Artifact.LYRICS,))

        try:
            record = await self.client.lookup_lyrics(identity.title, identity.artist)
        except asyncio.CancelledError:
            task.busy = False
            raise
        except Exception as e:
            if self._superseded(state, TaskKind.LYRICS_LOOKUP):
                return self._state.tasks[TaskKind.LYRICS_LOOKUP]
            error = self._as_error(e)
            logger.error(f"Failed to look up lyrics: {error}")
            state.lyrics = LyricsRecord()
            self._fail(task, error, "Failed to look up lyrics. Please try again.")
            return task

        if self._superseded(state, TaskKind.LYRICS_LOOKUP):
            return self._state.tasks[TaskKind.LYRICS_LOOKUP]
        state.lyrics = record
        task.succeed()
        return task

    async def generate_storyboard(self) -> GenerationTask:
        """
        Generate the storyboard from the current lyrics.

        Returns:
            The storyboard task after completion
        """
        task = self._state.tasks[TaskKind.STORYBOARD_GENERATION]
        lyrics = self._state.lyrics.text

        if not lyrics.strip():
            error = ValidationError("Lyrics are required to generate a storyboard. Please look up or paste them.")
            logger.warning(str(error))
            self._fail(task, error, "Failed to generate storyboard.")
            return task

        state = self._state
        self._begin(TaskKind.STORYBOARD_GENERATION)

        try:
            document = await self.client.generate_storyboard(
                state.identity,
                lyrics,
                self.storyboard_config,
            )
        except asyncio.CancelledError:
            task.busy = False
            raise
        except Exception as e:
            if self._superseded(state, TaskKind.STORYBOARD_GENERATION):
                return self._state.tasks[TaskKind.STORYBOARD_GENERATION]
            error = self._as_error(e)
            logger.error(f"Failed to generate storyboard: {error}")
            self._fail(task, error, "Failed to generate storyboard. Please try again.")
            return task

        if self._superseded(state, TaskKind.STORYBOARD_GENERATION):
            return self._state.tasks[TaskKind.STORYBOARD_GENERATION]
        self._set_storyboard(document)
        task.succeed()
        return task

    async def generate_video(
        self,
        slot: VideoSlot,
        prompt: Optional[str] = None,
        aspect_ratio: Optional[AspectRatio] = None,
    ) -> GenerationTask:
        """
        Generate a video for one slot.

        The two slots are independent. Relaunching a slot cancels its
        previous job; the cancelled job's outcome is discarded.

        Args:
            slot: Overall or custom
            prompt: Prompt text (default: the slot's current prompt)
            aspect_ratio: Override for this request (default: shared setting)

        Returns:
            The slot's task after completion
        """
        slot = VideoSlot(slot)
        kind = VIDEO_TASKS[slot]
        task = self._state.tasks[kind]

        if prompt is None:
            prompt = self.video_prompt(slot)
        if not prompt.strip():
            error = ValidationError("A prompt is required to generate a video.")
            logger.warning(str(error))
            # A blank relaunch still releases the slot's running job
            self._cancel_video_job(slot)
            self._fail(task, error, "Failed to generate video:")
            return task

        request = VideoGenerationRequest(
            prompt=prompt,
            config=VideoGenerationConfig(
                aspect_ratio=AspectRatio(aspect_ratio or self._state.aspect_ratio),
                resolution=self.resolution,
            ),
        )

        self._cancel_video_job(slot)
        self._begin(kind)

        job = asyncio.ensure_future(self._run_video(request))
        self._video_jobs[slot] = job

        try:
            locator = await job
        except asyncio.CancelledError:
            if self._video_jobs.get(slot) is job:
                # Cancelled by our own caller, not superseded
                self._video_jobs.pop(slot, None)
                task.busy = False
                raise
            logger.info(f"{slot.value} video job superseded, discarding its outcome")
            return self._state.tasks[kind]
        except Exception as e:
            if self._video_jobs.get(slot) is not job:
                return self._state.tasks[kind]
            self._video_jobs.pop(slot, None)
            error = self._as_error(e)
            logger.error(f"Failed to generate {slot.value} video: {error}")
            task.fail(f"Failed to generate video: {error}. Please try again.", error.kind)
            if isinstance(error, AuthError):
                self._request_credential_in_background()
            return task

        if self._video_jobs.get(slot) is not job:
            return self._state.tasks[kind]
        self._video_jobs.pop(slot, None)
        task.succeed(locator)
        return task

    async def _run_video(self, request: VideoGenerationRequest) -> str:
        if not await self.credentials.has_credential():
            logger.warning("No API key selected for video generation. Requesting one.")
            await self.credentials.request_credential()
        return await self.client.generate_video(request.prompt, request.config)

    def _cancel_video_job(self, slot: VideoSlot) -> None:
        job = self._video_jobs.pop(slot, None)
        if job is not None and not job.done():
            logger.info(f"Cancelling in-flight {slot.value} video job")
            job.cancel()

    def _request_credential_in_background(self) -> None:
        """Ask the host for a new credential without waiting for it."""
        logger.warning("Attempting to re-open API key selection due to reported invalid key.")
        side_task = asyncio.ensure_future(self.credentials.request_credential())
        self._side_tasks.add(side_task)
        side_task.add_done_callback(self._on_side_task_done)

    def _on_side_task_done(self, side_task: asyncio.Task) -> None:
        self._side_tasks.discard(side_task)
        if not side_task.cancelled() and side_task.exception() is not None:
            logger.warning(f"Credential re-selection failed: {side_task.exception()}")
