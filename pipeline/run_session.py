"""
Storyteller - Session CLI

Command-line driver for the storyboard session: look up lyrics, generate a
storyboard and its derived prompts, and generate videos.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from core.config import (
    get_api_key,
    get_lyrics_config,
    get_storyboard_config,
    get_storyboard_generation_config,
    get_video_settings,
    load_config,
)
from core.constants import AspectRatio, TaskKind, VideoSlot
from core.credentials import PromptCredentials
from core.errors import UpstreamError
from core.logging import get_console, get_logger
from core.models import GenerationTask, SongIdentity
from pipeline.controller import StoryboardController
from pipeline.genai_client import GenerationClient
from pipeline.prompt_deriver import RegexPromptDeriver

app = typer.Typer(
    name="storyteller",
    help="Storyteller: music video storyboards and clips from song lyrics",
    add_completion=False,
)

console = get_console()
logger = get_logger(__name__)


def _build_controller() -> StoryboardController:
    config = load_config()
    return StoryboardController(
        client=GenerationClient.from_config(config),
        credentials=PromptCredentials(),
        storyboard_config=get_storyboard_config(config),
        resolution=get_video_settings(config).resolution,
    )


def _exit_on_error(task: GenerationTask) -> None:
    if task.error:
        console.print(f"[red]{task.error}[/red]")
        raise typer.Exit(1)


def _run_with_spinner(description: str, coro):
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        return asyncio.run(coro)


async def _lookup_and_storyboard(
    controller: StoryboardController,
    lyrics_file: Optional[Path],
) -> tuple[GenerationTask, GenerationTask]:
    if lyrics_file:
        controller.update_lyrics(lyrics_file.read_text(encoding="utf-8"))
        lyrics_task = controller.task(TaskKind.LYRICS_LOOKUP)
    else:
        lyrics_task = await controller.lookup_lyrics()
        if lyrics_task.error:
            return lyrics_task, controller.task(TaskKind.STORYBOARD_GENERATION)
    storyboard_task = await controller.generate_storyboard()
    return lyrics_task, storyboard_task


# ============================================================================
# Commands
# ============================================================================


@app.command()
def lyrics(
    title: str = typer.Argument(..., help="Song title"),
    artist: str = typer.Argument(..., help="Song artist"),
) -> None:
    """
    Look up existing lyrics with search grounding.
    """
    controller = _build_controller()
    controller.update_identity(SongIdentity(title=title, artist=artist))

    task = _run_with_spinner("Looking up lyrics...", controller.lookup_lyrics())
    _exit_on_error(task)

    console.print(Panel(controller.lyrics.text, title=f"{title} - {artist}"))
    for url in controller.lyrics.source_citations or []:
        console.print(f"  [dim]source:[/dim] {url}")


@app.command()
def storyboard(
    title: str = typer.Argument(..., help="Song title"),
    artist: str = typer.Argument(..., help="Song artist"),
    lyrics_file: Optional[Path] = typer.Option(
        None, "--lyrics-file", "-l",
        help="Use lyrics from this file instead of looking them up",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o",
        help="Save the storyboard markdown here",
    ),
) -> None:
    """
    Generate a storyboard and print the derived video prompts.
    """
    if lyrics_file and not lyrics_file.exists():
        console.print(f"[red]Lyrics file not found: {lyrics_file}[/red]")
        raise typer.Exit(1)

    controller = _build_controller()
    controller.update_identity(SongIdentity(title=title, artist=artist))

    lyrics_task, storyboard_task = _run_with_spinner(
        "Generating storyboard...",
        _lookup_and_storyboard(controller, lyrics_file),
    )
    _exit_on_error(lyrics_task)
    _exit_on_error(storyboard_task)

    console.print(Markdown(controller.storyboard))

    table = Table(title="Derived video prompts")
    table.add_column("Slot", style="cyan")
    table.add_column("Prompt")
    table.add_row(VideoSlot.OVERALL.value, controller.overall_prompt)
    table.add_row(VideoSlot.CUSTOM.value, controller.custom_prompt)
    console.print(table)

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(controller.storyboard, encoding="utf-8")
        console.print(f"Storyboard saved: {output}")


@app.command()
def video(
    storyboard_file: Optional[Path] = typer.Option(
        None, "--storyboard", "-s",
        help="Storyboard markdown to derive the prompt from",
    ),
    prompt: Optional[str] = typer.Option(
        None, "--prompt", "-p",
        help="Explicit prompt (overrides the derived one)",
    ),
    slot: VideoSlot = typer.Option(
        VideoSlot.OVERALL, "--slot",
        help="Which derived prompt to use",
    ),
    aspect_ratio: AspectRatio = typer.Option(
        AspectRatio.LANDSCAPE, "--aspect-ratio", "-a",
        help="Video aspect ratio",
    ),
    download: Optional[Path] = typer.Option(
        None, "--download", "-d",
        help="Download the video to this path",
    ),
) -> None:
    """
    Generate a video from a prompt or from a saved storyboard.
    """
    if prompt is None:
        if storyboard_file is None or not storyboard_file.exists():
            console.print("[red]Provide --prompt or an existing --storyboard file[/red]")
            raise typer.Exit(1)
        config = load_config()
        deriver = RegexPromptDeriver(style_tag=get_storyboard_config(config).style_tag)
        derived = deriver.derive(storyboard_file.read_text(encoding="utf-8"))
        prompt = derived.overall_prompt if slot == VideoSlot.OVERALL else derived.scene_one_prompt

    console.print(f"Prompt: {prompt}")
    console.print(f"Aspect ratio: {aspect_ratio.value}")

    controller = _build_controller()
    controller.set_aspect_ratio(aspect_ratio)

    task = _run_with_spinner(
        "Generating video (this can take minutes)...",
        controller.generate_video(slot, prompt),
    )
    _exit_on_error(task)

    if download:
        try:
            _run_with_spinner("Downloading video...", controller.client.download_video(task.result, download))
        except UpstreamError as e:
            logger.error(f"Download to {download} failed")
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)

    console.print("\n[green]Success![/green]")
    if download:
        console.print(f"Output: {download}")
    else:
        console.print(f"Locator: {task.result}")


@app.command()
def status() -> None:
    """
    Show API key and model configuration.
    """
    config = load_config()
    lyrics_config = get_lyrics_config(config)
    storyboard_generation = get_storyboard_generation_config(config)
    treatment = get_storyboard_config(config)
    video_settings = get_video_settings(config)

    api_key = get_api_key(config)
    if api_key:
        console.print(f"API key: [green]set[/green] ({api_key[:6]}...)")
    else:
        console.print("API key: [yellow]not set[/yellow] (GEMINI_API_KEY or API_KEY)")

    table = Table(title="Stages")
    table.add_column("Stage", style="cyan")
    table.add_column("Model")
    table.add_column("Settings")
    table.add_row("lyrics", lyrics_config.model, f"search={lyrics_config.use_search}")
    table.add_row(
        "storyboard",
        storyboard_generation.model,
        f"{treatment.style_label}, {treatment.target_duration}, "
        f"{treatment.min_scenes}-{treatment.max_scenes} scenes",
    )
    max_wait = f"{video_settings.max_wait:.0f}s" if video_settings.max_wait is not None else "unbounded"
    table.add_row(
        "video",
        video_settings.model,
        f"{video_settings.resolution.value}, poll {video_settings.poll_interval:.0f}s, max {max_wait}",
    )
    console.print(table)


# ============================================================================
# Entry Point
# ============================================================================


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
