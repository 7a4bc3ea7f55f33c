"""Typer CLI entrypoint for articlecast."""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys

import typer
from pydantic import ValidationError

from articlecast.bookmarks import BookmarkSynchronizer, Err, SyncResult
from articlecast.config import (
    WPM_ENV_VAR,
    ConfigError,
    FetchConfig,
    ReaderConfig,
    SpeechConfig,
    StoreConfig,
)
from articlecast.extractor import extract
from articlecast.fetcher import FetchError, fetch_markup
from articlecast.models import BookmarkState, ExtractedArticle
from articlecast.playback import PlaybackState, PlaybackStatus
from articlecast.renderer import render_article_text
from articlecast.screen import ArticleScreen
from articlecast.session import SessionStore
from articlecast.speech import (
    CommandSpeechEngine,
    SynthesisError,
    estimate_duration_ms,
    format_duration,
    narration_text,
    segment_into_chunks,
)
from articlecast.store import AppwriteProfileStore, StoreError

app = typer.Typer(help="Read news articles from their web pages and listen to them.", no_args_is_help=True)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")) -> None:
    """articlecast command group."""

    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _fetch_config(render: bool, timeout_seconds: int) -> FetchConfig:
    try:
        return FetchConfig(render=render, timeout_seconds=timeout_seconds)
    except ValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc


def _load_article(url: str, config: FetchConfig) -> ExtractedArticle:
    try:
        markup = asyncio.run(fetch_markup(url, config))
    except FetchError as exc:
        typer.echo(f"Could not load article: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    return extract(markup)


@app.command()
def show(
    url: str = typer.Argument(..., help="Article page URL."),
    json_output: bool = typer.Option(False, "--json", help="Print the extracted article as JSON."),
    render: bool = typer.Option(False, "--render/--no-render", help="Render the page in headless Chromium."),
    timeout_seconds: int = typer.Option(30),
    words_per_minute: int = typer.Option(150, min=1, envvar=WPM_ENV_VAR),
) -> None:
    """Extract an article and print it."""

    article = _load_article(url, _fetch_config(render, timeout_seconds))
    if json_output:
        typer.echo(article.model_dump_json(indent=2))
        return

    duration = format_duration(estimate_duration_ms(narration_text(article), words_per_minute))
    typer.echo(render_article_text(article, duration_label=duration))


@app.command()
def chunks(
    url: str = typer.Argument(..., help="Article page URL."),
    render: bool = typer.Option(False, "--render/--no-render"),
    timeout_seconds: int = typer.Option(30),
    words_per_minute: int = typer.Option(150, min=1, envvar=WPM_ENV_VAR),
) -> None:
    """Print the speech chunks an article would be narrated in."""

    article = _load_article(url, _fetch_config(render, timeout_seconds))
    text = narration_text(article)
    for index, chunk in enumerate(segment_into_chunks(text), start=1):
        typer.echo(f"{index:>3}. {chunk}")
    typer.echo(f"Estimated duration: {format_duration(estimate_duration_ms(text, words_per_minute))}")


async def _narrate(url: str, config: ReaderConfig, engine: CommandSpeechEngine, interactive: bool) -> PlaybackState:
    done = asyncio.Event()
    screen: ArticleScreen | None = None

    def on_change(state: PlaybackState) -> None:
        if state.status == PlaybackStatus.FINISHED:
            done.set()
        elif state.is_playing and screen is not None and state.current_chunk_index < state.chunk_count:
            chunk = screen.playback.chunks[state.current_chunk_index]
            typer.echo(f"[{state.current_chunk_index + 1}/{state.chunk_count}] {chunk}")

    screen = ArticleScreen(
        url,
        url,
        session=SessionStore(),
        store=None,
        engine=engine,
        config=config,
        fetch=lambda target: fetch_markup(target, config.fetch),
        on_playback_change=on_change,
    )
    if await screen.open() is None:
        typer.echo(f"Could not load article: {screen.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(screen.render())

    loop = asyncio.get_running_loop()

    def on_input() -> None:
        line = sys.stdin.readline()
        if not line or line.strip().lower() == "q":
            done.set()
            return
        state = screen.toggle_listen()
        typer.echo("Paused." if state.is_paused else "Resumed.")

    if interactive:
        loop.add_reader(sys.stdin.fileno(), on_input)
        typer.echo("Press Enter to pause or resume, q then Enter to quit.")

    try:
        screen.focus()
        screen.toggle_listen()
        await done.wait()
    finally:
        if interactive:
            loop.remove_reader(sys.stdin.fileno())
        screen.blur()
    return screen.playback.state


@app.command()
def listen(
    url: str = typer.Argument(..., help="Article page URL."),
    command: str | None = typer.Option(None, help="Synthesizer command, e.g. 'espeak-ng -v en-us'."),
    rate: int | None = typer.Option(None, min=1, help="Speaking rate passed to the synthesizer."),
    render: bool = typer.Option(False, "--render/--no-render"),
    timeout_seconds: int = typer.Option(30),
    words_per_minute: int = typer.Option(150, min=1, envvar=WPM_ENV_VAR),
) -> None:
    """Narrate an article chunk by chunk."""

    try:
        config = ReaderConfig(
            fetch=FetchConfig(render=render, timeout_seconds=timeout_seconds),
            speech=SpeechConfig(
                words_per_minute=words_per_minute,
                command=shlex.split(command) if command else None,
                rate=rate,
            ),
        )
    except ValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    try:
        engine = CommandSpeechEngine.from_config(config.speech)
    except SynthesisError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    try:
        state = asyncio.run(_narrate(url, config, engine, interactive=sys.stdin.isatty()))
    except KeyboardInterrupt:
        typer.echo("Stopped.", err=True)
        raise typer.Exit(code=130)

    if state.status == PlaybackStatus.FINISHED:
        typer.echo("Finished.")
    else:
        typer.echo(f"Stopped at chunk {state.current_chunk_index + 1} of {state.chunk_count}.")


async def _toggle_bookmark(article_id: str, user_id: str, config: StoreConfig) -> tuple[SyncResult, BookmarkState]:
    async with AppwriteProfileStore(config) as store:
        user = await store.get_profile(user_id)
        synchronizer = BookmarkSynchronizer(article_id, SessionStore(user), store)
        result = await synchronizer.toggle_bookmark()
        return result, synchronizer.state


@app.command()
def bookmark(
    article_id: str = typer.Argument(..., help="Article document id."),
    user_id: str = typer.Option(..., help="Profile document id of the user."),
) -> None:
    """Toggle an article bookmark in the configured Appwrite profile store."""

    try:
        config = StoreConfig.from_env()
    except (ConfigError, ValidationError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    try:
        result, state = asyncio.run(_toggle_bookmark(article_id, user_id, config))
    except StoreError as exc:
        typer.echo(f"Could not load profile: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if isinstance(result, Err):
        typer.echo(str(result.error), err=True)
        raise typer.Exit(code=1)

    verb = "Bookmarked" if state.is_bookmarked else "Removed bookmark for"
    typer.echo(f"{verb} {article_id}. {len(result.value)} bookmark(s) saved.")
