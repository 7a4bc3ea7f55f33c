"""Narration text preparation and speech synthesis engines."""

from __future__ import annotations

import asyncio
import logging
import math
import re
import shutil
from typing import Protocol

from articlecast.config import SpeechConfig
from articlecast.models import ExtractedArticle

logger = logging.getLogger(__name__)

DEFAULT_WORDS_PER_MINUTE = 150

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.?!])\s+")

# Candidates in preference order; the first one found on PATH wins.
_SYNTHESIZERS: tuple[tuple[str, ...], ...] = (
    ("say",),
    ("espeak-ng",),
    ("espeak",),
)


class SynthesisError(RuntimeError):
    """Raised when an utterance cannot be synthesized."""


class SpeechEngineUnavailable(SynthesisError):
    """Raised when no speech synthesizer can be found."""


def narration_text(article: ExtractedArticle) -> str:
    """Title, lead and body paragraphs in reading order, joined by spaces."""

    parts = [article.title, article.lead, *(block.text for block in article.text_blocks)]
    return " ".join(part for part in parts if part)


def segment_into_chunks(text: str) -> list[str]:
    """Split text into sentence-sized chunks at terminal punctuation."""

    chunks = (chunk.strip() for chunk in _SENTENCE_BOUNDARY_RE.split(text))
    return [chunk for chunk in chunks if chunk]


def estimate_duration_ms(text: str, words_per_minute: int = DEFAULT_WORDS_PER_MINUTE) -> int:
    words = len(text.split())
    return math.ceil(words * 60_000 / words_per_minute)


def format_duration(milliseconds: int) -> str:
    total_seconds = milliseconds // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


class SpeechEngine(Protocol):
    async def speak(self, text: str) -> None:
        """Speak one utterance, returning once it has finished."""
        ...

    def stop(self) -> None:
        """Cancel the in-flight utterance, if any."""
        ...


def detect_synthesizer() -> list[str]:
    for candidate in _SYNTHESIZERS:
        if shutil.which(candidate[0]) is not None:
            return list(candidate)
    raise SpeechEngineUnavailable(
        "No speech synthesizer found. Install espeak-ng (or use macOS `say`) and ensure it is on PATH."
    )


def _rate_arguments(executable: str, rate: int | None) -> list[str]:
    if rate is None:
        return []
    if executable == "say":
        return ["-r", str(rate)]
    if executable.startswith("espeak"):
        return ["-s", str(rate)]
    return []


class CommandSpeechEngine:
    """Speak utterances by running a command-line synthesizer.

    The utterance text is passed as the final argument. Stopping terminates
    the running process; the interrupted ``speak`` call returns normally.
    """

    def __init__(self, command: list[str], rate: int | None = None) -> None:
        if not command:
            raise ValueError("command must name an executable")
        self._command = [*command, *_rate_arguments(command[0], rate)]
        self._process: asyncio.subprocess.Process | None = None
        self._stopping = False

    @classmethod
    def from_config(cls, config: SpeechConfig) -> "CommandSpeechEngine":
        command = config.command or detect_synthesizer()
        if shutil.which(command[0]) is None:
            raise SpeechEngineUnavailable(f"Speech synthesizer not found on PATH: {command[0]}")
        return cls(command, rate=config.rate)

    @property
    def command(self) -> list[str]:
        return list(self._command)

    async def speak(self, text: str) -> None:
        self._stopping = False
        logger.debug("Speaking %d characters with %s", len(text), self._command[0])
        try:
            process = await asyncio.create_subprocess_exec(
                *self._command,
                text,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise SynthesisError(f"Could not start {self._command[0]}: {exc}") from exc

        self._process = process
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            self._terminate(process)
            raise
        finally:
            self._process = None

        if self._stopping:
            return
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip() if stderr else ""
            raise SynthesisError(message or f"{self._command[0]} exited with code {process.returncode}")

    def stop(self) -> None:
        process = self._process
        if process is None:
            return
        self._stopping = True
        self._terminate(process)

    @staticmethod
    def _terminate(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass

