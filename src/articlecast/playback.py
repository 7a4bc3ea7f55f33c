"""Sequential chunk-by-chunk narration with pause and resume."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from enum import Enum

from pydantic import BaseModel, ConfigDict

from articlecast.speech import SpeechEngine, SynthesisError

logger = logging.getLogger(__name__)


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    FINISHED = "finished"


class PlaybackState(BaseModel):
    """Snapshot of the playback controller for rendering."""

    model_config = ConfigDict(frozen=True)

    status: PlaybackStatus = PlaybackStatus.IDLE
    current_chunk_index: int = 0
    chunk_count: int = 0

    @property
    def is_playing(self) -> bool:
        return self.status == PlaybackStatus.PLAYING

    @property
    def is_paused(self) -> bool:
        return self.status == PlaybackStatus.PAUSED


class PlaybackController:
    """Narrates a fixed sequence of chunks one utterance at a time.

    ``current_chunk_index`` points at the next chunk to speak and only moves
    forward after an utterance completes while still playing. Pausing cancels
    the utterance in flight; resuming speaks that chunk again from its start.
    A synthesis failure, or any other engine error, is logged and the chunk
    is skipped.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        on_change: Callable[[PlaybackState], None] | None = None,
    ) -> None:
        self._engine = engine
        self.on_change = on_change
        self._chunks: tuple[str, ...] = ()
        self._status = PlaybackStatus.IDLE
        self._index = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def chunks(self) -> tuple[str, ...]:
        return self._chunks

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(
            status=self._status,
            current_chunk_index=self._index,
            chunk_count=len(self._chunks),
        )

    def load(self, chunks: Sequence[str]) -> None:
        """Replace the chunk sequence for a freshly loaded article."""

        self._cancel()
        self._chunks = tuple(chunks)
        self._index = 0
        self._set_status(PlaybackStatus.IDLE)

    def toggle(self) -> PlaybackState:
        if self._status == PlaybackStatus.PLAYING:
            self._set_status(PlaybackStatus.PAUSED)
            self._cancel()
        else:
            self._set_status(PlaybackStatus.PLAYING)
            self._task = asyncio.get_running_loop().create_task(self._speak_loop())
        return self.state

    def stop(self) -> None:
        """Silence playback when the screen goes away.

        Any utterance in flight and any pending continuation are dropped.
        Playback is left paused at the current chunk.
        """

        self._cancel()
        if self._status == PlaybackStatus.PLAYING:
            self._set_status(PlaybackStatus.PAUSED)

    async def wait(self) -> None:
        """Wait for the running speak loop, if any, to end."""

        task = self._task
        if task is None:
            return
        await asyncio.wait({task})
        if not task.cancelled():
            task.result()

    def _cancel(self) -> None:
        task, self._task = self._task, None
        self._engine.stop()
        if task is not None and not task.done():
            task.cancel()

    def _set_status(self, status: PlaybackStatus) -> None:
        self._status = status
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.state)

    async def _speak_loop(self) -> None:
        while self._status == PlaybackStatus.PLAYING and self._index < len(self._chunks):
            index = self._index
            try:
                await self._engine.speak(self._chunks[index])
            except SynthesisError as exc:
                logger.warning("Speech synthesis failed for chunk %d, skipping: %s", index, exc)
            except Exception:
                logger.exception("Speech engine error on chunk %d, skipping", index)

            if self._status != PlaybackStatus.PLAYING:
                return
            self._index = index + 1
            self._notify()

        if self._status == PlaybackStatus.PLAYING:
            self._task = None
            self._set_status(PlaybackStatus.FINISHED)
