"""Article screen: wires extraction, narration and bookmarking together."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from articlecast.bookmarks import BookmarkSynchronizer, BookmarkSyncError, Err, SyncResult
from articlecast.config import ReaderConfig
from articlecast.extractor import extract
from articlecast.fetcher import FetchError, fetch_markup
from articlecast.models import BookmarkState, ExtractedArticle
from articlecast.playback import PlaybackController, PlaybackState
from articlecast.renderer import render_article_text
from articlecast.session import SessionStore
from articlecast.speech import (
    SpeechEngine,
    estimate_duration_ms,
    format_duration,
    narration_text,
    segment_into_chunks,
)
from articlecast.store import ProfileStore

logger = logging.getLogger(__name__)

MarkupFetcher = Callable[[str], Awaitable[str]]


class ScreenStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ArticleScreen:
    """One visit to an article.

    The extracted article and its chunks belong to this screen alone. The
    bookmark list lives in the shared session. Without a profile store the
    screen still reads and narrates, but cannot bookmark.
    """

    def __init__(
        self,
        article_id: str,
        url: str,
        *,
        session: SessionStore,
        store: ProfileStore | None,
        engine: SpeechEngine,
        config: ReaderConfig | None = None,
        fetch: MarkupFetcher | None = None,
        on_playback_change: Callable[[PlaybackState], None] | None = None,
    ) -> None:
        self.article_id = article_id
        self.url = url
        self._config = config or ReaderConfig()
        self._fetch = fetch or (lambda target: fetch_markup(target, self._config.fetch))
        self.status = ScreenStatus.LOADING
        self.error: str | None = None
        self.article: ExtractedArticle | None = None
        self.duration_label = ""
        self.playback = PlaybackController(engine, on_change=on_playback_change)
        self.bookmark = BookmarkSynchronizer(article_id, session, store) if store is not None else None

    async def open(self) -> ExtractedArticle | None:
        self.status = ScreenStatus.LOADING
        try:
            markup = await self._fetch(self.url)
        except FetchError as exc:
            logger.warning("Failed to load article %s: %s", self.url, exc)
            self.status = ScreenStatus.FAILED
            self.error = str(exc)
            return None

        article = extract(markup)
        text = narration_text(article)
        self.article = article
        self.duration_label = format_duration(
            estimate_duration_ms(text, self._config.speech.words_per_minute)
        )
        self.playback.load(segment_into_chunks(text))
        self.status = ScreenStatus.READY
        self.error = None
        return article

    def focus(self) -> BookmarkState:
        if self.bookmark is None:
            return BookmarkState(article_id=self.article_id)
        return self.bookmark.refresh()

    def blur(self) -> None:
        self.playback.stop()
        if self.bookmark is not None:
            self.bookmark.release()

    def toggle_listen(self) -> PlaybackState:
        if self.status != ScreenStatus.READY:
            return self.playback.state
        return self.playback.toggle()

    async def toggle_bookmark(self) -> SyncResult:
        if self.bookmark is None:
            error = BookmarkSyncError(
                "Bookmarks are unavailable without a profile store", self.article_id, added=False
            )
            return Err(error)
        return await self.bookmark.toggle_bookmark()

    def render(self, width: int = 80) -> str:
        if self.status == ScreenStatus.LOADING:
            return "Loading...\n"
        if self.status == ScreenStatus.FAILED or self.article is None:
            return f"Could not load article: {self.error or 'unknown error'}\n"
        return render_article_text(
            self.article,
            duration_label=self.duration_label,
            is_playing=self.playback.state.is_playing,
            is_bookmarked=self.bookmark is not None and self.bookmark.state.is_bookmarked,
            width=width,
        )
