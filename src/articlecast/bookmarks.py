"""Optimistic bookmark toggling reconciled with the remote profile store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from articlecast.models import BookmarkState, UserProfile
from articlecast.session import SessionStore, normalize_bookmark_ids
from articlecast.store import ProfileStore, StoreError

logger = logging.getLogger(__name__)


class BookmarkSyncError(RuntimeError):
    """A bookmark change could not be persisted and was rolled back."""

    def __init__(self, message: str, article_id: str, added: bool) -> None:
        super().__init__(message)
        self.article_id = article_id
        self.added = added


@dataclass(frozen=True)
class Ok:
    value: list[str]


@dataclass(frozen=True)
class Err:
    error: BookmarkSyncError


SyncResult = Union[Ok, Err]


def get_bookmarked_ids(user: UserProfile) -> list[str]:
    return normalize_bookmark_ids(user.articles_bookmarked)


def with_bookmark(ids: list[str], article_id: str) -> list[str]:
    if article_id in ids:
        return list(ids)
    return [*ids, article_id]


def without_bookmark(ids: list[str], article_id: str) -> list[str]:
    return [item for item in ids if item != article_id]


async def persist_bookmark_change(
    store: ProfileStore,
    user: UserProfile,
    article_id: str,
    *,
    add: bool,
) -> UserProfile:
    """Write the user's bookmark ids with article_id added or removed."""

    current = get_bookmarked_ids(user)
    updated = with_bookmark(current, article_id) if add else without_bookmark(current, article_id)
    return await store.update_bookmark_list(user.id, updated)


class BookmarkSynchronizer:
    """Bookmark flag for one article on behalf of the signed-in user.

    ``toggle`` flips the flag at once and persists in the background. On
    success the session's bookmark list is replaced by what the store
    returned; on failure the flag goes back to its previous value and the
    session is left alone. Only one request per article is in flight at a
    time; toggles made meanwhile are ignored.
    """

    def __init__(
        self,
        article_id: str,
        session: SessionStore,
        store: ProfileStore,
        on_change: Callable[[BookmarkState], None] | None = None,
    ) -> None:
        self._article_id = article_id
        self._session = session
        self._store = store
        self._on_change = on_change
        self._is_bookmarked = article_id in session.get_bookmarks()
        self._task: asyncio.Task[SyncResult] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def article_id(self) -> str:
        return self._article_id

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def state(self) -> BookmarkState:
        return BookmarkState(
            article_id=self._article_id,
            is_bookmarked=self._is_bookmarked,
            pending=self.in_flight,
        )

    def refresh(self) -> BookmarkState:
        """Re-derive the flag from the session and follow later session changes."""

        if self._unsubscribe is None:
            self._unsubscribe = self._session.subscribe(self._on_session_change)
        if not self.in_flight:
            self._is_bookmarked = self._article_id in self._session.get_bookmarks()
        self._notify()
        return self.state

    def release(self) -> None:
        """Detach from the screen; a request in flight still completes."""

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def toggle(self) -> asyncio.Task[SyncResult] | None:
        if self.in_flight:
            logger.debug("Bookmark request for %s already in flight, ignoring toggle", self._article_id)
            return None

        user = self._session.user
        if user is None:
            logger.warning("Cannot bookmark %s without a signed-in user", self._article_id)
            return None

        previous = self._is_bookmarked
        self._is_bookmarked = not previous
        self._task = asyncio.get_running_loop().create_task(
            self._persist(user, add=self._is_bookmarked, previous=previous)
        )
        self._notify()
        return self._task

    async def toggle_bookmark(self) -> SyncResult:
        task = self.toggle()
        if task is None:
            return Err(
                BookmarkSyncError(
                    f"Bookmark for {self._article_id} could not be toggled now",
                    self._article_id,
                    added=not self._is_bookmarked,
                )
            )
        return await task

    async def _persist(self, user: UserProfile, *, add: bool, previous: bool) -> SyncResult:
        try:
            updated = await persist_bookmark_change(self._store, user, self._article_id, add=add)
        except StoreError as exc:
            return self._rollback(exc, add=add, previous=previous)
        except Exception as exc:
            logger.exception("Unexpected error persisting bookmark %s", self._article_id)
            return self._rollback(exc, add=add, previous=previous)

        current = self._session.user
        if current is not None and current.id == updated.id:
            self._session.set_bookmarks(updated.articles_bookmarked)

        ids = get_bookmarked_ids(updated)
        self._is_bookmarked = self._article_id in ids
        self._task = None
        self._notify()
        return Ok(ids)

    def _rollback(self, exc: Exception, *, add: bool, previous: bool) -> Err:
        action = "save" if add else "remove"
        logger.warning("Failed to %s bookmark %s: %s", action, self._article_id, exc)
        self._is_bookmarked = previous
        self._task = None
        self._notify()
        error = BookmarkSyncError(f"Failed to {action} bookmark: {exc}", self._article_id, added=add)
        error.__cause__ = exc
        return Err(error)

    def _on_session_change(self, user: UserProfile | None) -> None:
        if self.in_flight:
            return
        self._is_bookmarked = user is not None and self._article_id in get_bookmarked_ids(user)
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None and self._unsubscribe is not None:
            self._on_change(self.state)
