"""Process-wide holder of the signed-in user's profile."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from articlecast.models import UserProfile

SessionListener = Callable[[UserProfile | None], None]


def normalize_bookmark_ids(entries: Sequence[str | dict[str, Any]]) -> list[str]:
    """Reduce bookmark entries to unique article ids, preserving order.

    Entries are either bare ids or embedded documents carrying ``$id`` or
    ``id``. Entries without an id are dropped.
    """

    seen: set[str] = set()
    result: list[str] = []
    for entry in entries:
        if isinstance(entry, str):
            article_id = entry
        elif isinstance(entry, dict):
            article_id = entry.get("$id") or entry.get("id") or ""
        else:
            article_id = ""
        if not article_id or article_id in seen:
            continue
        seen.add(article_id)
        result.append(article_id)
    return result


class SessionStore:
    """Owns the current user profile and notifies subscribers on change.

    The profile is replaced, never mutated, so readers holding an older
    snapshot are unaffected by later writes.
    """

    def __init__(self, user: UserProfile | None = None) -> None:
        self._user = user
        self._listeners: list[SessionListener] = []

    @property
    def user(self) -> UserProfile | None:
        return self._user

    def set_user(self, user: UserProfile | None) -> None:
        self._user = user
        self._notify()

    def get_bookmarks(self) -> list[str]:
        if self._user is None:
            return []
        return normalize_bookmark_ids(self._user.articles_bookmarked)

    def set_bookmarks(self, entries: Sequence[str | dict[str, Any]]) -> None:
        if self._user is None:
            raise RuntimeError("No user is signed in")
        self._user = self._user.model_copy(update={"articles_bookmarked": list(entries)})
        self._notify()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._user)
