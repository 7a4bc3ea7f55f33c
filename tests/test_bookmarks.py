import asyncio

import httpx
import pytest

from articlecast.bookmarks import (
    BookmarkSynchronizer,
    Err,
    Ok,
    get_bookmarked_ids,
    persist_bookmark_change,
    with_bookmark,
    without_bookmark,
)
from articlecast.models import BookmarkState, UserProfile
from articlecast.session import SessionStore
from articlecast.store import StoreError
from fakes import FakeProfileStore


def test_with_bookmark_appends_new_id() -> None:
    assert with_bookmark(["a", "b"], "c") == ["a", "b", "c"]


def test_with_bookmark_is_idempotent() -> None:
    ids = ["a", "b"]
    assert with_bookmark(with_bookmark(ids, "b"), "b") == ["a", "b"]


def test_without_bookmark_removes_id() -> None:
    assert without_bookmark(["a", "b", "c"], "b") == ["a", "c"]


def test_without_bookmark_absent_id_is_noop() -> None:
    assert without_bookmark(["a", "c"], "b") == ["a", "c"]


def test_get_bookmarked_ids_from_expanded_documents() -> None:
    user = UserProfile.model_validate({"$id": "u", "articlesBookmarked": [{"$id": "x"}, {"$id": "y"}]})
    assert get_bookmarked_ids(user) == ["x", "y"]


@pytest.mark.asyncio
async def test_persist_bookmark_change_sends_full_list(user: UserProfile) -> None:
    store = FakeProfileStore(user)

    updated = await persist_bookmark_change(store, user, "c", add=True)

    assert store.writes == [["a", "b", "c"]]
    assert get_bookmarked_ids(updated) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_toggle_flips_flag_before_store_answers(user: UserProfile) -> None:
    session = SessionStore(user)
    store = FakeProfileStore(user)
    store.gate = asyncio.Event()
    synchronizer = BookmarkSynchronizer("c", session, store)
    assert synchronizer.refresh() == BookmarkState(article_id="c")

    task = synchronizer.toggle()
    assert task is not None
    assert synchronizer.state == BookmarkState(article_id="c", is_bookmarked=True, pending=True)
    assert session.get_bookmarks() == ["a", "b"]

    store.gate.set()
    result = await task

    assert result == Ok(["a", "b", "c"])
    assert session.get_bookmarks() == ["a", "b", "c"]
    assert synchronizer.state == BookmarkState(article_id="c", is_bookmarked=True, pending=False)


@pytest.mark.asyncio
async def test_toggle_removes_existing_bookmark(user: UserProfile) -> None:
    session = SessionStore(user)
    synchronizer = BookmarkSynchronizer("b", session, FakeProfileStore(user))
    assert synchronizer.refresh().is_bookmarked

    result = await synchronizer.toggle_bookmark()

    assert result == Ok(["a"])
    assert session.get_bookmarks() == ["a"]
    assert not synchronizer.state.is_bookmarked


@pytest.mark.asyncio
async def test_failed_write_rolls_back_and_leaves_session(user: UserProfile) -> None:
    session = SessionStore(user)
    store = FakeProfileStore(user, fail=True)
    synchronizer = BookmarkSynchronizer("c", session, store)
    synchronizer.refresh()

    result = await synchronizer.toggle_bookmark()

    assert isinstance(result, Err)
    assert result.error.article_id == "c"
    assert result.error.added is True
    assert isinstance(result.error.__cause__, StoreError)
    assert not synchronizer.state.is_bookmarked
    assert not synchronizer.state.pending
    assert session.user is user
    assert store.writes == [["a", "b", "c"]]


@pytest.mark.asyncio
async def test_toggle_while_in_flight_is_ignored(user: UserProfile) -> None:
    session = SessionStore(user)
    store = FakeProfileStore(user)
    store.gate = asyncio.Event()
    synchronizer = BookmarkSynchronizer("c", session, store)

    first = synchronizer.toggle()
    assert synchronizer.toggle() is None
    second = await synchronizer.toggle_bookmark()

    assert isinstance(second, Err)
    assert synchronizer.state.is_bookmarked

    store.gate.set()
    assert await first == Ok(["a", "b", "c"])
    assert len(store.writes) == 1


@pytest.mark.asyncio
async def test_toggle_without_user_does_nothing() -> None:
    placeholder = UserProfile.model_validate({"$id": "user-1"})
    store = FakeProfileStore(placeholder)
    synchronizer = BookmarkSynchronizer("c", SessionStore(), store)

    assert synchronizer.toggle() is None
    assert isinstance(await synchronizer.toggle_bookmark(), Err)
    assert store.writes == []


@pytest.mark.asyncio
async def test_release_keeps_request_and_session_update(user: UserProfile) -> None:
    session = SessionStore(user)
    store = FakeProfileStore(user)
    store.gate = asyncio.Event()
    states: list[BookmarkState] = []
    synchronizer = BookmarkSynchronizer("c", session, store, on_change=states.append)
    synchronizer.refresh()

    task = synchronizer.toggle()
    synchronizer.release()
    notified = len(states)

    store.gate.set()
    await task

    assert session.get_bookmarks() == ["a", "b", "c"]
    assert len(states) == notified


@pytest.mark.asyncio
async def test_session_changes_update_subscribed_flag(user: UserProfile) -> None:
    session = SessionStore(user)
    states: list[BookmarkState] = []
    synchronizer = BookmarkSynchronizer("c", session, FakeProfileStore(user), on_change=states.append)
    synchronizer.refresh()

    session.set_bookmarks(["c"])
    assert synchronizer.state.is_bookmarked

    session.set_user(None)
    assert not synchronizer.state.is_bookmarked
    assert [state.is_bookmarked for state in states] == [False, True, False]


@pytest.mark.asyncio
async def test_listener_sees_optimistic_then_settled_state(user: UserProfile) -> None:
    session = SessionStore(user)
    states: list[BookmarkState] = []
    synchronizer = BookmarkSynchronizer("c", session, FakeProfileStore(user), on_change=states.append)
    synchronizer.refresh()

    await synchronizer.toggle_bookmark()

    assert [(state.is_bookmarked, state.pending) for state in states] == [
        (False, False),
        (True, True),
        (True, False),
    ]


class BrokenProfileStore(FakeProfileStore):
    async def update_bookmark_list(self, user_id: str, ids: list[str]) -> UserProfile:
        self.writes.append(list(ids))
        raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")


@pytest.mark.asyncio
async def test_unexpected_store_exception_rolls_back(user: UserProfile) -> None:
    session = SessionStore(user)
    synchronizer = BookmarkSynchronizer("c", session, BrokenProfileStore(user))
    synchronizer.refresh()

    task = synchronizer.toggle()
    assert task is not None
    assert synchronizer.state.is_bookmarked

    result = await task

    assert isinstance(result, Err)
    assert isinstance(result.error.__cause__, httpx.InvalidURL)
    assert synchronizer.state == BookmarkState(article_id="c")
    assert session.user is user
