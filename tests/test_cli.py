import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from articlecast import cli
from articlecast.fetcher import FetchError, FetchErrorType
from articlecast.store import AppwriteProfileStore

FIXTURE = Path(__file__).parent / "fixtures" / "article_fixture.html"
URL = "https://news.example.com/articles/48213"

runner = CliRunner()


@pytest.fixture
def fixture_fetch(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_fetch(url, config=None):
        return FIXTURE.read_text(encoding="utf-8")

    monkeypatch.setattr(cli, "fetch_markup", fake_fetch)
    monkeypatch.delenv("ARTICLECAST_WPM", raising=False)


@pytest.fixture
def appwrite_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APPWRITE_ENDPOINT", "https://cloud.example.com/v1")
    monkeypatch.setenv("APPWRITE_PROJECT", "proj")
    monkeypatch.setenv("APPWRITE_DATABASE_ID", "db")
    monkeypatch.setenv("APPWRITE_USER_COLLECTION_ID", "users")
    monkeypatch.setenv("APPWRITE_API_KEY", "secret")


def _mock_store(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    def factory(config):
        return AppwriteProfileStore(config, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    monkeypatch.setattr(cli, "AppwriteProfileStore", factory)


def test_show_renders_article(fixture_fetch) -> None:
    result = runner.invoke(cli.app, ["show", URL])

    assert result.exit_code == 0, result.output
    assert "Bitcoin climbs past key resistance." in result.output
    assert "[>] Listen 0:13" in result.output
    assert "[image: https://cdn.example.com/charts/btc-1d.png]" in result.output


def test_show_json_output(fixture_fetch) -> None:
    result = runner.invoke(cli.app, ["show", URL, "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["author_name"] == "Jane Doe"
    assert [block["type"] for block in payload["content_blocks"]] == ["text", "image", "text", "image"]


def test_chunks_lists_sentences(fixture_fetch) -> None:
    result = runner.invoke(cli.app, ["chunks", URL])

    assert result.exit_code == 0, result.output
    assert "  1. Bitcoin climbs past key resistance." in result.output
    assert "  6. Time will tell." in result.output
    assert "Estimated duration: 0:13" in result.output


def test_show_reports_fetch_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing_fetch(url, config=None):
        raise FetchError("Client error 404 fetching page", FetchErrorType.HTTP_4XX, http_status=404)

    monkeypatch.setattr(cli, "fetch_markup", failing_fetch)
    result = runner.invoke(cli.app, ["show", URL])

    assert result.exit_code == 1
    assert "404" in result.output


def test_show_rejects_out_of_range_timeout(fixture_fetch) -> None:
    result = runner.invoke(cli.app, ["show", URL, "--timeout-seconds", "1"])
    assert result.exit_code == 2


def test_listen_narrates_every_chunk(fixture_fetch) -> None:
    result = runner.invoke(cli.app, ["listen", URL, "--command", "true"])

    assert result.exit_code == 0, result.output
    assert "[1/6] Bitcoin climbs past key resistance." in result.output
    assert "[6/6] Time will tell." in result.output
    assert "Finished." in result.output


def test_bookmark_requires_store_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for variable in ("APPWRITE_ENDPOINT", "APPWRITE_PROJECT", "APPWRITE_DATABASE_ID", "APPWRITE_USER_COLLECTION_ID"):
        monkeypatch.delenv(variable, raising=False)

    result = runner.invoke(cli.app, ["bookmark", "48213", "--user-id", "user-1"])

    assert result.exit_code == 2
    assert "APPWRITE_ENDPOINT" in result.output


def test_bookmark_adds_article(appwrite_env, monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"$id": "user-1", "articlesBookmarked": ["a"]})
        ids = json.loads(request.content)["data"]["articlesBookmarked"]
        return httpx.Response(200, json={"$id": "user-1", "articlesBookmarked": [{"$id": i} for i in ids]})

    _mock_store(monkeypatch, handler)
    result = runner.invoke(cli.app, ["bookmark", "48213", "--user-id", "user-1"])

    assert result.exit_code == 0, result.output
    assert "Bookmarked 48213. 2 bookmark(s) saved." in result.output


def test_bookmark_reports_rejected_write(appwrite_env, monkeypatch: pytest.MonkeyPatch) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json={"$id": "user-1", "articlesBookmarked": ["48213"]})
        return httpx.Response(401, json={"message": "Unauthorized"})

    _mock_store(monkeypatch, handler)
    result = runner.invoke(cli.app, ["bookmark", "48213", "--user-id", "user-1"])

    assert result.exit_code == 1
    assert "Failed to remove bookmark" in result.output


def test_words_per_minute_read_from_environment(fixture_fetch, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ARTICLECAST_WPM", "300")

    result = runner.invoke(cli.app, ["chunks", URL])

    assert result.exit_code == 0, result.output
    assert "Estimated duration: 0:06" in result.output

    result = runner.invoke(cli.app, ["show", URL])
    assert "[>] Listen 0:06" in result.output
