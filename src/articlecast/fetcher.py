"""Retrieval of raw article markup."""

from __future__ import annotations

import logging
from enum import Enum
from urllib.parse import urlparse

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from articlecast.config import FetchConfig
from articlecast.models import ArticleSource

logger = logging.getLogger(__name__)


class FetchErrorType(str, Enum):
    """Classification of markup retrieval failures."""

    TIMEOUT = "timeout"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    CONNECTION_ERROR = "connection_error"
    INVALID_URL = "invalid_url"
    RENDER_FAILED = "render_failed"


RETRIABLE_ERRORS = {FetchErrorType.TIMEOUT, FetchErrorType.HTTP_5XX, FetchErrorType.CONNECTION_ERROR}

WEB_SCHEMES = frozenset({"http", "https"})
# Rendered fetches may also load saved pages from disk.
RENDER_SCHEMES = WEB_SCHEMES | {"file"}


class FetchError(RuntimeError):
    """Raised when an article page cannot be retrieved."""

    def __init__(self, message: str, error_type: FetchErrorType, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_type = error_type
        self.http_status = http_status

    @property
    def retriable(self) -> bool:
        return self.error_type in RETRIABLE_ERRORS


def validate_article_url(url: str, schemes: frozenset[str] = WEB_SCHEMES) -> str:
    """Return a stripped URL with an allowed scheme or raise ValueError."""

    candidate = url.strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in schemes:
        raise ValueError(f"Unsupported URL scheme in '{url}'")
    if parsed.scheme != "file" and not parsed.netloc:
        raise ValueError(f"Missing host in '{url}'")
    return candidate


def _checked_url(url: str, schemes: frozenset[str] = WEB_SCHEMES) -> str:
    try:
        return validate_article_url(url, schemes)
    except ValueError as exc:
        raise FetchError(str(exc), FetchErrorType.INVALID_URL) from exc


async def _get(client: httpx.AsyncClient, url: str, timeout_s: float) -> httpx.Response:
    try:
        return await client.get(url, timeout=timeout_s)
    except httpx.TimeoutException:
        logger.info("Timed out after %ss fetching %s, retrying once", timeout_s, url)
        return await client.get(url, timeout=timeout_s * 2)


async def fetch_article_markup(
    url: str,
    config: FetchConfig | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Fetch the raw HTML of an article page."""

    config = config or FetchConfig()
    url = _checked_url(url)

    owned = client is None
    if client is None:
        client = httpx.AsyncClient(
            follow_redirects=True,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8",
            },
        )

    try:
        response = await _get(client, url, float(config.timeout_seconds))
    except httpx.TimeoutException as exc:
        raise FetchError(
            f"Timed out fetching {url} after {config.timeout_seconds * 2}s", FetchErrorType.TIMEOUT
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"Connection error fetching {url}: {exc}", FetchErrorType.CONNECTION_ERROR) from exc
    finally:
        if owned:
            await client.aclose()

    if response.status_code >= 500:
        raise FetchError(
            f"Server error {response.status_code} fetching {url}",
            FetchErrorType.HTTP_5XX,
            http_status=response.status_code,
        )
    if response.status_code >= 400:
        raise FetchError(
            f"Client error {response.status_code} fetching {url}",
            FetchErrorType.HTTP_4XX,
            http_status=response.status_code,
        )

    return response.text


async def fetch_rendered_markup(url: str, config: FetchConfig | None = None, *, _attempt: int = 1) -> str:
    """Load the page in headless Chromium and return the rendered DOM."""

    config = config or FetchConfig()
    url = _checked_url(url, RENDER_SCHEMES)
    timeout_ms = config.timeout_seconds * 1000 * _attempt

    try:
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(headless=config.headless)
            try:
                context = await browser.new_context(user_agent=config.user_agent)
                page = await context.new_page()
                await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                markup = await page.content()
                await context.close()
            finally:
                await browser.close()
    except PlaywrightTimeoutError as exc:
        if _attempt == 1:
            return await fetch_rendered_markup(url, config, _attempt=2)
        raise FetchError(f"Timed out rendering {url}", FetchErrorType.TIMEOUT) from exc
    except PlaywrightError as exc:
        raise FetchError(f"Could not render {url}: {exc}", FetchErrorType.RENDER_FAILED) from exc

    return markup


async def fetch_markup(url: str, config: FetchConfig | None = None) -> str:
    config = config or FetchConfig()
    if config.render:
        return await fetch_rendered_markup(url, config)
    return await fetch_article_markup(url, config)


async def load_article_source(url: str, config: FetchConfig | None = None) -> ArticleSource:
    markup = await fetch_markup(url, config)
    return ArticleSource(url=url, markup=markup)
