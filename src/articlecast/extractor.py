"""Structural extraction of article content from raw page markup."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import lxml.html
from dateutil.parser import isoparse
from lxml import etree

from articlecast.models import ContentBlock, ExtractedArticle, ImageBlock, TextBlock

logger = logging.getLogger(__name__)

ARTICLE_ID_PREFIX = "article-"
AUTHOR_NAME_CLASS = "post-meta__author-name"
AUTHOR_AVATAR_CLASS = "post-meta__author-avatar"
TITLE_CLASS = "post__title"
LEAD_CLASS = "post__block_lead-text"
COVER_IMAGE_CLASS = "post-cover__image"
CONTENT_CLASS = "post-content"
VIEWS_TEST_ID = "post-views"

_BODY_OPEN_RE = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_XML_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>", re.IGNORECASE)
_TERMINAL_PUNCTUATION = (".", "?", "!")


def _class_predicate(name: str) -> str:
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {name} ')"


def _normalize_text(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()


def _first(node: Any, query: str) -> Any | None:
    matches = node.xpath(query)
    return matches[0] if matches else None


def _first_text(node: Any, query: str) -> str:
    match = _first(node, query)
    if match is None:
        return ""
    return _normalize_text(match.text_content())


def _first_attribute(node: Any, query: str, attribute: str) -> str | None:
    match = _first(node, query)
    if match is None:
        return None
    value = (match.get(attribute) or "").strip()
    return value or None


def _to_datetime(raw_timestamp: str | None) -> datetime | None:
    if not raw_timestamp:
        return None
    try:
        return isoparse(raw_timestamp)
    except (ValueError, OverflowError):
        return None


def isolate_body(markup: str) -> str:
    """Return the markup between the body tags, or everything when they are missing."""

    opening = _BODY_OPEN_RE.search(markup)
    closing = _BODY_CLOSE_RE.search(markup, opening.end() if opening else 0)
    if opening is None or closing is None:
        logger.debug("No body element found, using the whole document")
        return markup
    return markup[opening.end() : closing.start()]


def _parse(snippet: str) -> Any | None:
    if not snippet.strip():
        return None
    try:
        return lxml.html.document_fromstring(_XML_DECLARATION_RE.sub("", snippet, count=1))
    except (etree.ParserError, ValueError) as exc:
        logger.debug("Could not parse article markup: %s", exc)
        return None


def _working_root(document: Any) -> Any:
    container = _first(document, f"//*[starts-with(@id, '{ARTICLE_ID_PREFIX}')]")
    if container is None:
        logger.debug("No article container found, using the whole body")
        return document
    return container


def _author_name(root: Any) -> str:
    return _first_text(root, f".//*[{_class_predicate(AUTHOR_NAME_CLASS)}]")


def _author_avatar_url(root: Any) -> str | None:
    return _first_attribute(root, f".//*[{_class_predicate(AUTHOR_AVATAR_CLASS)}]//img[@src]", "src")


def _published_at(root: Any) -> datetime | None:
    return _to_datetime(_first_attribute(root, ".//time[@datetime]", "datetime"))


def _title(root: Any) -> str:
    title = _first_text(root, f".//h1[{_class_predicate(TITLE_CLASS)}]")
    if title and not title.endswith(_TERMINAL_PUNCTUATION):
        title = f"{title}."
    return title


def _lead(root: Any) -> str:
    return _first_text(root, f".//*[{_class_predicate(LEAD_CLASS)}]//p")


def _cover_image_url(root: Any) -> str:
    return _first_attribute(root, f".//*[{_class_predicate(COVER_IMAGE_CLASS)}]//img", "src") or ""


def _view_count(root: Any) -> str:
    return _first_text(root, f".//*[@data-testid='{VIEWS_TEST_ID}']")


def _figure_block(figure: Any) -> ImageBlock:
    src = _first_attribute(figure, ".//img", "src") or ""
    caption = _first_text(figure, ".//figcaption")
    return ImageBlock(src=src, caption=caption or None)


def _content_blocks(root: Any) -> tuple[ContentBlock, ...]:
    container = _first(root, f".//*[{_class_predicate(CONTENT_CLASS)}]")
    if container is None:
        return ()

    blocks: list[ContentBlock] = []
    for child in container.iterchildren(tag=etree.Element):
        tag = child.tag.lower() if isinstance(child.tag, str) else ""
        if tag == "p":
            text = _normalize_text(child.text_content())
            if text:
                blocks.append(TextBlock(text=text))
        elif tag == "figure":
            blocks.append(_figure_block(child))
    return tuple(blocks)


@dataclass(frozen=True)
class ExtractionRule:
    """One named metadata lookup run against the article tree."""

    field: str
    extract: Callable[[Any], Any]


EXTRACTION_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("author_name", _author_name),
    ExtractionRule("author_avatar_url", _author_avatar_url),
    ExtractionRule("published_at", _published_at),
    ExtractionRule("title", _title),
    ExtractionRule("lead", _lead),
    ExtractionRule("cover_image_url", _cover_image_url),
    ExtractionRule("view_count", _view_count),
    ExtractionRule("content_blocks", _content_blocks),
)


def extract(raw_html: str) -> ExtractedArticle:
    """Extract an article from raw page markup.

    Missing fields degrade to empty values; this function does not raise on
    malformed or unexpected markup.
    """

    document = _parse(isolate_body(raw_html or ""))
    if document is None:
        return ExtractedArticle()

    root = _working_root(document)
    values: dict[str, Any] = {}
    for rule in EXTRACTION_RULES:
        try:
            value = rule.extract(root)
        except (etree.XPathError, ValueError) as exc:
            logger.debug("Extraction rule %s failed: %s", rule.field, exc)
            continue
        if value is not None:
            values[rule.field] = value

    return ExtractedArticle(**values)
