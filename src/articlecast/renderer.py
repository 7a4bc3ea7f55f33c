"""Plain-text rendering of an extracted article for the terminal."""

from __future__ import annotations

from datetime import datetime
from importlib.resources import files

from jinja2 import Environment

from articlecast.models import ExtractedArticle

_PLAY_MARK = "[>]"
_PAUSE_MARK = "[||]"


def _date_display(value: datetime | None) -> str:
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime("%Y-%m-%d %H:%M")


def listen_label(duration_label: str, *, is_playing: bool) -> str:
    mark = _PAUSE_MARK if is_playing else _PLAY_MARK
    return f"{mark} Listen {duration_label}".rstrip()


def byline(article: ExtractedArticle) -> str:
    parts = [article.author_name, _date_display(article.published_at)]
    return " · ".join(part for part in parts if part)


def render_article_text(
    article: ExtractedArticle,
    *,
    duration_label: str = "",
    is_playing: bool = False,
    is_bookmarked: bool = False,
    width: int = 80,
) -> str:
    """Render an article as wrapped plain text."""

    template_source = files("articlecast").joinpath("templates/article.txt.j2").read_text(encoding="utf-8")
    environment = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
    template = environment.from_string(template_source)

    header = byline(article)
    if is_bookmarked:
        header = f"{header}  [bookmarked]".lstrip()

    rendered = template.render(
        article=article,
        byline=header,
        listen_label=listen_label(duration_label, is_playing=is_playing),
        width=width,
    )
    return rendered.strip() + "\n"
