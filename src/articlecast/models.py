"""Domain models used by articlecast."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ArticleSource(BaseModel):
    """Raw page markup and the URL it was fetched from."""

    url: str
    markup: str


class TextBlock(BaseModel):
    """A paragraph of article body text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    """An inline figure with an optional caption."""

    model_config = ConfigDict(frozen=True)

    type: Literal["image"] = "image"
    src: str
    caption: str | None = None


ContentBlock = Annotated[Union[TextBlock, ImageBlock], Field(discriminator="type")]


class ExtractedArticle(BaseModel):
    """Normalized article data extracted from a page."""

    model_config = ConfigDict(frozen=True)

    author_name: str = ""
    author_avatar_url: str | None = None
    published_at: datetime | None = None
    title: str = ""
    lead: str = ""
    cover_image_url: str = ""
    view_count: str = ""
    content_blocks: tuple[ContentBlock, ...] = ()

    @property
    def text_blocks(self) -> list[TextBlock]:
        return [block for block in self.content_blocks if isinstance(block, TextBlock)]


class UserProfile(BaseModel):
    """A user profile document as stored in the remote collection.

    Bookmarks arrive either as bare article ids or as embedded article
    documents, depending on how the collection relationship is resolved.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(alias="$id")
    username: str = ""
    email: str = ""
    articles_bookmarked: list[Union[str, dict[str, Any]]] = Field(
        default_factory=list,
        alias="articlesBookmarked",
    )

    @field_validator("articles_bookmarked", mode="before")
    @classmethod
    def drop_null_entries(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if item is not None]
        return value


class BookmarkState(BaseModel):
    """Bookmark flag for one article as seen by the current user."""

    model_config = ConfigDict(frozen=True)

    article_id: str
    is_bookmarked: bool = False
    pending: bool = False
