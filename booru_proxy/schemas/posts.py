"""Pydantic schemas for canonical posts and search responses."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Post(BaseModel):
    """One image post in the shape shared by every source.

    String fields default to ``""`` so consumers never branch on absence.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(default=None, description="Upstream post id.")
    tags: str = Field(default="", description="Space-separated tag string.")
    preview_url: str = Field(default="", description="Thumbnail URL.")
    file_url: str = Field(default="", description="Full-size image URL.")
    sample_url: str = Field(default="", description="Reduced-size image URL.")
    width: int | None = Field(default=None, description="Original image width.")
    height: int | None = Field(default=None, description="Original image height.")
    rating: str | None = Field(default=None, description="Upstream content rating.")
    source: str = Field(default="", description="Origin URL of the artwork, as given upstream.")
    score: int | None = Field(default=None, description="Upstream score.")


class CanonicalResult(BaseModel):
    """Mapped posts for one canonical query; this is what the cache stores."""

    model_config = ConfigDict(frozen=True)

    posts: tuple[Post, ...] = ()


class ImageSearchResponse(BaseModel):
    """Body of a successful ``GET /api/images``."""

    count: int = Field(..., description="Number of posts in this page.")
    post: list[Post] = Field(default_factory=list, description="Mapped posts.")

    @classmethod
    def from_result(cls, result: CanonicalResult) -> "ImageSearchResponse":
        return cls(count=len(result.posts), post=list(result.posts))
