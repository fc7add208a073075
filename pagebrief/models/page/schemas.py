from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogoCandidate(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    alt: str = ""

    @field_validator("width", "height", mode="before")
    @classmethod
    def _round_dimension(cls, value: Any) -> Any:
        # The tool schema declares these as JSON numbers, so fractions are legal.
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("alt", mode="before")
    @classmethod
    def _null_alt(cls, value: Any) -> Any:
        return "" if value is None else value


class FaviconCandidate(BaseModel):
    url: str
    rel: str = ""
    type: str = ""

    @field_validator("rel", "type", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ImageAnalysis(BaseModel):
    """Logo and favicon verdicts, each list ordered by model confidence."""

    logos: list[LogoCandidate] = []
    favicons: list[FaviconCandidate] = []


class PageMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    cached_at: datetime = Field(alias="cachedAt")


class PageResponse(BaseModel):
    """API response shape, and the exact value written to the page cache.

    Serialize with ``by_alias=True`` so ``meta.cachedAt`` keeps its
    camelCase wire name.
    """

    meta: PageMeta
    summary: str
    logos: list[LogoCandidate]
    favicons: list[FaviconCandidate]
