from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

ImageKind = Literal["logo", "favicon", "other"]


class ImageContext(BaseModel):
    """Markup surrounding an image candidate.

    ``None`` means the attribute was not present; an empty string means
    it was present but empty.
    """

    model_config = ConfigDict(frozen=True)

    alt: Optional[str] = None
    class_name: Optional[str] = None
    id: Optional[str] = None
    parent_classes: Optional[str] = None
    nearby_text: Optional[str] = None
    rel: Optional[str] = None
    mime_type: Optional[str] = None


class Image(BaseModel):
    """An image candidate found on the page.

    ``type`` is the provisional tag from extraction (``favicon`` for
    ``<link rel=icon>``, ``other`` for ``<img>``).  The logo/favicon
    verdict comes from image analysis and never rewrites this field.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    type: ImageKind
    context: ImageContext = ImageContext()


class PageData(BaseModel):
    """Structured content extracted from one rendered page.

    Internal only; the API returns ``PageResponse``.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    meta_description: str
    content: str
    images: tuple[Image, ...] = ()
    url: str
