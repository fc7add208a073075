"""Turn rendered HTML into ``PageData``.

Pure and synchronous: no I/O, same input always yields the same output.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from pagebrief.models.page.document import Image, ImageContext, PageData

# First match wins; ``body`` is the fallback.
CONTENT_SELECTORS = ("article", "main", "#content", ".content")
TEXT_TAGS = ["p", "h1", "h2", "h3", "h4", "h5", "h6"]
NEARBY_TEXT_LIMIT = 100

_WHITESPACE = re.compile(r"\s+")
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def extract(html: str, base_url: str) -> PageData:
    soup = BeautifulSoup(html, "html.parser")
    title_el = soup.find("title")
    description_el = soup.find("meta", attrs={"name": "description"})

    return PageData(
        title=title_el.get_text().strip() if title_el else "",
        meta_description=(description_el.get("content") or "") if description_el else "",
        content=_extract_text(soup),
        images=tuple(_extract_favicons(soup, base_url) + _extract_images(soup, base_url)),
        url=base_url,
    )


def _primary_region(soup: BeautifulSoup) -> Tag:
    for selector in CONTENT_SELECTORS:
        region = soup.select_one(selector)
        if region is not None:
            return region
    return soup.body or soup


def _extract_text(soup: BeautifulSoup) -> str:
    region = _primary_region(soup)
    blocks = [el.get_text().strip() for el in region.find_all(TEXT_TAGS)]
    return _WHITESPACE.sub(" ", "\n".join(blocks)).strip()


def _extract_favicons(soup: BeautifulSoup, base_url: str) -> list[Image]:
    favicons = []
    for link in soup.find_all("link", rel=True):
        rel = _attr_text(link, "rel")
        if "icon" not in rel:
            continue
        url = resolve_url(link.get("href"), base_url)
        if url is None:
            continue
        favicons.append(
            Image(
                url=url,
                type="favicon",
                context=ImageContext(
                    class_name=_attr_text(link, "class"),
                    id=link.get("id"),
                    rel=rel,
                    mime_type=link.get("type"),
                ),
            )
        )
    return favicons


def _extract_images(soup: BeautifulSoup, base_url: str) -> list[Image]:
    images = []
    for img in soup.find_all("img"):
        url = resolve_url(img.get("src"), base_url)
        if url is None:
            continue
        parent = img.parent
        images.append(
            Image(
                url=url,
                width=parse_dimension(img.get("width")),
                height=parse_dimension(img.get("height")),
                type="other",
                context=ImageContext(
                    alt=img.get("alt"),
                    class_name=_attr_text(img, "class"),
                    id=img.get("id"),
                    parent_classes=_attr_text(parent, "class") if parent is not None else None,
                    nearby_text=(
                        parent.get_text().strip()[:NEARBY_TEXT_LIMIT] if parent is not None else None
                    ),
                ),
            )
        )
    return images


def resolve_url(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve *href* against *base_url*; ``None`` if missing or unresolvable."""
    if not href:
        return None
    try:
        resolved = urljoin(base_url, href.strip())
        parts = urlsplit(resolved)
    except ValueError:
        return None
    if not parts.scheme:
        return None
    if parts.scheme in ("http", "https") and not parts.netloc:
        return None
    return resolved


def parse_dimension(value: Optional[str]) -> Optional[int]:
    """Leading integer of a ``width``/``height`` attribute.

    ``"120"`` and ``"120px"`` give 120; missing, unparseable, zero and
    negative values give ``None``.
    """
    if value is None:
        return None
    match = _LEADING_INT.match(value)
    if match is None:
        return None
    number = int(match.group(1))
    return number if number > 0 else None


def _attr_text(tag: Tag, name: str) -> Optional[str]:
    # html.parser splits multi-valued attributes such as class and rel into lists.
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value
