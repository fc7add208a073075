"""Language-model calls made on extracted page data.

Two independent requests per page: image classification (a forced tool
call whose arguments carry the structured result) and a short summary.
Both only read ``PageData`` and are issued concurrently.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from pagebrief.core.config import settings
from pagebrief.models.page.document import Image, PageData
from pagebrief.models.page.schemas import ImageAnalysis

logger = logging.getLogger(__name__)

_client: Optional[AsyncOpenAI] = None


def get_openai_client() -> AsyncOpenAI:
    global _client  # noqa: PLW0603
    if _client is None:
        _client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
    return _client


async def close_openai_client() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.close()
        _client = None


class DownstreamServiceError(Exception):
    """Raised when a language-model call fails."""


CLASSIFY_SYSTEM_PROMPT = """You are an expert at analyzing website structure and identifying the main website logo and favicons.
When looking for logos, you should ONLY identify the official logo of the website being analyzed, not any other logos that might appear in the content (like social media logos, partner logos, etc.).
The website logo is typically found in the header area of the page and often links to the homepage."""

SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries of web pages."

ANALYZE_IMAGES_TOOL = {
    "type": "function",
    "function": {
        "name": "analyzeImages",
        "description": "Analyze images and identify the main website logo and favicons",
        "parameters": {
            "type": "object",
            "properties": {
                "logos": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "url": {"type": "string"},
                            "width": {"type": ["number", "null"]},
                            "height": {"type": ["number", "null"]},
                            "alt": {"type": "string"},
                        },
                        "required": ["url", "width", "height", "alt"],
                    },
                },
                "favicons": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "url": {"type": "string"},
                            "rel": {"type": "string"},
                            "type": {"type": "string"},
                        },
                        "required": ["url", "rel", "type"],
                    },
                },
            },
            "required": ["logos", "favicons"],
        },
    },
}


def describe_image(index: int, image: Image) -> str:
    ctx = image.context
    return "\n".join(
        [
            f"Image {index}:",
            f"URL: {image.url}",
            f"Type: {image.type}",
            f"Size: {image.width or 'unknown'}x{image.height or 'unknown'}",
            f"Alt Text: {ctx.alt or 'none'}",
            f"Classes: {ctx.class_name or 'none'}",
            f"ID: {ctx.id or 'none'}",
            f"Parent Classes: {ctx.parent_classes or 'none'}",
            f"Nearby Text: {ctx.nearby_text or 'none'}",
        ]
    )


def build_classification_prompt(page: PageData) -> str:
    hostname = urlsplit(page.url).hostname or page.url
    images_context = "\n\n".join(
        describe_image(i, image) for i, image in enumerate(page.images, start=1)
    )
    return (
        f"Analyze these images from {page.url} and identify the main website logo and favicons.\n"
        f"For the logo, ONLY look for the official logo of {hostname} - ignore any other logos in the content.\n"
        "The website logo is typically:\n"
        "- Located in the header/top of the page\n"
        "- Links to the homepage\n"
        "- Contains the website/company name or brand\n"
        "- Has relevant alt text or class names\n\n"
        "Return two arrays:\n"
        "1. Logos array with the main website logo (if found), sorted by confidence\n"
        "2. Favicons array containing favicon information\n\n"
        f"{images_context}"
    )


def build_summary_prompt(page: PageData) -> str:
    return (
        f"Please provide a brief summary of this webpage at {page.url}. Here's the content:\n\n"
        f"Title: {page.title}\n\n"
        f"Description: {page.meta_description}\n\n"
        f"Content: {page.content}"
    )


class AnalysisCoordinator:
    """Shapes the two model requests and applies the empty-result default."""

    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        return self._client or get_openai_client()

    async def classify_images(self, page: PageData) -> ImageAnalysis:
        """Ask the model for the site logo and favicons.

        A reply without a usable tool call yields an empty ``ImageAnalysis``
        instead of an error.

        Raises:
            DownstreamServiceError: the API call itself failed.
        """
        try:
            response = await self.client.chat.completions.create(
                model=settings.openai_model,
                messages=[
                    {"role": "system", "content": CLASSIFY_SYSTEM_PROMPT},
                    {"role": "user", "content": build_classification_prompt(page)},
                ],
                tools=[ANALYZE_IMAGES_TOOL],
                tool_choice="required",
                temperature=settings.classification_temperature,
            )
        except OpenAIError as exc:
            raise DownstreamServiceError(f"Image classification failed: {exc}") from exc

        tool_calls = response.choices[0].message.tool_calls if response.choices else None
        if not tool_calls:
            logger.warning("No structured image analysis for %s; using empty result", page.url)
            return ImageAnalysis()
        try:
            return ImageAnalysis.model_validate_json(tool_calls[0].function.arguments)
        except ValidationError as exc:
            logger.warning("Unusable image analysis for %s (%s); using empty result", page.url, exc)
            return ImageAnalysis()

    async def summarize(self, page: PageData) -> str:
        """Return a short plain-text summary of the page.

        Raises:
            DownstreamServiceError: the API call failed.
        """
        try:
            response = await self.client.chat.completions.create(
                model=settings.openai_model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(page)},
                ],
                max_tokens=settings.summary_max_tokens,
                temperature=settings.summary_temperature,
            )
        except OpenAIError as exc:
            raise DownstreamServiceError(f"Summarization failed: {exc}") from exc
        if not response.choices:
            raise DownstreamServiceError("Summarization returned no choices")
        return response.choices[0].message.content or ""

    async def analyze(self, page: PageData) -> tuple[ImageAnalysis, str]:
        analysis, summary = await asyncio.gather(self.classify_images(page), self.summarize(page))
        return analysis, summary
