from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from pagebrief.models.page.document import Image, ImageContext, PageData
from pagebrief.models.page.schemas import ImageAnalysis
from pagebrief.services.analysis import (
    AnalysisCoordinator,
    DownstreamServiceError,
    build_classification_prompt,
    build_summary_prompt,
)

_PAGE = PageData(
    title="Acme",
    meta_description="Acme makes everything.",
    content="Welcome Anvils and rockets.",
    images=(
        Image(url="https://example.com/fav.ico", type="favicon", context=ImageContext(rel="icon")),
        Image(
            url="https://example.com/logo.png",
            width=120,
            type="other",
            context=ImageContext(alt="Acme logo", parent_classes="site-header"),
        ),
    ),
    url="https://example.com/page",
)

_ANALYSIS = {
    "logos": [{"url": "https://example.com/logo.png", "width": 120, "height": None, "alt": "Acme logo"}],
    "favicons": [{"url": "https://example.com/fav.ico", "rel": "icon", "type": ""}],
}


def _tool_response(arguments: str | None):
    tool_calls = None
    if arguments is not None:
        tool_calls = [SimpleNamespace(function=SimpleNamespace(name="analyzeImages", arguments=arguments))]
    message = SimpleNamespace(content=None, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _text_response(text: str | None):
    message = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def coordinator(openai_client):
    return AnalysisCoordinator(client=openai_client)


class TestPrompts:
    def test_classification_prompt_lists_every_image(self):
        prompt = build_classification_prompt(_PAGE)
        assert "official logo of example.com" in prompt
        assert "Image 1:\nURL: https://example.com/fav.ico\nType: favicon" in prompt
        assert "Image 2:" in prompt
        assert "Size: 120xunknown" in prompt
        assert "Alt Text: Acme logo" in prompt
        assert "Parent Classes: site-header" in prompt
        assert "Nearby Text: none" in prompt

    def test_summary_prompt_includes_page_fields(self):
        prompt = build_summary_prompt(_PAGE)
        assert "Title: Acme" in prompt
        assert "Description: Acme makes everything." in prompt
        assert "Content: Welcome Anvils and rockets." in prompt


class TestClassifyImages:
    async def test_parses_tool_call_arguments(self, coordinator, openai_client):
        openai_client.chat.completions.create.return_value = _tool_response(json.dumps(_ANALYSIS))

        result = await coordinator.classify_images(_PAGE)

        assert result.logos[0].url == "https://example.com/logo.png"
        assert result.logos[0].width == 120
        assert result.favicons[0].rel == "icon"
        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["tool_choice"] == "required"
        assert kwargs["tools"][0]["function"]["name"] == "analyzeImages"

    async def test_missing_tool_call_defaults_to_empty(self, coordinator, openai_client):
        openai_client.chat.completions.create.return_value = _tool_response(None)
        assert await coordinator.classify_images(_PAGE) == ImageAnalysis()

    async def test_fractional_dimensions_and_null_strings_are_kept(self, coordinator, openai_client):
        arguments = {
            "logos": [{"url": "https://example.com/logo.png", "width": 120.5, "height": None, "alt": None}],
            "favicons": [{"url": "https://example.com/fav.ico", "rel": "icon", "type": None}],
        }
        openai_client.chat.completions.create.return_value = _tool_response(json.dumps(arguments))

        result = await coordinator.classify_images(_PAGE)

        assert len(result.logos) == 1
        assert result.logos[0].width in (120, 121)
        assert isinstance(result.logos[0].width, int)
        assert result.logos[0].height is None
        assert result.logos[0].alt == ""
        assert result.favicons[0].url == "https://example.com/fav.ico"
        assert result.favicons[0].type == ""

    async def test_unparseable_arguments_default_to_empty(self, coordinator, openai_client):
        openai_client.chat.completions.create.return_value = _tool_response("{not json")
        result = await coordinator.classify_images(_PAGE)
        assert result.logos == []
        assert result.favicons == []

    async def test_api_error_raises(self, coordinator, openai_client):
        openai_client.chat.completions.create.side_effect = OpenAIError("connection reset")
        with pytest.raises(DownstreamServiceError, match="Image classification failed"):
            await coordinator.classify_images(_PAGE)


class TestSummarize:
    async def test_returns_text_with_token_cap(self, coordinator, openai_client):
        openai_client.chat.completions.create.return_value = _text_response("Acme sells anvils.")

        assert await coordinator.summarize(_PAGE) == "Acme sells anvils."
        assert openai_client.chat.completions.create.await_args.kwargs["max_tokens"] == 200

    async def test_api_error_raises(self, coordinator, openai_client):
        openai_client.chat.completions.create.side_effect = OpenAIError("rate limited")
        with pytest.raises(DownstreamServiceError, match="rate limited"):
            await coordinator.summarize(_PAGE)


async def test_analyze_runs_both_calls(coordinator, openai_client):
    openai_client.chat.completions.create.side_effect = [
        _tool_response(json.dumps(_ANALYSIS)),
        _text_response("Acme sells anvils."),
    ]

    analysis, summary = await coordinator.analyze(_PAGE)

    assert summary == "Acme sells anvils."
    assert len(analysis.logos) == 1
    assert openai_client.chat.completions.create.await_count == 2
