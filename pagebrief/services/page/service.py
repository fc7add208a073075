from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from pagebrief.core.config import settings
from pagebrief.models.page.schemas import PageMeta, PageResponse
from pagebrief.repositories.cache.repository import CacheWriteError, PageCacheRepository
from pagebrief.services.analysis import AnalysisCoordinator
from pagebrief.services.extraction import extract
from pagebrief.workers.pool import SessionPool

logger = logging.getLogger(__name__)


def cache_key(target_url: str) -> str:
    """Cache key for *target_url*; the URL is used verbatim, not normalised."""
    return f"{settings.cache_key_prefix}{target_url}"


class PageService:
    """Cache-aside pipeline: cache lookup, then render, extract, analyse, store."""

    def __init__(
        self,
        cache: PageCacheRepository,
        pool: SessionPool,
        analysis: AnalysisCoordinator,
    ) -> None:
        self._cache = cache
        self._pool = pool
        self._analysis = analysis

    async def handle(self, target_url: str) -> dict[str, Any]:
        """Return the page brief for *target_url* as a JSON-ready dict.

        A cached entry is returned as stored, without touching the browser
        pool or the language model.  On a miss the pipeline runs once and
        its result is written back with the configured TTL.

        Raises:
            AcquisitionError: no browser session could be obtained.
            RenderError: the page could not be loaded.
            DownstreamServiceError: a language-model call failed.
        """
        key = cache_key(target_url)
        cached = await self._cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return json.loads(cached)

        logger.info("Cache miss for %s; running pipeline", key)
        response = await self._run_pipeline(target_url)
        body = response.model_dump(mode="json", by_alias=True)

        try:
            await self._cache.put(
                key, json.dumps(body), expiration_ttl=settings.cache_ttl_seconds
            )
        except CacheWriteError:
            logger.exception("Returning uncached result for %s", target_url)
        return body

    async def _run_pipeline(self, target_url: str) -> PageResponse:
        async with self._pool.session() as handle:
            html = await handle.render(target_url)
            page = extract(html, target_url)
            analysis, summary = await self._analysis.analyze(page)

        return PageResponse(
            meta=PageMeta(
                title=page.title,
                description=page.meta_description,
                cached_at=datetime.now(timezone.utc),
            ),
            summary=summary,
            logos=analysis.logos,
            favicons=analysis.favicons,
        )
