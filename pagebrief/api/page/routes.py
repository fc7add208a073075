from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import HttpUrl, ValidationError

from pagebrief.core.database import db
from pagebrief.models.common import ErrorResponse
from pagebrief.models.page.schemas import PageResponse
from pagebrief.repositories.cache.repository import PageCacheRepository
from pagebrief.services.analysis import AnalysisCoordinator
from pagebrief.services.page.service import PageService
from pagebrief.workers.browser import BrowserBackend
from pagebrief.workers.pool import SessionPool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["page"])


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------


def _get_service() -> PageService:
    """FastAPI dependency that builds a ``PageService`` for each request."""
    return PageService(
        cache=PageCacheRepository.from_db(db),
        pool=SessionPool(BrowserBackend()),
        analysis=AnalysisCoordinator(),
    )


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# GET /?url=
# ---------------------------------------------------------------------------


@router.get(
    "/",
    response_model=PageResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Summarise a page and identify its logo and favicons",
)
async def get_page(
    url: Optional[str] = None,
    service: PageService = Depends(_get_service),
) -> Any:
    """Return the page brief for *url*, served from cache when available.

    - **200** — brief returned (cached or freshly computed)
    - **400** — ``url`` query parameter missing or not an http(s) URL
    - **500** — rendering, browser session or language-model failure
    """
    if not url:
        return _error(400, "Missing url parameter")
    try:
        HttpUrl(url)
    except ValidationError:
        return _error(400, "Invalid url parameter", f"{url} is not an absolute http(s) URL")

    try:
        body = await service.handle(url)
    except Exception as exc:
        logger.exception("GET / failed for %s", url)
        return _error(500, "Failed to fetch page data", str(exc))
    return JSONResponse(content=body)
