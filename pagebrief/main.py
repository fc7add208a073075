from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from pagebrief.api.router import router
from pagebrief.core.config import settings
from pagebrief.core.database import db
from pagebrief.repositories.cache.repository import PageCacheRepository
from pagebrief.services.analysis import close_openai_client
from pagebrief.workers.browser import close_http_client, close_playwright


def _configure_logging() -> None:
    """Attach a stdout handler to the ``pagebrief`` logger namespace.

    uvicorn installs its own root handlers before the lifespan runs, which
    turns ``logging.basicConfig`` into a no-op; configuring our namespace
    directly with ``propagate = False`` sidesteps that.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
    )
    app_log = logging.getLogger("pagebrief")
    app_log.setLevel(level)
    if not app_log.handlers:
        app_log.addHandler(handler)
    app_log.propagate = False


_configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # ── Startup ──────────────────────────────────────────────────────
    await db.connect()
    await PageCacheRepository.from_db(db).ensure_indexes()
    yield
    # ── Shutdown ─────────────────────────────────────────────────────
    await close_playwright()
    await close_http_client()
    await close_openai_client()
    await db.disconnect()


app = FastAPI(
    title="PageBrief",
    description="Renders a page in a pooled remote browser, then summarises it "
    "and picks out its logo and favicons. Results are cached per URL.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)


@app.get("/health", tags=["health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
