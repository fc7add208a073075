from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from pagebrief.main import app
from pagebrief.workers.browser import BrowserBackend, BrowserHandle

ACME_HTML = """<!DOCTYPE html>
<html>
  <head>
    <title>Acme</title>
    <meta name="description" content="Acme makes everything.">
    <link rel="icon" href="/fav.ico">
  </head>
  <body>
    <header class="site-header"><a href="/"><img src="/logo.png" alt="Acme logo"></a></header>
    <main><h1>Welcome</h1><p>Anvils and   rockets.</p></main>
  </body>
</html>
"""


@pytest.fixture
def client():
    """TestClient with lifespan startup/shutdown hooks fully mocked."""
    with (
        patch(
            "pagebrief.core.database.DatabaseManager.connect",
            new_callable=AsyncMock,
        ),
        patch(
            "pagebrief.core.database.DatabaseManager.disconnect",
            new_callable=AsyncMock,
        ),
        patch(
            "pagebrief.core.database.DatabaseManager.get_collection",
            return_value=MagicMock(),
        ),
        patch(
            "pagebrief.repositories.cache.repository.PageCacheRepository.ensure_indexes",
            new_callable=AsyncMock,
        ),
        patch("pagebrief.main.close_playwright", new_callable=AsyncMock),
        patch("pagebrief.main.close_http_client", new_callable=AsyncMock),
        patch("pagebrief.main.close_openai_client", new_callable=AsyncMock),
    ):
        with TestClient(app) as c:
            yield c


def make_handle(session_id: str = "session-1", html: str = ACME_HTML, reused: bool = False):
    handle = MagicMock(spec=BrowserHandle)
    handle.session_id = session_id
    handle.reused = reused
    handle.render = AsyncMock(return_value=html)
    handle.close_page = AsyncMock()
    handle.disconnect = AsyncMock()
    return handle


@pytest.fixture
def handle():
    return make_handle()


@pytest.fixture
def backend(handle):
    """Backend with an empty registry that launches ``handle``."""
    backend = MagicMock(spec=BrowserBackend)
    backend.list_sessions = AsyncMock(return_value=[])
    backend.connect = AsyncMock()
    backend.launch = AsyncMock(return_value=handle)
    return backend
