"""Client for the remote browser-automation backend.

Two channels are involved:

* the backend's HTTP API (httpx) for the session registry and for
  launching new sessions, and
* a CDP websocket per session, opened with Playwright, which is what
  actually drives the browser.

Both the httpx client and the Playwright driver are process-wide and
long-lived; ``close_http_client`` and ``close_playwright`` are the
shutdown hooks.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from tenacity import (
    RetryCallState,
    RetryError,
    before_sleep_log,
    retry,
    wait_exponential,
)

from pagebrief.core.config import settings
from pagebrief.models.browser.session import RemoteSession

logger = logging.getLogger(__name__)

_http_client: Optional[httpx.AsyncClient] = None
_playwright: Optional[Playwright] = None


def get_http_client() -> httpx.AsyncClient:
    """Return the shared AsyncClient for the backend API.  Creates one if missing."""
    global _http_client  # noqa: PLW0603
    if _http_client is None or _http_client.is_closed:
        headers = {"User-Agent": "PageBrief/1.0"}
        if settings.browser_token:
            headers["Authorization"] = f"Bearer {settings.browser_token}"
        _http_client = httpx.AsyncClient(
            base_url=settings.browser_endpoint,
            timeout=httpx.Timeout(settings.browser_timeout),
            headers=headers,
        )
    return _http_client


async def close_http_client() -> None:
    global _http_client  # noqa: PLW0603
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
        _http_client = None
        logger.info("Browser backend HTTP client closed.")


async def get_playwright() -> Playwright:
    """Return the shared Playwright driver, starting it on first use."""
    global _playwright  # noqa: PLW0603
    if _playwright is None:
        _playwright = await async_playwright().start()
    return _playwright


async def close_playwright() -> None:
    global _playwright  # noqa: PLW0603
    if _playwright is not None:
        await _playwright.stop()
        _playwright = None
        logger.info("Playwright driver stopped.")


class AcquisitionError(Exception):
    """Raised when no browser session could be obtained at all."""


class SessionUnavailableError(Exception):
    """Raised when reconnecting to a listed session fails."""


class RenderError(Exception):
    """Raised when navigation or HTML retrieval fails on an acquired session."""


class BrowserHandle:
    """A live CDP connection to one remote session.

    Holds at most one open page at a time.  ``disconnect`` drops the
    connection but leaves the remote session running, so the backend
    marks it unclaimed and it can be borrowed again.
    """

    def __init__(self, browser: Browser, session_id: str, reused: bool) -> None:
        self._browser = browser
        self.session_id = session_id
        self.reused = reused
        self.page: Optional[Page] = None

    def is_connected(self) -> bool:
        return self._browser.is_connected()

    async def new_page(self) -> Page:
        self.page = await self._browser.new_page()
        return self.page

    async def render(self, url: str) -> str:
        """Open a page, navigate to *url* and return the rendered HTML.

        Navigation waits for ``domcontentloaded`` only; images inserted
        after that point are not seen.

        Raises:
            RenderError: navigation or content retrieval failed.
        """
        try:
            page = await self.new_page()
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=settings.navigation_timeout_ms,
            )
            return await page.content()
        except PlaywrightError as exc:
            raise RenderError(f"Failed to render {url}: {exc}") from exc

    async def close_page(self) -> None:
        if self.page is not None and not self.page.is_closed():
            await self.page.close()
        self.page = None

    async def disconnect(self) -> None:
        # close() on a CDP-attached browser detaches without killing the session.
        await self._browser.close()


def _should_retry(retry_state: RetryCallState) -> bool:
    """Retry connection failures always, timeouts only for GET.

    A timed-out POST /sessions may still have launched a session on the
    backend; repeating it would leave that session orphaned.
    """
    outcome = retry_state.outcome
    if outcome is None or not outcome.failed:
        return False
    exc = outcome.exception()
    if isinstance(exc, httpx.ConnectError):
        return True
    return isinstance(exc, httpx.TimeoutException) and retry_state.args[0] == "GET"


@retry(
    retry=_should_retry,
    stop=lambda rs: rs.attempt_number >= settings.browser_max_retries + 1,
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=False,
)
async def _request_with_retry(method: str, path: str) -> httpx.Response:
    """Single backend API call; tenacity retries on transient errors."""
    response = await get_http_client().request(method, path)
    response.raise_for_status()
    return response


async def _backend_request(method: str, path: str) -> httpx.Response:
    """Call the backend API, mapping every failure to ``AcquisitionError``."""
    try:
        return await _request_with_retry(method, path)
    except RetryError as exc:
        raise AcquisitionError(
            f"{method} {path} failed after {settings.browser_max_retries + 1} attempts: "
            f"{exc.last_attempt.exception()}"
        ) from exc
    except httpx.HTTPStatusError as exc:
        raise AcquisitionError(
            f"{method} {path} returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.RequestError as exc:
        raise AcquisitionError(f"{method} {path} failed: {exc}") from exc


def session_ws_url(session_id: str) -> str:
    """CDP websocket URL of *session_id* on the configured backend."""
    base = httpx.URL(settings.browser_endpoint)
    scheme = "wss" if base.scheme == "https" else "ws"
    url = base.copy_with(
        scheme=scheme,
        path=f"{base.path.rstrip('/')}/sessions/{session_id}/connect",
    )
    if settings.browser_token:
        url = url.copy_merge_params({"token": settings.browser_token})
    return str(url)


class BrowserBackend:
    """Session registry queries plus connect/launch against the backend.

    Holds no state of its own: claim bookkeeping lives entirely on the
    backend, which marks a session claimed while a connection is attached.
    """

    async def list_sessions(self) -> list[RemoteSession]:
        """Return every session the backend currently knows about.

        Raises:
            AcquisitionError: the registry could not be queried.
        """
        response = await _backend_request("GET", "/sessions")
        try:
            payload = response.json()
            if isinstance(payload, dict):
                payload = payload.get("sessions", [])
            return [RemoteSession.model_validate(item) for item in payload]
        except ValueError as exc:
            raise AcquisitionError(f"Malformed session registry response: {exc}") from exc

    async def connect(self, session_id: str) -> BrowserHandle:
        """Attach to an existing session.

        Raises:
            SessionUnavailableError: the session is gone or already claimed.
        """
        playwright = await get_playwright()
        try:
            browser = await playwright.chromium.connect_over_cdp(session_ws_url(session_id))
        except PlaywrightError as exc:
            raise SessionUnavailableError(
                f"Could not connect to session {session_id}: {exc}"
            ) from exc
        return BrowserHandle(browser, session_id, reused=True)

    async def launch(self) -> BrowserHandle:
        """Start a brand-new session and attach to it.

        Raises:
            AcquisitionError: the backend refused or the connection failed.
        """
        response = await _backend_request("POST", "/sessions")
        try:
            session_id = response.json()["sessionId"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AcquisitionError("Backend launch response has no sessionId") from exc

        playwright = await get_playwright()
        try:
            browser = await playwright.chromium.connect_over_cdp(session_ws_url(session_id))
        except PlaywrightError as exc:
            raise AcquisitionError(
                f"Could not connect to launched session {session_id}: {exc}"
            ) from exc
        return BrowserHandle(browser, session_id, reused=False)
