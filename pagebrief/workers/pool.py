"""Borrow-and-return access to the remote browser session pool.

There is no local registry: each request asks the backend which sessions
are idle, tries to attach to one of them, and falls back to launching a
fresh session.  Two requests that pick the same idle session race on the
backend's claim; the loser's connect fails and it launches instead.
Returning a session means disconnecting from it, never terminating it.
"""

from __future__ import annotations

import logging
import random
from contextlib import asynccontextmanager
from typing import AsyncIterator

from pagebrief.workers.browser import BrowserBackend, BrowserHandle, SessionUnavailableError

logger = logging.getLogger(__name__)


class SessionPool:
    """Acquire/release contract for one remote browser handle per request."""

    def __init__(self, backend: BrowserBackend) -> None:
        self._backend = backend

    async def acquire(self) -> tuple[BrowserHandle, bool]:
        """Return a connected handle and whether an idle session was reused.

        At most one reconnect is attempted.  If there is no idle session,
        or the randomly chosen one reports ``SessionUnavailableError``, a
        new session is launched.  Any other error from the reconnect
        (e.g. the Playwright driver failing to start) is not a sign of a
        dead session and propagates without a launch.

        Raises:
            AcquisitionError: the registry query or the launch failed.
        """
        sessions = await self._backend.list_sessions()
        idle = [s.session_id for s in sessions if not s.claimed]

        if idle:
            session_id = random.choice(idle)
            try:
                handle = await self._backend.connect(session_id)
            except SessionUnavailableError as exc:
                logger.warning("Reconnect to session %s failed, launching instead: %s", session_id, exc)
            else:
                logger.info("Connected to existing session: %s", session_id)
                return handle, True

        handle = await self._backend.launch()
        logger.info("Launched new session: %s", handle.session_id)
        return handle, False

    async def release(self, handle: BrowserHandle) -> None:
        """Close the open page, then disconnect so the session goes back to the pool.

        Failures are logged rather than raised; release runs on error paths
        and must not replace the original exception.
        """
        try:
            await handle.close_page()
        except Exception:
            logger.exception("Closing page on session %s failed", handle.session_id)
        finally:
            try:
                await handle.disconnect()
            except Exception:
                logger.exception("Disconnecting from session %s failed", handle.session_id)
            else:
                logger.debug("Released session %s", handle.session_id)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserHandle]:
        """Scoped acquisition: the handle is released on every exit path."""
        handle, _ = await self.acquire()
        try:
            yield handle
        finally:
            await self.release(handle)
