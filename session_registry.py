"""Ownership of the one long-lived browser session, and the lock that serialises its use."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from automation_errors import BrowserBusyError
from bot_config import BrowserConfig
from stealth_session import BrowserSession, create_session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[BrowserConfig], Awaitable[BrowserSession]]


class SessionLock:
    """System-wide mutual-exclusion token for browser work.

    Only one navigation/extraction runs at a time regardless of which user
    asked for it. Waiters queue on the lock up to `wait_timeout` seconds and
    get BrowserBusyError instead of stacking up indefinitely.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self, wait_timeout: float) -> None:
        """Acquire the lock, waiting at most wait_timeout seconds."""
        if wait_timeout <= 0:
            if self._lock.locked():
                raise BrowserBusyError("Another catalog fetch is in progress")
            await self._lock.acquire()
            return
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=wait_timeout)
        except asyncio.TimeoutError:
            raise BrowserBusyError(
                f"Another catalog fetch is still running after {wait_timeout:g}s"
            ) from None

    def release(self) -> None:
        if self._lock.locked():
            self._lock.release()

    @asynccontextmanager
    async def hold(self, wait_timeout: float) -> AsyncIterator[None]:
        await self.acquire(wait_timeout)
        try:
            yield
        finally:
            self.release()


class SessionRegistry:
    """Sole creator and destroyer of the shared BrowserSession.

    Everyone else borrows the session; nothing outside this class may
    launch or close it.
    """

    def __init__(
        self,
        options: Optional[BrowserConfig] = None,
        factory: Optional[SessionFactory] = None,
    ) -> None:
        self.options = options or BrowserConfig()
        self._factory: SessionFactory = factory or create_session
        self._session: Optional[BrowserSession] = None
        # Serialises launch and teardown so concurrent callers share one session
        self._lifecycle = asyncio.Lock()

    @property
    def has_session(self) -> bool:
        return self._session is not None

    async def acquire_session(self) -> BrowserSession:
        """Return the live session, launching it on first use."""
        async with self._lifecycle:
            if self._session is None:
                logger.info("No browser session yet, launching one")
                self._session = await self._factory(self.options)
            return self._session

    async def dispose_session(self) -> None:
        """Close and forget the session. Safe to call with no session."""
        async with self._lifecycle:
            session, self._session = self._session, None
            if session is None:
                return
            logger.info("Disposing browser session")
            await session.close()

    @asynccontextmanager
    async def borrow(self, keep_warm: bool = True) -> AsyncIterator[BrowserSession]:
        """Lend the session for one unit of work.

        With keep_warm the session stays open afterwards even when the work
        failed, so the next attempt may find the page mid-error. Without it
        the session is disposed after the work, successful or not.
        """
        session = await self.acquire_session()
        try:
            yield session
        except Exception:
            # Cancellation (caller-side timeout) is not caught: the session
            # is left in whatever state the cancelled wait left it
            if not keep_warm:
                await self.dispose_session()
            raise
        if not keep_warm:
            await self.dispose_session()
