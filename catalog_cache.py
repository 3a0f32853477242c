"""Per-user catalog cache with fetch-once semantics.

ensure_loaded() is the only way catalogs get fetched. It returns a
LoadResult instead of raising: automation failures of any kind become
FAILED with a human-readable reason, duplicate fetches become BUSY.

Two guards apply. A per-user in-flight set rejects a second fetch for the
same user straight away. A single SessionLock serialises browser work
across all users, because they all share one page.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from automation_errors import AutomationError, BrowserBusyError, LaunchFailure
from bot_config import CacheConfig
from catalog_extractor import CatalogEntry, CatalogExtractor
from chat_transport import ChatTransport, best_effort, best_effort_delete
from kv_store import KeyValueStore
from navigator import NavigationDriver
from session_registry import SessionLock, SessionRegistry

logger = logging.getLogger(__name__)

Catalog = tuple[CatalogEntry, ...]

STATUS_CONNECTING = "🔄 Connecting to server..."
BUSY_SAME_USER = "Already fetching models, please wait..."


class LoadStatus(str, Enum):
    ALREADY_LOADED = "already_loaded"
    LOADED = "loaded"
    BUSY = "busy"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of ensure_loaded()."""

    status: LoadStatus
    catalog: Catalog = ()
    reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status in (LoadStatus.ALREADY_LOADED, LoadStatus.LOADED)

    @classmethod
    def already_loaded(cls, catalog: Catalog) -> LoadResult:
        return cls(status=LoadStatus.ALREADY_LOADED, catalog=catalog)

    @classmethod
    def loaded(cls, catalog: Catalog) -> LoadResult:
        return cls(status=LoadStatus.LOADED, catalog=catalog)

    @classmethod
    def busy(cls, reason: str) -> LoadResult:
        return cls(status=LoadStatus.BUSY, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> LoadResult:
        return cls(status=LoadStatus.FAILED, reason=reason)


class CatalogCache:
    """Owns every user's catalog and the guards around fetching it."""

    def __init__(
        self,
        registry: SessionRegistry,
        driver: NavigationDriver,
        extractor: CatalogExtractor,
        config: Optional[CacheConfig] = None,
        transport: Optional[ChatTransport] = None,
        lock: Optional[SessionLock] = None,
    ) -> None:
        self.registry = registry
        self.driver = driver
        self.extractor = extractor
        self.config = config or CacheConfig()
        self.transport = transport
        self.lock = lock or SessionLock()
        self._catalogs: KeyValueStore[int, Catalog] = KeyValueStore("catalogs")
        self._in_flight: set[int] = set()
        self._cleanup_tasks: set[asyncio.Task] = set()

    # --- Reads ---

    def catalog(self, user_id: int) -> Catalog:
        return self._catalogs.get(user_id, ()) or ()

    def find(self, user_id: int, name: str) -> Optional[CatalogEntry]:
        """Exact-name lookup in the user's current catalog."""
        for entry in self.catalog(user_id):
            if entry.name == name:
                return entry
        return None

    def is_fetching(self, user_id: int) -> bool:
        return user_id in self._in_flight

    def put(self, user_id: int, catalog: Catalog) -> None:
        """Replace the user's catalog wholesale."""
        self._catalogs.set(user_id, tuple(catalog))

    # --- Fetching ---

    async def ensure_loaded(self, user_id: int, chat_id: Optional[int] = None) -> LoadResult:
        """Return the cached catalog, or fetch it once.

        With chat_id, a progress message is shown in that chat while fetching.
        """
        catalog = self.catalog(user_id)
        if catalog:
            return LoadResult.already_loaded(catalog)
        return await self._fetch(user_id, chat_id)

    async def refresh(self, user_id: int, chat_id: Optional[int] = None) -> LoadResult:
        """Fetch again even if a catalog is cached; same guards as ensure_loaded."""
        return await self._fetch(user_id, chat_id)

    async def _fetch(self, user_id: int, chat_id: Optional[int]) -> LoadResult:
        if user_id in self._in_flight:
            logger.info("Rejecting duplicate catalog fetch for user %s", user_id)
            return LoadResult.busy(BUSY_SAME_USER)

        self._in_flight.add(user_id)
        try:
            status_id = await self._send_status(chat_id)
            result = await self._run_guarded(user_id)
            await self._report(chat_id, status_id, result)
            return result
        finally:
            self._in_flight.discard(user_id)

    async def _run_guarded(self, user_id: int) -> LoadResult:
        try:
            catalog = await self._run_pipeline()
        except BrowserBusyError as e:
            logger.info("Catalog fetch for user %s deferred: %s", user_id, e)
            return LoadResult.busy(str(e))
        except LaunchFailure as e:
            logger.critical("Browser cannot be launched: %s", e)
            return LoadResult.failed(str(e))
        except AutomationError as e:
            logger.warning("Catalog fetch for user %s failed: %s", user_id, e)
            return LoadResult.failed(str(e))
        except asyncio.TimeoutError:
            timeout = self.config.fetch_timeout_seconds
            reason = f"Fetch timed out after {timeout:g}s" if timeout else "Fetch timed out"
            logger.warning("Catalog fetch for user %s: %s", user_id, reason)
            return LoadResult.failed(reason)
        except Exception as e:
            logger.exception("Unexpected error fetching catalog for user %s", user_id)
            return LoadResult.failed(str(e) or type(e).__name__)

        self._catalogs.set(user_id, catalog)
        logger.info("Stored %d catalog entries for user %s", len(catalog), user_id)
        return LoadResult.loaded(catalog)

    async def _run_pipeline(self) -> Catalog:
        work = self._locked_fetch()
        timeout = self.config.fetch_timeout_seconds
        if timeout:
            return await asyncio.wait_for(work, timeout=timeout)
        return await work

    async def _locked_fetch(self) -> Catalog:
        async with self.lock.hold(self.config.session_wait_timeout_seconds):
            async with self.registry.borrow(keep_warm=self.config.keep_session_warm) as session:
                revealed = await self.driver.drive(session)
                return await self.extractor.extract(revealed)

    # --- Progress notification ---

    async def _send_status(self, chat_id: Optional[int]) -> Optional[int]:
        if chat_id is None or self.transport is None:
            return None
        try:
            return await self.transport.send_message(chat_id, STATUS_CONNECTING)
        except Exception as e:
            logger.warning("Could not send fetch status to chat %s: %s", chat_id, e)
            return None

    async def _report(self, chat_id: Optional[int], status_id: Optional[int], result: LoadResult) -> None:
        if chat_id is None or status_id is None or self.transport is None:
            return
        if result.success:
            text = f"✅ Successfully loaded {len(result.catalog)} models!"
        else:
            text = f"❌ Failed to load models: {result.reason}"
        await best_effort(
            self.transport.edit_message_text(chat_id, status_id, text),
            f"status update in chat {chat_id}",
        )
        if result.success:
            self._schedule_delete(chat_id, status_id)

    def _schedule_delete(self, chat_id: int, message_id: int) -> None:
        async def _delete_later() -> None:
            await asyncio.sleep(self.config.status_message_ttl_seconds)
            await best_effort_delete(self.transport, chat_id, message_id)

        task = asyncio.ensure_future(_delete_later())
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def drain(self) -> None:
        """Wait for pending status-message deletions."""
        if self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks), return_exceptions=True)
