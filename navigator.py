"""Navigation driver: target page -> consent modal -> open model dropdown.

Each wait is a single bounded Playwright wait. When the bound is exceeded
the whole drive fails with TimeoutExceeded naming the step; challenge pages
fail with ChallengeDetected and are never retried here. The driver never
creates, resets or closes the session it is given.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from automation_errors import ChallengeDetected, NavigationError, TimeoutExceeded
from bot_config import SiteConfig
from catalog_extractor import RevealedList, SiteSelectors
from stealth_session import BrowserSession

logger = logging.getLogger(__name__)

STEP_NAVIGATE = "navigate"
STEP_CONSENT = "consent"
STEP_REVEAL_CONTROL = "reveal_control"
STEP_REVEAL_CLICK = "reveal_click"
STEP_LIST_CONTAINER = "list_container"


async def _bounded(step: str, timeout_ms: int, action: Awaitable[Any]) -> Any:
    try:
        return await action
    except PlaywrightTimeoutError as e:
        raise TimeoutExceeded(step, timeout_ms) from e
    except PlaywrightError as e:
        raise NavigationError(step, str(e).splitlines()[0] if str(e) else type(e).__name__) from e


async def is_visible(page: Any, selector: str) -> bool:
    """Visibility probe that treats any lookup error as not visible."""
    try:
        return bool(await page.locator(selector).first.is_visible())
    except Exception:
        return False


class NavigationDriver:
    """Drives the target page until the model list is visible."""

    def __init__(self, site: Optional[SiteConfig] = None, selectors: Optional[SiteSelectors] = None) -> None:
        self.site = site or SiteConfig()
        self.selectors = selectors or SiteSelectors()

    def on_target(self, page: Any) -> bool:
        return self.site.host in (page.url or "")

    async def check_challenge(self, page: Any) -> None:
        if await is_visible(page, self.selectors.challenge_modal):
            logger.warning("Challenge modal visible on %s", page.url)
            raise ChallengeDetected()

    async def drive(self, session: BrowserSession) -> RevealedList:
        page = session.page
        site = self.site
        sel = self.selectors

        if not self.on_target(page):
            logger.info("Navigating to %s", site.url)
            await _bounded(
                STEP_NAVIGATE,
                site.navigation_timeout_ms,
                page.goto(site.url, wait_until="networkidle", timeout=site.navigation_timeout_ms),
            )
            # Late-rendering widgets appear after network idle
            await _bounded(
                STEP_NAVIGATE,
                site.navigation_timeout_ms,
                page.wait_for_timeout(site.settle_delay_ms),
            )

        await self.check_challenge(page)

        if await is_visible(page, sel.consent_dialog):
            logger.info("Accepting first-run consent dialog")
            await _bounded(
                STEP_CONSENT,
                site.step_timeout_ms,
                page.click(sel.consent_confirm, timeout=site.step_timeout_ms),
            )
            await _bounded(
                STEP_CONSENT,
                site.step_timeout_ms,
                page.wait_for_selector(sel.consent_dialog, state="hidden", timeout=site.step_timeout_ms),
            )

        await _bounded(
            STEP_REVEAL_CONTROL,
            site.step_timeout_ms,
            page.wait_for_selector(sel.reveal_control, state="visible", timeout=site.step_timeout_ms),
        )

        # Challenges can also appear mid-flow
        await self.check_challenge(page)

        await _bounded(
            STEP_REVEAL_CLICK,
            site.step_timeout_ms,
            page.click(sel.reveal_control, timeout=site.step_timeout_ms),
        )
        await _bounded(
            STEP_LIST_CONTAINER,
            site.step_timeout_ms,
            page.wait_for_selector(sel.list_container, state="visible", timeout=site.step_timeout_ms),
        )
        logger.debug("Model list revealed")
        return RevealedList(page=page, container_selector=sel.list_container)
