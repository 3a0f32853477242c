"""Stealth browser session factory.

Launches Chromium through Playwright with one context and one page, and
patches the usual automation fingerprints on the context before any page
exists so every page opened in it inherits them:

  navigator.webdriver -> false, non-empty navigator.plugins,
  realistic navigator.languages, window.chrome.runtime, and notification
  permission queries answered from the current Notification.permission.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from playwright.async_api import async_playwright

from automation_errors import LaunchFailure
from bot_config import BrowserConfig

logger = logging.getLogger(__name__)

SessionOptions = BrowserConfig

LAUNCH_ARGS = [
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--no-first-run",
    "--no-default-browser-check",
]


@dataclass
class BrowserSession:
    """Playwright driver, browser, context and page owned as one unit."""

    playwright: Any
    browser: Any
    context: Any
    page: Any

    @property
    def url(self) -> str:
        return self.page.url or ""

    async def close(self) -> None:
        """Close context, browser and Playwright; parts already gone are skipped."""
        for label, closer in (
            ("context", self.context.close),
            ("browser", self.browser.close),
            ("playwright", self.playwright.stop),
        ):
            try:
                await closer()
            except Exception as e:
                logger.debug("Ignoring %s close error: %s", label, e)


def stealth_script(languages: list[str]) -> str:
    """Return the init script that hides automation fingerprints."""
    return """
        Object.defineProperty(navigator, 'webdriver', { get: () => false });
        Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
        Object.defineProperty(navigator, 'languages', { get: () => %s });
        window.chrome = window.chrome || {};
        window.chrome.runtime = window.chrome.runtime || {};
        delete window.__playwright;
        delete window.__pw_manual;
        const originalQuery = window.navigator.permissions.query;
        window.navigator.permissions.query = (parameters) =>
            parameters.name === 'notifications'
                ? Promise.resolve({ state: Notification.permission })
                : originalQuery(parameters);
    """ % json.dumps(list(languages))


def launch_kwargs(options: SessionOptions) -> dict:
    kwargs: dict = {
        "headless": options.headless,
        "args": LAUNCH_ARGS + [f"--window-size={options.window_width},{options.window_height}"],
    }
    if options.channel:
        kwargs["channel"] = options.channel
    return kwargs


def context_kwargs(options: SessionOptions) -> dict:
    accept_language = ",".join(
        lang if i == 0 else f"{lang};q={max(0.1, 0.9 - 0.1 * (i - 1)):.1f}"
        for i, lang in enumerate(options.languages)
    )
    return {
        "viewport": {"width": options.window_width, "height": options.window_height},
        "user_agent": options.user_agent,
        "locale": options.locale,
        "timezone_id": options.timezone_id,
        "permissions": [],
        "extra_http_headers": {"Accept-Language": accept_language},
    }


async def create_session(
    options: SessionOptions,
    playwright_factory: Optional[Callable[[], Any]] = None,
) -> BrowserSession:
    """Launch a stealth-patched browser session.

    No retries: any failure tears down what was started and raises
    LaunchFailure chained to the underlying error.
    """
    factory = playwright_factory or async_playwright
    playwright = None
    browser = None
    try:
        playwright = await factory().start()
        browser = await playwright.chromium.launch(**launch_kwargs(options))
        context = await browser.new_context(**context_kwargs(options))
        # Must precede new_page() so the first page is patched too
        await context.add_init_script(stealth_script(options.languages))
        page = await context.new_page()
    except Exception as e:
        logger.error("Browser launch failed: %s", e)
        for label, part, closer in (("browser", browser, "close"), ("playwright", playwright, "stop")):
            if part is None:
                continue
            try:
                await getattr(part, closer)()
            except Exception as cleanup_error:
                logger.debug("Ignoring %s cleanup error: %s", label, cleanup_error)
        raise LaunchFailure(f"Could not launch browser: {e}") from e

    logger.info(
        "Browser session started (headless=%s, channel=%s, %dx%d)",
        options.headless, options.channel or "bundled", options.window_width, options.window_height,
    )
    return BrowserSession(playwright=playwright, browser=browser, context=context, page=page)
