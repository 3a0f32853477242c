"""Shared test helpers for the model picker bot test suite.

Fixtures are in conftest.py. This module holds the fakes that stand in for
Playwright pages and the chat transport, plus catalog builders.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from catalog_extractor import CatalogEntry, RevealedList
from chat_transport import CallbackQuery, IncomingMessage, UserProfile


# --- Catalog builders ---

def entry(name: str, beta: Optional[str] = None, features=()) -> CatalogEntry:
    return CatalogEntry(name=name, beta_label=beta, features=tuple(features))


def sample_catalog() -> tuple:
    """The two-entry catalog used across menu tests."""
    return (entry("A"), entry("B", beta="Beta", features=["x", "y"]))


# --- Chat fakes ---

def make_user(user_id: int = 42, first_name: str = "Ada") -> UserProfile:
    return UserProfile(id=user_id, first_name=first_name, username="ada")


def make_message(user_id: int = 42, chat_id: int = 1000, message_id: int = 7, text: str = "",
                 media=()) -> IncomingMessage:
    return IncomingMessage(
        user=make_user(user_id),
        chat_id=chat_id,
        message_id=message_id,
        text=text,
        media_kinds=frozenset(media),
    )


def make_callback(user_id: int = 42, chat_id: int = 1000, message_id: int = 501, data: str = "",
                  callback_id: str = "cb-1") -> CallbackQuery:
    return CallbackQuery(id=callback_id, user=make_user(user_id), chat_id=chat_id,
                         message_id=message_id, data=data)


class RecordingTransport:
    """ChatTransport fake that records every call and hands out message ids."""

    def __init__(self, first_message_id: int = 500) -> None:
        self._next_id = first_message_id
        self.sent: list[dict] = []
        self.edits: list[dict] = []
        self.deleted: list[tuple[int, int]] = []
        self.answers: list[dict] = []
        self.missing: set[int] = set()  # ids whose deletion fails
        self.fail_edits = False

    async def send_message(self, chat_id, text, *, markup=None, parse_mode=None, reply_to=None):
        self._next_id += 1
        self.sent.append({"chat_id": chat_id, "text": text, "markup": markup,
                          "parse_mode": parse_mode, "reply_to": reply_to, "message_id": self._next_id})
        return self._next_id

    async def edit_message_text(self, chat_id, message_id, text, *, markup=None, parse_mode=None):
        if self.fail_edits:
            raise RuntimeError("message is not modified")
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text,
                           "markup": markup, "parse_mode": parse_mode})

    async def delete_message(self, chat_id, message_id):
        if message_id in self.missing:
            raise RuntimeError("Bad Request: message to delete not found")
        self.deleted.append((chat_id, message_id))

    async def answer_callback(self, callback_id, text=None, *, show_alert=False):
        self.answers.append({"id": callback_id, "text": text, "show_alert": show_alert})

    def texts(self) -> list[str]:
        return [m["text"] for m in self.sent]


# --- Playwright fakes ---

class FakeLocator:
    def __init__(self, visible: bool = False, error: Optional[Exception] = None) -> None:
        self._visible = visible
        self._error = error

    @property
    def first(self) -> "FakeLocator":
        return self

    async def is_visible(self) -> bool:
        if self._error:
            raise self._error
        return self._visible


class FakePage:
    """Just enough of playwright's Page for the driver and extractor.

    `visible` maps selectors to is_visible() answers; `timeouts` holds
    selectors whose wait/click raises a Playwright timeout.
    """

    def __init__(self, url: str = "about:blank", visible=None, timeouts=(), rows=None,
                 eval_error: Optional[Exception] = None) -> None:
        self.url = url
        self.visible = dict(visible or {})
        self.timeouts = set(timeouts)
        self.rows = rows if rows is not None else []
        self.eval_error = eval_error
        self.calls: list[tuple] = []
        self.keyboard = MagicMock()
        self.keyboard.press = AsyncMock()

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self.visible.get(selector, False))

    async def goto(self, url, wait_until=None, timeout=None):
        self.calls.append(("goto", url, wait_until, timeout))
        if "goto" in self.timeouts:
            raise PlaywrightTimeoutError("Timeout exceeded while navigating")
        if "goto:error" in self.timeouts:
            raise PlaywrightError("net::ERR_NAME_NOT_RESOLVED at https://duck.ai")
        self.url = url + "/"

    async def wait_for_timeout(self, ms):
        self.calls.append(("wait_for_timeout", ms))
        if "settle:error" in self.timeouts:
            raise PlaywrightError("Target page, context or browser has been closed")

    async def click(self, selector, timeout=None):
        self.calls.append(("click", selector, timeout))
        if ("click", selector) in self.timeouts:
            raise PlaywrightTimeoutError(f"Timeout clicking {selector}")

    async def wait_for_selector(self, selector, state=None, timeout=None):
        self.calls.append(("wait_for_selector", selector, state, timeout))
        if selector in self.timeouts:
            raise PlaywrightTimeoutError(f"Timeout waiting for {selector}")

    async def eval_on_selector_all(self, selector, expression, arg=None):
        self.calls.append(("eval_on_selector_all", selector, arg))
        if self.eval_error:
            raise self.eval_error
        return self.rows

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeSession:
    """Stands in for BrowserSession; close() is observable."""

    def __init__(self, page=None) -> None:
        self.page = page or FakePage()
        self.close = AsyncMock()


class FakeFactory:
    """Session factory that counts launches."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.launches = 0
        self.sessions: list[FakeSession] = []
        self.error = error

    async def __call__(self, options):
        self.launches += 1
        if self.error:
            raise self.error
        session = FakeSession()
        self.sessions.append(session)
        return session


class FakeDriver:
    """Navigation driver fake; can block on a gate or raise."""

    def __init__(self, error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None) -> None:
        self.error = error
        self.gate = gate
        self.runs = 0
        self.active = 0
        self.max_active = 0

    async def drive(self, session):
        self.runs += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error:
                raise self.error
            return RevealedList(page=session.page, container_selector="ul")
        finally:
            self.active -= 1


class FakeExtractor:
    def __init__(self, catalog=None) -> None:
        self.catalog = tuple(catalog) if catalog is not None else sample_catalog()
        self.runs = 0

    async def extract(self, revealed):
        self.runs += 1
        return self.catalog
