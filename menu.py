"""Per-chat model menu: list -> detail -> select/close.

States per chat:
  CLOSED  no live message pair
  LIST    one row per catalog entry plus a close row
  DETAIL  one entry's features with Back and Select

The menu is one turn made of two messages, the user's request and the
bot's rendered menu. Both ids are kept as a MenuMessagePair so that Select
and Close can delete them together. Rendering a new list while a pair is
live overwrites it; the older messages are simply left behind, and
presses on them render but never change the chat's view.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from catalog_cache import Catalog, CatalogCache
from catalog_extractor import CatalogEntry
from chat_transport import (
    CallbackQuery,
    ChatTransport,
    InlineButton,
    InlineKeyboard,
    best_effort,
    best_effort_delete,
)
from kv_store import KeyValueStore

logger = logging.getLogger(__name__)

LIST_TITLE = "🤖 Available Models:"
CLOSE_LABEL = "❌ Close"
BACK_LABEL = "⬅️ Back"
SELECT_LABEL = "✅ Select"
NOT_FOUND = "❌ Model not found"
NO_MODELS = "⚠️ No models available. Please try again."
PARSE_MODE = "MarkdownV2"

VIEW_PREFIX = "view_model_"
SELECT_PREFIX = "select_model_"
BACK_DATA = "back_to_models"
CLOSE_DATA = "close_menu"

# First match wins, checked in this order
FEATURE_BULLETS = (
    ("Image", "📷"),
    ("Web search", "🌐"),
    ("General-purpose", "⭐"),
    ("Reasoning", "💡"),
    ("moderation", "🛡️"),
    ("Open source", "🔓"),
    ("Created by", "👤"),
)


class MenuView(str, Enum):
    CLOSED = "closed"
    LIST = "list"
    DETAIL = "detail"


@dataclass(frozen=True)
class MenuMessagePair:
    request_message_id: int
    response_message_id: int


MARKDOWN_V2_SPECIAL = frozenset("\\_*[]()~`>#+-=|{}.!")


def escape_markdown(text: str) -> str:
    """Escape text for Telegram MarkdownV2, where escapes also work inside entities."""
    return "".join("\\" + ch if ch in MARKDOWN_V2_SPECIAL else ch for ch in text)


def feature_bullet(feature: str) -> str:
    for needle, emoji in FEATURE_BULLETS:
        if needle in feature:
            return emoji
    return "•"


def build_list_keyboard(catalog: Catalog) -> InlineKeyboard:
    rows = [(InlineButton(entry.label, callback_data=f"{VIEW_PREFIX}{entry.name}"),) for entry in catalog]
    rows.append((InlineButton(CLOSE_LABEL, callback_data=CLOSE_DATA),))
    return InlineKeyboard(rows=tuple(rows))


def render_detail(entry: CatalogEntry) -> tuple[str, InlineKeyboard]:
    """MarkdownV2 detail text and Back/Select keyboard for one entry."""
    text = f"🤖 *{escape_markdown(entry.name)}*"
    if entry.beta_label:
        text += f" \\[{escape_markdown(entry.beta_label)}\\]"
    text += "\n\n"
    if entry.features:
        text += "*Features:*\n"
        for feature in entry.features:
            text += f"  {feature_bullet(feature)} {escape_markdown(feature)}\n"
    keyboard = InlineKeyboard(rows=((
        InlineButton(BACK_LABEL, callback_data=BACK_DATA),
        InlineButton(SELECT_LABEL, callback_data=f"{SELECT_PREFIX}{entry.name}"),
    ),))
    return text, keyboard


class MenuStateMachine:
    """Renders the model menu and tracks its message pair per chat."""

    def __init__(self, cache: CatalogCache, transport: ChatTransport) -> None:
        self.cache = cache
        self.transport = transport
        self._pairs: KeyValueStore[int, MenuMessagePair] = KeyValueStore("menu_pairs")
        self._views: KeyValueStore[int, MenuView] = KeyValueStore("menu_views")
        self._selections: KeyValueStore[int, str] = KeyValueStore("selections")

    # --- State accessors ---

    def view(self, chat_id: int) -> MenuView:
        return self._views.get(chat_id, MenuView.CLOSED) or MenuView.CLOSED

    def pair(self, chat_id: int) -> Optional[MenuMessagePair]:
        return self._pairs.get(chat_id)

    def selection(self, user_id: int) -> Optional[str]:
        return self._selections.get(user_id)

    def is_live(self, callback: CallbackQuery) -> bool:
        """True when the pressed message is the chat's current menu message."""
        pair = self._pairs.get(callback.chat_id)
        return pair is not None and pair.response_message_id == callback.message_id

    def _track_view(self, callback: CallbackQuery, view: MenuView) -> None:
        # Presses on replaced menu messages still render but never change state
        if self.is_live(callback):
            self._views.set(callback.chat_id, view)
        else:
            logger.debug("Ignoring view change from stale menu message %s", callback.message_id)

    # --- Transitions ---

    async def open_list(self, user_id: int, chat_id: int, request_message_id: int) -> bool:
        """Closed/any -> LIST. Needs a non-empty cached catalog."""
        catalog = self.cache.catalog(user_id)
        if not catalog:
            await self.transport.send_message(chat_id, NO_MODELS)
            return False

        response_id = await self.transport.send_message(
            chat_id, LIST_TITLE, markup=build_list_keyboard(catalog)
        )
        previous = self._pairs.get(chat_id)
        if previous is not None:
            logger.debug("Replacing live menu pair %s in chat %s", previous, chat_id)
        self._pairs.set(chat_id, MenuMessagePair(request_message_id, response_id))
        self._views.set(chat_id, MenuView.LIST)
        return True

    async def show_detail(self, callback: CallbackQuery, name: str) -> bool:
        """LIST -> DETAIL for the entry named exactly `name`."""
        entry = self.cache.find(callback.user.id, name)
        if entry is None:
            await best_effort(self.transport.answer_callback(callback.id, NOT_FOUND), "not-found answer")
            return False

        text, keyboard = render_detail(entry)
        try:
            await self.transport.edit_message_text(
                callback.chat_id, callback.message_id, text, markup=keyboard, parse_mode=PARSE_MODE
            )
        except Exception as e:
            logger.error("Error rendering details for %r: %s", name, e)
            await best_effort(
                self.transport.answer_callback(callback.id, "Error displaying model details"),
                "error answer",
            )
            return False
        await best_effort(self.transport.answer_callback(callback.id), "callback answer")
        self._track_view(callback, MenuView.DETAIL)
        return True

    async def back_to_list(self, callback: CallbackQuery) -> bool:
        """DETAIL -> LIST, rebuilt from whatever the cache holds now."""
        catalog = self.cache.catalog(callback.user.id)
        if not catalog:
            await best_effort(self.transport.answer_callback(callback.id, "No models available"), "callback answer")
            return False
        try:
            await self.transport.edit_message_text(
                callback.chat_id, callback.message_id, LIST_TITLE, markup=build_list_keyboard(catalog)
            )
        except Exception as e:
            logger.error("Error going back to model list: %s", e)
            await best_effort(self.transport.answer_callback(callback.id, "Error going back"), "error answer")
            return False
        await best_effort(self.transport.answer_callback(callback.id), "callback answer")
        self._track_view(callback, MenuView.LIST)
        return True

    async def select(self, callback: CallbackQuery, name: str) -> bool:
        """LIST/DETAIL -> CLOSED, recording the user's selection."""
        entry = self.cache.find(callback.user.id, name)
        if entry is None:
            await best_effort(self.transport.answer_callback(callback.id, NOT_FOUND), "not-found answer")
            return False

        self._selections.set(callback.user.id, entry.name)
        logger.info("User %s selected %r", callback.user.id, entry.name)
        await best_effort(
            self.transport.answer_callback(callback.id, f"✅ {entry.name} has been selected!", show_alert=True),
            "selection alert",
        )
        await self._teardown(callback.chat_id)
        return True

    async def close(self, callback: CallbackQuery) -> bool:
        """Any -> CLOSED without a selection. No-op when nothing is live."""
        removed = await self._teardown(callback.chat_id)
        await best_effort(self.transport.answer_callback(callback.id), "callback answer")
        return removed

    async def _teardown(self, chat_id: int) -> bool:
        # Pop before the awaits so a menu opened meanwhile keeps its own pair
        pair = self._pairs.pop(chat_id)
        self._views.set(chat_id, MenuView.CLOSED)
        if pair is None:
            return False
        await best_effort_delete(self.transport, chat_id, pair.response_message_id)
        await best_effort_delete(self.transport, chat_id, pair.request_message_id)
        return True
