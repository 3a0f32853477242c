"""Inbound chat triggers wired to the catalog cache and the model menu.

The transport layer calls one method per user action. Nothing here talks
to the browser directly; fetch failures arrive as LoadResult reasons and
the main menu stays available afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bot_config import BotConfig
from catalog_cache import CatalogCache
from chat_transport import (
    CallbackQuery,
    ChatTransport,
    IncomingMessage,
    InlineButton,
    InlineKeyboard,
    ReplyKeyboard,
    best_effort,
    best_effort_delete,
)
from menu import BACK_DATA, CLOSE_DATA, SELECT_PREFIX, VIEW_PREFIX, MenuStateMachine
from user_registry import UserRecord, UserRegistry

logger = logging.getLogger(__name__)

ACCEPT_DATA = "accept_policy"
CHANGE_MODEL_LABEL = "🔄 Change Model"
PLEASE_START = "⚠️ Please start the bot with /start and accept the policy first."

BLOCKED_MEDIA = frozenset({"voice", "video_note", "sticker", "animation", "photo", "video", "document"})
MEDIA_WARNING = (
    "This bot only accepts text messages. Please avoid sending voice notes, "
    "videos, stickers, GIFs, or files."
)

HELP_TEXT = """📚 Help Information

Available features:
• "Change Model" - Select from available AI models
• "Settings" - Configure bot preferences (coming soon)

Bot commands:
• /start - Show main menu
• /help - Show this help message
• /open - Launch Chrome, navigate to duck.ai, and extract available models"""

SETTINGS_TEXT = (
    "⚙️ Settings feature is coming soon! 🚀\n\n"
    "We're working hard to bring you awesome customization options. Stay tuned! 😊"
)

MAIN_MENU = ReplyKeyboard(rows=((CHANGE_MODEL_LABEL,),), resize=True, placeholder="Ask anything...")


class BotHandlers:
    """One coroutine per inbound user action."""

    def __init__(
        self,
        config: BotConfig,
        cache: CatalogCache,
        menu: MenuStateMachine,
        transport: ChatTransport,
        users: UserRegistry,
    ) -> None:
        self.config = config
        self.cache = cache
        self.menu = menu
        self.transport = transport
        self.users = users
        self._accepted: set[int] = set()

    def load_accepted(self) -> int:
        """Read acceptance flags from the users file. Call once at startup."""
        self._accepted = self.users.accepted_ids()
        logger.info("Loaded %d users", len(self._accepted))
        return len(self._accepted)

    def has_accepted(self, user_id: int) -> bool:
        return user_id in self._accepted

    async def show_main_menu(self, chat_id: int, name: str) -> None:
        await self.transport.send_message(chat_id, f"You're all set, {name}! 🎉", markup=MAIN_MENU)

    # --- Onboarding ---

    async def on_start(self, message: IncomingMessage) -> None:
        user = message.user
        if self.has_accepted(user.id):
            await self.show_main_menu(message.chat_id, user.display_name)
            return

        keyboard = InlineKeyboard(rows=((
            InlineButton("📋 Policy", url=self.config.bot.policy_url),
            InlineButton("✅ Accept", callback_data=ACCEPT_DATA),
        ),))
        await self.transport.send_message(
            message.chat_id,
            f"Welcome {user.display_name}! 🤖\n\nBefore using this bot, please review and accept our policy.",
            markup=keyboard,
        )

    async def on_accept_policy(self, callback: CallbackQuery) -> None:
        user = callback.user
        chat_id, message_id = callback.chat_id, callback.message_id
        try:
            await self.transport.edit_message_text(chat_id, message_id, "Logging you in...")
            saved = self.users.save_user(UserRecord.from_profile(user, chat_id, callback.chat_type))
            if not saved.success:
                logger.warning("User %s accepted but was not persisted: %s", user.id, saved.error)
            self._accepted.add(user.id)
            await best_effort(self.transport.answer_callback(callback.id), "callback answer")

            await self.transport.edit_message_text(chat_id, message_id, "Connecting to server...")
            result = await self.cache.ensure_loaded(user.id)

            if result.success:
                await self.transport.edit_message_text(chat_id, message_id, "Connected successfully ✅")
                await asyncio.sleep(self.config.bot.connect_pause_seconds)
                await best_effort_delete(self.transport, chat_id, message_id)
                await self.show_main_menu(chat_id, user.display_name)
            else:
                await self.transport.edit_message_text(
                    chat_id, message_id, f"❌ Connection failed: {result.reason}"
                )
                await self.transport.send_message(chat_id, "You can try again later.", markup=MAIN_MENU)
        except Exception:
            logger.exception("Error accepting policy for user %s", user.id)
            await best_effort(
                self.transport.edit_message_text(chat_id, message_id, "❌ An error occurred. Please try again."),
                "error notice",
            )
            await self.show_main_menu(chat_id, user.display_name)

    # --- Model menu ---

    async def on_request_catalog(self, message: IncomingMessage) -> bool:
        user_id, chat_id = message.user.id, message.chat_id
        if not self.has_accepted(user_id):
            await self.transport.send_message(chat_id, PLEASE_START)
            return False

        result = await self.cache.ensure_loaded(user_id, chat_id=chat_id)
        if not result.success:
            await self.transport.send_message(chat_id, f"⚠️ {result.reason}\n\nPlease try again.")
            return False
        return await self.menu.open_list(user_id, chat_id, message.message_id)

    async def on_select_row(self, callback: CallbackQuery, entry_name: str) -> bool:
        return await self.menu.show_detail(callback, entry_name)

    async def on_back(self, callback: CallbackQuery) -> bool:
        return await self.menu.back_to_list(callback)

    async def on_select_entry(self, callback: CallbackQuery, entry_name: str) -> bool:
        return await self.menu.select(callback, entry_name)

    async def on_close(self, callback: CallbackQuery) -> bool:
        return await self.menu.close(callback)

    async def dispatch_callback(self, callback: CallbackQuery, data: Optional[str] = None) -> None:
        """Route raw inline-button data to its handler."""
        data = callback.data if data is None else data
        if data == ACCEPT_DATA:
            await self.on_accept_policy(callback)
        elif data == BACK_DATA:
            await self.on_back(callback)
        elif data == CLOSE_DATA:
            await self.on_close(callback)
        elif data.startswith(VIEW_PREFIX) and len(data) > len(VIEW_PREFIX):
            await self.on_select_row(callback, data[len(VIEW_PREFIX):])
        elif data.startswith(SELECT_PREFIX) and len(data) > len(SELECT_PREFIX):
            await self.on_select_entry(callback, data[len(SELECT_PREFIX):])
        else:
            logger.debug("Unhandled callback data %r", data)
            await best_effort(self.transport.answer_callback(callback.id), "callback answer")

    # --- Misc commands ---

    async def on_help(self, message: IncomingMessage) -> None:
        await self.transport.send_message(message.chat_id, HELP_TEXT)

    async def on_settings(self, message: IncomingMessage) -> None:
        await self.transport.send_message(message.chat_id, SETTINGS_TEXT)

    async def on_open(self, message: IncomingMessage) -> None:
        """Force a fresh fetch, replacing the user's catalog."""
        user_id, chat_id = message.user.id, message.chat_id
        if not self.has_accepted(user_id):
            await self.transport.send_message(chat_id, PLEASE_START)
            return

        await self.transport.send_message(chat_id, "🚀 Starting browser automation...")
        result = await self.cache.refresh(user_id)
        if result.success:
            await self.transport.send_message(
                chat_id,
                f"✅ Successfully loaded {len(result.catalog)} models!\n\n"
                f"Use \"{CHANGE_MODEL_LABEL}\" to see available options.",
            )
        else:
            await self.transport.send_message(chat_id, f"❌ {result.reason}")

    async def on_restricted_media(self, message: IncomingMessage) -> bool:
        """Delete non-text messages and warn. Returns True when the message was blocked."""
        if not (message.media_kinds & BLOCKED_MEDIA):
            return False
        # Warn first: a reply cannot reference an already-deleted message
        await best_effort(
            self.transport.send_message(message.chat_id, MEDIA_WARNING, reply_to=message.message_id),
            "media warning",
        )
        await best_effort_delete(self.transport, message.chat_id, message.message_id)
        return True
