"""Outbound chat operations the bot core relies on, and the values it passes through them.

The transport itself (Telegram polling, webhooks, wire encoding) lives
outside this project; anything implementing ChatTransport can drive the
core. Cleanup that is allowed to fail goes through best_effort(), which
logs and never raises; every other transport call propagates its errors.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Optional, Protocol, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InlineButton:
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class InlineKeyboard:
    rows: tuple[tuple[InlineButton, ...], ...] = ()

    def buttons(self) -> list[InlineButton]:
        return [button for row in self.rows for button in row]


@dataclass(frozen=True)
class ReplyKeyboard:
    """Persistent keyboard under the input field."""

    rows: tuple[tuple[str, ...], ...] = ()
    resize: bool = True
    placeholder: Optional[str] = None


Markup = Union[InlineKeyboard, ReplyKeyboard]


@dataclass(frozen=True)
class UserProfile:
    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    is_premium: bool = False

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or "there"


@dataclass(frozen=True)
class IncomingMessage:
    """A user's chat message as delivered by the transport."""

    user: UserProfile
    chat_id: int
    message_id: int
    chat_type: str = "private"
    text: str = ""
    media_kinds: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class CallbackQuery:
    """A press on an inline button, tied to the message that carried it."""

    id: str
    user: UserProfile
    chat_id: int
    message_id: int
    data: str = ""
    chat_type: str = "private"


class ChatTransport(Protocol):
    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        markup: Optional[Markup] = None,
        parse_mode: Optional[str] = None,
        reply_to: Optional[int] = None,
    ) -> int:
        """Send a message and return its message id."""
        ...

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        markup: Optional[InlineKeyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> None:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...

    async def answer_callback(
        self,
        callback_id: str,
        text: Optional[str] = None,
        *,
        show_alert: bool = False,
    ) -> None:
        ...


async def best_effort(action: Awaitable[object], what: str) -> bool:
    """Await a cleanup action whose failure must not escalate.

    Returns True when it succeeded; failures are logged at warning level.
    """
    try:
        await action
        return True
    except Exception as e:
        logger.warning("Best-effort %s failed: %s", what, e)
        return False


async def best_effort_delete(transport: ChatTransport, chat_id: int, message_id: int) -> bool:
    """Delete a message that may already be gone."""
    return await best_effort(
        transport.delete_message(chat_id, message_id),
        f"delete of message {message_id} in chat {chat_id}",
    )
