"""Registered users persisted to data/users.json.

A user is in the file once they accepted the policy; the bot reads the
acceptance flags at startup and only writes here on acceptance.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from bot_config import Result
from chat_transport import UserProfile

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserRecord(BaseModel):
    """One registered user."""

    id: int
    is_bot: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    is_premium: bool = False
    chat_id: Optional[int] = None
    chat_type: Optional[str] = None
    joined_at: Optional[str] = None
    last_updated: Optional[str] = None

    @classmethod
    def from_profile(cls, user: UserProfile, chat_id: int, chat_type: str) -> UserRecord:
        return cls(
            id=user.id,
            is_bot=user.is_bot,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            language_code=user.language_code,
            is_premium=user.is_premium,
            chat_id=chat_id,
            chat_type=chat_type,
        )


class UsersFile(BaseModel):
    users: list[UserRecord] = Field(default_factory=list)


class UserRegistry:
    """Read/modify/write access to the users file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> UsersFile:
        """Read the file; a missing or corrupt file reads as empty."""
        if not self.path.exists():
            return UsersFile()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return UsersFile.model_validate(raw)
        except Exception as e:
            logger.warning("Unreadable users file %s (%s), treating as empty", self.path, e)
            return UsersFile()

    def accepted_ids(self) -> set[int]:
        return {user.id for user in self.load().users}

    def save_user(self, record: UserRecord) -> Result[None]:
        """Insert or update a user, stamping joined_at / last_updated."""
        data = self.load()
        for i, existing in enumerate(data.users):
            if existing.id == record.id:
                merged = existing.model_dump()
                merged.update(record.model_dump(exclude_none=True, exclude={"joined_at"}))
                merged["last_updated"] = _now()
                data.users[i] = UserRecord.model_validate(merged)
                break
        else:
            data.users.append(record.model_copy(update={"joined_at": _now()}))

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except Exception as e:
            logger.error("Error saving user data: %s", e)
            return Result.fail(f"User save failed: {e}", "SAVE_ERROR")
        return Result.ok(None)
