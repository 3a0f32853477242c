"""Configuration for the model picker bot."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


@dataclass
class Result(Generic[T]):
    """Type-safe result wrapper for operations that can fail."""

    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> Result[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, code: str = "UNKNOWN") -> Result[T]:
        return cls(success=False, error=error, error_code=code)


class BrowserConfig(BaseModel):
    """Launch options for the stealth browser session."""

    headless: bool = Field(default=True)
    channel: str = Field(
        default="chrome",
        description="Playwright browser channel; empty string uses the bundled Chromium",
    )
    window_width: int = Field(default=1920, ge=320)
    window_height: int = Field(default=1080, ge=240)
    locale: str = Field(default="en-US")
    languages: list[str] = Field(default_factory=lambda: ["en-US", "en"])
    timezone_id: str = Field(default="America/New_York")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)


class SiteConfig(BaseModel):
    """Target site and per-step wait bounds (milliseconds)."""

    url: str = Field(default="https://duck.ai")
    host: str = Field(default="duck.ai")
    navigation_timeout_ms: int = Field(default=30_000, ge=1000)
    settle_delay_ms: int = Field(default=2_000, ge=0)
    step_timeout_ms: int = Field(default=10_000, ge=100)
    dismiss_timeout_ms: int = Field(default=5_000, ge=100)
    selectors_path: Optional[Path] = Field(
        default=None,
        description="JSON file overriding the built-in site selectors",
    )


class CacheConfig(BaseModel):
    """Catalog fetch behaviour."""

    keep_session_warm: bool = Field(default=True)
    session_wait_timeout_seconds: float = Field(
        default=60.0, ge=0,
        description="How long a fetch waits for another user's fetch before reporting busy",
    )
    fetch_timeout_seconds: Optional[float] = Field(
        default=None, gt=0,
        description="Caller-side bound on a whole fetch; None disables it",
    )
    status_message_ttl_seconds: float = Field(default=2.0, ge=0)


class ChatBotConfig(BaseModel):
    """Chat-facing settings."""

    policy_url: str = Field(
        default="https://github.com/SahandMSV/Playwright-AI-Telegram-Automation"
    )
    users_file: Path = Field(default=Path("data") / "users.json")
    connect_pause_seconds: float = Field(default=1.2, ge=0)


class SecurityConfig(BaseModel):
    """Redaction settings for log output."""

    log_redact_patterns: list[str] = Field(
        default_factory=lambda: [
            r"\b\d{6,12}:[A-Za-z0-9_-]{30,}\b",
            r"bot\d{6,12}:[A-Za-z0-9_-]+",
        ]
    )


class BotConfig(BaseModel):
    """Root configuration model."""

    bot_token: str = Field(default="")
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    site: SiteConfig = Field(default_factory=SiteConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    bot: ChatBotConfig = Field(default_factory=ChatBotConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)


def apply_env_overrides(config: BotConfig, environ: Optional[dict[str, str]] = None) -> BotConfig:
    """Overlay BOT_TOKEN and HEADLESS from the environment."""
    env = os.environ if environ is None else environ
    token = env.get("BOT_TOKEN")
    if token:
        config.bot_token = token
    headless = env.get("HEADLESS")
    if headless is not None:
        config.browser.headless = headless.strip().lower() == "true"
    return config


def load_config(
    config_path: str | Path | None = None,
    environ: Optional[dict[str, str]] = None,
) -> Result[BotConfig]:
    """Load and validate bot config from a JSON file, then apply env overrides."""
    if config_path is None:
        return Result.ok(apply_env_overrides(BotConfig(), environ))

    path = Path(config_path)
    if not path.exists():
        logger.info("Config not found at %s, using defaults", path)
        return Result.ok(apply_env_overrides(BotConfig(), environ))

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        config = BotConfig.model_validate(raw)
    except json.JSONDecodeError as e:
        return Result.fail(f"Invalid JSON in {path}: {e}", "JSON_ERROR")
    except Exception as e:
        return Result.fail(f"Config validation failed: {e}", "VALIDATION_ERROR")
    return Result.ok(apply_env_overrides(config, environ))


def validate_config(config: BotConfig) -> tuple[list[str], list[str]]:
    """Validate runtime prerequisites.

    Returns (errors, warnings). Errors are fatal; warnings are informational.
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        from playwright.async_api import async_playwright  # noqa: F401
    except ImportError:
        errors.append("Playwright not installed: pip install playwright && playwright install chromium")

    users_dir = config.bot.users_file.parent
    if not users_dir.exists():
        try:
            users_dir.mkdir(parents=True, exist_ok=True)
        except Exception as e:
            errors.append(f"Cannot create directory {users_dir}: {e}")

    if config.site.selectors_path and not config.site.selectors_path.exists():
        warnings.append(f"Selectors file {config.site.selectors_path} not found, built-in selectors will be used")

    if not config.bot_token:
        warnings.append("BOT_TOKEN not set, chat transport cannot start")

    return errors, warnings
