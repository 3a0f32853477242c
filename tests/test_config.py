"""Tests for bot_config module."""

import json
from pathlib import Path

from bot_config import (
    BotConfig,
    ChatBotConfig,
    SiteConfig,
    apply_env_overrides,
    load_config,
    validate_config,
)


class TestDefaults:
    def test_defaults(self) -> None:
        config = BotConfig()
        assert config.browser.headless is True
        assert config.browser.channel == "chrome"
        assert (config.browser.window_width, config.browser.window_height) == (1920, 1080)
        assert config.site.url == "https://duck.ai"
        assert config.site.step_timeout_ms == 10_000
        assert config.cache.keep_session_warm is True
        assert config.cache.fetch_timeout_seconds is None
        assert config.bot.users_file == Path("data") / "users.json"


class TestEnvOverrides:
    def test_bot_token(self) -> None:
        config = apply_env_overrides(BotConfig(), {"BOT_TOKEN": "123:abc"})
        assert config.bot_token == "123:abc"

    def test_headless_only_true_string_is_true(self) -> None:
        assert apply_env_overrides(BotConfig(), {"HEADLESS": "TRUE"}).browser.headless is True
        assert apply_env_overrides(BotConfig(), {"HEADLESS": "false"}).browser.headless is False
        assert apply_env_overrides(BotConfig(), {"HEADLESS": "1"}).browser.headless is False

    def test_absent_env_keeps_values(self) -> None:
        config = apply_env_overrides(BotConfig(), {})
        assert config.bot_token == ""
        assert config.browser.headless is True


class TestLoadConfig:
    def test_no_path_gives_defaults(self) -> None:
        result = load_config(None, environ={})
        assert result.success
        assert result.data == BotConfig()

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "nope.json", environ={})
        assert result.success
        assert result.data.site.url == "https://duck.ai"

    def test_partial_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"site": {"step_timeout_ms": 2500}, "cache": {"keep_session_warm": False}}))
        result = load_config(path, environ={"HEADLESS": "false"})
        assert result.success
        assert result.data.site.step_timeout_ms == 2500
        assert result.data.cache.keep_session_warm is False
        assert result.data.browser.headless is False

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{nope")
        result = load_config(path, environ={})
        assert not result.success
        assert result.error_code == "JSON_ERROR"

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"cache": {"session_wait_timeout_seconds": -1}}))
        result = load_config(path, environ={})
        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"


class TestValidateConfig:
    def test_creates_users_dir_and_warns_about_token(self, tmp_path: Path) -> None:
        config = BotConfig(bot=ChatBotConfig(users_file=tmp_path / "data" / "users.json"))
        errors, warnings = validate_config(config)
        assert errors == []
        assert (tmp_path / "data").is_dir()
        assert any("BOT_TOKEN" in w for w in warnings)

    def test_missing_selectors_file_warns(self, tmp_path: Path) -> None:
        config = BotConfig(
            bot_token="123:abc",
            site=SiteConfig(selectors_path=tmp_path / "selectors.json"),
            bot=ChatBotConfig(users_file=tmp_path / "users.json"),
        )
        errors, warnings = validate_config(config)
        assert errors == []
        assert len(warnings) == 1
        assert "selectors.json" in warnings[0]
