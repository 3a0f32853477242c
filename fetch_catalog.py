"""One-shot catalog fetch from the command line.

Runs the same session -> navigation -> extraction pipeline the bot uses,
once, and prints the result as JSON on stdout (logs go to stderr).

Usage:
    python fetch_catalog.py                 # headless, browser closed afterwards
    python fetch_catalog.py --headful       # visible browser, useful for challenges
    python fetch_catalog.py --selectors my-selectors.json --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path
from typing import Optional

from automation_errors import AutomationError, ChallengeDetected, LaunchFailure, NavigationError, TimeoutExceeded
from bot_config import BotConfig, load_config, validate_config
from bot_logging import setup_logging
from catalog_cache import CatalogCache
from catalog_extractor import CatalogExtractor, load_selectors
from navigator import NavigationDriver
from session_registry import SessionRegistry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_AUTOMATION_FAILED = 1
EXIT_FATAL = 2


def build_cache(config: BotConfig, transport=None, registry: Optional[SessionRegistry] = None) -> CatalogCache:
    """Wire registry, driver and extractor from one config."""
    selectors = load_selectors(config.site.selectors_path)
    return CatalogCache(
        registry=registry or SessionRegistry(config.browser),
        driver=NavigationDriver(config.site, selectors),
        extractor=CatalogExtractor(selectors, dismiss_timeout_ms=config.site.dismiss_timeout_ms),
        config=config.cache,
        transport=transport,
    )


def _failure(error: Exception, step: str) -> dict:
    detail = str(error) or type(error).__name__
    return {"success": False, "message": f"Error: {detail}", "error": detail, "step": step, "models": []}


async def fetch_once(
    config: BotConfig,
    keep_open: bool = False,
    registry: Optional[SessionRegistry] = None,
) -> tuple[dict, int]:
    """Fetch the catalog once. Returns (result dict, exit code)."""
    start_time = time.time()
    cache = build_cache(config, registry=registry)
    registry = cache.registry
    try:
        async with registry.borrow(keep_warm=keep_open) as session:
            revealed = await cache.driver.drive(session)
            entries = await cache.extractor.extract(revealed)
    except LaunchFailure as e:
        return _failure(e, "launch"), EXIT_FATAL
    except (TimeoutExceeded, NavigationError) as e:
        return _failure(e, e.step), EXIT_AUTOMATION_FAILED
    except ChallengeDetected as e:
        return _failure(e, "challenge"), EXIT_AUTOMATION_FAILED
    except AutomationError as e:
        return _failure(e, "automation"), EXIT_AUTOMATION_FAILED
    except Exception as e:
        logger.exception("Unexpected error during catalog fetch")
        return _failure(e, "unexpected"), EXIT_AUTOMATION_FAILED

    result = {
        "success": True,
        "message": f"Successfully extracted {len(entries)} free models!",
        "models": [entry.model_dump(mode="json") for entry in entries],
        "execution_time_ms": int((time.time() - start_time) * 1000),
    }
    return result, EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Extract the AI model catalog from duck.ai")
    parser.add_argument("--headful", action="store_true", help="Run with visible browser")
    parser.add_argument("--config", default=None, help="Path to config.json")
    parser.add_argument("--selectors", default=None, help="Path to a selectors JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--json-log", action="store_true", help="Output structured JSON logs")
    return parser


async def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config_result = load_config(args.config)
    if not config_result.success:
        setup_logging(verbose=args.verbose, json_log=args.json_log)
        logger.error("Config error: %s", config_result.error)
        return EXIT_FATAL
    config = config_result.data

    setup_logging(
        verbose=args.verbose,
        json_log=args.json_log,
        redact_patterns=config.security.log_redact_patterns,
    )

    if args.headful:
        config.browser.headless = False
    if args.selectors:
        config.site.selectors_path = Path(args.selectors)

    errors, warnings = validate_config(config)
    for warning in warnings:
        logger.warning("%s", warning)
    for error in errors:
        logger.error("%s", error)
    if errors:
        logger.error("Startup validation failed")
        return EXIT_FATAL

    result, code = await fetch_once(config)
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return code


def cli() -> None:
    """Console-script entry point."""
    # Logging goes to stderr by default, stdout carries the JSON result
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
