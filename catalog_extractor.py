"""Catalog extraction from the revealed model dropdown.

The target site's markup is an unversioned external schema, so every
selector literal used against it lives in SiteSelectors below; a layout
change means editing this module (or the selectors JSON file) only.

Extraction never raises. Missing sub-elements degrade to empty or absent
fields, and a failed in-page evaluation degrades to an empty catalog.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class SiteSelectors(BaseModel):
    """CSS selectors for the target site's consent, dropdown and model list."""

    challenge_modal: str = 'div[data-testid="anomaly-modal"]'
    consent_dialog: str = 'div[role="dialog"][aria-modal="true"]'
    consent_confirm: str = 'button:has-text("Agree and Continue")'
    reveal_control: str = "button.AHrsI58GK_lguBKwmM47.KV9dAjcCJnb8LJzKTup3"
    list_container: str = 'div.hOHAbtCOIyeIzsBNXomV ul[role="radiogroup"]'
    list_surface: str = "div.hOHAbtCOIyeIzsBNXomV"
    list_items: str = (
        'div.hOHAbtCOIyeIzsBNXomV ul[role="radiogroup"].SNQyQwxXuNCOKeRCqHri:first-of-type '
        "li.bPPjvKMux8ZtRPD4cZrA"
    )
    item_name: str = "p.J58ouJfofMIxA2Ukt6lA"
    item_beta_badge: str = "span.gADc1vgzmPc4cvxu7yBr"
    item_features: str = "ul.ciW4M39XxNhJxluFqKlx li.tDjqHxDUIeGL37tpvoSI p.G9yRxKor2ogEXadimNb5"
    close_control: str = 'button[aria-label="close dialog"]'


def load_selectors(path: Optional[Path] = None) -> SiteSelectors:
    """Load selectors from a JSON file, falling back to the built-in defaults.

    Keys missing from the file keep their default value.
    """
    if path is None:
        return SiteSelectors()
    if not path.exists():
        logger.warning("Selectors file not found at %s, using defaults", path)
        return SiteSelectors()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return SiteSelectors.model_validate(raw)
    except Exception as e:
        logger.warning("Unreadable selectors file %s (%s), using defaults", path, e)
        return SiteSelectors()


class CatalogEntry(BaseModel):
    """One selectable model in the catalog."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    beta_label: Optional[str] = None
    features: tuple[str, ...] = ()

    @property
    def label(self) -> str:
        """Row label: the name, with the beta marker in brackets when present."""
        if self.beta_label:
            return f"{self.name} [{self.beta_label}]"
        return self.name


@dataclass(frozen=True)
class RevealedList:
    """Page whose model dropdown is open, plus the container that was waited for."""

    page: Any
    container_selector: str


_EXTRACT_JS = """(items, sel) => items.map((item) => {
    const nameEl = item.querySelector(sel.name);
    const badgeEl = item.querySelector(sel.beta);
    const featureEls = item.querySelectorAll(sel.features);
    return {
        name: nameEl ? (nameEl.textContent || '').trim() : '',
        beta: badgeEl ? (badgeEl.textContent || '').trim() : null,
        features: Array.from(featureEls).map((el) => (el.textContent || '').trim()),
    };
})"""


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_entries(rows: Iterable[Any]) -> tuple[CatalogEntry, ...]:
    """Turn raw item dicts into catalog entries.

    Rows without a name, and repeats of a name already seen, are dropped.
    """
    entries: list[CatalogEntry] = []
    seen: set[str] = set()
    for row in rows or ():
        if not isinstance(row, dict):
            logger.debug("Skipping malformed catalog row: %r", row)
            continue
        name = _clean(row.get("name"))
        if not name:
            logger.debug("Skipping catalog row without a name")
            continue
        if name in seen:
            logger.debug("Skipping duplicate catalog entry %r", name)
            continue
        seen.add(name)

        beta = _clean(row.get("beta")) or None
        raw_features = row.get("features")
        features: list[str] = []
        if isinstance(raw_features, (list, tuple)):
            for feature in raw_features:
                text = _clean(feature)
                if text and text not in features:
                    features.append(text)
        entries.append(CatalogEntry(name=name, beta_label=beta, features=tuple(features)))
    return tuple(entries)


class CatalogExtractor:
    """Reads the model list out of a revealed dropdown, then dismisses it."""

    def __init__(self, selectors: Optional[SiteSelectors] = None, dismiss_timeout_ms: int = 5_000) -> None:
        self.selectors = selectors or SiteSelectors()
        self.dismiss_timeout_ms = dismiss_timeout_ms

    async def extract(self, revealed: RevealedList) -> tuple[CatalogEntry, ...]:
        page = revealed.page
        sel = self.selectors
        try:
            rows = await page.eval_on_selector_all(
                sel.list_items,
                _EXTRACT_JS,
                {"name": sel.item_name, "beta": sel.item_beta_badge, "features": sel.item_features},
            )
        except Exception as e:
            logger.warning("Catalog evaluation failed, returning empty catalog: %s", e)
            rows = []

        entries = parse_entries(rows)
        logger.info("Extracted %d catalog entries", len(entries))
        await self.dismiss(page)
        return entries

    async def dismiss(self, page: Any) -> None:
        """Close the dropdown; fall back to Escape. Never raises."""
        sel = self.selectors
        try:
            await page.click(sel.close_control, timeout=self.dismiss_timeout_ms)
            await page.wait_for_selector(sel.list_surface, state="hidden", timeout=self.dismiss_timeout_ms)
            return
        except Exception as e:
            logger.debug("Close control unavailable (%s), sending Escape", e)
        try:
            await page.keyboard.press("Escape")
        except Exception as e:
            logger.warning("Could not dismiss model dropdown: %s", e)
