"""Tests for catalog_extractor module."""

import asyncio
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from catalog_extractor import (
    CatalogEntry,
    CatalogExtractor,
    RevealedList,
    SiteSelectors,
    load_selectors,
    parse_entries,
)

from helpers import FakePage


class TestCatalogEntry:
    def test_label_without_beta(self) -> None:
        assert CatalogEntry(name="GPT-4o mini").label == "GPT-4o mini"

    def test_label_with_beta(self) -> None:
        assert CatalogEntry(name="o4-mini", beta_label="Beta").label == "o4-mini [Beta]"

    def test_entry_is_immutable(self) -> None:
        e = CatalogEntry(name="A")
        with pytest.raises(ValidationError):
            e.name = "B"

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CatalogEntry(name="")


class TestParseEntries:
    def test_full_rows(self) -> None:
        rows = [
            {"name": "  A  ", "beta": None, "features": []},
            {"name": "B", "beta": "Beta", "features": ["x", " y "]},
        ]
        entries = parse_entries(rows)
        assert [e.name for e in entries] == ["A", "B"]
        assert entries[0].beta_label is None
        assert entries[0].features == ()
        assert entries[1].beta_label == "Beta"
        assert entries[1].features == ("x", "y")

    def test_missing_beta_badge_is_absent_not_error(self) -> None:
        entries = parse_entries([{"name": "Llama", "features": ["Open source"]}])
        assert entries[0].beta_label is None
        assert entries[0].features == ("Open source",)

    def test_blank_beta_text_is_absent(self) -> None:
        assert parse_entries([{"name": "A", "beta": "   "}])[0].beta_label is None

    def test_missing_features_degrade_to_empty(self) -> None:
        assert parse_entries([{"name": "A", "features": None}])[0].features == ()

    def test_nameless_and_malformed_rows_dropped(self) -> None:
        rows = [{"name": ""}, "garbage", None, {"beta": "Beta"}, {"name": "Kept"}]
        assert [e.name for e in parse_entries(rows)] == ["Kept"]

    def test_duplicate_names_keep_first(self) -> None:
        rows = [{"name": "A", "features": ["first"]}, {"name": "A", "features": ["second"]}]
        entries = parse_entries(rows)
        assert len(entries) == 1
        assert entries[0].features == ("first",)

    def test_duplicate_features_collapsed_in_order(self) -> None:
        entries = parse_entries([{"name": "A", "features": ["x", "y", "x", ""]}])
        assert entries[0].features == ("x", "y")

    def test_none_rows(self) -> None:
        assert parse_entries(None) == ()


class TestLoadSelectors:
    def test_defaults_without_path(self) -> None:
        sel = load_selectors(None)
        assert sel.challenge_modal == 'div[data-testid="anomaly-modal"]'
        assert sel.close_control == 'button[aria-label="close dialog"]'

    def test_missing_file_falls_back(self, tmp_path: Path) -> None:
        assert load_selectors(tmp_path / "nope.json") == SiteSelectors()

    def test_partial_override(self, tmp_path: Path) -> None:
        path = tmp_path / "selectors.json"
        path.write_text(json.dumps({"reveal_control": "button.model-picker"}), encoding="utf-8")
        sel = load_selectors(path)
        assert sel.reveal_control == "button.model-picker"
        assert sel.item_name == SiteSelectors().item_name

    def test_corrupt_file_falls_back(self, tmp_path: Path) -> None:
        path = tmp_path / "selectors.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_selectors(path) == SiteSelectors()


class TestCatalogExtractor:
    def test_extract_and_dismiss_via_close_control(self) -> None:
        page = FakePage(rows=[{"name": "A"}, {"name": "B", "beta": "Beta", "features": ["x", "y"]}])
        extractor = CatalogExtractor(dismiss_timeout_ms=5000)

        entries = asyncio.run(extractor.extract(RevealedList(page, "ul")))

        assert [e.label for e in entries] == ["A", "B [Beta]"]
        sel = extractor.selectors
        eval_call = page.calls[0]
        assert eval_call[1] == sel.list_items
        assert eval_call[2] == {"name": sel.item_name, "beta": sel.item_beta_badge, "features": sel.item_features}
        assert ("click", sel.close_control, 5000) in page.calls
        assert ("wait_for_selector", sel.list_surface, "hidden", 5000) in page.calls
        page.keyboard.press.assert_not_called()

    def test_escape_fallback_when_close_control_times_out(self) -> None:
        sel = SiteSelectors()
        page = FakePage(rows=[{"name": "A"}], timeouts={("click", sel.close_control)})

        entries = asyncio.run(CatalogExtractor(sel).extract(RevealedList(page, "ul")))

        assert [e.name for e in entries] == ["A"]
        page.keyboard.press.assert_awaited_once_with("Escape")

    def test_escape_failure_is_swallowed(self) -> None:
        sel = SiteSelectors()
        page = FakePage(rows=[{"name": "A"}], timeouts={sel.list_surface})
        page.keyboard.press.side_effect = RuntimeError("page closed")

        entries = asyncio.run(CatalogExtractor(sel).extract(RevealedList(page, "ul")))

        assert len(entries) == 1

    def test_evaluation_error_degrades_to_empty(self) -> None:
        page = FakePage(eval_error=RuntimeError("Execution context was destroyed"))
        entries = asyncio.run(CatalogExtractor().extract(RevealedList(page, "ul")))
        assert entries == ()
