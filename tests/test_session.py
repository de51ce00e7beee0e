"""Tests for the client-side browser state."""

import asyncio
from datetime import date
from unittest.mock import MagicMock

import pytest

from scantrack.lookup import ProductLookupError
from scantrack.models import InventoryRecord, ProductCandidate
from scantrack.session import CandidateBrowser, InventoryBrowser

TODAY = date(2024, 6, 15)


def rec(id, expiry="2024-06-20", name=None, status="active"):
    return InventoryRecord(id=id, name=name or id, expiry_date=expiry, status=status)


class TestInventoryBrowser:
    def test_view_follows_parameter_changes(self):
        browser = InventoryBrowser([rec("apple"), rec("banana"), rec("old", "2024-06-01")])
        assert len(browser.view(today=TODAY)) == 3

        browser.update_params(search_text="an")
        assert [r.id for r in browser.view(today=TODAY)] == ["banana"]

        browser.update_params(search_text="", filter_option="expired")
        assert [r.id for r in browser.view(today=TODAY)] == ["old"]

    def test_replace_snapshot_is_wholesale(self):
        browser = InventoryBrowser([rec("a"), rec("b")])
        browser.replace_snapshot([rec("c")])
        assert [r.id for r in browser.records] == ["c"]

    def test_diagnostics_reset_on_each_view(self):
        browser = InventoryBrowser([rec("bad", "??")])
        browser.update_params(filter_option="expired")
        browser.view(today=TODAY)
        assert browser.last_diagnostics.degraded_ids == ["bad"]

        browser.update_params(filter_option="all", sort_option="name_ascending")
        browser.view(today=TODAY)
        assert browser.last_diagnostics.degraded_ids == []

    @pytest.mark.asyncio
    async def test_refresh_installs_result(self):
        browser = InventoryBrowser([rec("a")])

        async def fetch():
            return [rec("b"), rec("c")]

        await browser.refresh(fetch)
        assert [r.id for r in browser.records] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_previous_snapshot(self):
        browser = InventoryBrowser([rec("a")])

        async def fetch():
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            await browser.refresh(fetch)
        assert [r.id for r in browser.records] == ["a"]

    @pytest.mark.asyncio
    async def test_stale_fetch_resolving_last_overwrites_newer_one(self):
        """Known gap: fetches are not ordered, the last one to resolve wins."""
        browser = InventoryBrowser()
        release_old = asyncio.Event()

        async def old_fetch():
            await release_old.wait()
            return [rec("stale")]

        async def new_fetch():
            return [rec("fresh")]

        old_task = asyncio.create_task(browser.refresh(old_fetch))
        await asyncio.sleep(0)
        await browser.refresh(new_fetch)
        assert [r.id for r in browser.records] == ["fresh"]

        release_old.set()
        await old_task
        assert [r.id for r in browser.records] == ["stale"]


class TestCandidateBrowser:
    def _lookup(self, results):
        lookup = MagicMock()
        lookup.search.return_value = results
        return lookup

    @pytest.mark.asyncio
    async def test_search_dedupes_and_shows_first_page(self):
        results = [ProductCandidate(name=f"p{i}", code=str(i % 12)) for i in range(30)]
        browser = CandidateBrowser(page_size=5)

        page = await browser.search(self._lookup(results), "お茶")

        assert len(browser.candidates) == 12
        assert page.number == 1
        assert page.page_count == 3
        assert [c.code for c in page.items] == ["0", "1", "2", "3", "4"]

    @pytest.mark.asyncio
    async def test_new_search_resets_page(self):
        results = [ProductCandidate(name=f"p{i}", code=str(i)) for i in range(25)]
        browser = CandidateBrowser()
        lookup = self._lookup(results)

        await browser.search(lookup, "a")
        browser.next_page()
        assert browser.current_page().number == 2

        page = await browser.search(lookup, "b")
        assert page.number == 1

    def test_navigation_is_clamped(self):
        browser = CandidateBrowser(page_size=10)
        browser.set_results([ProductCandidate(name=str(i), code=str(i)) for i in range(15)])

        assert browser.prev_page().number == 1
        assert browser.next_page().number == 2
        assert browser.next_page().number == 2

    @pytest.mark.asyncio
    async def test_search_error_clears_previous_results(self):
        browser = CandidateBrowser()
        browser.set_results([ProductCandidate(name="old", code="1")])

        lookup = MagicMock()
        lookup.search.side_effect = ProductLookupError("down")

        with pytest.raises(ProductLookupError):
            await browser.search(lookup, "x")
        assert browser.candidates == []
