"""Client-side state for the inventory and product-search screens."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from datetime import date

from .candidates import DEFAULT_PAGE_SIZE, Page, clamp_page, dedupe, page_count, paginate
from .lookup import ProductLookup
from .models import InventoryRecord, ProductCandidate, ViewParameters
from .view import ViewDiagnostics, compute_view

logger = logging.getLogger(__name__)


class InventoryBrowser:
    """Holds the last fetched snapshot and the current view parameters.

    The displayed list is never cached: :meth:`view` recomputes it from the
    snapshot every time, so a parameter change can never leave a stale
    filtered list behind.

    Fetches are not cancelled or ordered. If two refreshes overlap, the one
    that resolves last replaces the snapshot, even if it was started first.
    """

    def __init__(
        self,
        records: Iterable[InventoryRecord] = (),
        params: ViewParameters | None = None,
    ) -> None:
        self._records: list[InventoryRecord] = list(records)
        self._params = params or ViewParameters()
        self.last_diagnostics = ViewDiagnostics()

    @property
    def records(self) -> list[InventoryRecord]:
        return list(self._records)

    @property
    def params(self) -> ViewParameters:
        return self._params

    def replace_snapshot(self, records: Iterable[InventoryRecord]) -> None:
        self._records = list(records)

    def update_params(self, **changes) -> ViewParameters:
        """Replace the view parameters with *changes* applied."""
        self._params = replace(self._params, **changes)
        return self._params

    def view(self, today: date | None = None) -> list[InventoryRecord]:
        self.last_diagnostics = ViewDiagnostics()
        return compute_view(
            self._records,
            self._params,
            today=today,
            diagnostics=self.last_diagnostics,
        )

    async def refresh(
        self, fetch: Callable[[], Awaitable[Iterable[InventoryRecord]]]
    ) -> list[InventoryRecord]:
        """Await *fetch* and install its result as the new snapshot.

        On failure the previous snapshot is kept and the error is re-raised
        so the caller can show it.
        """
        try:
            records = await fetch()
        except Exception:
            logger.warning("在庫の取得に失敗しました。前回の一覧を表示します")
            raise
        self.replace_snapshot(records)
        return self.records


class CandidateBrowser:
    """Deduplicated product candidates with a current page."""

    def __init__(self, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self._page_size = page_size
        self._candidates: list[ProductCandidate] = []
        self._page = 1

    @property
    def candidates(self) -> list[ProductCandidate]:
        return list(self._candidates)

    @property
    def page_count(self) -> int:
        return page_count(len(self._candidates), self._page_size)

    def set_results(self, results: Iterable[ProductCandidate]) -> None:
        self._candidates = dedupe(results)
        self._page = 1

    def clear(self) -> None:
        self._candidates = []
        self._page = 1

    def current_page(self) -> Page:
        return paginate(self._candidates, self._page, self._page_size)

    def go_to(self, page: int) -> Page:
        self._page = clamp_page(page, self.page_count)
        return self.current_page()

    def next_page(self) -> Page:
        return self.go_to(self._page + 1)

    def prev_page(self) -> Page:
        return self.go_to(self._page - 1)

    async def search(self, lookup: ProductLookup, query: str) -> Page:
        """Run *lookup* in a worker thread and show the first page.

        Previous results are cleared before the search starts. Lookup errors
        propagate after the list has been cleared.
        """
        self.clear()
        results = await asyncio.to_thread(lookup.search, query)
        self.set_results(results)
        return self.current_page()
