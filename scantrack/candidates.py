"""Deduplication and pagination of product search candidates."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import ProductCandidate

DEFAULT_PAGE_SIZE = 10


@dataclass
class Page:
    items: list[ProductCandidate] = field(default_factory=list)
    number: int = 1
    page_count: int = 0
    total: int = 0

    @property
    def has_prev(self) -> bool:
        return self.number > 1

    @property
    def has_next(self) -> bool:
        return self.number < self.page_count


def dedupe(results: Iterable[ProductCandidate]) -> list[ProductCandidate]:
    """Collapse duplicate candidates, keeping first-seen order.

    Candidates with a product code are unique by code. Candidates without
    one are unique by name. The two groups are tracked separately, so a
    code-less candidate never collides with a coded one of the same name.
    """
    seen_codes: set[str] = set()
    seen_names: set[str] = set()
    unique: list[ProductCandidate] = []

    for candidate in results:
        if candidate.code:
            if candidate.code in seen_codes:
                continue
            seen_codes.add(candidate.code)
        else:
            if candidate.name in seen_names:
                continue
            seen_names.add(candidate.name)
        unique.append(candidate)

    return unique


def page_count(total: int, page_size: int = DEFAULT_PAGE_SIZE) -> int:
    if page_size <= 0:
        raise ValueError(f"page_size must be positive: {page_size}")
    return math.ceil(total / page_size)


def clamp_page(page: int, pages: int) -> int:
    """Clamp a 1-based page number into ``[1, max(pages, 1)]``."""
    return max(1, min(page, max(pages, 1)))


def paginate(
    items: list[ProductCandidate],
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Page:
    """Return one page of *items*; out-of-range page numbers are clamped."""
    pages = page_count(len(items), page_size)
    number = clamp_page(page, pages)
    start = (number - 1) * page_size
    return Page(
        items=items[start:start + page_size],
        number=number,
        page_count=pages,
        total=len(items),
    )
