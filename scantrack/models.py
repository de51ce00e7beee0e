"""Data models shared by the view engine, the API and the CLI."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

PLACEHOLDER_IMAGE = "https://placehold.co/150x150?text=No+Image"
UNCATEGORIZED = "未分類"
UNKNOWN_PRODUCT_NAME = "名称不明"


class ItemStatus(str, Enum):
    ACTIVE = "active"
    CONSUMED = "consumed"
    DISCARDED = "discarded"


class FilterOption(str, Enum):
    ALL = "all"
    EXPIRED = "expired"
    UNEXPIRED = "unexpired"


class SortOption(str, Enum):
    EXPIRY_ASCENDING = "expiry_ascending"
    CREATED_DESCENDING = "created_descending"
    CREATED_ASCENDING = "created_ascending"
    NAME_ASCENDING = "name_ascending"


@dataclass
class InventoryRecord:
    """One tracked item in a refrigerator.

    Date fields are kept as the raw strings received from the backend and
    are only interpreted through :mod:`scantrack.dates`.
    """

    id: str
    name: str
    image_url: str | None = None
    category: str | None = None
    expiry_date: str = ""  # YYYY-MM-DD, local calendar date
    status: str = ItemStatus.ACTIVE.value
    created_at: str = ""
    refrigerator_id: str | None = None
    barcode: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InventoryRecord:
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            image_url=data.get("image_url") or None,
            category=data.get("category") or None,
            expiry_date=data.get("expiry_date") or "",
            status=data.get("status") or ItemStatus.ACTIVE.value,
            created_at=data.get("created_at") or "",
            refrigerator_id=(
                str(data["refrigerator_id"])
                if data.get("refrigerator_id") is not None
                else None
            ),
            barcode=data.get("barcode") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def display_image(self) -> str:
        return self.image_url or PLACEHOLDER_IMAGE

    @property
    def display_category(self) -> str:
        return self.category or UNCATEGORIZED


@dataclass
class ProductCandidate:
    """A product returned by the lookup service, before it is registered."""

    name: str
    code: str | None = None  # JAN / EAN code
    image: str = ""
    categories: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProductCandidate:
        code = data.get("code")
        return cls(
            name=data.get("name") or UNKNOWN_PRODUCT_NAME,
            code=str(code) if code else None,
            image=data.get("image") or "",
            categories=data.get("categories") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def display_image(self) -> str:
        return self.image or PLACEHOLDER_IMAGE


@dataclass
class ViewParameters:
    """User-selected search, filter and sort settings for the inventory view."""

    search_text: str = ""
    date_range_start: str | None = None
    date_range_end: str | None = None
    filter_option: FilterOption = FilterOption.ALL
    sort_option: SortOption = SortOption.EXPIRY_ASCENDING

    def __post_init__(self) -> None:
        # Accept plain strings from UI controls; unknown values are bugs.
        self.filter_option = FilterOption(self.filter_option)
        self.sort_option = SortOption(self.sort_option)
        if self.search_text is None:
            self.search_text = ""
