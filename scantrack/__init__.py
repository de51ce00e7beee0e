"""Scan & Track: refrigerator inventory with expiry tracking."""

from .candidates import Page, dedupe, paginate
from .config import AppConfig, load_config
from .dates import format_date_for_display, parse_local_date, parse_timestamp
from .models import (
    FilterOption,
    InventoryRecord,
    ItemStatus,
    ProductCandidate,
    SortOption,
    ViewParameters,
)
from .session import CandidateBrowser, InventoryBrowser
from .view import ViewDiagnostics, compute_view, is_expired

__all__ = [
    "InventoryRecord",
    "ProductCandidate",
    "ViewParameters",
    "ItemStatus",
    "FilterOption",
    "SortOption",
    "compute_view",
    "is_expired",
    "ViewDiagnostics",
    "dedupe",
    "paginate",
    "Page",
    "InventoryBrowser",
    "CandidateBrowser",
    "parse_local_date",
    "parse_timestamp",
    "format_date_for_display",
    "AppConfig",
    "load_config",
]
