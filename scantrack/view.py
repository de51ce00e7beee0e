"""Inventory view engine: status gate, search, filters and sorting.

:func:`compute_view` is a pure function of the fetched records and the
current :class:`~scantrack.models.ViewParameters`. It is meant to be called
again on every change; it never mutates its inputs and never raises for
malformed data. Records whose dates cannot be parsed ("degraded" records)
are dropped by every date-dependent filter, sorted last, and reported via
logging and the optional :class:`ViewDiagnostics`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pyuca import Collator

from .dates import parse_local_date, parse_timestamp
from .dates import today as local_today
from .models import FilterOption, InventoryRecord, ItemStatus, SortOption, ViewParameters

logger = logging.getLogger(__name__)

_collator: Collator | None = None


def _name_key(name: str) -> tuple[int, ...]:
    global _collator
    if _collator is None:
        _collator = Collator()
    return _collator.sort_key(name)


@dataclass
class ViewDiagnostics:
    """Collects data-quality findings from one :func:`compute_view` call."""

    degraded_ids: list[str] = field(default_factory=list)
    invalid_bounds: list[str] = field(default_factory=list)
    range_skipped: bool = False

    @property
    def degraded_count(self) -> int:
        return len(self.degraded_ids)

    def record_degraded(self, record: InventoryRecord, field_name: str) -> None:
        if record.id not in self.degraded_ids:
            self.degraded_ids.append(record.id)
        logger.debug(
            "日付を解釈できない在庫があります: id=%s %s=%r",
            record.id,
            field_name,
            getattr(record, field_name),
        )


def compute_view(
    records: Iterable[InventoryRecord],
    params: ViewParameters,
    *,
    today: date | None = None,
    diagnostics: ViewDiagnostics | None = None,
) -> list[InventoryRecord]:
    """Return the active records to display, filtered and sorted.

    Stages run in a fixed order: status gate, text search, expiry date
    range, expired/unexpired filter, then a stable sort.

    Args:
        records: The last fetched inventory snapshot.
        params: Current view parameters.
        today: Local date used by the expired/unexpired filter.
            Defaults to the current local date.
        diagnostics: Optional collector for degraded records.

    Returns:
        A new list; the input is left untouched.
    """
    diag = diagnostics if diagnostics is not None else ViewDiagnostics()
    current = today if today is not None else local_today()

    result = [r for r in records if r.status == ItemStatus.ACTIVE.value]

    if params.search_text:
        needle = params.search_text.lower()
        result = [r for r in result if needle in r.name.lower()]

    result = _filter_date_range(result, params, diag)
    result = _filter_by_option(result, params.filter_option, current, diag)
    result = _sort(result, params.sort_option, diag)

    if diag.degraded_ids:
        logger.warning(
            "日付の形式が不正な在庫が %d 件あります", diag.degraded_count
        )
    return result


def is_expired(record: InventoryRecord, today: date | None = None) -> bool:
    """True if the record's expiry date is before *today*.

    A record with an unparseable date is never reported as expired.
    """
    expiry = parse_local_date(record.expiry_date)
    if expiry is None:
        return False
    return expiry < (today if today is not None else local_today())


def _parse_bound(value: str | None, label: str, diag: ViewDiagnostics) -> date | None:
    if not value:
        return None
    parsed = parse_local_date(value)
    if parsed is None:
        diag.invalid_bounds.append(value)
        logger.warning("期間指定(%s)の日付を解釈できないため無視します: %r", label, value)
    return parsed


def _filter_date_range(
    records: list[InventoryRecord],
    params: ViewParameters,
    diag: ViewDiagnostics,
) -> list[InventoryRecord]:
    if not params.date_range_start and not params.date_range_end:
        return records

    start = _parse_bound(params.date_range_start, "開始", diag)
    end = _parse_bound(params.date_range_end, "終了", diag)
    if start is None and end is None:
        return records

    if start is not None and end is not None and start > end:
        # An inverted selection disables the range stage; it is not corrected.
        diag.range_skipped = True
        logger.warning(
            "期間指定の開始日 %s が終了日 %s より後のため、期間フィルタを適用しません",
            start,
            end,
        )
        return records

    kept: list[InventoryRecord] = []
    for record in records:
        expiry = parse_local_date(record.expiry_date)
        if expiry is None:
            diag.record_degraded(record, "expiry_date")
            continue
        if start is not None and expiry < start:
            continue
        if end is not None and expiry > end:
            continue
        kept.append(record)
    return kept


def _filter_by_option(
    records: list[InventoryRecord],
    option: FilterOption,
    today: date,
    diag: ViewDiagnostics,
) -> list[InventoryRecord]:
    if option is FilterOption.ALL:
        return records

    want_expired = option is FilterOption.EXPIRED
    kept: list[InventoryRecord] = []
    for record in records:
        expiry = parse_local_date(record.expiry_date)
        if expiry is None:
            diag.record_degraded(record, "expiry_date")
            continue
        if (expiry < today) == want_expired:
            kept.append(record)
    return kept


def _sort(
    records: list[InventoryRecord],
    option: SortOption,
    diag: ViewDiagnostics,
) -> list[InventoryRecord]:
    match option:
        case SortOption.NAME_ASCENDING:
            return sorted(records, key=lambda r: _name_key(r.name))
        case SortOption.EXPIRY_ASCENDING:
            return _sort_nulls_last(records, "expiry_date", parse_local_date, diag)
        case SortOption.CREATED_ASCENDING:
            return _sort_nulls_last(records, "created_at", parse_timestamp, diag)
        case SortOption.CREATED_DESCENDING:
            return _sort_nulls_last(
                records, "created_at", parse_timestamp, diag, descending=True
            )
        case _:
            raise ValueError(f"不明な並び順: {option!r}")


def _sort_nulls_last(
    records: list[InventoryRecord],
    field_name: str,
    parse: Callable[[str], Any],
    diag: ViewDiagnostics,
    *,
    descending: bool = False,
) -> list[InventoryRecord]:
    """Stable sort by the parsed *field_name*.

    Records whose field cannot be parsed are reported as degraded and keep
    their input order at the end.
    """
    valid: list[tuple[Any, InventoryRecord]] = []
    missing: list[InventoryRecord] = []
    for record in records:
        k = parse(getattr(record, field_name))
        if k is None:
            diag.record_degraded(record, field_name)
            missing.append(record)
        else:
            valid.append((k, record))
    # list.sort(reverse=True) keeps equal elements in their original order
    valid.sort(key=lambda pair: pair[0], reverse=descending)
    return [r for _, r in valid] + missing
