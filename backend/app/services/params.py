# app/services/params.py
"""
Request parameter normalization.

Turns the raw query-string values of a report endpoint into a `ReportRequest`:
typed, bounded, and safe to hand to the query builder.

Malformed values never fail the request. Each helper raises ValidationError,
and `normalize_report_request` recovers by using the default for that field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from app.core.config import settings
from app.core.errors import ValidationError
from app.services.report_specs import ReportKind, SortDirection, get_spec
from app.utils.parsers import parse_bound

logger = logging.getLogger(__name__)

ALL_ROLES = "all"
# Keeps OFFSET within a 64-bit integer.
MAX_PAGE = 10**9
DOMAIN_MARKERS = ("*.", "@")
_TRUTHY = {"1", "true", "yes", "on"}


class SearchMode(str, Enum):
    DOMAIN = "domain"        # email ends with @<term>, case-insensitive
    SUBSTRING = "substring"  # term appears anywhere in the email


@dataclass(frozen=True)
class SearchFilter:
    mode: SearchMode
    term: str


@dataclass(frozen=True)
class SortSpec:
    column: Enum
    direction: SortDirection


@dataclass(frozen=True)
class ReportFilters:
    role: Optional[str] = None
    search: Optional[SearchFilter] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass(frozen=True)
class ReportRequest:
    kind: ReportKind
    page: int = 1
    limit: int = 50
    filters: ReportFilters = field(default_factory=ReportFilters)
    # None means "use the report's default order".
    sort: Optional[SortSpec] = None
    sanctioned_only: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


# ----------------------------
# Field parsers (raise ValidationError)
# ----------------------------
def parse_page(raw: Optional[str]) -> int:
    if raw is None or str(raw).strip() == "":
        return 1
    try:
        page = int(str(raw).strip())
    except ValueError as e:
        raise ValidationError("page", raw, "not an integer") from e
    if page > MAX_PAGE:
        raise ValidationError("page", raw, "out of range")
    return max(page, 1)


def parse_limit(raw: Optional[str], *, default: int, maximum: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        limit = int(str(raw).strip())
    except ValueError as e:
        raise ValidationError("limit", raw, "not an integer") from e
    return min(max(limit, 1), maximum)


def parse_role(raw: Optional[str]) -> Optional[str]:
    if raw is None or raw == "" or raw == ALL_ROLES:
        return None
    return raw


def parse_search(raw: Optional[str]) -> Optional[SearchFilter]:
    """
    `*.example.org` and `@example.org` are domain searches for the same domain;
    anything else is a substring search on the email.
    """
    if raw is None or raw.strip() == "":
        return None

    for marker in DOMAIN_MARKERS:
        if raw.startswith(marker):
            domain = raw[len(marker):].strip().lower()
            if not domain or "@" in domain:
                raise ValidationError("search", raw, "empty or malformed domain")
            return SearchFilter(SearchMode.DOMAIN, domain)

    return SearchFilter(SearchMode.SUBSTRING, raw)


def parse_date_bound(param: str, raw: Optional[str], *, end_of_day: bool) -> Optional[datetime]:
    if raw is None or raw.strip() == "":
        return None
    try:
        return parse_bound(raw, end_of_day=end_of_day)
    except (ValueError, OverflowError) as e:
        raise ValidationError(param, raw, "not an ISO date or datetime") from e


def parse_sort(kind: ReportKind, sort_by: Optional[str], sort_order: Optional[str]) -> Optional[SortSpec]:
    """Both halves must be valid; otherwise neither is used."""
    if not sort_by or not sort_order:
        return None
    spec = get_spec(kind)
    try:
        column = spec.parse_sort_column(sort_by)
    except ValueError as e:
        raise ValidationError("sortBy", sort_by, f"not sortable for {kind.value}") from e
    try:
        direction = SortDirection(sort_order.strip().lower())
    except ValueError as e:
        raise ValidationError("sortOrder", sort_order, "expected asc or desc") from e
    return SortSpec(column=column, direction=direction)


def parse_flag(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in _TRUTHY


# ----------------------------
# Entry point
# ----------------------------
def _recover(err: ValidationError, fallback):
    logger.debug("Ignoring request parameter: %s", err)
    return fallback


def normalize_report_request(
    kind: ReportKind,
    *,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    role: Optional[str] = None,
    search: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    sanctioned_only: Optional[str] = None,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None,
) -> ReportRequest:
    """
    Build a ReportRequest from raw parameters.

    Every field falls back independently: a bad `limit` does not discard a
    good `search`, and an unknown `sortBy` only drops the explicit sort.
    """
    kind = ReportKind(kind)
    spec = get_spec(kind)
    default_limit = default_limit or settings.DEFAULT_PAGE_SIZE
    max_limit = max_limit or settings.MAX_PAGE_SIZE
    default_limit = min(default_limit, max_limit)

    try:
        page_no = parse_page(page)
    except ValidationError as e:
        page_no = _recover(e, 1)

    try:
        page_size = parse_limit(limit, default=default_limit, maximum=max_limit)
    except ValidationError as e:
        page_size = _recover(e, default_limit)

    try:
        search_filter = parse_search(search)
    except ValidationError as e:
        search_filter = _recover(e, None)

    try:
        start = parse_date_bound("startDate", start_date, end_of_day=False)
    except ValidationError as e:
        start = _recover(e, None)

    try:
        end = parse_date_bound("endDate", end_date, end_of_day=True)
    except ValidationError as e:
        end = _recover(e, None)

    try:
        sort = parse_sort(kind, sort_by, sort_order)
    except ValidationError as e:
        sort = _recover(e, None)

    filters = ReportFilters(
        role=parse_role(role) if spec.role_filter else None,
        search=search_filter,
        start=start,
        end=end,
    )

    return ReportRequest(
        kind=kind,
        page=page_no,
        limit=page_size,
        filters=filters,
        sort=sort,
        sanctioned_only=kind is ReportKind.SANCTIONED_DOMAINS and parse_flag(sanctioned_only),
    )
