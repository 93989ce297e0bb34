"""
Unit tests for request parameter normalization.

Malformed values fall back to defaults field by field; nothing raises.
"""

from datetime import datetime

import pytest

from app.core.errors import ValidationError
from app.services.params import (
    MAX_PAGE,
    SearchFilter,
    SearchMode,
    normalize_report_request,
    parse_limit,
    parse_page,
    parse_search,
    parse_sort,
)
from app.services.report_specs import DetailedLogsSort, ReportKind, SortDirection


class TestPage:
    """Page number coercion."""

    def test_missing_defaults_to_one(self):
        assert parse_page(None) == 1
        assert parse_page("") == 1

    def test_below_one_is_clamped(self):
        assert parse_page("0") == 1
        assert parse_page("-7") == 1

    def test_non_integer_raises(self):
        with pytest.raises(ValidationError):
            parse_page("two")

    def test_huge_page_raises(self):
        with pytest.raises(ValidationError):
            parse_page(str(MAX_PAGE + 1))

    def test_normalizer_recovers(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, page="abc")
        assert req.page == 1


class TestLimit:
    """Page size coercion and bounds."""

    def test_default(self):
        assert parse_limit(None, default=50, maximum=100) == 50

    @pytest.mark.parametrize("raw,expected", [("0", 1), ("-3", 1), ("1", 1), ("100", 100), ("500", 100)])
    def test_clamped(self, raw, expected):
        assert parse_limit(raw, default=50, maximum=100) == expected

    def test_garbage_falls_back_to_default(self):
        req = normalize_report_request(ReportKind.USER_SUMMARY, limit="lots")
        assert req.limit == 50

    def test_offset(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, page="3", limit="20")
        assert req.offset == 40


class TestSearch:
    """Domain vs substring search detection."""

    def test_at_domain(self):
        assert parse_search("@Example.org") == SearchFilter(SearchMode.DOMAIN, "example.org")

    def test_wildcard_domain_matches_at_domain(self):
        assert parse_search("*.example.org") == parse_search("@example.org")

    def test_substring(self):
        assert parse_search("jane") == SearchFilter(SearchMode.SUBSTRING, "jane")

    def test_blank_is_no_filter(self):
        assert parse_search("   ") is None

    def test_empty_domain_is_dropped(self):
        req = normalize_report_request(ReportKind.USER_SUMMARY, search="@")
        assert req.filters.search is None


class TestDates:
    """startDate / endDate bounds."""

    def test_bare_dates_cover_whole_days(self):
        req = normalize_report_request(
            ReportKind.DETAILED_LOGS, start_date="2024-03-01", end_date="2024-03-02"
        )
        assert req.filters.start == datetime(2024, 3, 1, 0, 0, 0)
        assert req.filters.end == datetime(2024, 3, 2, 23, 59, 59)

    def test_datetime_used_as_given(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, start_date="2024-03-01T08:30:00Z")
        assert req.filters.start == datetime(2024, 3, 1, 8, 30, 0)

    def test_bad_date_is_ignored_but_others_kept(self):
        req = normalize_report_request(
            ReportKind.DETAILED_LOGS, start_date="yesterday", end_date="2024-03-02", search="jane"
        )
        assert req.filters.start is None
        assert req.filters.end == datetime(2024, 3, 2, 23, 59, 59)
        assert req.filters.search == SearchFilter(SearchMode.SUBSTRING, "jane")


class TestSort:
    """Sort allow-lists."""

    def test_allowed_column(self):
        sort = parse_sort(ReportKind.DETAILED_LOGS, "rows_returned", "ASC")
        assert sort.column is DetailedLogsSort.ROWS_RETURNED
        assert sort.direction is SortDirection.ASC

    def test_unknown_column_raises(self):
        with pytest.raises(ValidationError):
            parse_sort(ReportKind.DETAILED_LOGS, "password", "asc")

    def test_column_from_another_report_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_sort(ReportKind.DETAILED_LOGS, "total_downloads", "asc")

    def test_half_a_sort_is_no_sort(self):
        assert parse_sort(ReportKind.DETAILED_LOGS, "email", None) is None

    def test_bad_direction_drops_sort(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, sort_by="email", sort_order="sideways")
        assert req.sort is None


class TestRoleAndFlags:
    """Role filter and report-specific flags."""

    @pytest.mark.parametrize("raw", [None, "", "all"])
    def test_all_roles(self, raw):
        req = normalize_report_request(ReportKind.USER_SUMMARY, role=raw)
        assert req.filters.role is None

    def test_role_kept(self):
        req = normalize_report_request(ReportKind.USER_SUMMARY, role="admin")
        assert req.filters.role == "admin"

    def test_jira_report_ignores_role(self):
        req = normalize_report_request(ReportKind.JIRA_CAP_REQUESTS, role="admin")
        assert req.filters.role is None

    def test_sanctioned_only_only_applies_to_its_report(self):
        assert normalize_report_request(ReportKind.SANCTIONED_DOMAINS, sanctioned_only="true").sanctioned_only
        assert not normalize_report_request(ReportKind.USER_SUMMARY, sanctioned_only="true").sanctioned_only
