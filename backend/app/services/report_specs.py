# app/services/report_specs.py
"""
Catalogue of report kinds.

Every report the dashboard serves is described by one `ReportSpec` record:
which table it reads, which rows are visible (period), how rows are grouped,
which columns may be sorted on, and the default order. The query builder
consumes these records; there is no per-report SQL anywhere else.

Sort allow-lists are enums. ORDER BY identifiers cannot be bound as query
parameters, so a column name only ever reaches SQL as an enum member's value.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Type

from app.db.models import Base, JiraIssue, UserInfo


class ReportKind(str, Enum):
    USER_SUMMARY = "user-summary"
    DETAILED_LOGS = "detailed-logs"
    CAP_RESETS = "cap-resets"
    SANCTIONED_DOMAINS = "sanctioned-domains"
    JIRA_CAP_REQUESTS = "jira-cap-requests"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Period(str, Enum):
    """Which side of the reset cutoff a report looks at."""

    CURRENT = "current"  # never reset, or reset on/before the cutoff
    RESET = "reset"      # reset after the cutoff
    ANY = "any"          # no reset predicate (JIRA issues)


class UserSummarySort(str, Enum):
    EMAIL = "email"
    ROLE = "role"
    TOTAL_DOWNLOADS = "total_downloads"
    TOTAL_ROWS = "total_rows"
    LATEST_IP_ADDRESS = "latest_ip_address"
    FIRST_DOWNLOAD = "first_download"
    LAST_DOWNLOAD = "last_download"


class DetailedLogsSort(str, Enum):
    DATE_INSERTED = "date_inserted"
    EMAIL = "email"
    IP_ADDRESS = "ip_address"
    QUEUE_NAME = "queue_name"
    ROWS_RETURNED = "rows_returned"
    ROLE = "role"


class CapResetsSort(str, Enum):
    EMAIL = "email"
    ROLE = "role"
    TOTAL_ROWS = "total_rows"
    RESET_COUNT = "reset_count"
    LATEST_RESET = "latest_reset"


class JiraRequestsSort(str, Enum):
    REQUESTOR_EMAIL = "requestor_email"
    APPROVED_COUNT = "approved_count"
    DENIED_COUNT = "denied_count"
    TODO_COUNT = "todo_count"
    TOTAL_COUNT = "total_count"
    LATEST_REQUEST = "latest_request"
    FIRST_REQUEST = "first_request"


@dataclass(frozen=True)
class ReportSpec:
    kind: ReportKind
    model: Type[Base]
    rows_key: str
    sort_columns: Type[Enum]
    default_sort: Tuple[Enum, SortDirection]
    period: Period
    email_column: str
    date_column: str
    # Empty for un-aggregated projections.
    group_by: Tuple[str, ...] = ()
    role_filter: bool = True
    # Lower-case both sides of role/substring filters.
    case_insensitive_filters: bool = False

    @property
    def grouped(self) -> bool:
        return bool(self.group_by)

    def parse_sort_column(self, value: str) -> Enum:
        """Enum member for `value`; raises ValueError when not allowed."""
        return self.sort_columns(value)


REPORT_SPECS: Dict[ReportKind, ReportSpec] = {
    ReportKind.USER_SUMMARY: ReportSpec(
        kind=ReportKind.USER_SUMMARY,
        model=UserInfo,
        rows_key="users",
        sort_columns=UserSummarySort,
        default_sort=(UserSummarySort.TOTAL_ROWS, SortDirection.DESC),
        period=Period.CURRENT,
        email_column="email",
        date_column="date_inserted",
        group_by=("email", "role"),
    ),
    ReportKind.DETAILED_LOGS: ReportSpec(
        kind=ReportKind.DETAILED_LOGS,
        model=UserInfo,
        rows_key="logs",
        sort_columns=DetailedLogsSort,
        default_sort=(DetailedLogsSort.DATE_INSERTED, SortDirection.DESC),
        period=Period.CURRENT,
        email_column="email",
        date_column="date_inserted",
    ),
    ReportKind.CAP_RESETS: ReportSpec(
        kind=ReportKind.CAP_RESETS,
        model=UserInfo,
        rows_key="capResets",
        sort_columns=CapResetsSort,
        default_sort=(CapResetsSort.LATEST_RESET, SortDirection.DESC),
        period=Period.RESET,
        email_column="email",
        date_column="date_reset",
        group_by=("email", "role"),
        case_insensitive_filters=True,
    ),
    ReportKind.SANCTIONED_DOMAINS: ReportSpec(
        kind=ReportKind.SANCTIONED_DOMAINS,
        model=UserInfo,
        rows_key="users",
        sort_columns=UserSummarySort,
        default_sort=(UserSummarySort.LAST_DOWNLOAD, SortDirection.DESC),
        period=Period.CURRENT,
        email_column="email",
        date_column="date_inserted",
        group_by=("email", "role"),
    ),
    ReportKind.JIRA_CAP_REQUESTS: ReportSpec(
        kind=ReportKind.JIRA_CAP_REQUESTS,
        model=JiraIssue,
        rows_key="jiraRequests",
        sort_columns=JiraRequestsSort,
        default_sort=(JiraRequestsSort.TOTAL_COUNT, SortDirection.DESC),
        period=Period.ANY,
        email_column="requestor_email",
        date_column="created",
        group_by=("requestor_email",),
        role_filter=False,
    ),
}


def get_spec(kind: ReportKind) -> ReportSpec:
    return REPORT_SPECS[ReportKind(kind)]
