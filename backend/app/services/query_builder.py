# app/services/query_builder.py
"""
Query construction for report endpoints.

`build_query_plans()` turns a normalized ReportRequest into two SQLAlchemy Core
statements:
- count: one row, `total`, the number of rows the report has across all pages
- data: one page of rows, sorted and aggregated per the report's ReportSpec

Security notes:
- Every user-supplied value (role, search term, dates, limit, offset) is a bound
  parameter. LIKE wildcards inside search terms are escaped.
- ORDER BY is the only place an identifier is rendered from request input, and
  only from a member of the report's sort enum.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

from sqlalchemy import Select, String, and_, case, distinct, false, func, literal_column, or_, select
from sqlalchemy.sql.elements import ColumnElement

from app.core.config import Settings, settings as default_settings
from app.db.models import JiraIssue, UserInfo
from app.services.params import ReportFilters, ReportRequest, SearchMode
from app.services.report_specs import Period, ReportKind, ReportSpec, SortDirection, get_spec

SUCCESS_OUTCOME = "Success"

JIRA_APPROVED = "Approved"
JIRA_DENIED = "Denied"
JIRA_TODO = "To Do"
DENIED_DETAILS_SEPARATOR = ";;;"


@dataclass(frozen=True)
class QueryPlans:
    count: Select
    data: Select


# ----------------------------
# Predicates
# ----------------------------
def log_visibility(period: Period, rules: Settings = default_settings) -> List[ColumnElement[bool]]:
    """
    Business rules every usage report applies before any user filter.

    CURRENT hides rows reset after the cutoff; RESET shows only those rows.
    """
    predicates: List[ColumnElement[bool]] = [
        UserInfo.tool_year == rules.TOOL_YEAR,
        UserInfo.outcome == SUCCESS_OUTCOME,
        UserInfo.email.not_like(rules.TEST_ACCOUNT_PATTERN),
    ]
    if period is Period.CURRENT:
        predicates.append(
            or_(UserInfo.date_reset.is_(None), UserInfo.date_reset <= rules.RESET_CUTOFF)
        )
    elif period is Period.RESET:
        predicates.append(
            and_(UserInfo.date_reset.is_not(None), UserInfo.date_reset > rules.RESET_CUTOFF)
        )
    return predicates


def _lower(column) -> ColumnElement:
    return func.lower(column, type_=String)


def filter_predicates(spec: ReportSpec, filters: ReportFilters) -> List[ColumnElement[bool]]:
    model = spec.model
    email = getattr(model, spec.email_column)
    date_col = getattr(model, spec.date_column)
    predicates: List[ColumnElement[bool]] = []

    if spec.role_filter and filters.role is not None:
        if spec.case_insensitive_filters:
            predicates.append(_lower(model.role) == filters.role.lower())
        else:
            predicates.append(model.role == filters.role)

    search = filters.search
    if search is not None:
        if search.mode is SearchMode.DOMAIN:
            predicates.append(_lower(email).endswith("@" + search.term.lower(), autoescape=True))
        elif spec.case_insensitive_filters:
            predicates.append(_lower(email).contains(search.term.lower(), autoescape=True))
        else:
            predicates.append(email.contains(search.term, autoescape=True))

    if filters.start is not None:
        predicates.append(date_col >= filters.start)
    if filters.end is not None:
        predicates.append(date_col <= filters.end)

    return predicates


def domain_predicate(domains: Sequence[str]) -> ColumnElement[bool]:
    """Emails whose domain is, or is a subdomain of, one of `domains`."""
    clauses = []
    for domain in domains:
        d = domain.strip().lower()
        if not d:
            continue
        clauses.append(_lower(UserInfo.email).endswith("@" + d, autoescape=True))
        clauses.append(_lower(UserInfo.email).endswith("." + d, autoescape=True))
    return or_(*clauses) if clauses else false()


# ----------------------------
# Projections (one per aggregation shape)
# ----------------------------
def _usage_summary_columns() -> List[ColumnElement]:
    return [
        UserInfo.email,
        UserInfo.role,
        func.count().label("total_downloads"),
        func.sum(UserInfo.rows_returned).label("total_rows"),
        func.min(UserInfo.date_inserted).label("first_download"),
        func.max(UserInfo.date_inserted).label("last_download"),
        func.max(UserInfo.ip_address).label("latest_ip_address"),
    ]


def _detailed_log_columns() -> List[ColumnElement]:
    return [
        UserInfo.email,
        UserInfo.role,
        UserInfo.ip_address,
        UserInfo.queue_name,
        UserInfo.rows_returned,
        UserInfo.date_inserted,
        UserInfo.permalink,
    ]


def _cap_reset_columns() -> List[ColumnElement]:
    return [
        UserInfo.email,
        UserInfo.role,
        func.count(distinct(UserInfo.date_reset)).label("reset_count"),
        func.sum(UserInfo.rows_returned).label("total_rows"),
        func.max(UserInfo.date_reset).label("latest_reset"),
    ]


def _jira_request_columns() -> List[ColumnElement]:
    status = JiraIssue.status
    # "2024-03-01|Globalpaper, Sanctioned" for each denied issue carrying labels
    denied_detail = case(
        (
            and_(status == JIRA_DENIED, JiraIssue.labels.is_not(None), JiraIssue.labels != ""),
            func.date(JiraIssue.created, type_=String) + "|" + JiraIssue.labels,
        ),
    )
    return [
        JiraIssue.requestor_email,
        func.count(case((status == JIRA_APPROVED, 1))).label("approved_count"),
        func.count(case((status == JIRA_DENIED, 1))).label("denied_count"),
        func.count(case((status == JIRA_TODO, 1))).label("todo_count"),
        func.count().label("total_count"),
        func.max(JiraIssue.created).label("latest_request"),
        func.min(JiraIssue.created).label("first_request"),
        func.aggregate_strings(denied_detail, DENIED_DETAILS_SEPARATOR).label("denied_details"),
    ]


PROJECTIONS: Dict[ReportKind, Callable[[], List[ColumnElement]]] = {
    ReportKind.USER_SUMMARY: _usage_summary_columns,
    ReportKind.SANCTIONED_DOMAINS: _usage_summary_columns,
    ReportKind.DETAILED_LOGS: _detailed_log_columns,
    ReportKind.CAP_RESETS: _cap_reset_columns,
    ReportKind.JIRA_CAP_REQUESTS: _jira_request_columns,
}


# ----------------------------
# Ordering
# ----------------------------
def order_by_clauses(spec: ReportSpec, request: ReportRequest) -> List[ColumnElement]:
    """
    Requested (or default) order, then a fixed tie-break so that LIMIT/OFFSET
    pages never overlap or skip rows.
    """
    if request.sort is not None:
        column, direction = request.sort.column, request.sort.direction
    else:
        column, direction = spec.default_sort

    # Enum value only; never raw request text.
    primary = literal_column(spec.sort_columns(column).value)
    clauses: List[ColumnElement] = [primary.desc() if direction is SortDirection.DESC else primary.asc()]

    if spec.grouped:
        clauses.extend(
            getattr(spec.model, name).asc() for name in spec.group_by if name != column.value
        )
    else:
        clauses.append(spec.model.id.desc())
    return clauses


# ----------------------------
# Entry point
# ----------------------------
def build_query_plans(
    request: ReportRequest,
    *,
    rules: Settings = default_settings,
    sanctioned_domains: Sequence[str] = (),
) -> QueryPlans:
    spec = get_spec(request.kind)

    predicates: List[ColumnElement[bool]] = []
    if spec.model is UserInfo:
        predicates.extend(log_visibility(spec.period, rules))
    predicates.extend(filter_predicates(spec, request.filters))
    if request.sanctioned_only:
        predicates.append(domain_predicate(sanctioned_domains))

    data = select(*PROJECTIONS[spec.kind]()).where(*predicates)

    if spec.grouped:
        group_cols = [getattr(spec.model, name) for name in spec.group_by]
        data = data.group_by(*group_cols)
        groups = select(*group_cols).where(*predicates).group_by(*group_cols).subquery("report_groups")
        count = select(func.count().label("total")).select_from(groups)
    else:
        count = select(func.count().label("total")).select_from(spec.model).where(*predicates)

    data = (
        data.order_by(*order_by_clauses(spec, request))
        .limit(request.limit)
        .offset(request.offset)
    )
    return QueryPlans(count=count, data=data)
