# app/api/routes/reports.py
"""
Paginated report endpoints.

GET /api/user-summary       -> {"users": [...], "pagination": {...}}
GET /api/logs               -> {"logs": [...], "pagination": {...}}
GET /api/cap-resets         -> {"capResets": [...], "pagination": {...}}
GET /api/sanction-domains   -> {"users": [...], "pagination": {...}}
GET /api/cap-resets-jira    -> {"jiraRequests": [...], "pagination": {...}}

All of them accept page, limit, search, startDate, endDate, sortBy, sortOrder;
all but the JIRA report also accept `level` (role filter, "all" = no filter).

Example:
  /api/logs?page=2&limit=50&level=admin&search=@example.org&sortBy=rows_returned&sortOrder=desc
"""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_domains, get_executor, report_params
from app.services.domains import SanctionedDomains
from app.services.executor import QueryExecutor
from app.services.params import normalize_report_request
from app.services.report_specs import ReportKind
from app.services.reports import fetch_report
from app.schemas.reports import (
    CapResetsResponse,
    DetailedLogsResponse,
    JiraRequestsResponse,
    SanctionedDomainsResponse,
    UserSummaryResponse,
)

router = APIRouter(prefix="/api")

LEVEL_QUERY = Query(default=None, description="Role filter; 'all' or empty means every role")


async def _report(
    kind: ReportKind,
    raw: Dict[str, Optional[str]],
    executor: QueryExecutor,
    **extra: Optional[str],
) -> dict:
    request = normalize_report_request(kind, **raw, **extra)
    page = await fetch_report(executor, request)
    return page.to_payload()


@router.get("/user-summary", response_model=UserSummaryResponse)
async def user_summary(
    level: Optional[str] = LEVEL_QUERY,
    raw: Dict[str, Optional[str]] = Depends(report_params),
    executor: QueryExecutor = Depends(get_executor),
):
    """Downloads aggregated per user and role. Default order: total_rows desc."""
    return await _report(ReportKind.USER_SUMMARY, raw, executor, role=level)


@router.get("/logs", response_model=DetailedLogsResponse)
async def detailed_logs(
    level: Optional[str] = LEVEL_QUERY,
    raw: Dict[str, Optional[str]] = Depends(report_params),
    executor: QueryExecutor = Depends(get_executor),
):
    """Individual download records. Default order: date_inserted desc."""
    return await _report(ReportKind.DETAILED_LOGS, raw, executor, role=level)


@router.get("/cap-resets", response_model=CapResetsResponse)
async def cap_resets(
    level: Optional[str] = LEVEL_QUERY,
    raw: Dict[str, Optional[str]] = Depends(report_params),
    executor: QueryExecutor = Depends(get_executor),
):
    """Records hidden by a recent cap reset, per user. Date filters apply to date_reset."""
    return await _report(ReportKind.CAP_RESETS, raw, executor, role=level)


@router.get("/sanction-domains", response_model=SanctionedDomainsResponse)
async def sanctioned_domains(
    level: Optional[str] = LEVEL_QUERY,
    sanctionedOnly: Optional[str] = Query(
        default=None,
        description="true = only emails at a configured sanctioned domain",
    ),
    raw: Dict[str, Optional[str]] = Depends(report_params),
    executor: QueryExecutor = Depends(get_executor),
    domains: SanctionedDomains = Depends(get_domains),
):
    """User summary annotated with institution/country from the domain lookup."""
    request = normalize_report_request(
        ReportKind.SANCTIONED_DOMAINS, **raw, role=level, sanctioned_only=sanctionedOnly
    )
    page = await fetch_report(executor, request, domains=domains)
    return page.to_payload()


@router.get("/cap-resets-jira", response_model=JiraRequestsResponse)
async def jira_cap_requests(
    raw: Dict[str, Optional[str]] = Depends(report_params),
    executor: QueryExecutor = Depends(get_executor),
):
    """Cap-override requests rolled up per requestor. Date filters apply to created."""
    return await _report(ReportKind.JIRA_CAP_REQUESTS, raw, executor)
