# app/api/deps.py
"""
FastAPI dependencies for the report routers.

The executor (with its cache) and the sanctioned-domain lookup are built once
in the startup hook and kept on `app.state`; tests swap them through
`app.dependency_overrides`.
"""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import Query, Request

from app.services.domains import SanctionedDomains
from app.services.executor import QueryExecutor


def get_executor(request: Request) -> QueryExecutor:
    return request.app.state.executor


def get_domains(request: Request) -> SanctionedDomains:
    return request.app.state.domains


def report_params(
    page: Optional[str] = Query(default=None, description="1-based page number (default 1)"),
    limit: Optional[str] = Query(default=None, description="Page size (default 50, max 100)"),
    search: Optional[str] = Query(
        default=None,
        description="Email substring, or a domain as '@example.org' / '*.example.org'",
    ),
    startDate: Optional[str] = Query(default=None, description="YYYY-MM-DD or ISO datetime (inclusive)"),
    endDate: Optional[str] = Query(default=None, description="YYYY-MM-DD or ISO datetime (inclusive)"),
    sortBy: Optional[str] = Query(default=None, description="Column to sort by (report-specific)"),
    sortOrder: Optional[str] = Query(default=None, description="asc or desc"),
) -> Dict[str, Optional[str]]:
    """
    Raw query-string values, deliberately untyped.

    Coercion happens in the parameter normalizer so a malformed value falls
    back to its default instead of turning into a 422.
    """
    return {
        "page": page,
        "limit": limit,
        "search": search,
        "start_date": startDate,
        "end_date": endDate,
        "sort_by": sortBy,
        "sort_order": sortOrder,
    }
