# app/api/routes/overview.py
"""
Auxiliary dashboard endpoints.

GET  /api/levels                 -> ["admin", "analyst", ...]
GET  /api/stats                  -> totals, per-role totals, last 7 days
GET  /api/sanction-domains-config -> the loaded domain lookup document
POST /api/setup                  -> column structure of the log table (diagnostic)
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from app.api.deps import get_domains, get_executor
from app.schemas.overview import SetupResponse, StatsResponse
from app.services.domains import SanctionedDomains
from app.services.executor import QueryExecutor
from app.services.overview import describe_log_table, fetch_stats, list_roles

router = APIRouter(prefix="/api")


@router.get("/levels", response_model=List[str])
async def levels(executor: QueryExecutor = Depends(get_executor)):
    """Distinct roles present in current-period records (for the filter dropdown)."""
    return await list_roles(executor)


@router.get("/stats", response_model=StatsResponse)
async def stats(executor: QueryExecutor = Depends(get_executor)):
    return await fetch_stats(executor)


@router.get("/sanction-domains-config")
async def sanctioned_domains_config(domains: SanctionedDomains = Depends(get_domains)) -> Dict[str, Any]:
    return domains.as_document()


@router.post("/setup", response_model=SetupResponse)
async def setup(executor: QueryExecutor = Depends(get_executor)):
    """Confirms the log table is reachable and reports its columns."""
    return await describe_log_table(executor)
