# app/services/reports.py
"""
Report adapters.

One call per report request:
  ReportRequest -> query plans -> (total, rows) -> annotated rows + pagination

The five report kinds share this path. Their differences (table, grouping,
sort allow-list, default order) live in report_specs.REPORT_SPECS; the only
per-kind application step is the sanctioned-domain annotation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from app.core.config import Settings, settings as default_settings
from app.services.cache import Rows
from app.services.domains import SanctionedDomains
from app.services.executor import QueryExecutor
from app.services.pagination import Pagination, build_pagination
from app.services.params import ReportRequest
from app.services.query_builder import build_query_plans
from app.services.report_specs import ReportKind, get_spec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportPage:
    rows_key: str
    rows: Rows
    pagination: Pagination

    def to_payload(self) -> Dict[str, Any]:
        return {self.rows_key: self.rows, "pagination": self.pagination.model_dump()}


def annotate_institutions(rows: Rows, domains: SanctionedDomains) -> Rows:
    """
    Copy each row with `institution` and `country` from the lookup.

    Rows may be shared with the query cache, so they are copied, not mutated.
    Unmatched emails are labelled "Unknown", never dropped.
    """
    annotated = []
    for row in rows:
        info = domains.lookup(row.get("email"))
        annotated.append({**row, "institution": info.institution, "country": info.country})
    return annotated


RowHook = Callable[[Rows, SanctionedDomains], Rows]

POSTPROCESSORS: Dict[ReportKind, RowHook] = {
    ReportKind.SANCTIONED_DOMAINS: annotate_institutions,
}


async def fetch_report(
    executor: QueryExecutor,
    request: ReportRequest,
    *,
    domains: Optional[SanctionedDomains] = None,
    rules: Settings = default_settings,
) -> ReportPage:
    spec = get_spec(request.kind)
    domains = domains if domains is not None else SanctionedDomains()

    plans = build_query_plans(request, rules=rules, sanctioned_domains=domains.suffixes)
    total, rows = await executor.fetch_page(plans)

    hook = POSTPROCESSORS.get(spec.kind)
    if hook is not None:
        rows = hook(rows, domains)

    pagination = build_pagination(total, request.page, request.limit)
    first, last = pagination.item_range
    logger.debug(
        "report=%s page=%d limit=%d items=%d-%d of %d",
        spec.kind.value, request.page, request.limit, first, last, total,
    )
    return ReportPage(rows_key=spec.rows_key, rows=rows, pagination=pagination)
