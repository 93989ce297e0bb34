# app/services/overview.py
"""
Auxiliary dashboard queries: role list, headline stats, table diagnostics.

These use the same visibility rules as the current-period reports, so the
numbers on the dashboard cards agree with the tables below them.
"""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import Date, Select, distinct, func, inspect, select
from sqlalchemy.engine import Connection

from app.core.config import Settings, settings as default_settings
from app.db.models import UserInfo
from app.services.executor import QueryExecutor
from app.services.query_builder import log_visibility
from app.services.report_specs import Period

STATS_WINDOW_DAYS = 7
LOG_TABLE = UserInfo.__tablename__


def roles_query(rules: Settings = default_settings) -> Select:
    return (
        select(UserInfo.role)
        .where(*log_visibility(Period.CURRENT, rules), UserInfo.role.is_not(None))
        .distinct()
        .order_by(UserInfo.role)
    )


async def list_roles(executor: QueryExecutor, rules: Settings = default_settings) -> List[str]:
    rows = await executor.fetch_all(roles_query(rules))
    return [r["role"] for r in rows]


def stats_queries(today: date, rules: Settings = default_settings) -> Dict[str, Select]:
    visible = log_visibility(Period.CURRENT, rules)
    total_rows = func.coalesce(func.sum(UserInfo.rows_returned), 0)
    day = func.date(UserInfo.date_inserted, type_=Date)
    # Midnight, so the statement (and its cache key) is stable for the whole day.
    since = datetime.combine(today - timedelta(days=STATS_WINDOW_DAYS - 1), datetime.min.time())

    return {
        "totals": select(
            func.count().label("total"),
            total_rows.label("total_rows"),
        ).where(*visible),
        "by_role": (
            select(
                UserInfo.role,
                func.count(distinct(UserInfo.email)).label("user_count"),
                total_rows.label("total_rows"),
            )
            .where(*visible, UserInfo.role.is_not(None))
            .group_by(UserInfo.role)
            .order_by(UserInfo.role)
        ),
        "by_day": (
            select(
                day.label("date"),
                func.count().label("count"),
                total_rows.label("total_rows"),
            )
            .where(*visible, UserInfo.date_inserted >= since)
            .group_by(day)
            .order_by(day)
        ),
    }


async def fetch_stats(
    executor: QueryExecutor,
    *,
    today: Optional[date] = None,
    rules: Settings = default_settings,
) -> Dict[str, Any]:
    queries = stats_queries(today or datetime.utcnow().date(), rules)
    totals, by_role, by_day = await asyncio.gather(
        executor.fetch_all(queries["totals"]),
        executor.fetch_all(queries["by_role"]),
        executor.fetch_all(queries["by_day"]),
    )
    head = totals[0] if totals else {}
    return {
        "total": int(head.get("total") or 0),
        "totalRows": int(head.get("total_rows") or 0),
        "byLevel": by_role,
        "last7Days": by_day,
    }


def _describe(conn: Connection, table: str) -> List[Dict[str, Any]]:
    """Column name/type/key for `table`, in table order."""
    insp = inspect(conn)
    primary = set(insp.get_pk_constraint(table).get("constrained_columns") or [])
    unique = {
        cols[0]
        for cols in (uc.get("column_names") or [] for uc in insp.get_unique_constraints(table))
        if len(cols) == 1
    }
    indexed = set()
    for ix in insp.get_indexes(table):
        names = [c for c in ix.get("column_names") or [] if c]
        if ix.get("unique") and len(names) == 1:
            unique.add(names[0])
        indexed.update(names)

    structure = []
    for col in insp.get_columns(table):
        name = col["name"]
        if name in primary:
            key = "PRI"
        elif name in unique:
            key = "UNI"
        elif name in indexed:
            key = "MUL"
        else:
            key = ""
        structure.append(
            {"field": name, "type": str(col["type"]), "key": key, "nullable": col.get("nullable")}
        )
    return structure


async def describe_log_table(executor: QueryExecutor) -> Dict[str, Any]:
    structure = await executor.run_sync(lambda conn: _describe(conn, LOG_TABLE))
    return {
        "message": f"{LOG_TABLE} table found and accessible",
        "columns": len(structure),
        "structure": structure,
    }
