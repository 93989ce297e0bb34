"""
Unit tests for report query construction.

Statements are compiled for SQLite and inspected; behaviour against real rows
is covered in test_reports_api.py.
"""

from sqlalchemy.dialects import mysql, sqlite

from app.services.params import normalize_report_request
from app.services.query_builder import build_query_plans, domain_predicate
from app.services.report_specs import REPORT_SPECS, ReportKind


def compiled(stmt, dialect=None):
    c = stmt.compile(dialect=dialect or sqlite.dialect())
    return str(c), c.params


class TestPlans:
    """Shape of count and data statements."""

    def test_every_kind_builds(self):
        for kind in REPORT_SPECS:
            plans = build_query_plans(normalize_report_request(kind))
            assert "total" in compiled(plans.count)[0]
            assert "LIMIT" in compiled(plans.data)[0]

    def test_grouped_count_counts_groups(self):
        plans = build_query_plans(normalize_report_request(ReportKind.USER_SUMMARY))
        sql, _ = compiled(plans.count)
        assert "report_groups" in sql
        assert "GROUP BY" in sql

    def test_detailed_count_is_flat(self):
        plans = build_query_plans(normalize_report_request(ReportKind.DETAILED_LOGS))
        sql, _ = compiled(plans.count)
        assert "GROUP BY" not in sql

    def test_limit_and_offset_are_bound(self):
        plans = build_query_plans(normalize_report_request(ReportKind.DETAILED_LOGS, page="3", limit="25"))
        _, params = compiled(plans.data)
        assert 25 in params.values()
        assert 50 in params.values()


class TestOrdering:
    """ORDER BY comes from the allow-list only."""

    def test_default_order(self):
        plans = build_query_plans(normalize_report_request(ReportKind.DETAILED_LOGS))
        sql, _ = compiled(plans.data)
        assert "ORDER BY date_inserted DESC, user_info.id DESC" in sql

    def test_rejected_column_never_reaches_sql(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, sort_by="password", sort_order="asc")
        sql, _ = compiled(build_query_plans(req).data)
        assert "password" not in sql
        assert "ORDER BY date_inserted DESC" in sql

    def test_injection_attempt_is_rejected(self):
        req = normalize_report_request(
            ReportKind.USER_SUMMARY, sort_by="email; DROP TABLE user_info", sort_order="asc"
        )
        sql, _ = compiled(build_query_plans(req).data)
        assert "DROP" not in sql
        assert "ORDER BY total_rows DESC" in sql

    def test_grouped_tie_break(self):
        req = normalize_report_request(ReportKind.USER_SUMMARY, sort_by="total_downloads", sort_order="asc")
        sql, _ = compiled(build_query_plans(req).data)
        assert "ORDER BY total_downloads ASC, user_info.email ASC, user_info.role ASC" in sql


class TestFilters:
    """User-supplied filter values are bound parameters."""

    def test_search_is_bound_and_escaped(self):
        req = normalize_report_request(ReportKind.DETAILED_LOGS, search="50%_off'--")
        sql, params = compiled(build_query_plans(req).data)
        assert "50%" not in sql
        assert "'--" not in sql
        assert any(isinstance(v, str) and "/%" in v for v in params.values())

    def test_role_is_bound(self):
        req = normalize_report_request(ReportKind.USER_SUMMARY, role="admin' OR 1=1")
        sql, params = compiled(build_query_plans(req).data)
        assert "OR 1=1" not in sql
        assert "admin' OR 1=1" in params.values()

    def test_jira_has_no_log_visibility_rules(self):
        sql, _ = compiled(build_query_plans(normalize_report_request(ReportKind.JIRA_CAP_REQUESTS)).data)
        assert "user_info" not in sql
        assert "jira_issues" in sql

    def test_jira_compiles_for_mysql(self):
        sql, _ = compiled(
            build_query_plans(normalize_report_request(ReportKind.JIRA_CAP_REQUESTS)).data,
            dialect=mysql.dialect(),
        )
        assert "group_concat" in sql.lower()


class TestDomainPredicate:
    """sanctionedOnly filter."""

    def test_empty_lookup_matches_nothing(self):
        sql, _ = compiled(domain_predicate([]))
        assert sql in ("0", "false", "1 != 1")

    def test_domain_and_subdomain(self):
        _, params = compiled(domain_predicate(["example.ru"]))
        values = list(params.values())
        assert "@example.ru" in values
        assert ".example.ru" in values
