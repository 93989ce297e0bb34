"""
Tests for the auxiliary endpoints: levels, stats, domain config, setup, health.
"""

import asyncio
import warnings
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.dialects import sqlite

from app.api.deps import get_domains, get_executor
from app.main import app
from app.services.domains import DomainDocument, SanctionedDomains
from app.services.overview import fetch_stats, roles_query

from conftest import log_row

AFTER_CUTOFF = datetime(2025, 11, 1)


@pytest.fixture()
def client(store):
    executor = store.executor()
    domains = SanctionedDomains(
        DomainDocument.model_validate({"domains": {"uh.cu": {"institution": "UH", "country": "Cuba"}}})
    )
    app.dependency_overrides[get_executor] = lambda: executor
    app.dependency_overrides[get_domains] = lambda: domains
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestLevels:
    """GET /api/levels"""

    def test_distinct_visible_roles(self, client, store):
        store.add_logs([
            log_row("a@example.org", "viewer"),
            log_row("b@example.org", "admin"),
            log_row("c@example.org", "admin"),
            log_row("d@example.org", "ghost", outcome="Failure"),
            log_row("e@example.org", "reset-only", reset=AFTER_CUTOFF),
        ])
        resp = client.get("/api/levels")
        assert resp.status_code == 200
        assert resp.json() == ["admin", "viewer"]

    def test_roles_query_compiles_without_warnings(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            sql = str(roles_query().compile(dialect=sqlite.dialect()))
        assert sql.startswith("SELECT DISTINCT")


class TestStats:
    """GET /api/stats"""

    def test_fetch_stats(self, store):
        store.add_logs([
            log_row("a@example.org", "admin", rows=10, inserted=datetime(2024, 3, 1, 9)),
            log_row("a@example.org", "admin", rows=20, inserted=datetime(2024, 3, 7, 9)),
            log_row("b@example.org", "admin", rows=5, inserted=datetime(2024, 3, 7, 18)),
            log_row("c@example.org", "viewer", rows=1, inserted=datetime(2024, 2, 1, 9)),
            log_row("x@example.org", "admin", rows=999, outcome="Failure"),
        ])
        stats = asyncio.run(fetch_stats(store.executor(), today=date(2024, 3, 7)))

        assert stats["total"] == 4
        assert stats["totalRows"] == 36
        assert stats["byLevel"] == [
            {"role": "admin", "user_count": 2, "total_rows": 35},
            {"role": "viewer", "user_count": 1, "total_rows": 1},
        ]
        assert stats["last7Days"] == [
            {"date": date(2024, 3, 1), "count": 1, "total_rows": 10},
            {"date": date(2024, 3, 7), "count": 2, "total_rows": 25},
        ]

    def test_endpoint_on_empty_table(self, client):
        resp = client.get("/api/stats")
        assert resp.status_code == 200
        assert resp.json() == {"total": 0, "totalRows": 0, "byLevel": [], "last7Days": []}


class TestDomainConfig:
    """GET /api/sanction-domains-config"""

    def test_returns_loaded_document(self, client):
        resp = client.get("/api/sanction-domains-config")
        assert resp.json() == {"domains": {"uh.cu": {"institution": "UH", "country": "Cuba"}}}


class TestSetup:
    """POST /api/setup"""

    def test_describes_log_table(self, client):
        resp = client.post("/api/setup")
        assert resp.status_code == 200
        body = resp.json()

        columns = {c["field"]: c for c in body["structure"]}
        assert body["columns"] == len(body["structure"])
        assert "user_info" in body["message"]
        assert columns["id"]["key"] == "PRI"
        assert columns["email"]["key"] == "MUL"
        assert columns["permalink"]["key"] == ""
        assert columns["date_reset"]["nullable"] is True


class TestHealth:
    """GET /health"""

    def test_health_envelope(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["status"] == "ok"
        assert "x-request-id" in resp.headers
        assert "x-response-ms" in resp.headers

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"x-request-id": "abc-123"})
        assert resp.headers["x-request-id"] == "abc-123"
