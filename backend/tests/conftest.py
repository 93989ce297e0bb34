"""
Shared fixtures for the dashboard test suite.

Settings are read when `app.core.config` is first imported, so the environment
is pointed at a throwaway directory before any `app` module loads.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path

_TMP = tempfile.mkdtemp(prefix="usage-dashboard-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/app.db")
os.environ.setdefault("SANCTIONED_DOMAINS_PATH", f"{_TMP}/missing-domains.json")
os.environ.setdefault("ENV", "test")

import pytest  # noqa: E402
from sqlalchemy import create_engine, insert  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.db.models import Base, JiraIssue, UserInfo  # noqa: E402
from app.db.session import make_engine, make_sessionmaker  # noqa: E402
from app.services.cache import QueryCache  # noqa: E402
from app.services.executor import QueryExecutor  # noqa: E402

# Comfortably before the reset cutoff (2025-10-15).
BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)


def log_row(
    email: str,
    role: str = "admin",
    *,
    rows: int = 10,
    inserted: datetime = BASE_TIME,
    reset: datetime = None,
    outcome: str = "Success",
    year: int = 2023,
    ip: str = "10.0.0.1",
    queue: str = "default",
    permalink: str = None,
) -> dict:
    return {
        "email": email,
        "role": role,
        "ip_address": ip,
        "queue_name": queue,
        "rows_returned": rows,
        "date_inserted": inserted,
        "date_reset": reset,
        "outcome": outcome,
        "tool_year": year,
        "permalink": permalink,
    }


def issue_row(
    key: str,
    requestor: str,
    status: str = "To Do",
    *,
    created: datetime = BASE_TIME,
    labels: str = None,
) -> dict:
    return {
        "issue_key": key,
        "issue_id": key.split("-")[-1],
        "requestor_email": requestor,
        "status": status,
        "resolution": None,
        "labels": labels,
        "ai_result": None,
        "summary": f"New Cap Override Request for {requestor}",
        "created": created,
        "updated": created,
        "resolved": None,
    }


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Store:
    """A file-backed SQLite database seeded synchronously."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.sync_url = f"sqlite:///{path}"
        self.async_url = f"sqlite+aiosqlite:///{path}"
        self._engine = create_engine(self.sync_url)
        Base.metadata.create_all(self._engine)

    def add_logs(self, rows) -> None:
        rows = list(rows)
        if rows:
            with self._engine.begin() as conn:
                conn.execute(insert(UserInfo), rows)

    def add_issues(self, rows) -> None:
        rows = list(rows)
        if rows:
            with self._engine.begin() as conn:
                conn.execute(insert(JiraIssue), rows)

    def query(self, stmt) -> list:
        with self._engine.connect() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings()]

    def session_factory(self):
        return make_sessionmaker(make_engine(self.async_url, poolclass=NullPool))

    def executor(self, cache: QueryCache = None) -> QueryExecutor:
        # NullPool: each test drives its own event loop, so no connection
        # may outlive the loop that opened it.
        engine = make_engine(self.async_url, poolclass=NullPool)
        return QueryExecutor(make_sessionmaker(engine), cache=cache)

    def close(self) -> None:
        self._engine.dispose()


@pytest.fixture()
def store(tmp_path: Path):
    s = Store(tmp_path / "dashboard.db")
    yield s
    s.close()
