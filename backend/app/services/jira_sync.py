# app/services/jira_sync.py
"""
JIRA -> jira_issues sync job.

Flow:
1) Page through /rest/api/2/search for the configured JQL
2) Transform each issue into a jira_issues row (requestor parsed from the summary)
3) Upsert on issue_key, so re-running the job is idempotent

Reliability:
- 429 responses and network errors are retried with exponential backoff
  (tenacity). Any other non-200 response fails the run.
- The dashboard never calls this module; it runs from cron:
      python -m app.services.jira_sync
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import Settings, settings
from app.core.logging import configure_logging
from app.db.models import JiraIssue
from app.utils.parsers import parse_timestamp

logger = logging.getLogger(__name__)

SEARCH_PATH = "/rest/api/2/search"
BASE_FIELDS = ("id", "key", "status", "labels", "created", "summary", "updated", "resolution", "resolutiondate")

# "New Cap Override Request for jane@example.org"
SUMMARY_RE = re.compile(r"New Cap Override Request for (.+?)(?:\s|$)", re.IGNORECASE)
UNKNOWN_REQUESTOR = "unknown@unknown.com"

# Rows per INSERT; keeps bound parameters under SQLite's limit.
UPSERT_BATCH = 50
UPDATE_COLUMNS = (
    "issue_id", "requestor_email", "status", "resolution", "labels",
    "ai_result", "updated", "resolved", "summary",
)


class JiraError(RuntimeError):
    """Raised when JIRA returns an error or an unreadable response."""
    pass


class RetryableJiraError(JiraError):
    """Rate limiting or a network failure; worth another attempt."""
    pass


@dataclass(frozen=True)
class IssueRecord:
    issue_key: str
    issue_id: Optional[str]
    requestor_email: str
    status: Optional[str]
    resolution: Optional[str]
    labels: Optional[str]
    ai_result: Optional[str]
    summary: str
    created: Optional[datetime]
    updated: Optional[datetime]
    resolved: Optional[datetime]

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SyncStats:
    fetched: int
    inserted: int
    updated: int
    duration_ms: float


# ----------------------------
# JIRA client
# ----------------------------
class JiraClient:
    """Minimal async JIRA REST client (search only)."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        jql: str = "project = CAP",
        page_size: int = 100,
        ai_result_field: str = "customfield_14500",
        timeout_s: float = 30.0,
        max_retries: int = 3,
        retry_delay_s: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.jql = jql
        self.page_size = page_size
        self.ai_result_field = ai_result_field
        self._retrying = AsyncRetrying(
            retry=retry_if_exception_type(RetryableJiraError),
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_exponential(multiplier=retry_delay_s),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout_s,
            transport=transport,
        )

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._retrying(self._fetch_json, path, params)

    async def _fetch_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug("JIRA API request GET %s startAt=%s", path, params.get("startAt"))
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TransportError as e:
            raise RetryableJiraError(f"JIRA request failed: {e}") from e

        if resp.status_code == 429:
            raise RetryableJiraError("JIRA rate limit hit")
        if resp.status_code != 200:
            raise JiraError(f"JIRA API error: {resp.status_code} - {resp.text[:500]}")

        try:
            return resp.json()
        except ValueError as e:
            raise JiraError(f"Failed to parse JIRA response: {e}") from e

    async def search_issues(self) -> List[Dict[str, Any]]:
        """Every issue matching the JQL, fetched page by page."""
        fields = ",".join(BASE_FIELDS + (self.ai_result_field,))
        issues: List[Dict[str, Any]] = []
        start_at = 0
        total = 0

        while True:
            payload = await self._get_json(
                SEARCH_PATH,
                {"jql": self.jql, "startAt": start_at, "maxResults": self.page_size, "fields": fields},
            )
            batch = payload.get("issues") or []
            total = int(payload.get("total") or 0)
            issues.extend(batch)
            logger.info(
                "Fetched JIRA issues batch startAt=%d size=%d fetched=%d total=%d",
                start_at, len(batch), len(issues), total,
            )

            # JIRA may cap maxResults below page_size; resume after what arrived.
            start_at += len(batch)
            if not batch or start_at >= total:
                break

        return issues


# ----------------------------
# Transform
# ----------------------------
def _name(value: Any) -> Optional[str]:
    """JIRA nests status/resolution as {"name": ...}."""
    if isinstance(value, dict):
        return value.get("name")
    return None


def _field_text(value: Any) -> Optional[str]:
    """Custom select fields arrive as {"value": ...}; text fields as str."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get("value") or value.get("name")
    return str(value)


def _timestamp(key: str, field: str, value: Optional[str]) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except (ValueError, OverflowError):
        logger.warning("Unparseable %s on issue=%s: %r", field, key, value)
        return None


def extract_requestor(summary: str) -> Optional[str]:
    match = SUMMARY_RE.search(summary or "")
    return match.group(1).strip() if match else None


def transform_issue(issue: Dict[str, Any], ai_result_field: str = "customfield_14500") -> IssueRecord:
    fields = issue.get("fields") or {}
    summary = fields.get("summary") or ""
    key = issue.get("key") or ""

    requestor = extract_requestor(summary)
    if requestor is None:
        logger.warning("Failed to extract email from summary issue=%s summary=%r", key, summary)
        requestor = UNKNOWN_REQUESTOR

    labels = fields.get("labels")
    issue_id = issue.get("id")

    return IssueRecord(
        issue_key=key,
        issue_id=str(issue_id) if issue_id is not None else None,
        requestor_email=requestor,
        status=_name(fields.get("status")),
        resolution=_name(fields.get("resolution")),
        labels=", ".join(labels) if labels else None,
        ai_result=_field_text(fields.get(ai_result_field)),
        summary=summary,
        created=_timestamp(key, "created", fields.get("created")),
        updated=_timestamp(key, "updated", fields.get("updated")),
        resolved=_timestamp(key, "resolutiondate", fields.get("resolutiondate")),
    )


# ----------------------------
# Upsert
# ----------------------------
def _chunks(items: Sequence[Dict[str, Any]], size: int) -> Iterable[Sequence[Dict[str, Any]]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _upsert_statement(dialect: str, rows: Sequence[Dict[str, Any]]):
    if dialect in ("sqlite", "postgresql"):
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert
        stmt = insert(JiraIssue).values(list(rows))
        return stmt.on_conflict_do_update(
            index_elements=[JiraIssue.issue_key],
            set_={c: stmt.excluded[c] for c in UPDATE_COLUMNS},
        )
    if dialect == "mysql":
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(JiraIssue).values(list(rows))
        return stmt.on_duplicate_key_update({c: stmt.inserted[c] for c in UPDATE_COLUMNS})
    raise JiraError(f"Upsert not supported for dialect {dialect!r}")


async def upsert_issues(session: AsyncSession, records: Sequence[IssueRecord]) -> Tuple[int, int]:
    """
    Insert or update `records` keyed by issue_key. Returns (inserted, updated).

    Later records win when the same key appears twice.
    """
    if not records:
        logger.info("No issues to upsert")
        return 0, 0

    rows_by_key = {r.issue_key: r.as_row() for r in records if r.issue_key}
    keys = list(rows_by_key)

    existing = set()
    for chunk in _chunks(keys, 500):
        result = await session.execute(select(JiraIssue.issue_key).where(JiraIssue.issue_key.in_(chunk)))
        existing.update(result.scalars().all())

    dialect = session.bind.dialect.name
    rows = list(rows_by_key.values())
    for chunk in _chunks(rows, UPSERT_BATCH):
        await session.execute(_upsert_statement(dialect, chunk))
    await session.commit()

    updated = len(existing)
    inserted = len(rows) - updated
    logger.info("Upserted JIRA issues total=%d inserted=%d updated=%d", len(rows), inserted, updated)
    return inserted, updated


# ----------------------------
# Orchestration
# ----------------------------
async def sync_jira_issues(
    client: JiraClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> SyncStats:
    t0 = time.perf_counter()
    logger.info("Starting JIRA sync jql=%r", client.jql)

    raw = await client.search_issues()
    records = [transform_issue(issue, client.ai_result_field) for issue in raw]

    async with session_factory() as session:
        inserted, updated = await upsert_issues(session, records)

    stats = SyncStats(
        fetched=len(raw),
        inserted=inserted,
        updated=updated,
        duration_ms=(time.perf_counter() - t0) * 1000,
    )
    logger.info(
        "JIRA sync completed fetched=%d inserted=%d updated=%d duration_ms=%.0f",
        stats.fetched, stats.inserted, stats.updated, stats.duration_ms,
    )
    return stats


async def _run(rules: Settings) -> SyncStats:
    from app.db.session import AsyncSessionLocal, engine, init_db

    await init_db(engine)
    try:
        async with JiraClient(
            rules.JIRA_BASE_URL or "",
            rules.JIRA_PAT or "",
            jql=rules.JIRA_JQL_FILTER,
            page_size=rules.JIRA_PAGE_SIZE,
            ai_result_field=rules.JIRA_AI_RESULT_FIELD,
            max_retries=rules.JIRA_MAX_RETRIES,
            retry_delay_s=rules.JIRA_RETRY_DELAY_S,
        ) as client:
            return await sync_jira_issues(client, AsyncSessionLocal)
    finally:
        await engine.dispose()


def main() -> int:
    """Process entry point; returns the exit code."""
    configure_logging(settings.LOG_LEVEL)

    if not settings.jira_enabled:
        logger.error("Missing required environment variables: JIRA_BASE_URL, JIRA_PAT")
        return 1

    try:
        asyncio.run(_run(settings))
    except (JiraError, SQLAlchemyError):
        logger.exception("JIRA sync failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
