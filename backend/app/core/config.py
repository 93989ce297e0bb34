# app/core/config.py
"""
Settings for the dashboard API and the JIRA sync job.

Everything tunable lives on one `settings` object read from the environment
(and `backend/.env` when present): database pool limits, the reporting rules
every query applies, cache lifetime, and JIRA credentials.

Secrets (database password, JIRA token) come from the environment only.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and optional `.env`.

    `.env` location:
      - We run uvicorn from `backend/`, so `.env` should live in `backend/.env`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # deployment environments often add extra env vars
        case_sensitive=False,
    )

    # -----------------------
    # Runtime
    # -----------------------
    ENV: str = Field(default="dev", description="Environment: dev|test|prod")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (e.g., INFO, DEBUG)")

    # -----------------------
    # API / CORS
    # -----------------------
    CORS_ALLOW_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins for the dashboard frontend",
    )

    # -----------------------
    # Database
    # -----------------------
    # Async SQLAlchemy URL. SQLite (aiosqlite) for local dev; production points
    # at the MySQL reporting replica, e.g. mysql+aiomysql://user:pw@host:3306/db
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/dashboard.db",
        description="SQLAlchemy async database URL",
    )
    DB_POOL_SIZE: int = Field(default=15, ge=1, le=200, description="Max pooled connections")
    DB_MAX_OVERFLOW: int = Field(default=0, ge=0, le=200, description="Connections allowed beyond the pool size")
    DB_POOL_TIMEOUT: float = Field(
        default=30.0,
        gt=0,
        description="Seconds a request waits for a free connection before failing",
    )

    # -----------------------
    # Reporting rules
    # -----------------------
    TOOL_YEAR: int = Field(default=2023, description="Tool year every report is restricted to")
    RESET_CUTOFF: datetime = Field(
        default=datetime(2025, 10, 15, 0, 0, 0),
        description="Records reset after this instant are hidden from current reports",
    )
    TEST_ACCOUNT_PATTERN: str = Field(
        default="collabtest+%",
        description="LIKE pattern for synthetic accounts excluded from every report",
    )
    DEFAULT_PAGE_SIZE: int = Field(default=50, ge=1, description="Page size when none is requested")
    MAX_PAGE_SIZE: int = Field(default=100, ge=1, description="Upper bound for requested page size")

    # -----------------------
    # Query cache
    # -----------------------
    CACHE_TTL_SECONDS: float = Field(default=300.0, gt=0, description="Lifetime of a cached query result")
    CACHE_MAX_ENTRIES: int = Field(
        default=100,
        ge=1,
        description="Entry count above which expired results are swept on write",
    )

    # -----------------------
    # Sanctioned domains lookup
    # -----------------------
    SANCTIONED_DOMAINS_PATH: str = Field(
        default="./data/sanctioned-domains.json",
        description="JSON document mapping email domains to institution/country",
    )

    # -----------------------
    # JIRA sync
    # -----------------------
    JIRA_BASE_URL: str | None = Field(default=None, description="JIRA server base URL")
    JIRA_PAT: str | None = Field(default=None, description="JIRA personal access token")
    JIRA_JQL_FILTER: str = Field(default="project = CAP", description="JQL selecting cap-override requests")
    JIRA_PAGE_SIZE: int = Field(default=100, ge=1, le=1000, description="Issues fetched per search call")
    JIRA_MAX_RETRIES: int = Field(default=3, ge=0, le=10, description="Retries on rate limiting / network errors")
    JIRA_RETRY_DELAY_S: float = Field(default=1.0, ge=0, description="Base delay for exponential backoff")
    JIRA_AI_RESULT_FIELD: str = Field(
        default="customfield_14500",
        description="Custom field holding the automated triage result",
    )

    # -----------------------
    # Validators / normalizers
    # -----------------------
    @field_validator("ENV")
    @classmethod
    def _normalize_env(cls, v: str) -> str:
        return (v or "dev").strip().lower()

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @field_validator("CORS_ALLOW_ORIGINS")
    @classmethod
    def _clean_cors_origins(cls, v: List[str]) -> List[str]:
        # Strip whitespace and drop empty entries to avoid weird CORS behavior.
        cleaned = []
        for origin in v or []:
            o = (origin or "").strip()
            if o:
                cleaned.append(o)
        return cleaned

    @field_validator("DATABASE_URL", "SANCTIONED_DOMAINS_PATH", "JIRA_JQL_FILTER", "JIRA_AI_RESULT_FIELD")
    @classmethod
    def _strip_strings(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("JIRA_BASE_URL", "JIRA_PAT")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        v = (v or "").strip()
        return v or None

    @property
    def jira_enabled(self) -> bool:
        """True when both the JIRA URL and token are configured."""
        return bool(self.JIRA_BASE_URL and self.JIRA_PAT)


# Singleton instance imported across the codebase.
settings = Settings()
