# app/db/models.py
"""
SQLAlchemy ORM models for the usage reporting dashboard.

Two tables:
- user_info: append-only log of tool downloads (one row per request)
- jira_issues: cap-override requests synced from JIRA by app.services.jira_sync

Notes:
- Timestamps are stored as naive UTC datetimes (timezone-less).
- The dashboard never writes to user_info; rows come from the tool itself.
  `date_reset` is filled in later by the cap-reset process.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


class UserInfo(Base):
    """
    A single tool-usage record.

    Only rows with outcome == "Success" for the configured tool year are
    visible in reports. A populated `date_reset` newer than the reset cutoff
    moves the row out of current reports and into the cap-resets report.
    """

    __tablename__ = "user_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    queue_name: Mapped[str] = mapped_column(String(128), nullable=False)
    rows_returned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    date_inserted: Mapped[datetime] = mapped_column(DateTime(timezone=False), index=True, nullable=False)
    date_reset: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), index=True, nullable=True)

    outcome: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    tool_year: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    permalink: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class JiraIssue(Base):
    """
    A cap-override request mirrored from JIRA.

    `issue_key` is the merge key for idempotent upserts.
    """

    __tablename__ = "jira_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Example: CAP-1234
    issue_key: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    issue_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    requestor_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(64), index=True, nullable=True)
    resolution: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    labels: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_result: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), index=True, nullable=True)
    updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    resolved: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
