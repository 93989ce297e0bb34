# app/schemas/reports.py
"""
Schemas for the paginated report endpoints.

Every report response is `{<rows-key>: [...], "pagination": {...}}`. The row
key names are what the dashboard frontend already reads, so they are part of
the contract.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from app.services.pagination import Pagination


class UserSummaryRow(BaseModel):
    """Downloads aggregated per (email, role)."""
    email: str = Field(..., description="User email")
    role: Optional[str] = Field(default=None, description="User role")
    total_downloads: int = Field(..., ge=0, description="Number of successful downloads")
    total_rows: int = Field(..., ge=0, description="Rows returned across those downloads")
    first_download: datetime = Field(..., description="Earliest download")
    last_download: datetime = Field(..., description="Most recent download")
    latest_ip_address: Optional[str] = Field(default=None, description="Highest IP address seen for the user")


class SanctionedUserRow(UserSummaryRow):
    """User summary row annotated from the sanctioned-domain lookup."""
    institution: str = Field(..., description="Institution for the email domain, or 'Unknown'")
    country: str = Field(..., description="Country for the email domain, or 'Unknown'")


class DetailedLogRow(BaseModel):
    """One download record."""
    email: str
    role: Optional[str] = None
    ip_address: str
    queue_name: str
    rows_returned: int = Field(..., ge=0)
    date_inserted: datetime
    permalink: Optional[str] = None


class CapResetRow(BaseModel):
    """Cap resets aggregated per (email, role)."""
    email: str
    role: Optional[str] = None
    reset_count: int = Field(..., ge=0, description="Distinct reset timestamps")
    total_rows: int = Field(..., ge=0, description="Rows downloaded by reset records")
    latest_reset: Optional[datetime] = Field(default=None, description="Most recent reset")


class JiraRequestRow(BaseModel):
    """Cap-override requests rolled up per requestor."""
    requestor_email: str
    approved_count: int = Field(..., ge=0)
    denied_count: int = Field(..., ge=0)
    todo_count: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    latest_request: Optional[datetime] = None
    first_request: Optional[datetime] = None
    denied_details: Optional[str] = Field(
        default=None,
        description="';;;'-separated 'YYYY-MM-DD|labels' entries for denied requests",
    )


class UserSummaryResponse(BaseModel):
    users: List[UserSummaryRow] = Field(default_factory=list)
    pagination: Pagination


class SanctionedDomainsResponse(BaseModel):
    users: List[SanctionedUserRow] = Field(default_factory=list)
    pagination: Pagination


class DetailedLogsResponse(BaseModel):
    logs: List[DetailedLogRow] = Field(default_factory=list)
    pagination: Pagination


class CapResetsResponse(BaseModel):
    capResets: List[CapResetRow] = Field(default_factory=list)
    pagination: Pagination


class JiraRequestsResponse(BaseModel):
    jiraRequests: List[JiraRequestRow] = Field(default_factory=list)
    pagination: Pagination
