# app/schemas/overview.py
"""
Schemas for the auxiliary dashboard endpoints (stats, table diagnostics).
"""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field


class RoleStats(BaseModel):
    role: str = Field(..., description="Role name")
    user_count: int = Field(..., ge=0, description="Distinct emails with this role")
    total_rows: int = Field(..., ge=0, description="Rows downloaded by this role")


class DayStats(BaseModel):
    date: dt.date = Field(..., description="Calendar day (UTC)")
    count: int = Field(..., ge=0, description="Downloads on this day")
    total_rows: int = Field(..., ge=0, description="Rows downloaded on this day")


class StatsResponse(BaseModel):
    """
    Headline numbers for the dashboard cards.

    Example:
    {
      "total": 1520,
      "totalRows": 380211,
      "byLevel": [{"role": "admin", "user_count": 4, "total_rows": 1200}],
      "last7Days": [{"date": "2024-03-01", "count": 12, "total_rows": 3400}]
    }
    """
    total: int = Field(..., ge=0, description="Visible downloads")
    totalRows: int = Field(..., ge=0, description="Rows across visible downloads")
    byLevel: List[RoleStats] = Field(default_factory=list)
    last7Days: List[DayStats] = Field(default_factory=list)


class ColumnInfo(BaseModel):
    field: str
    type: str
    key: str = Field(default="", description="'PRI' for primary key, 'UNI' unique, 'MUL' indexed")
    nullable: Optional[bool] = None


class SetupResponse(BaseModel):
    message: str
    columns: int = Field(..., ge=0)
    structure: List[ColumnInfo] = Field(default_factory=list)
