# app/services/pagination.py
"""Page metadata for report responses."""

from __future__ import annotations

import math
from typing import Tuple

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """
    Echoes the page/limit actually used for the fetch.

    Example:
      {"page": 2, "limit": 50, "total": 120, "totalPages": 3}
    """
    page: int = Field(..., ge=1, description="1-based page number used for this fetch")
    limit: int = Field(..., ge=1, description="Page size used for this fetch")
    total: int = Field(..., ge=0, description="Rows across all pages")
    totalPages: int = Field(..., ge=0, description="ceil(total / limit)")

    @property
    def item_range(self) -> Tuple[int, int]:
        """
        Inclusive 1-based (first, last) item numbers shown on this page,
        or (0, 0) when the page is empty.

        Not part of the JSON payload; for callers rendering "items X-Y of N"
        (the report service logs it).
        """
        first = (self.page - 1) * self.limit + 1
        last = min(self.total, self.page * self.limit)
        if first > last:
            return 0, 0
        return first, last


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        totalPages=math.ceil(total / limit) if total else 0,
    )
