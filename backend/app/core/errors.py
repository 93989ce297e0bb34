# app/core/errors.py
"""
Error taxonomy shared by the reporting layer.

- ValidationError: a request parameter could not be coerced. Recovered inside
  the parameter normalizer by falling back to a default.
- StoreError: the database rejected a query or no connection was available.
  Surfaced to clients as a generic 500; the underlying error is only logged.
- ConfigLoadError: the sanctioned-domain document is missing or corrupt.
  Recovered at startup with an empty lookup.
"""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for reporting errors."""


class ValidationError(DashboardError):
    """Raised when a raw request parameter is malformed or out of range."""

    def __init__(self, param: str, value: object, reason: str) -> None:
        super().__init__(f"invalid {param}={value!r}: {reason}")
        self.param = param
        self.value = value
        self.reason = reason


class StoreError(DashboardError):
    """Raised when the relational store fails to serve a query."""


class ConfigLoadError(DashboardError):
    """Raised when a static configuration document cannot be loaded."""
