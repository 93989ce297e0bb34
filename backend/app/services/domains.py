# app/services/domains.py
"""
Sanctioned-domain lookup.

Loaded once at startup from SANCTIONED_DOMAINS_PATH:

    {
      "domains": {
        "example.ru": {"institution": "Example University", "country": "Russia"},
        ...
      }
    }

A missing or corrupt document is not fatal: we log a warning and continue
with an empty lookup, so every row is labelled "Unknown".
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from app.core.errors import ConfigLoadError
from app.utils.parsers import email_domain

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class DomainInfo(BaseModel):
    institution: str = Field(default=UNKNOWN)
    country: str = Field(default=UNKNOWN)


class DomainDocument(BaseModel):
    domains: Dict[str, DomainInfo] = Field(default_factory=dict)


UNKNOWN_DOMAIN = DomainInfo()


def normalize_domain(value: str) -> str:
    """'*.Example.RU' / '@example.ru' / '.example.ru' -> 'example.ru'"""
    d = (value or "").strip().lower()
    for marker in ("*.", "@", "."):
        if d.startswith(marker):
            d = d[len(marker):]
    return d


class SanctionedDomains:
    """Domain suffix -> institution/country lookup."""

    def __init__(self, document: Optional[DomainDocument] = None) -> None:
        self.document = document or DomainDocument()
        self._by_suffix: Dict[str, DomainInfo] = {}
        for raw, info in self.document.domains.items():
            key = normalize_domain(raw)
            if key:
                self._by_suffix[key] = info

    def __len__(self) -> int:
        return len(self._by_suffix)

    @property
    def suffixes(self) -> List[str]:
        return sorted(self._by_suffix)

    def lookup(self, email: Optional[str]) -> DomainInfo:
        """
        Entry for the longest configured suffix of the email's domain part.

        `user@mail.example.ru` matches `example.ru` and `ru`, and picks
        `example.ru`. No match returns the Unknown sentinel.
        """
        domain = email_domain(email)
        if not domain:
            return UNKNOWN_DOMAIN

        best: Optional[str] = None
        for suffix in self._by_suffix:
            if domain == suffix or domain.endswith("." + suffix):
                if best is None or len(suffix) > len(best):
                    best = suffix
        return self._by_suffix[best] if best is not None else UNKNOWN_DOMAIN

    def as_document(self) -> Dict[str, Any]:
        return self.document.model_dump()


def read_domain_document(path: str | Path) -> DomainDocument:
    """Parse the lookup document; raises ConfigLoadError on any failure."""
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise ConfigLoadError(f"cannot read {p}: {e}") from e

    try:
        return DomainDocument.model_validate(orjson.loads(raw))
    except orjson.JSONDecodeError as e:
        raise ConfigLoadError(f"{p} is not valid JSON: {e}") from e
    except SchemaError as e:
        raise ConfigLoadError(f"{p} has an unexpected shape: {e.error_count()} error(s)") from e


def load_sanctioned_domains(path: str | Path) -> SanctionedDomains:
    """Load the lookup, degrading to an empty one when the document is unusable."""
    try:
        document = read_domain_document(path)
    except ConfigLoadError as e:
        logger.warning("Sanctioned domains unavailable, using empty lookup: %s", e)
        return SanctionedDomains()

    lookup = SanctionedDomains(document)
    logger.info("Loaded sanctioned domains data: %d domains", len(lookup))
    return lookup
