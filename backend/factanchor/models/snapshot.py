"""Snapshot model: one canonical extracted text per (domain, source_url).

All evidence anchor offsets are interpreted against ``canonical_text`` of a
specific snapshot generation, identified by ``extraction_text_hash``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from pydantic import BaseModel, ConfigDict, Field


class Snapshot(BaseModel):
    """Canonical extracted text of a page generation.

    Attributes:
        domain: Site domain the page belongs to.
        source_url: Canonical URL of the page.
        extraction_method: Identifier of the extraction algorithm/version.
        canonical_text: Exact text all character offsets are relative to.
        extraction_text_hash: Content hash of ``canonical_text``.
        fetched_at: When this generation was extracted.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "domain": "acme.example",
                    "source_url": "https://acme.example/delivery",
                    "extraction_method": "readability-v1",
                    "canonical_text": "Acme Corp offers same-day delivery.",
                    "extraction_text_hash": "9f2c...e1",
                    "fetched_at": "2025-01-10T12:00:00Z",
                }
            ]
        },
    )

    domain: str = Field(..., min_length=1, description="Site domain")
    source_url: str = Field(..., min_length=1, description="Canonical page URL")
    extraction_method: str = Field(
        ..., min_length=1, description="Extraction algorithm identifier"
    )
    canonical_text: str = Field(..., description="Canonical extracted text")
    extraction_text_hash: str = Field(..., description="Hash of canonical_text")
    fetched_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Extraction timestamp",
    )

    @property
    def text_length(self) -> int:
        return len(self.canonical_text)

    def to_db_row(self) -> tuple:
        """Convert model to database row tuple.

        Returns tuple matching snapshots table column order:
        (domain, source_url, extraction_method, canonical_text,
         extraction_text_hash, fetched_at_utc)
        """
        return (
            self.domain,
            self.source_url,
            self.extraction_method,
            self.canonical_text,
            self.extraction_text_hash,
            self.fetched_at.isoformat(),
        )

    @classmethod
    def from_db_row(cls, row: Sequence) -> "Snapshot":
        """Reconstruct Snapshot from a row in ``to_db_row()`` order."""
        return cls(
            domain=row[0],
            source_url=row[1],
            extraction_method=row[2],
            canonical_text=row[3],
            extraction_text_hash=row[4],
            fetched_at=datetime.fromisoformat(row[5]),
        )
