from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from factanchor.models.snapshot import Snapshot


class SnapshotPutRequest(BaseModel):
    domain: str = Field(min_length=1)
    source_url: str = Field(min_length=1)
    extraction_method: str | None = None
    canonical_text: str


class SnapshotResponse(BaseModel):
    domain: str
    source_url: str
    extraction_method: str
    extraction_text_hash: str
    canonical_text_length: int
    fetched_at: datetime
    canonical_text: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, *, include_text: bool = True) -> "SnapshotResponse":
        return cls(
            domain=snapshot.domain,
            source_url=snapshot.source_url,
            extraction_method=snapshot.extraction_method,
            extraction_text_hash=snapshot.extraction_text_hash,
            canonical_text_length=snapshot.text_length,
            fetched_at=snapshot.fetched_at,
            canonical_text=snapshot.canonical_text if include_text else None,
        )


class IngestResponse(BaseModel):
    slot_id: str
    fact_id: str
    revision: int
    is_new_revision: bool
    previous_fact_id: str | None = None
    evidence_type: str
    anchor_missing: bool


class RevisionRecord(BaseModel):
    fact_id: str
    previous_fact_id: str | None
    revision: int
    is_latest: bool
    object: Any = None
    created_at: datetime


class RevisionChainResponse(BaseModel):
    source_url: str
    slot_id: str
    revisions: list[RevisionRecord]


class BackfillResponse(BaseModel):
    structured_data: int
    text_extraction: int
    unknown: int
    anchor_missing_flagged: int
