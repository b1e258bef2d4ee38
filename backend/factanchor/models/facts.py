"""Fact and FactCandidate models.

A Fact is a claimed (entity, predicate, object) triple with provenance and a
content-addressed identity:

- slot_id: where the claim sits (entity, predicate, URL, locator, generation)
- fact_id: the value observed at that slot (slot_id, object, fragment hash)

Facts form an append-only revision chain per (source_url, slot_id) through
``previous_fact_id``. Exactly one row per slot carries ``is_latest``.
"""

from __future__ import annotations

import contextlib
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, Field, ValidationError

from factanchor.models.anchor import EvidenceAnchor


class EvidenceType(str, Enum):
    """How a fact is supported by its source."""

    STRUCTURED_DATA = "structured_data"  # JSON-LD / schema.org path, not anchorable
    TEXT_EXTRACTION = "text_extraction"  # Quoted from canonical text, anchorable
    UNKNOWN = "unknown"  # Provisional, pending backfill


def _load_anchor(raw: str | None) -> EvidenceAnchor | None:
    if not raw:
        return None
    with contextlib.suppress(ValidationError, ValueError):
        return EvidenceAnchor.model_validate_json(raw)
    return None


class FactCandidate(BaseModel):
    """A fact as supplied by the fact-production service.

    ``evidence_anchor`` is the raw, untrusted anchor payload; it is admitted
    only through ``anchor_codec.parse_anchor``. When ``evidence_type`` is
    omitted the candidate is classified on ingestion.
    """

    domain: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)
    predicate: str = Field(..., min_length=1)
    object: Any = Field(..., description="Object value of the triple")
    evidence_type: EvidenceType | None = None
    evidence_anchor: dict[str, Any] | str | None = Field(
        default=None, description="Raw anchor payload (JSON object or string)"
    )
    supporting_text: str | None = None
    source_path: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "domain": "acme.example",
                    "source_url": "https://acme.example/delivery",
                    "entity_id": "https://acme.example/#org",
                    "predicate": "offers",
                    "object": "same-day delivery",
                    "evidence_type": "text_extraction",
                    "evidence_anchor": {
                        "char_start": 17,
                        "char_end": 34,
                        "fragment_hash": "5d1e...9a",
                        "extraction_text_hash": "9f2c...e1",
                    },
                    "supporting_text": "same-day delivery",
                }
            ]
        }
    }


class Fact(BaseModel):
    """A stored fact revision.

    Attributes:
        domain: Site domain.
        source_url: Page the fact was extracted from.
        entity_id: Subject of the triple.
        predicate: Predicate of the triple.
        object: Object value of the triple (any JSON value).
        evidence_type: How the fact is supported.
        source_path: Structural path for structured_data facts.
        evidence_anchor: Anchor for text_extraction facts.
        supporting_text: Verbatim quote the anchor claims to cover.
        anchor_missing: Anchor expected but absent or invalid.
        slot_id: Identity of the claim position.
        fact_id: Identity of this value at this anchor.
        previous_fact_id: fact_id of the revision this one supersedes.
        revision: 1-based revision number within the slot.
        is_latest: True for exactly one row per (source_url, slot_id).
        created_at: When this revision was written.
    """

    domain: str
    source_url: str
    entity_id: str
    predicate: str
    object: Any = None
    evidence_type: EvidenceType = EvidenceType.UNKNOWN
    source_path: str | None = None
    evidence_anchor: EvidenceAnchor | None = None
    supporting_text: str | None = None
    anchor_missing: bool = False
    slot_id: str
    fact_id: str
    previous_fact_id: str | None = None
    revision: int = Field(default=1, ge=1)
    is_latest: bool = True
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_db_row(self) -> tuple:
        """Convert model to database row tuple.

        Returns tuple matching facts table column order:
        (domain, source_url, entity_id, predicate, object_json, evidence_type,
         source_path, evidence_anchor_json, supporting_text, anchor_missing,
         slot_id, fact_id, previous_fact_id, revision, is_latest, created_at_utc)
        """
        return (
            self.domain,
            self.source_url,
            self.entity_id,
            self.predicate,
            json.dumps(self.object, ensure_ascii=False),
            self.evidence_type.value,
            self.source_path,
            self.evidence_anchor.model_dump_json(exclude_none=True)
            if self.evidence_anchor
            else None,
            self.supporting_text,
            int(self.anchor_missing),
            self.slot_id,
            self.fact_id,
            self.previous_fact_id,
            self.revision,
            int(self.is_latest),
            self.created_at.isoformat(),
        )

    @classmethod
    def from_db_row(cls, row: Sequence) -> "Fact":
        """Reconstruct Fact from a row in ``to_db_row()`` order.

        An anchor column that no longer parses into an EvidenceAnchor is read
        back as ``None`` so the validator reports it as a missing anchor.
        """
        return cls(
            domain=row[0],
            source_url=row[1],
            entity_id=row[2],
            predicate=row[3],
            object=json.loads(row[4]) if row[4] is not None else None,
            evidence_type=EvidenceType(row[5]),
            source_path=row[6],
            evidence_anchor=_load_anchor(row[7]),
            supporting_text=row[8],
            anchor_missing=bool(row[9]),
            slot_id=row[10],
            fact_id=row[11],
            previous_fact_id=row[12],
            revision=row[13],
            is_latest=bool(row[14]),
            created_at=datetime.fromisoformat(row[15]),
        )

    def to_stream_record(self) -> dict[str, Any]:
        """Public NDJSON representation of the fact."""
        return {
            "slot_id": self.slot_id,
            "fact_id": self.fact_id,
            "revision": self.revision,
            "previous_fact_id": self.previous_fact_id,
            "entity_id": self.entity_id,
            "predicate": self.predicate,
            "object": self.object,
            "source_url": self.source_url,
            "evidence_type": self.evidence_type.value,
            "source_path": self.source_path,
            "supporting_text": self.supporting_text,
            "evidence_anchor": self.evidence_anchor.model_dump(exclude_none=True)
            if self.evidence_anchor
            else None,
            "anchor_missing": self.anchor_missing,
            "updated_at": self.created_at.isoformat(),
        }
