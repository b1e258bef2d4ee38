"""Evidence anchoring, fact identity and validation.

Pure building blocks are re-exported here. Store-backed entry points live in
``ledger`` (ingestion) and ``service`` (validation).
"""

from factanchor.evidence.anchor_codec import build_anchor, dump_anchor, parse_anchor
from factanchor.evidence.classifier import classify_evidence_type
from factanchor.evidence.identity import (
    CharRange,
    FactIdentity,
    SourcePath,
    derive_fact_id,
    derive_identity,
    derive_slot_id,
)
from factanchor.evidence.validator import (
    AnchorValidator,
    validate_facts,
    verify_snapshot_integrity,
)

__all__ = [
    "AnchorValidator",
    "CharRange",
    "FactIdentity",
    "SourcePath",
    "build_anchor",
    "classify_evidence_type",
    "derive_fact_id",
    "derive_identity",
    "derive_slot_id",
    "dump_anchor",
    "parse_anchor",
    "validate_facts",
    "verify_snapshot_integrity",
]
