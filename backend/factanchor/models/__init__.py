"""Pydantic models for the fact anchoring engine."""

from factanchor.models.anchor import EvidenceAnchor
from factanchor.models.facts import EvidenceType, Fact, FactCandidate
from factanchor.models.snapshot import Snapshot
from factanchor.models.validation import (
    FactValidationResult,
    ValidationOutcome,
    ValidationReport,
)

__all__ = [
    # Snapshots
    "Snapshot",
    # Anchors
    "EvidenceAnchor",
    # Facts
    "EvidenceType",
    "Fact",
    "FactCandidate",
    # Validation
    "FactValidationResult",
    "ValidationOutcome",
    "ValidationReport",
]
