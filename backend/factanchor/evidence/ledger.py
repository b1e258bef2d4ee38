"""Revision ledger - mint identities for incoming facts and advance slot revisions.

Ingestion of one candidate:
1. Admit the anchor payload through the codec (malformed -> anchor_missing)
2. Classify the evidence type when the candidate does not carry one
3. Derive slot_id and fact_id
4. Compare with the slot's latest revision:
   - no revision yet: write revision 1
   - same fact_id: nothing to write
   - different fact_id: write revision + 1 linked to the previous fact_id

Step 4 is optimistic. If another writer advances the slot between the read
and the write, the store raises RevisionConflictError and the ledger re-reads
and retries, up to ``revision_max_retries`` times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from factanchor import db
from factanchor.errors import MalformedAnchorError, RevisionConflictError
from factanchor.evidence.anchor_codec import parse_anchor
from factanchor.evidence.classifier import classify_evidence_type
from factanchor.evidence.identity import FactIdentity, derive_identity
from factanchor.models.anchor import EvidenceAnchor
from factanchor.models.facts import EvidenceType, Fact, FactCandidate
from factanchor.settings import EngineConfig

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = EngineConfig()


class TransitionKind(str, Enum):
    NEW_SLOT = "new_slot"
    UNCHANGED = "unchanged"
    NEW_REVISION = "new_revision"


@dataclass(frozen=True)
class RevisionPlan:
    kind: TransitionKind
    revision: int
    previous_fact_id: str | None


@dataclass(frozen=True)
class IngestResult:
    slot_id: str
    fact_id: str
    revision: int
    is_new_revision: bool
    previous_fact_id: str | None
    evidence_type: EvidenceType
    anchor_missing: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "slot_id": self.slot_id,
            "fact_id": self.fact_id,
            "revision": self.revision,
            "is_new_revision": self.is_new_revision,
            "previous_fact_id": self.previous_fact_id,
            "evidence_type": self.evidence_type.value,
            "anchor_missing": self.anchor_missing,
        }


def plan_revision(current: Fact | None, identity: FactIdentity) -> RevisionPlan:
    """Decide how a newly observed value changes its slot."""
    if current is None:
        return RevisionPlan(TransitionKind.NEW_SLOT, revision=1, previous_fact_id=None)
    if current.fact_id == identity.fact_id:
        return RevisionPlan(
            TransitionKind.UNCHANGED,
            revision=current.revision,
            previous_fact_id=current.previous_fact_id,
        )
    return RevisionPlan(
        TransitionKind.NEW_REVISION,
        revision=current.revision + 1,
        previous_fact_id=current.fact_id,
    )


def admit_anchor(
    candidate: FactCandidate, config: EngineConfig = _DEFAULT_CONFIG
) -> EvidenceAnchor | None:
    """Parse the candidate's raw anchor; a malformed payload counts as absent."""
    if candidate.evidence_anchor is None:
        return None
    try:
        return parse_anchor(candidate.evidence_anchor, config)
    except MalformedAnchorError as e:
        logger.warning(
            "Rejected anchor for %s %s on %s: %s",
            candidate.entity_id,
            candidate.predicate,
            candidate.source_url,
            e,
        )
        return None


def resolve_evidence_type(
    candidate: FactCandidate,
    anchor: EvidenceAnchor | None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> EvidenceType:
    if candidate.evidence_type is not None:
        return candidate.evidence_type
    return classify_evidence_type(
        has_anchor=anchor is not None,
        supporting_text=candidate.supporting_text,
        has_triple=candidate.object is not None,
        config=config,
    )


def ingest_fact(
    db_path: Path,
    candidate: FactCandidate,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> IngestResult:
    """Record a fact candidate, advancing its slot's revision when the value changed.

    Args:
        db_path: Path to the facts database.
        candidate: Fact as supplied by the fact-production service.
        config: Engine configuration.

    Returns:
        IngestResult with the slot/fact identity and the revision now latest.

    Raises:
        IdentityInputError: If identity inputs are missing.
        RevisionConflictError: If the slot kept moving under us for more than
            ``config.revision_max_retries`` retries.
    """
    anchor = admit_anchor(candidate, config)
    evidence_type = resolve_evidence_type(candidate, anchor, config)
    anchor_missing = evidence_type == EvidenceType.TEXT_EXTRACTION and anchor is None

    identity = derive_identity(
        entity_id=candidate.entity_id,
        predicate=candidate.predicate,
        source_url=candidate.source_url,
        object_value=candidate.object,
        evidence_type=evidence_type,
        anchor=anchor,
        source_path=candidate.source_path,
        config=config,
    )

    attempts = config.revision_max_retries + 1
    for attempt in range(1, attempts + 1):
        current = db.get_latest_fact(db_path, candidate.source_url, identity.slot_id)
        plan = plan_revision(current, identity)

        if current is not None and plan.kind == TransitionKind.UNCHANGED:
            return IngestResult(
                slot_id=identity.slot_id,
                fact_id=identity.fact_id,
                revision=plan.revision,
                is_new_revision=False,
                previous_fact_id=plan.previous_fact_id,
                evidence_type=current.evidence_type,
                anchor_missing=current.anchor_missing,
            )

        fact = Fact(
            domain=candidate.domain,
            source_url=candidate.source_url,
            entity_id=candidate.entity_id,
            predicate=candidate.predicate,
            object=candidate.object,
            evidence_type=evidence_type,
            source_path=candidate.source_path,
            evidence_anchor=anchor,
            supporting_text=candidate.supporting_text,
            anchor_missing=anchor_missing,
            slot_id=identity.slot_id,
            fact_id=identity.fact_id,
            previous_fact_id=plan.previous_fact_id,
            revision=plan.revision,
            is_latest=True,
        )
        try:
            db.append_fact_revision(db_path, fact, expected_previous=current)
        except RevisionConflictError:
            logger.warning(
                "Revision conflict on slot %s of %s (attempt %d/%d)",
                identity.slot_id[:16],
                candidate.source_url,
                attempt,
                attempts,
            )
            continue

        return IngestResult(
            slot_id=identity.slot_id,
            fact_id=identity.fact_id,
            revision=plan.revision,
            is_new_revision=True,
            previous_fact_id=plan.previous_fact_id,
            evidence_type=evidence_type,
            anchor_missing=anchor_missing,
        )

    logger.error(
        "Giving up on slot %s of %s after %d attempts",
        identity.slot_id[:16],
        candidate.source_url,
        attempts,
    )
    raise RevisionConflictError(candidate.source_url, identity.slot_id, plan.revision)
