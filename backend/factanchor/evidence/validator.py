"""AnchorValidator - independently re-check stored facts against their snapshot.

For every text_extraction fact, four checks run in order and stop at the first
failure:

1. Generation: the anchor's extraction_text_hash is the snapshot's current hash
2. Range: 0 <= char_start < char_end <= len(canonical_text)
3. Slice: canonical_text[char_start:char_end] == supporting_text, verbatim
4. Hash: hash(slice) == fragment_hash

A text_extraction fact without an anchor is a MissingAnchor failure.
structured_data facts only need a non-empty source_path. Before any fact is
looked at, the snapshot's own hash is recomputed; a corrupt snapshot aborts the
whole run instead of yielding a partial report.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from factanchor.errors import SnapshotHashCorruptionError
from factanchor.hashing import content_hash
from factanchor.models.facts import EvidenceType, Fact
from factanchor.models.snapshot import Snapshot
from factanchor.models.validation import (
    FactValidationResult,
    ValidationOutcome,
    ValidationReport,
)
from factanchor.settings import EngineConfig

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG = EngineConfig()

# Longest text shown in mismatch diagnostics
_PREVIEW_LENGTH = 100


def _preview(text: str | None) -> str | None:
    if text is None:
        return None
    if len(text) > _PREVIEW_LENGTH:
        return text[:_PREVIEW_LENGTH] + "..."
    return text


def verify_snapshot_integrity(
    snapshot: Snapshot, config: EngineConfig = _DEFAULT_CONFIG
) -> None:
    """Raise SnapshotHashCorruptionError if the stored hash does not match the text."""
    computed = content_hash(snapshot.canonical_text, config.hash_algorithm)
    if computed != snapshot.extraction_text_hash:
        logger.error(
            "Snapshot hash corruption for %s %s (stored=%s computed=%s)",
            snapshot.domain,
            snapshot.source_url,
            snapshot.extraction_text_hash,
            computed,
        )
        raise SnapshotHashCorruptionError(
            snapshot.domain,
            snapshot.source_url,
            snapshot.extraction_text_hash,
            computed,
        )


class AnchorValidator:
    """Checks facts against one snapshot generation.

    Attributes:
        snapshot: The snapshot all anchors are checked against.
        config: Hash algorithm and citation-grade thresholds.
    """

    def __init__(self, snapshot: Snapshot, config: EngineConfig = _DEFAULT_CONFIG) -> None:
        verify_snapshot_integrity(snapshot, config)
        self.snapshot = snapshot
        self.config = config

    def check_fact(self, fact: Fact) -> FactValidationResult:
        if fact.evidence_type == EvidenceType.TEXT_EXTRACTION:
            return self._check_text_extraction(fact)
        if fact.evidence_type == EvidenceType.STRUCTURED_DATA:
            return self._check_structured_data(fact)
        return self._result(fact, ValidationOutcome.UNCLASSIFIED, detail="Evidence type unknown")

    def validate(self, facts: Iterable[Fact]) -> ValidationReport:
        """Check every fact in order and aggregate the outcomes.

        Args:
            facts: Facts claiming anchors into this snapshot.

        Returns:
            ValidationReport listing every fact's outcome.
        """
        snapshot = self.snapshot
        report = ValidationReport(
            domain=snapshot.domain,
            source_url=snapshot.source_url,
            extraction_method=snapshot.extraction_method,
            extraction_text_hash=snapshot.extraction_text_hash,
            canonical_text_length=snapshot.text_length,
            fetched_at=snapshot.fetched_at,
            canonical_text_excerpt=self._excerpt(),
            config=self.config,
        )

        stale = 0
        for fact in facts:
            result = self.check_fact(fact)
            report.results.append(result)

            if fact.evidence_type == EvidenceType.TEXT_EXTRACTION:
                report.validated += 1
                if result.passed:
                    report.passed += 1
                else:
                    report.failed += 1
                    if result.outcome == ValidationOutcome.STALE_ANCHOR:
                        stale += 1
            elif fact.evidence_type == EvidenceType.STRUCTURED_DATA:
                report.structured_checked += 1
                if result.passed:
                    report.structured_passed += 1

        if stale:
            logger.warning(
                "%d of %d facts for %s are anchored to a previous snapshot generation",
                stale,
                report.validated,
                snapshot.source_url,
            )
        logger.info(
            "Validated %s: %d/%d passed (citation_grade=%s)",
            snapshot.source_url,
            report.passed,
            report.validated,
            report.citation_grade,
        )
        return report

    def _check_text_extraction(self, fact: Fact) -> FactValidationResult:
        anchor = fact.evidence_anchor
        if anchor is None:
            return self._result(fact, ValidationOutcome.MISSING_ANCHOR, detail="No evidence anchor")

        text = self.snapshot.canonical_text

        # 1. Generation
        if anchor.extraction_text_hash != self.snapshot.extraction_text_hash:
            return self._result(
                fact,
                ValidationOutcome.STALE_ANCHOR,
                detail="Extraction text hash mismatch",
                expected_hash=self.snapshot.extraction_text_hash,
                actual_hash=anchor.extraction_text_hash,
            )

        # 2. Range
        if not (0 <= anchor.char_start < anchor.char_end <= len(text)):
            return self._result(
                fact,
                ValidationOutcome.INVALID_RANGE,
                detail=f"Invalid char offsets for text length {len(text)}",
            )

        # 3. Slice, compared verbatim
        fragment = text[anchor.char_start : anchor.char_end]
        if fact.supporting_text is None or fragment != fact.supporting_text:
            return self._result(
                fact,
                ValidationOutcome.SLICE_MISMATCH,
                detail="Slice mismatch",
                expected_text=_preview(fact.supporting_text),
                actual_text=_preview(fragment),
            )

        # 4. Fragment hash
        computed = content_hash(fragment, self.config.hash_algorithm)
        if computed != anchor.fragment_hash:
            return self._result(
                fact,
                ValidationOutcome.FRAGMENT_HASH_MISMATCH,
                detail="Fragment hash mismatch",
                expected_hash=anchor.fragment_hash,
                actual_hash=computed,
            )

        return self._result(fact, ValidationOutcome.PASSED)

    def _check_structured_data(self, fact: Fact) -> FactValidationResult:
        if not fact.source_path:
            return self._result(
                fact, ValidationOutcome.MISSING_SOURCE_PATH, detail="No source_path"
            )
        return self._result(fact, ValidationOutcome.PASSED)

    def _result(
        self, fact: Fact, outcome: ValidationOutcome, **extra: object
    ) -> FactValidationResult:
        anchor = fact.evidence_anchor
        return FactValidationResult(
            fact_id=fact.fact_id,
            slot_id=fact.slot_id,
            evidence_type=fact.evidence_type,
            outcome=outcome,
            char_start=anchor.char_start if anchor else None,
            char_end=anchor.char_end if anchor else None,
            supporting_text_length=len(fact.supporting_text or ""),
            **extra,
        )

    def _excerpt(self) -> str:
        limit = self.config.excerpt_length
        text = self.snapshot.canonical_text
        return text[:limit] + ("..." if len(text) > limit else "")


def validate_facts(
    snapshot: Snapshot,
    facts: Iterable[Fact],
    config: EngineConfig = _DEFAULT_CONFIG,
) -> ValidationReport:
    """Validate ``facts`` against ``snapshot``.

    Raises:
        SnapshotHashCorruptionError: If the snapshot's stored hash does not
            match its canonical text.
    """
    return AnchorValidator(snapshot, config).validate(facts)
