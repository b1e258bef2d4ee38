"""Validation outcome and report models.

Per-fact failures are values, not exceptions: the validator records one
ValidationOutcome for every fact it checks and aggregates them into a
ValidationReport. A report never drops failing facts.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from factanchor.models.facts import EvidenceType
from factanchor.settings import EngineConfig


class ValidationOutcome(str, Enum):
    """Result of checking one fact against its snapshot."""

    PASSED = "passed"
    STALE_ANCHOR = "stale_anchor"  # Anchor minted against another generation
    INVALID_RANGE = "invalid_range"  # Offsets outside canonical text
    SLICE_MISMATCH = "slice_mismatch"  # Slice differs from supporting_text
    FRAGMENT_HASH_MISMATCH = "fragment_hash_mismatch"
    MISSING_ANCHOR = "missing_anchor"  # text_extraction fact without anchor
    MISSING_SOURCE_PATH = "missing_source_path"  # structured_data without path
    UNCLASSIFIED = "unclassified"  # evidence_type still unknown, not counted


class FactValidationResult(BaseModel):
    """Outcome for a single fact, with enough detail to debug a failure."""

    fact_id: str
    slot_id: str
    evidence_type: EvidenceType
    outcome: ValidationOutcome
    detail: str | None = None
    char_start: int | None = None
    char_end: int | None = None
    expected_hash: str | None = None
    actual_hash: str | None = None
    expected_text: str | None = None
    actual_text: str | None = None
    supporting_text_length: int = 0

    @property
    def passed(self) -> bool:
        return self.outcome == ValidationOutcome.PASSED

    def to_failure_example(self) -> dict[str, object]:
        return {
            "slot_id": self.slot_id,
            "fact_id": self.fact_id,
            "reason": self.outcome.value,
            "char_start": self.char_start,
            "char_end": self.char_end,
            "expected_fragment_hash": self.expected_hash,
            "actual_fragment_hash": self.actual_hash,
        }


class ValidationReport(BaseModel):
    """Aggregate validation result for one (domain, source_url).

    ``validated``/``passed``/``failed``/``pass_rate`` count text_extraction
    facts only. Structured-data facts are listed in ``results`` and counted
    separately.
    """

    domain: str
    source_url: str
    extraction_method: str
    extraction_text_hash: str
    canonical_text_length: int
    fetched_at: datetime
    validated: int = 0
    passed: int = 0
    failed: int = 0
    structured_checked: int = 0
    structured_passed: int = 0
    results: list[FactValidationResult] = Field(default_factory=list)
    canonical_text_excerpt: str = ""
    config: EngineConfig = Field(default_factory=EngineConfig)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pass_rate(self) -> float:
        return self.passed / self.validated if self.validated > 0 else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def citation_grade(self) -> bool:
        """Both the rate and the absolute passing count must meet the bar."""
        return (
            self.pass_rate >= self.config.citation_grade_min_pass_rate
            and self.passed >= self.config.citation_grade_min_passed
        )

    @property
    def failures(self) -> list[FactValidationResult]:
        return [
            r
            for r in self.results
            if not r.passed and r.outcome != ValidationOutcome.UNCLASSIFIED
        ]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def first_failed_fact(self) -> FactValidationResult | None:
        failures = self.failures
        return failures[0] if failures else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed_examples(self) -> list[dict[str, object]]:
        limit = self.config.failed_examples_limit
        return [f.to_failure_example() for f in self.failures[:limit]]
