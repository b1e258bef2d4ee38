"""Domain QA tiering.

A domain reaches the citation_grade tier only from text_extraction facts: it
needs at least ``citation_grade_min_passed`` of them and an anchor coverage of
at least ``citation_grade_min_pass_rate``. Structured data never counts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from factanchor import db
from factanchor.settings import EngineConfig


class QATier(str, Enum):
    BEST_EFFORT = "best_effort"
    CITATION_GRADE = "citation_grade"


@dataclass
class DomainStatus:
    domain: str
    counts: db.FactCounts
    anchor_coverage: float
    qa_tier: QATier
    qa_fail_reasons: list[str] = field(default_factory=list)

    @property
    def qa_pass(self) -> bool:
        return self.qa_tier == QATier.CITATION_GRADE

    def to_dict(self) -> dict[str, object]:
        return {
            "domain": self.domain,
            "counts": {
                "pages": self.counts.snapshots,
                "facts_total": self.counts.total,
                "facts_text_extraction": self.counts.text_extraction,
                "facts_structured_data": self.counts.structured_data,
                "facts_unknown": self.counts.unknown,
                "facts_anchored_text": self.counts.anchored_text,
            },
            "anchor_coverage_text": self.anchor_coverage,
            "qa_tier": self.qa_tier.value,
            "qa_pass": self.qa_pass,
            "qa_fail_reasons": self.qa_fail_reasons,
        }


def compute_domain_status(
    db_path: Path, domain: str, config: EngineConfig | None = None
) -> DomainStatus:
    config = config or EngineConfig()
    counts = db.count_domain_facts(db_path, domain)

    coverage = (
        counts.anchored_text / counts.text_extraction if counts.text_extraction > 0 else 0.0
    )

    reasons: list[str] = []
    if counts.anchored_text < config.citation_grade_min_passed:
        reasons.append(
            f"Not enough anchored text_extraction facts: {counts.anchored_text} "
            f"(need >= {config.citation_grade_min_passed})"
        )
    if coverage < config.citation_grade_min_pass_rate:
        reasons.append(
            f"Low text anchor coverage: {coverage * 100:.1f}% "
            f"(need >= {config.citation_grade_min_pass_rate * 100:.0f}%)"
        )

    tier = QATier.BEST_EFFORT if reasons else QATier.CITATION_GRADE
    return DomainStatus(
        domain=domain,
        counts=counts,
        anchor_coverage=coverage,
        qa_tier=tier,
        qa_fail_reasons=reasons,
    )
