"""Validation entry point backed by the snapshot/fact store."""

from __future__ import annotations

import logging
from pathlib import Path

from factanchor import db
from factanchor.evidence.validator import validate_facts
from factanchor.models.facts import EvidenceType
from factanchor.models.validation import ValidationOutcome, ValidationReport
from factanchor.settings import EngineConfig

logger = logging.getLogger(__name__)


def validate_source(
    db_path: Path,
    domain: str,
    source_url: str,
    config: EngineConfig | None = None,
    *,
    update_anchor_flags: bool = False,
) -> ValidationReport:
    """Validate every latest fact of a page against its current snapshot.

    Args:
        db_path: Path to the facts database.
        domain: Site domain.
        source_url: Page URL.
        config: Engine configuration; defaults to EngineConfig().
        update_anchor_flags: Persist ``anchor_missing`` for text_extraction
            facts that failed validation.

    Raises:
        SnapshotNotFoundError: If the page has no snapshot.
        SnapshotHashCorruptionError: If the stored snapshot is corrupt.
    """
    config = config or EngineConfig()
    snapshot, facts = db.load_snapshot_with_facts(db_path, domain, source_url)
    report = validate_facts(snapshot, facts, config)

    if update_anchor_flags:
        failed_ids = [
            r.fact_id
            for r in report.results
            if r.evidence_type == EvidenceType.TEXT_EXTRACTION
            and r.outcome != ValidationOutcome.PASSED
        ]
        flagged = db.set_anchor_missing(db_path, source_url, failed_ids)
        if flagged:
            logger.info("Flagged %d facts on %s as anchor_missing", flagged, source_url)

    return report
