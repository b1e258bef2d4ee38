"""Evidence-type classification for facts that arrive without an explicit type.

Used on ingestion and by the backfill of legacy rows. Once assigned, the type
is stored and treated as authoritative metadata.
"""

from __future__ import annotations

from factanchor.models.facts import EvidenceType
from factanchor.settings import EngineConfig

_DEFAULT_CONFIG = EngineConfig()


def classify_evidence_type(
    *,
    has_anchor: bool,
    supporting_text: str | None,
    has_triple: bool,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> EvidenceType:
    """Classify a fact by the evidence it carries.

    - anchor present and supporting text longer than the threshold:
      text_extraction
    - triple present and supporting text short or absent: structured_data
    - anything else: unknown

    Args:
        has_anchor: Whether the fact carries an evidence anchor.
        supporting_text: Quoted text, if any.
        has_triple: Whether the fact has a non-null triple value.
        config: Supplies ``classifier_min_supporting_text_length``.
    """
    threshold = config.classifier_min_supporting_text_length
    text_length = len(supporting_text) if supporting_text is not None else 0

    if has_anchor and supporting_text is not None and text_length > threshold:
        return EvidenceType.TEXT_EXTRACTION
    if has_triple and text_length < threshold:
        return EvidenceType.STRUCTURED_DATA
    return EvidenceType.UNKNOWN
