"""Tests for AnchorValidator.

Each text_extraction fact goes through generation, range, slice and fragment
hash checks; the report aggregates outcomes and decides citation grade.
"""

import logging

import pytest

from factanchor.errors import SnapshotHashCorruptionError
from factanchor.evidence.anchor_codec import build_anchor
from factanchor.evidence.validator import AnchorValidator, validate_facts, verify_snapshot_integrity
from factanchor.hashing import content_hash
from factanchor.models import EvidenceAnchor, EvidenceType, ValidationOutcome
from factanchor.settings import EngineConfig

from tests.factories import SAMPLE_TEXT, make_snapshot, make_structured_fact, make_text_fact

WORDS = [f"word{i:02d}" for i in range(20)]
LONG_TEXT = " ".join(WORDS)


def _word_facts(snapshot, count: int):
    """One fact per word, each anchored to its own slice."""
    facts = []
    for i in range(count):
        start = i * 7  # "wordNN" plus one space
        facts.append(make_text_fact(snapshot, start, start + 6, predicate=f"p{i}"))
    return facts


class TestSingleFactChecks:
    def test_valid_fact_passes(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34)
        result = AnchorValidator(sample_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.PASSED
        assert result.passed

    def test_stale_anchor_after_re_extraction(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34)
        new_snapshot = make_snapshot(text="Acme Corp offers next-day delivery.")
        result = AnchorValidator(new_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.STALE_ANCHOR
        assert result.expected_hash == new_snapshot.extraction_text_hash
        assert result.actual_hash == sample_snapshot.extraction_text_hash

    def test_one_character_mutation_makes_leading_anchor_stale(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 0, 10)
        assert fact.supporting_text == "Acme Corp "
        assert AnchorValidator(sample_snapshot).check_fact(fact).outcome == ValidationOutcome.PASSED

        mutated = make_snapshot(text=SAMPLE_TEXT[:-1] + "!")
        assert mutated.canonical_text[0:10] == "Acme Corp "
        result = AnchorValidator(mutated).check_fact(fact)
        assert result.outcome == ValidationOutcome.STALE_ANCHOR
        assert not result.passed

    def test_stale_even_when_slice_still_matches(self, sample_snapshot) -> None:
        """A generation change makes every anchor stale, whatever the slice says."""
        fact = make_text_fact(sample_snapshot, 0, 4)
        new_snapshot = make_snapshot(text=SAMPLE_TEXT + " More text.")
        result = AnchorValidator(new_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.STALE_ANCHOR

    def test_reversed_range_is_invalid(self, sample_snapshot) -> None:
        anchor = EvidenceAnchor(
            char_start=20,
            char_end=10,
            fragment_hash=content_hash("x"),
            extraction_text_hash=sample_snapshot.extraction_text_hash,
        )
        fact = make_text_fact(sample_snapshot, 17, 34, anchor=anchor)
        result = AnchorValidator(sample_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.INVALID_RANGE
        assert result.char_start == 20
        assert result.char_end == 10

    def test_range_past_end_is_invalid(self, sample_snapshot) -> None:
        anchor = EvidenceAnchor(
            char_start=17,
            char_end=len(SAMPLE_TEXT) + 1,
            fragment_hash=content_hash("x"),
            extraction_text_hash=sample_snapshot.extraction_text_hash,
        )
        fact = make_text_fact(sample_snapshot, 17, 34, anchor=anchor)
        assert AnchorValidator(sample_snapshot).check_fact(fact).outcome == ValidationOutcome.INVALID_RANGE

    def test_slice_mismatch(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34, supporting_text="same day delivery")
        result = AnchorValidator(sample_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.SLICE_MISMATCH
        assert result.expected_text == "same day delivery"
        assert result.actual_text == "same-day delivery"

    def test_slice_compared_verbatim(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34, supporting_text="same-day delivery ")
        assert AnchorValidator(sample_snapshot).check_fact(fact).outcome == ValidationOutcome.SLICE_MISMATCH

    def test_fragment_hash_mismatch(self, sample_snapshot) -> None:
        anchor = EvidenceAnchor(
            char_start=17,
            char_end=34,
            fragment_hash=content_hash("something else"),
            extraction_text_hash=sample_snapshot.extraction_text_hash,
        )
        fact = make_text_fact(sample_snapshot, 17, 34, anchor=anchor)
        result = AnchorValidator(sample_snapshot).check_fact(fact)
        assert result.outcome == ValidationOutcome.FRAGMENT_HASH_MISMATCH
        assert result.actual_hash == content_hash("same-day delivery")

    def test_missing_anchor(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34).model_copy(update={"evidence_anchor": None})
        assert AnchorValidator(sample_snapshot).check_fact(fact).outcome == ValidationOutcome.MISSING_ANCHOR

    def test_structured_fact_needs_source_path(self, sample_snapshot) -> None:
        validator = AnchorValidator(sample_snapshot)
        assert validator.check_fact(make_structured_fact()).outcome == ValidationOutcome.PASSED
        no_path = make_structured_fact(source_path=None)
        assert validator.check_fact(no_path).outcome == ValidationOutcome.MISSING_SOURCE_PATH

    def test_unknown_type_is_unclassified(self, sample_snapshot) -> None:
        fact = make_structured_fact().model_copy(update={"evidence_type": EvidenceType.UNKNOWN})
        assert AnchorValidator(sample_snapshot).check_fact(fact).outcome == ValidationOutcome.UNCLASSIFIED


class TestSnapshotIntegrity:
    def test_corrupt_snapshot_aborts(self) -> None:
        snapshot = make_snapshot(extraction_text_hash=content_hash("other text"))
        with pytest.raises(SnapshotHashCorruptionError) as exc_info:
            validate_facts(snapshot, [])
        assert exc_info.value.stored_hash == content_hash("other text")
        assert exc_info.value.computed_hash == content_hash(SAMPLE_TEXT)

    def test_intact_snapshot_passes(self, sample_snapshot) -> None:
        verify_snapshot_integrity(sample_snapshot)


class TestValidationReport:
    def test_eleven_of_twelve_is_not_citation_grade(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        facts = _word_facts(snapshot, 12)
        facts[5] = facts[5].model_copy(update={"supporting_text": "wrong"})

        report = validate_facts(snapshot, facts)

        assert report.validated == 12
        assert report.passed == 11
        assert report.failed == 1
        assert report.pass_rate == pytest.approx(11 / 12)
        assert report.citation_grade is False

    def test_ten_of_ten_is_citation_grade(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        report = validate_facts(snapshot, _word_facts(snapshot, 10))
        assert report.pass_rate == 1.0
        assert report.citation_grade is True

    def test_perfect_rate_below_minimum_count(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        report = validate_facts(snapshot, _word_facts(snapshot, 9))
        assert report.pass_rate == 1.0
        assert report.citation_grade is False

    def test_nineteen_of_twenty_meets_rate(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        facts = _word_facts(snapshot, 20)
        facts[0] = facts[0].model_copy(update={"supporting_text": "wrong"})
        report = validate_facts(snapshot, facts)
        assert report.pass_rate == pytest.approx(0.95)
        assert report.citation_grade is True

    def test_empty_report(self, sample_snapshot) -> None:
        report = validate_facts(sample_snapshot, [])
        assert report.validated == 0
        assert report.pass_rate == 0.0
        assert report.citation_grade is False
        assert report.first_failed_fact is None
        assert report.failed_examples == []

    def test_structured_facts_never_count(self, sample_snapshot) -> None:
        facts = [make_text_fact(sample_snapshot, 17, 34), make_structured_fact()]
        report = validate_facts(sample_snapshot, facts)
        assert report.validated == 1
        assert report.passed == 1
        assert report.structured_checked == 1
        assert report.structured_passed == 1
        assert len(report.results) == 2

    def test_failures_are_kept_in_order(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        facts = _word_facts(snapshot, 6)
        for i in (1, 2, 3, 4):
            facts[i] = facts[i].model_copy(update={"supporting_text": "wrong"})

        report = validate_facts(snapshot, facts)

        assert report.failed == 4
        assert len(report.results) == 6
        assert report.first_failed_fact.fact_id == facts[1].fact_id
        examples = report.failed_examples
        assert len(examples) == 3
        assert [e["fact_id"] for e in examples] == [f.fact_id for f in facts[1:4]]
        assert examples[0]["reason"] == "slice_mismatch"

    def test_failed_examples_limit_from_config(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        facts = [f.model_copy(update={"supporting_text": "wrong"}) for f in _word_facts(snapshot, 5)]
        report = validate_facts(snapshot, facts, EngineConfig(failed_examples_limit=1))
        assert len(report.failed_examples) == 1

    def test_thresholds_from_config(self) -> None:
        snapshot = make_snapshot(text=LONG_TEXT)
        config = EngineConfig(citation_grade_min_passed=2, citation_grade_min_pass_rate=0.5)
        report = validate_facts(snapshot, _word_facts(snapshot, 2), config)
        assert report.citation_grade is True

    def test_excerpt_truncated(self) -> None:
        snapshot = make_snapshot(text="a" * 600)
        report = validate_facts(snapshot, [])
        assert report.canonical_text_excerpt == "a" * 500 + "..."
        assert report.canonical_text_length == 600

    def test_stale_anchors_logged(self, sample_snapshot, caplog) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34)
        new_snapshot = make_snapshot(text=SAMPLE_TEXT.replace("same-day", "next-day"))
        with caplog.at_level(logging.WARNING, logger="factanchor.evidence.validator"):
            report = validate_facts(new_snapshot, [fact])
        assert report.results[0].outcome == ValidationOutcome.STALE_ANCHOR
        assert "previous snapshot generation" in caplog.text

    def test_anchor_built_for_invalid_range_cannot_be_minted(self, sample_snapshot) -> None:
        """The codec refuses what the validator would reject."""
        with pytest.raises(ValueError):
            build_anchor(sample_snapshot.canonical_text, 20, 10, sample_snapshot.extraction_text_hash)
