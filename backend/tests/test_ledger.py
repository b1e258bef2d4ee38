"""Tests for fact ingestion and revision advancement."""

import threading

import pytest

from factanchor import db
from factanchor.errors import IdentityInputError, RevisionConflictError
from factanchor.evidence.ledger import (
    TransitionKind,
    admit_anchor,
    ingest_fact,
    plan_revision,
)
from factanchor.evidence.identity import derive_identity
from factanchor.models import EvidenceType, FactCandidate
from factanchor.settings import EngineConfig

from tests.factories import (
    DEFAULT_URL,
    make_structured_candidate,
    make_text_candidate,
    make_text_fact,
)


class TestPlanRevision:
    def test_new_slot(self, sample_snapshot) -> None:
        fact = make_text_fact(sample_snapshot, 17, 34)
        identity = derive_identity(
            entity_id=fact.entity_id,
            predicate=fact.predicate,
            source_url=fact.source_url,
            object_value=fact.object,
            evidence_type=fact.evidence_type,
            anchor=fact.evidence_anchor,
            source_path=None,
        )
        plan = plan_revision(None, identity)
        assert plan.kind == TransitionKind.NEW_SLOT
        assert plan.revision == 1
        assert plan.previous_fact_id is None

    def test_unchanged_and_changed(self, sample_snapshot) -> None:
        current = make_text_fact(sample_snapshot, 17, 34)
        same = derive_identity(
            entity_id=current.entity_id,
            predicate=current.predicate,
            source_url=current.source_url,
            object_value=current.object,
            evidence_type=current.evidence_type,
            anchor=current.evidence_anchor,
            source_path=None,
        )
        changed = derive_identity(
            entity_id=current.entity_id,
            predicate=current.predicate,
            source_url=current.source_url,
            object_value="overnight delivery",
            evidence_type=current.evidence_type,
            anchor=current.evidence_anchor,
            source_path=None,
        )
        assert plan_revision(current, same).kind == TransitionKind.UNCHANGED
        plan = plan_revision(current, changed)
        assert plan.kind == TransitionKind.NEW_REVISION
        assert plan.revision == 2
        assert plan.previous_fact_id == current.fact_id


class TestIngestFact:
    def test_first_ingest_creates_revision_one(self, stored_snapshot, temp_db_path) -> None:
        result = ingest_fact(temp_db_path, make_text_candidate(stored_snapshot, 17, 34))
        assert result.revision == 1
        assert result.is_new_revision
        assert result.previous_fact_id is None
        assert result.evidence_type == EvidenceType.TEXT_EXTRACTION
        assert not result.anchor_missing

    def test_reingest_is_idempotent(self, stored_snapshot, temp_db_path) -> None:
        candidate = make_text_candidate(stored_snapshot, 17, 34)
        first = ingest_fact(temp_db_path, candidate)
        second = ingest_fact(temp_db_path, candidate)

        assert second.fact_id == first.fact_id
        assert second.revision == 1
        assert not second.is_new_revision
        assert len(db.get_revision_chain(temp_db_path, DEFAULT_URL, first.slot_id)) == 1

    def test_value_change_advances_revision(self, stored_snapshot, temp_db_path) -> None:
        first = ingest_fact(temp_db_path, make_structured_candidate(object_value="Acme Corp"))
        second = ingest_fact(temp_db_path, make_structured_candidate(object_value="Acme Corporation"))

        assert second.slot_id == first.slot_id
        assert second.fact_id != first.fact_id
        assert second.revision == 2
        assert second.previous_fact_id == first.fact_id

        chain = db.get_revision_chain(temp_db_path, DEFAULT_URL, first.slot_id)
        assert [f.is_latest for f in chain] == [False, True]

    def test_value_returning_to_old_value_is_a_new_revision(self, temp_db_path) -> None:
        ingest_fact(temp_db_path, make_structured_candidate(object_value="A"))
        ingest_fact(temp_db_path, make_structured_candidate(object_value="B"))
        third = ingest_fact(temp_db_path, make_structured_candidate(object_value="A"))
        assert third.revision == 3

    @pytest.mark.parametrize(
        "before,after",
        [("1", 1), ("true", True), ("null", None)],
    )
    def test_type_only_change_is_a_new_revision(self, temp_db_path, before, after) -> None:
        first = ingest_fact(temp_db_path, make_structured_candidate(object_value=before))
        second = ingest_fact(temp_db_path, make_structured_candidate(object_value=after))

        assert second.is_new_revision
        assert second.revision == 2
        assert second.previous_fact_id == first.fact_id
        latest = db.get_latest_fact(temp_db_path, DEFAULT_URL, second.slot_id)
        assert latest.object == after
        assert type(latest.object) is type(after)

    def test_unchanged_result_reports_current_revision(self, temp_db_path) -> None:
        ingest_fact(temp_db_path, make_structured_candidate(object_value="A"))
        second = ingest_fact(temp_db_path, make_structured_candidate(object_value="B"))
        again = ingest_fact(temp_db_path, make_structured_candidate(object_value="B"))

        assert not again.is_new_revision
        assert again.revision == 2
        assert again.previous_fact_id == second.previous_fact_id

    def test_revisions_are_contiguous(self, temp_db_path) -> None:
        for value in ["v1", "v2", "v3", "v4"]:
            result = ingest_fact(temp_db_path, make_structured_candidate(object_value=value))
        chain = db.get_revision_chain(temp_db_path, DEFAULT_URL, result.slot_id)
        assert [f.revision for f in chain] == [1, 2, 3, 4]
        for previous, current in zip(chain, chain[1:]):
            assert current.previous_fact_id == previous.fact_id

    def test_malformed_anchor_is_flagged_missing(self, stored_snapshot, temp_db_path) -> None:
        candidate = make_text_candidate(stored_snapshot, 17, 34).model_copy(
            update={"evidence_anchor": {"char_start": 17}}
        )
        result = ingest_fact(temp_db_path, candidate)

        assert result.anchor_missing
        stored = db.get_latest_fact(temp_db_path, DEFAULT_URL, result.slot_id)
        assert stored.evidence_anchor is None
        assert stored.anchor_missing

    def test_unclassified_candidate_is_classified(self, temp_db_path) -> None:
        candidate = make_structured_candidate().model_copy(update={"evidence_type": None})
        result = ingest_fact(temp_db_path, candidate)
        assert result.evidence_type == EvidenceType.STRUCTURED_DATA

    def test_missing_identity_input(self, temp_db_path) -> None:
        candidate = FactCandidate.model_construct(
            domain="acme.example",
            source_url=DEFAULT_URL,
            entity_id="",
            predicate="name",
            object="x",
            evidence_type=EvidenceType.STRUCTURED_DATA,
            evidence_anchor=None,
            supporting_text=None,
            source_path="$.name",
        )
        with pytest.raises(IdentityInputError):
            ingest_fact(temp_db_path, candidate)

    def test_admit_anchor_accepts_wire_payload(self, stored_snapshot) -> None:
        anchor = admit_anchor(make_text_candidate(stored_snapshot, 0, 4))
        assert anchor is not None
        assert anchor.char_end == 4


class TestOptimisticConcurrency:
    def test_stale_read_is_retried(self, temp_db_path, monkeypatch) -> None:
        """Another writer lands between our read and our write."""
        ingest_fact(temp_db_path, make_structured_candidate(object_value="A"))

        real_get_latest = db.get_latest_fact
        calls = {"n": 0}

        def stale_then_real(db_path, source_url, slot_id):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_get_latest(db_path, source_url, slot_id)

        monkeypatch.setattr(db, "get_latest_fact", stale_then_real)

        result = ingest_fact(temp_db_path, make_structured_candidate(object_value="B"))

        assert calls["n"] == 2
        assert result.revision == 2

    def test_gives_up_after_max_retries(self, temp_db_path, monkeypatch) -> None:
        attempts = {"n": 0}

        def always_conflict(db_path, fact, *, expected_previous):
            attempts["n"] += 1
            raise RevisionConflictError(fact.source_url, fact.slot_id, fact.revision)

        monkeypatch.setattr(db, "append_fact_revision", always_conflict)

        with pytest.raises(RevisionConflictError) as exc_info:
            ingest_fact(
                temp_db_path,
                make_structured_candidate(),
                EngineConfig(revision_max_retries=2),
            )
        assert attempts["n"] == 3
        assert exc_info.value.source_url == DEFAULT_URL
        assert exc_info.value.revision == 1

    @pytest.mark.slow
    def test_concurrent_writers_keep_one_latest(self, temp_db_path) -> None:
        config = EngineConfig(revision_max_retries=50)
        errors: list[Exception] = []

        def writer(value: str) -> None:
            try:
                ingest_fact(temp_db_path, make_structured_candidate(object_value=value), config)
            except RevisionConflictError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(f"value-{i}",)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        slot_id = derive_identity(
            entity_id=make_structured_candidate().entity_id,
            predicate="name",
            source_url=DEFAULT_URL,
            object_value=None,
            evidence_type=EvidenceType.STRUCTURED_DATA,
            anchor=None,
            source_path="$.@graph[0].name",
        ).slot_id
        chain = db.get_revision_chain(temp_db_path, DEFAULT_URL, slot_id)

        assert sum(f.is_latest for f in chain) == 1
        assert [f.revision for f in chain] == list(range(1, len(chain) + 1))
        for previous, current in zip(chain, chain[1:]):
            assert current.previous_fact_id == previous.fact_id
        assert len(chain) + len(errors) == 8
