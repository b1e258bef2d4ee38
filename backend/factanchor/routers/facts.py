"""Facts API router - ingestion, revision chains and the NDJSON facts stream."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse

from factanchor.db import backfill_evidence_types, get_revision_chain, list_facts
from factanchor.errors import IdentityInputError, RevisionConflictError
from factanchor.evidence.export import facts_etag, iter_facts_ndjson
from factanchor.evidence.ledger import ingest_fact
from factanchor.models.facts import FactCandidate
from factanchor.schemas import (
    BackfillResponse,
    IngestResponse,
    RevisionChainResponse,
    RevisionRecord,
)
from factanchor.settings import settings

router = APIRouter(prefix="/api/facts", tags=["facts"])


@router.post("/ingest", response_model=IngestResponse)
def api_ingest_fact(candidate: FactCandidate) -> IngestResponse:
    """Record a fact candidate; a changed value becomes a new revision."""
    try:
        result = ingest_fact(settings.db_path, candidate, settings.engine_config())
    except IdentityInputError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except RevisionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return IngestResponse(**result.to_dict())


@router.post("/backfill", response_model=BackfillResponse)
def api_backfill_evidence_types() -> BackfillResponse:
    """Classify facts still marked 'unknown'."""
    return BackfillResponse(**backfill_evidence_types(settings.db_path, settings.engine_config()))


@router.get("/{domain}.ndjson")
def api_facts_stream(
    domain: str,
    limit: int | None = Query(default=None, ge=1),
) -> StreamingResponse:
    """Stream the latest facts of a domain, one JSON object per line."""
    facts = list_facts(
        settings.db_path,
        domain,
        latest_only=True,
        limit=limit or settings.facts_stream_limit,
    )
    headers = {"Cache-Control": "public, max-age=300"}
    etag = facts_etag(facts)
    if etag:
        headers["ETag"] = etag
    return StreamingResponse(
        iter_facts_ndjson(facts),
        media_type="application/x-ndjson; charset=utf-8",
        headers=headers,
    )


@router.get("/{domain}/chain", response_model=RevisionChainResponse)
def api_revision_chain(
    domain: str,
    url: str = Query(..., min_length=1),
    slot_id: str = Query(..., min_length=1),
) -> RevisionChainResponse:
    """Revision history of one slot, oldest first."""
    chain = [f for f in get_revision_chain(settings.db_path, url, slot_id) if f.domain == domain]
    if not chain:
        raise HTTPException(status_code=404, detail="Slot not found")
    return RevisionChainResponse(
        source_url=url,
        slot_id=slot_id,
        revisions=[
            RevisionRecord(
                fact_id=f.fact_id,
                previous_fact_id=f.previous_fact_id,
                revision=f.revision,
                is_latest=f.is_latest,
                object=f.object,
                created_at=f.created_at,
            )
            for f in chain
        ],
    )
