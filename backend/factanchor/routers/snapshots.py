"""Snapshot API router - store and read canonical extracted text."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from factanchor.db import get_snapshot, put_snapshot
from factanchor.errors import SnapshotNotFoundError
from factanchor.schemas import SnapshotPutRequest, SnapshotResponse
from factanchor.settings import settings

router = APIRouter(prefix="/api/snapshots", tags=["snapshots"])


@router.put("", response_model=SnapshotResponse)
def api_put_snapshot(req: SnapshotPutRequest) -> SnapshotResponse:
    """Store a new snapshot generation (re-extraction replaces the old one)."""
    snapshot = put_snapshot(
        settings.db_path,
        domain=req.domain,
        source_url=req.source_url,
        extraction_method=req.extraction_method or settings.default_extraction_method,
        text=req.canonical_text,
        config=settings.engine_config(),
    )
    return SnapshotResponse.from_snapshot(snapshot, include_text=False)


@router.get("/{domain}", response_model=SnapshotResponse)
def api_get_snapshot(
    domain: str,
    url: str = Query(..., min_length=1, description="Source URL"),
) -> SnapshotResponse:
    """Get the current snapshot of a page."""
    try:
        snapshot = get_snapshot(settings.db_path, domain, url)
    except SnapshotNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return SnapshotResponse.from_snapshot(snapshot)
