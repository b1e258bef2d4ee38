"""Extraction validation router - check every latest fact of a page against its snapshot."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query

from factanchor.errors import SnapshotHashCorruptionError, SnapshotNotFoundError
from factanchor.evidence.service import validate_source
from factanchor.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/extract", tags=["extract"])


@router.get("/{domain}")
def api_validate_extraction(
    domain: str,
    url: str = Query(..., min_length=1, description="Source URL"),
    flag_missing: bool = Query(default=False, description="Persist anchor_missing flags"),
) -> dict[str, Any]:
    """Validation report for one page.

    Failing facts are part of the report, never dropped. A snapshot whose
    stored hash no longer matches its text is a server-side fault (500).
    """
    try:
        report = validate_source(
            settings.db_path,
            domain,
            url,
            settings.engine_config(),
            update_anchor_flags=flag_missing,
        )
    except SnapshotNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except SnapshotHashCorruptionError as e:
        logger.error("Refusing to validate %s: %s", url, e)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "snapshot_hash_corruption",
                "stored_hash": e.stored_hash,
                "computed_hash": e.computed_hash,
            },
        ) from e

    return report.model_dump(mode="json", exclude={"config"})
