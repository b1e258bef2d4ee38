"""Domain status router."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from factanchor.evidence.status import compute_domain_status
from factanchor.settings import settings

router = APIRouter(prefix="/api/status", tags=["status"])


@router.get("/{domain}")
def api_domain_status(domain: str) -> dict[str, Any]:
    """Fact counts and QA tier of a domain."""
    status = compute_domain_status(settings.db_path, domain, settings.engine_config())
    return status.to_dict()
