from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from factanchor.db import check_connection, init_db
from factanchor.routers import extract as extract_router
from factanchor.routers import facts as facts_router
from factanchor.routers import snapshots as snapshots_router
from factanchor.routers import status as status_router
from factanchor.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the data directory and schema before serving."""
    try:
        logger.info("Starting fact anchor API...")
        (settings.resolved_data_dir / "index").mkdir(parents=True, exist_ok=True)
        init_db(settings.db_path)
        logger.info("Database initialized at %s", settings.db_path)
    except Exception as e:
        logger.error(f"FATAL: Startup failed: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down fact anchor API")


app = FastAPI(title="Fact anchor", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://127.0.0.1:5173", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(snapshots_router.router)
app.include_router(facts_router.router)
app.include_router(extract_router.router)
app.include_router(status_router.router)


@app.get("/health")
def health_check():
    """Health check for load balancers. Returns 503 when the database is unreachable."""
    if not check_connection(settings.db_path):
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "db": "unavailable"},
        )
    return {"status": "healthy", "db": "ok"}
