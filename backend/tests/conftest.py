"""
Pytest configuration for backend tests.

Shared fixtures: isolated databases, the sample snapshot, engine config.
"""
import sys
from pathlib import Path

import pytest

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from factanchor.db import init_db, put_snapshot
from factanchor.models import Snapshot
from factanchor.settings import EngineConfig

from tests.factories import DEFAULT_DOMAIN, DEFAULT_URL, SAMPLE_TEXT, make_snapshot


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers",
        "slow: concurrency tests that spin up several writer threads",
    )


# --- Database Fixtures ---
@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Provide an initialized temporary database.

    Uses pytest's tmp_path which is automatically cleaned up after tests.
    """
    db_path = tmp_path / "index" / "facts.sqlite3"
    init_db(db_path)
    return db_path


@pytest.fixture
def stored_snapshot(temp_db_path: Path) -> Snapshot:
    """The sample page, stored as the current snapshot generation."""
    return put_snapshot(
        temp_db_path,
        domain=DEFAULT_DOMAIN,
        source_url=DEFAULT_URL,
        extraction_method="readability-v1",
        text=SAMPLE_TEXT,
    )


# --- Model Fixtures ---
@pytest.fixture
def sample_snapshot() -> Snapshot:
    """In-memory snapshot of the sample page."""
    return make_snapshot()


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig()
