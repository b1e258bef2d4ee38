from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from factanchor.errors import RevisionConflictError, SnapshotNotFoundError
from factanchor.evidence.classifier import classify_evidence_type
from factanchor.hashing import content_hash
from factanchor.models.facts import EvidenceType, Fact
from factanchor.models.snapshot import Snapshot
from factanchor.settings import EngineConfig

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = (
    "domain, source_url, extraction_method, canonical_text, "
    "extraction_text_hash, fetched_at_utc"
)

# Same order as Fact.to_db_row()
FACT_COLUMNS = (
    "domain, source_url, entity_id, predicate, object_json, evidence_type, "
    "source_path, evidence_anchor_json, supporting_text, anchor_missing, "
    "slot_id, fact_id, previous_fact_id, revision, is_latest, created_at_utc"
)

_FACT_PLACEHOLDERS = ", ".join("?" * len(FACT_COLUMNS.split(",")))


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def _connect(db_path: Path) -> sqlite3.Connection:
    """Create a database connection with proper configuration.

    Foreign keys are enabled per connection, a 30 s busy timeout lets
    concurrent writers queue instead of failing, and IMMEDIATE isolation
    acquires the write lock when a transaction begins.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(
        str(db_path),
        timeout=30.0,
        isolation_level="IMMEDIATE",
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: Path) -> None:
    with _connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
              domain TEXT NOT NULL,
              source_url TEXT NOT NULL,
              extraction_method TEXT NOT NULL,
              canonical_text TEXT NOT NULL,
              extraction_text_hash TEXT NOT NULL,
              fetched_at_utc TEXT NOT NULL,
              PRIMARY KEY (domain, source_url)
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_snapshots_extraction_hash "
            "ON snapshots(extraction_text_hash)"
        )

        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS facts (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              domain TEXT NOT NULL,
              source_url TEXT NOT NULL,
              entity_id TEXT NOT NULL,
              predicate TEXT NOT NULL,
              object_json TEXT,
              evidence_type TEXT NOT NULL DEFAULT 'unknown'
                CHECK (evidence_type IN ('structured_data', 'text_extraction', 'unknown')),
              source_path TEXT,
              evidence_anchor_json TEXT,
              supporting_text TEXT,
              anchor_missing INTEGER NOT NULL DEFAULT 0,
              slot_id TEXT NOT NULL,
              fact_id TEXT NOT NULL,
              previous_fact_id TEXT,
              revision INTEGER NOT NULL CHECK (revision >= 1),
              is_latest INTEGER NOT NULL DEFAULT 1,
              created_at_utc TEXT NOT NULL,
              UNIQUE (source_url, slot_id, revision)
            )
            """
        )
        # At most one latest row per slot
        conn.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_facts_slot_latest "
            "ON facts(source_url, slot_id) WHERE is_latest = 1"
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_domain ON facts(domain)")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_facts_fact_id ON facts(fact_id)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_facts_previous_fact_id ON facts(previous_fact_id)"
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_facts_evidence_type ON facts(evidence_type)"
        )

        # Forbid rewriting the revision chain after creation
        conn.execute(
            """
            CREATE TRIGGER IF NOT EXISTS trg_facts_chain_immutable
            BEFORE UPDATE OF slot_id, fact_id, previous_fact_id, revision ON facts
            BEGIN
              SELECT RAISE(ABORT, 'fact identity and revision chain are append-only');
            END
            """
        )


# --- Snapshot store ---


def put_snapshot(
    db_path: Path,
    *,
    domain: str,
    source_url: str,
    extraction_method: str,
    text: str,
    config: EngineConfig | None = None,
) -> Snapshot:
    """Store a new snapshot generation, replacing any previous one wholesale.

    The hash is computed here and written in the same statement as the text,
    so a reader never sees a hash without its matching text.
    """
    config = config or EngineConfig()
    snapshot = Snapshot(
        domain=domain,
        source_url=source_url,
        extraction_method=extraction_method,
        canonical_text=text,
        extraction_text_hash=content_hash(text, config.hash_algorithm),
        fetched_at=utc_now(),
    )

    with _connect(db_path) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            previous = conn.execute(
                "SELECT extraction_text_hash FROM snapshots WHERE domain = ? AND source_url = ?",
                (domain, source_url),
            ).fetchone()
            conn.execute(
                f"""
                INSERT INTO snapshots({SNAPSHOT_COLUMNS})
                VALUES(?, ?, ?, ?, ?, ?)
                ON CONFLICT(domain, source_url) DO UPDATE SET
                  extraction_method = excluded.extraction_method,
                  canonical_text = excluded.canonical_text,
                  extraction_text_hash = excluded.extraction_text_hash,
                  fetched_at_utc = excluded.fetched_at_utc
                """,
                snapshot.to_db_row(),
            )
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    if previous is None:
        logger.info("Stored first snapshot for %s %s", domain, source_url)
    elif previous["extraction_text_hash"] != snapshot.extraction_text_hash:
        logger.info(
            "Replaced snapshot for %s %s (%s... -> %s...); anchors on the old generation are now stale",
            domain,
            source_url,
            previous["extraction_text_hash"][:16],
            snapshot.extraction_text_hash[:16],
        )
    return snapshot


def _fetch_snapshot(conn: sqlite3.Connection, domain: str, source_url: str) -> Snapshot:
    row = conn.execute(
        f"SELECT {SNAPSHOT_COLUMNS} FROM snapshots WHERE domain = ? AND source_url = ?",
        (domain, source_url),
    ).fetchone()
    if row is None:
        raise SnapshotNotFoundError(domain, source_url)
    return Snapshot.from_db_row(row)


def get_snapshot(db_path: Path, domain: str, source_url: str) -> Snapshot:
    with _connect(db_path) as conn:
        return _fetch_snapshot(conn, domain, source_url)


def load_snapshot_with_facts(
    db_path: Path,
    domain: str,
    source_url: str,
) -> tuple[Snapshot, list[Fact]]:
    """Read a snapshot and its latest facts at one consistent point.

    Both reads happen inside a single read transaction, so a concurrent
    re-extraction cannot interleave between them. Facts are ordered by
    fact_id, which any auditor can reproduce.
    """
    with _connect(db_path) as conn:
        conn.execute("BEGIN")
        try:
            snapshot = _fetch_snapshot(conn, domain, source_url)
            rows = conn.execute(
                f"""
                SELECT {FACT_COLUMNS} FROM facts
                WHERE domain = ? AND source_url = ? AND is_latest = 1
                ORDER BY fact_id
                """,
                (domain, source_url),
            ).fetchall()
        finally:
            conn.execute("COMMIT")
    return snapshot, [Fact.from_db_row(r) for r in rows]


# --- Fact revisions ---


def get_latest_fact(db_path: Path, source_url: str, slot_id: str) -> Fact | None:
    with _connect(db_path) as conn:
        row = conn.execute(
            f"""
            SELECT {FACT_COLUMNS} FROM facts
            WHERE source_url = ? AND slot_id = ? AND is_latest = 1
            """,
            (source_url, slot_id),
        ).fetchone()
    return Fact.from_db_row(row) if row else None


def append_fact_revision(
    db_path: Path,
    fact: Fact,
    *,
    expected_previous: Fact | None,
) -> None:
    """Insert ``fact`` as the new latest revision of its slot.

    Optimistic check: the write only succeeds if ``expected_previous`` is
    still the latest row of the slot (or, for revision 1, if the slot has no
    rows at all). The unique constraint on (source_url, slot_id, revision)
    and the partial unique index on latest rows back this up.

    Raises:
        RevisionConflictError: If another writer advanced the slot first.
    """
    with _connect(db_path) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            if expected_previous is None:
                existing = conn.execute(
                    "SELECT 1 FROM facts WHERE source_url = ? AND slot_id = ? LIMIT 1",
                    (fact.source_url, fact.slot_id),
                ).fetchone()
                if existing is not None:
                    raise RevisionConflictError(fact.source_url, fact.slot_id, fact.revision)
            else:
                cursor = conn.execute(
                    """
                    UPDATE facts SET is_latest = 0
                    WHERE source_url = ? AND slot_id = ? AND revision = ?
                      AND fact_id = ? AND is_latest = 1
                    """,
                    (
                        expected_previous.source_url,
                        expected_previous.slot_id,
                        expected_previous.revision,
                        expected_previous.fact_id,
                    ),
                )
                if cursor.rowcount != 1:
                    raise RevisionConflictError(fact.source_url, fact.slot_id, fact.revision)

            conn.execute(
                f"INSERT INTO facts({FACT_COLUMNS}) VALUES({_FACT_PLACEHOLDERS})",
                fact.to_db_row(),
            )
            conn.execute("COMMIT")
        except sqlite3.IntegrityError as e:
            conn.execute("ROLLBACK")
            raise RevisionConflictError(fact.source_url, fact.slot_id, fact.revision) from e
        except Exception:
            conn.execute("ROLLBACK")
            raise


def get_revision_chain(db_path: Path, source_url: str, slot_id: str) -> list[Fact]:
    """All revisions of a slot, oldest first."""
    with _connect(db_path) as conn:
        rows = conn.execute(
            f"""
            SELECT {FACT_COLUMNS} FROM facts
            WHERE source_url = ? AND slot_id = ?
            ORDER BY revision ASC
            """,
            (source_url, slot_id),
        ).fetchall()
    return [Fact.from_db_row(r) for r in rows]


def list_facts(
    db_path: Path,
    domain: str,
    *,
    source_url: str | None = None,
    latest_only: bool = True,
    limit: int | None = None,
) -> list[Fact]:
    clauses = ["domain = ?"]
    params: list[object] = [domain]
    if source_url is not None:
        clauses.append("source_url = ?")
        params.append(source_url)
    if latest_only:
        clauses.append("is_latest = 1")
    sql = (
        f"SELECT {FACT_COLUMNS} FROM facts WHERE {' AND '.join(clauses)} "
        "ORDER BY created_at_utc DESC, id DESC"
    )
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    with _connect(db_path) as conn:
        rows = conn.execute(sql, params).fetchall()
    return [Fact.from_db_row(r) for r in rows]


def set_anchor_missing(
    db_path: Path, source_url: str, fact_ids: Iterable[str], value: bool = True
) -> int:
    """Flag text_extraction facts whose anchor is absent or failed validation."""
    ids = list(fact_ids)
    if not ids:
        return 0
    with _connect(db_path) as conn:
        cursor = conn.executemany(
            """
            UPDATE facts SET anchor_missing = ?
            WHERE source_url = ? AND fact_id = ? AND evidence_type = 'text_extraction'
            """,
            [(int(value), source_url, fact_id) for fact_id in ids],
        )
        return cursor.rowcount


@dataclass(frozen=True)
class FactCounts:
    total: int
    text_extraction: int
    structured_data: int
    unknown: int
    anchored_text: int
    snapshots: int


def count_domain_facts(db_path: Path, domain: str) -> FactCounts:
    """Counts of latest facts per evidence type for a domain."""
    with _connect(db_path) as conn:
        row = conn.execute(
            """
            SELECT
              COUNT(*) AS total,
              COALESCE(SUM(evidence_type = 'text_extraction'), 0) AS text_extraction,
              COALESCE(SUM(evidence_type = 'structured_data'), 0) AS structured_data,
              COALESCE(SUM(evidence_type = 'unknown'), 0) AS unknown,
              COALESCE(SUM(
                evidence_type = 'text_extraction'
                AND evidence_anchor_json IS NOT NULL
                AND anchor_missing = 0
              ), 0) AS anchored_text
            FROM facts
            WHERE domain = ? AND is_latest = 1
            """,
            (domain,),
        ).fetchone()
        snapshots = conn.execute(
            "SELECT COUNT(*) FROM snapshots WHERE domain = ?", (domain,)
        ).fetchone()[0]
    return FactCounts(
        total=row["total"],
        text_extraction=row["text_extraction"],
        structured_data=row["structured_data"],
        unknown=row["unknown"],
        anchored_text=row["anchored_text"],
        snapshots=snapshots,
    )


# --- Backfill ---


def backfill_evidence_types(db_path: Path, config: EngineConfig | None = None) -> dict[str, int]:
    """Classify rows still marked 'unknown' and flag anchorless text facts.

    Returns:
        Number of rows moved to each evidence type, plus the number of
        text_extraction rows newly flagged ``anchor_missing``.
    """
    config = config or EngineConfig()
    moved = {t.value: 0 for t in EvidenceType}

    with _connect(db_path) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            rows = conn.execute(
                """
                SELECT id, evidence_anchor_json, supporting_text, object_json
                FROM facts WHERE evidence_type = 'unknown'
                """
            ).fetchall()
            for row in rows:
                evidence_type = classify_evidence_type(
                    has_anchor=row["evidence_anchor_json"] is not None,
                    supporting_text=row["supporting_text"],
                    has_triple=row["object_json"] not in (None, "null"),
                    config=config,
                )
                moved[evidence_type.value] += 1
                if evidence_type != EvidenceType.UNKNOWN:
                    conn.execute(
                        "UPDATE facts SET evidence_type = ? WHERE id = ?",
                        (evidence_type.value, row["id"]),
                    )
            cursor = conn.execute(
                """
                UPDATE facts SET anchor_missing = 1
                WHERE evidence_type = 'text_extraction'
                  AND evidence_anchor_json IS NULL
                  AND anchor_missing = 0
                """
            )
            flagged = cursor.rowcount
            conn.execute("COMMIT")
        except Exception:
            conn.execute("ROLLBACK")
            raise

    logger.info("Backfilled evidence types: %s (anchor_missing flagged: %d)", moved, flagged)
    return {**moved, "anchor_missing_flagged": flagged}


def check_connection(db_path: Path) -> bool:
    with contextlib.suppress(sqlite3.Error), _connect(db_path) as conn:
        conn.execute("SELECT 1").fetchone()
        return True
    return False
