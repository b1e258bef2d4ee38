"""Exceptions raised by the fact anchoring engine.

Per-fact validation outcomes (stale anchor, slice mismatch, ...) are not
exceptions; they are collected into a ValidationReport. The classes here cover
structural failures that abort the operation in progress.
"""

from __future__ import annotations


class FactAnchorError(Exception):
    """Base class for all engine errors."""


class MalformedAnchorError(FactAnchorError):
    """An untrusted anchor payload is missing fields or has wrong types."""


class AnchorRangeError(FactAnchorError, ValueError):
    """A requested char range is empty, negative, reversed or out of bounds."""


class IdentityInputError(FactAnchorError, ValueError):
    """Inputs needed to derive slot_id/fact_id are missing or inconsistent."""


class SnapshotNotFoundError(FactAnchorError, LookupError):
    def __init__(self, domain: str, source_url: str) -> None:
        super().__init__(f"No snapshot for domain={domain!r} source_url={source_url!r}")
        self.domain = domain
        self.source_url = source_url


class SnapshotHashCorruptionError(FactAnchorError):
    """Stored extraction_text_hash disagrees with the stored canonical text."""

    def __init__(
        self, domain: str, source_url: str, stored_hash: str, computed_hash: str
    ) -> None:
        super().__init__(
            f"Snapshot hash corruption for {domain} {source_url}: "
            f"stored={stored_hash[:16]}..., computed={computed_hash[:16]}..."
        )
        self.domain = domain
        self.source_url = source_url
        self.stored_hash = stored_hash
        self.computed_hash = computed_hash


class RevisionConflictError(FactAnchorError):
    """Another writer advanced the same slot first."""

    def __init__(self, source_url: str, slot_id: str, revision: int) -> None:
        super().__init__(
            f"Revision conflict on slot {slot_id[:16]}... of {source_url} at revision {revision}"
        )
        self.source_url = source_url
        self.slot_id = slot_id
        self.revision = revision
