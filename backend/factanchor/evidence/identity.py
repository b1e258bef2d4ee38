"""Fact identity derivation.

Identities are content hashes over ``|``-joined components, so any party with
the same inputs can recompute them without access to database keys::

    slot_id = H(entity_id | predicate | source_url | char_start | char_end | extraction_text_hash)
    fact_id = H(slot_id | object | fragment_hash)

structured_data facts use their source_path in place of ``char_start | char_end``
and carry no snapshot hash. Missing hashes render as the empty string. Object
values, strings included, render as compact key-sorted JSON.

Everything here is pure: no I/O, no clock, no database state.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from factanchor.errors import IdentityInputError
from factanchor.hashing import content_hash
from factanchor.models.anchor import EvidenceAnchor
from factanchor.models.facts import EvidenceType
from factanchor.settings import EngineConfig

SEPARATOR = "|"

_DEFAULT_CONFIG = EngineConfig()


@dataclass(frozen=True)
class CharRange:
    char_start: int
    char_end: int

    def render(self) -> str:
        return f"{self.char_start}{SEPARATOR}{self.char_end}"


@dataclass(frozen=True)
class SourcePath:
    path: str

    def render(self) -> str:
        return self.path


Locator = Union[CharRange, SourcePath]


@dataclass(frozen=True)
class FactIdentity:
    slot_id: str
    fact_id: str
    fragment_hash: str | None
    snapshot_hash: str | None
    locator: Locator


def render_object(value: Any) -> str:
    """Compact key-sorted JSON, so "1" and 1 render differently."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def derive_slot_id(
    entity_id: str,
    predicate: str,
    source_url: str,
    locator: Locator,
    snapshot_hash: str | None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> str:
    """Identity of the claim position, stable across value changes.

    Raises:
        IdentityInputError: If a triple component is empty, or a char range
            is given without the snapshot hash it refers to.
    """
    for name, value in (
        ("entity_id", entity_id),
        ("predicate", predicate),
        ("source_url", source_url),
    ):
        if not value:
            raise IdentityInputError(f"{name} is required to derive slot_id")

    if isinstance(locator, CharRange) and not snapshot_hash:
        raise IdentityInputError("Char offsets require the snapshot hash they refer to")

    components = [entity_id, predicate, source_url, locator.render(), snapshot_hash or ""]
    return content_hash(SEPARATOR.join(components), config.hash_algorithm)


def derive_fact_id(
    slot_id: str,
    object_value: Any,
    fragment_hash: str | None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> str:
    """Identity of one value at one slot; changes with object or fragment."""
    if not slot_id:
        raise IdentityInputError("slot_id is required to derive fact_id")
    components = [slot_id, render_object(object_value), fragment_hash or ""]
    return content_hash(SEPARATOR.join(components), config.hash_algorithm)


def locator_for(
    evidence_type: EvidenceType,
    anchor: EvidenceAnchor | None,
    source_path: str | None,
) -> Locator:
    """Pick the slot locator for a fact.

    Anchored facts are located by char range, except structured_data facts,
    which are always located by source path. Unanchored facts fall back to
    their source path (empty when absent).
    """
    if evidence_type != EvidenceType.STRUCTURED_DATA and anchor is not None:
        return CharRange(anchor.char_start, anchor.char_end)
    return SourcePath(source_path or "")


def derive_identity(
    *,
    entity_id: str,
    predicate: str,
    source_url: str,
    object_value: Any,
    evidence_type: EvidenceType,
    anchor: EvidenceAnchor | None,
    source_path: str | None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> FactIdentity:
    locator = locator_for(evidence_type, anchor, source_path)
    if isinstance(locator, CharRange) and anchor is not None:
        snapshot_hash: str | None = anchor.extraction_text_hash
        fragment_hash: str | None = anchor.fragment_hash
    else:
        snapshot_hash = None
        fragment_hash = None

    slot_id = derive_slot_id(
        entity_id, predicate, source_url, locator, snapshot_hash, config
    )
    fact_id = derive_fact_id(slot_id, object_value, fragment_hash, config)
    return FactIdentity(
        slot_id=slot_id,
        fact_id=fact_id,
        fragment_hash=fragment_hash,
        snapshot_hash=snapshot_hash,
        locator=locator,
    )
