"""Evidence anchor codec.

``build_anchor`` mints anchors from trusted canonical text. ``parse_anchor`` is
the single admission point for untrusted anchor payloads: every required field
is checked for presence and type before a typed EvidenceAnchor is returned.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from factanchor.errors import AnchorRangeError, MalformedAnchorError
from factanchor.hashing import content_hash, is_hash_string
from factanchor.models.anchor import EvidenceAnchor
from factanchor.settings import EngineConfig

REQUIRED_FIELDS = ("char_start", "char_end", "fragment_hash", "extraction_text_hash")

_DEFAULT_CONFIG = EngineConfig()


def _is_offset(value: object) -> bool:
    # bool is an int subclass; True/False are not offsets
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def build_anchor(
    text: str,
    char_start: int,
    char_end: int,
    snapshot_hash: str,
    source_selector: str | None = None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> EvidenceAnchor:
    """Anchor ``text[char_start:char_end]`` to the snapshot ``snapshot_hash``.

    Args:
        text: Canonical text of the snapshot generation.
        char_start: Inclusive start offset.
        char_end: Exclusive end offset.
        snapshot_hash: extraction_text_hash of the generation ``text`` belongs to.
        source_selector: Optional structural locator kept for debugging.
        config: Engine configuration (hash algorithm).

    Returns:
        EvidenceAnchor with the fragment hash of the slice.

    Raises:
        AnchorRangeError: If the range is empty, negative, reversed or past the
            end of ``text``.
    """
    if not _is_offset(char_start) or not _is_offset(char_end):
        raise AnchorRangeError(
            f"Offsets must be non-negative integers (got {char_start!r}, {char_end!r})"
        )
    if char_end <= char_start:
        raise AnchorRangeError(
            f"Empty or reversed range: char_start={char_start}, char_end={char_end}"
        )
    if char_end > len(text):
        raise AnchorRangeError(
            f"char_end={char_end} exceeds text length {len(text)}"
        )

    fragment = text[char_start:char_end]
    return EvidenceAnchor(
        char_start=char_start,
        char_end=char_end,
        fragment_hash=content_hash(fragment, config.hash_algorithm),
        extraction_text_hash=snapshot_hash,
        source_selector=source_selector,
    )


def parse_anchor(
    raw: Mapping[str, Any] | str | bytes | None,
    config: EngineConfig = _DEFAULT_CONFIG,
) -> EvidenceAnchor:
    """Validate an untrusted anchor payload.

    Args:
        raw: JSON object (mapping) or its serialized form.
        config: Engine configuration (hash algorithm for digest shape checks).

    Returns:
        Typed EvidenceAnchor.

    Raises:
        MalformedAnchorError: If the payload is not an object, misses a
            required field, or a field has the wrong type or shape.
    """
    if raw is None:
        raise MalformedAnchorError("Anchor payload is missing")

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedAnchorError(f"Anchor payload is not valid JSON: {e}") from e

    if not isinstance(raw, Mapping):
        raise MalformedAnchorError(
            f"Anchor payload must be a JSON object, got {type(raw).__name__}"
        )

    missing = [name for name in REQUIRED_FIELDS if name not in raw]
    if missing:
        raise MalformedAnchorError(f"Anchor missing required fields: {', '.join(missing)}")

    char_start = raw["char_start"]
    char_end = raw["char_end"]
    if not _is_offset(char_start):
        raise MalformedAnchorError(f"char_start must be a non-negative integer, got {char_start!r}")
    if not _is_offset(char_end):
        raise MalformedAnchorError(f"char_end must be a non-negative integer, got {char_end!r}")
    if char_end <= char_start:
        raise MalformedAnchorError(
            f"char_end must be greater than char_start ({char_start} >= {char_end})"
        )

    for name in ("fragment_hash", "extraction_text_hash"):
        if not is_hash_string(raw[name], config.hash_algorithm):
            raise MalformedAnchorError(
                f"{name} must be a {config.hash_algorithm} hex digest, got {raw[name]!r}"
            )

    selector = raw.get("source_selector")
    if selector is not None and not isinstance(selector, str):
        raise MalformedAnchorError("source_selector must be a string when present")

    return EvidenceAnchor(
        char_start=char_start,
        char_end=char_end,
        fragment_hash=raw["fragment_hash"],
        extraction_text_hash=raw["extraction_text_hash"],
        source_selector=selector or None,
    )


def dump_anchor(anchor: EvidenceAnchor) -> dict[str, Any]:
    """Wire representation; ``source_selector`` is omitted when absent."""
    return anchor.model_dump(exclude_none=True)
