"""NDJSON export of the latest facts of a domain."""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Sequence

from factanchor.hashing import content_hash
from factanchor.models.facts import Fact


def fact_to_ndjson_line(fact: Fact) -> str:
    return json.dumps(fact.to_stream_record(), ensure_ascii=False) + "\n"


def iter_facts_ndjson(facts: Iterable[Fact]) -> Iterator[str]:
    """Yield one JSON line per fact."""
    for fact in facts:
        yield fact_to_ndjson_line(fact)


def facts_etag(facts: Sequence[Fact]) -> str | None:
    """Cache validator over the set of exported fact_ids; None when nothing is exported.

    Any new revision changes a fact_id, so the tag moves whenever the stream
    content does, independent of evidence type or ordering.
    """
    if not facts:
        return None
    fact_ids = sorted(fact.fact_id for fact in facts)
    return f'"{content_hash(chr(10).join(fact_ids))[:32]}"'
