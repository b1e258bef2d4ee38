"""EvidenceAnchor model.

An anchor pins a fact to a half-open character range of one snapshot
generation. Wire shape::

    {
      "char_start": 0,
      "char_end": 10,
      "fragment_hash": "<hex>",
      "extraction_text_hash": "<hex>",
      "source_selector": "main > p:nth-of-type(2)"   # optional
    }

The model itself does not enforce range ordering: stored anchors are checked
by the validator so that a bad range is reported as a per-fact outcome. New
anchors must be built or parsed through ``factanchor.evidence.anchor_codec``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class EvidenceAnchor(BaseModel):
    """Char range + fragment hash bound to a snapshot generation."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "char_start": 0,
                    "char_end": 10,
                    "fragment_hash": "3b1f...a0",
                    "extraction_text_hash": "9f2c...e1",
                    "source_selector": "article p:nth-of-type(1)",
                }
            ]
        },
    )

    char_start: int = Field(..., description="Inclusive start offset")
    char_end: int = Field(..., description="Exclusive end offset")
    fragment_hash: str = Field(..., description="Hash of the anchored slice")
    extraction_text_hash: str = Field(
        ..., description="Snapshot hash this anchor was computed against"
    )
    source_selector: str | None = Field(
        default=None, description="Structural locator for debugging only"
    )
