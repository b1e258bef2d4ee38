from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from factanchor.hashing import DEFAULT_HASH_ALGORITHM


def _default_repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


class EngineConfig(BaseModel):
    """Explicit configuration passed into the deriver, validator and ledger.

    Kept separate from Settings so an audit run can record exactly which
    thresholds and hash algorithm produced a result.
    """

    model_config = ConfigDict(frozen=True)

    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    citation_grade_min_pass_rate: float = Field(default=0.95, ge=0.0, le=1.0)
    citation_grade_min_passed: int = Field(default=10, ge=0)
    classifier_min_supporting_text_length: int = Field(default=50, ge=0)
    revision_max_retries: int = Field(default=3, ge=0)
    failed_examples_limit: int = Field(default=3, ge=0)
    excerpt_length: int = Field(default=500, ge=0)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FACTANCHOR_", extra="ignore")

    repo_root: Path = Field(default_factory=_default_repo_root)
    data_dir: Path | None = None

    default_extraction_method: str = "readability-v1"

    # Identity / validation
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM
    citation_grade_min_pass_rate: float = 0.95
    citation_grade_min_passed: int = 10
    classifier_min_supporting_text_length: int = 50

    # Optimistic concurrency on revision advancement
    revision_max_retries: int = 3

    # NDJSON export
    facts_stream_limit: int = 1000

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            hash_algorithm=self.hash_algorithm,
            citation_grade_min_pass_rate=self.citation_grade_min_pass_rate,
            citation_grade_min_passed=self.citation_grade_min_passed,
            classifier_min_supporting_text_length=self.classifier_min_supporting_text_length,
            revision_max_retries=self.revision_max_retries,
        )

    @property
    def resolved_data_dir(self) -> Path:
        return self.data_dir or (self.repo_root / "data")

    @property
    def db_path(self) -> Path:
        return self.resolved_data_dir / "index" / "facts.sqlite3"


# Singleton instance - import this instead of creating Settings()
settings = Settings()
