"""
Result envelopes returned by the pipeline entry points.
"""

from typing import Any

from pydantic import BaseModel, Field


class ImportResult(BaseModel):
    """Outcome of loading one payload into the Bronze layer."""

    success: bool
    total_rows: int = Field(0, ge=0)
    success_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    errors: list[str] = Field(default_factory=list)
    processing_log_id: str | None = None


class StageResult(BaseModel):
    """
    Outcome of one Bronze->Silver or Silver->Gold run.

    `records_succeeded` includes duplicates for Bronze->Silver; the
    duplicate count is reported separately in `metadata`.
    """

    success: bool
    records_processed: int = Field(0, ge=0)
    records_succeeded: int = Field(0, ge=0)
    records_failed: int = Field(0, ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)
    processing_log_id: str | None = None


class PipelineResult(BaseModel):
    """Outcome of a complete Bronze->Silver->Gold run."""

    success: bool
    bronze_to_silver: StageResult
    silver_to_gold: StageResult
