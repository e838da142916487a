"""
PipelineRun model representing one processing-log entry.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    COMPLETED_WITH_ERRORS = "COMPLETED_WITH_ERRORS"
    FAILED = "FAILED"


class PipelineRun(BaseModel):
    """
    Processing log of one stage invocation.

    Attributes:
        id: Surrogate key
        job_name: Stage job name (e.g. "bronze_to_silver_anomalies")
        source_layer: Layer read from (None for external input)
        target_layer: Layer written to
        records_processed: Rows read
        records_succeeded: Rows handled successfully (duplicates included)
        records_failed: Rows rejected or errored
        start_time: When the run was opened
        end_time: When the run was finalized
        status: Run status
        metadata: Free-form details (duplicate counts, file name, ...)
        error_message: Fatal error or a sample of row errors
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    job_name: str = Field(..., min_length=1)
    source_layer: str | None = None
    target_layer: str
    records_processed: int = Field(0, ge=0)
    records_succeeded: int = Field(0, ge=0)
    records_failed: int = Field(0, ge=0)
    start_time: datetime = Field(default_factory=datetime.utcnow)
    end_time: datetime | None = None
    status: RunStatus = RunStatus.RUNNING
    metadata: dict[str, Any] = Field(default_factory=dict)
    error_message: str | None = None

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    class Config:
        json_schema_extra = {
            "example": {
                "job_name": "bronze_to_silver_anomalies",
                "source_layer": "bronze",
                "target_layer": "silver",
                "records_processed": 120,
                "records_succeeded": 117,
                "records_failed": 3,
                "status": "COMPLETED_WITH_ERRORS",
                "metadata": {"duplicates_skipped": 4, "duplicate_ids": ["..."]}
            }
        }
