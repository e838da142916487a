"""
CleanRecord model representing a validated, normalized Silver row.
"""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field

DedupKey = tuple[str, str, datetime, str, str]


class CleanRecord(BaseModel):
    """
    Cleansed anomaly row (Silver layer), at most one per RawRecord.

    Attributes:
        id: Surrogate key
        equipment_code: Trimmed equipment number (required)
        system: Trimmed system name
        description: Trimmed description (required)
        detection_date: Parsed detection date (required)
        equipment_description: Trimmed equipment description (required)
        owning_section: Trimmed owning section (required)
        reliability: Reliability factor clamped to [0, 100]
        availability: Availability factor clamped to [0, 100]
        process_safety: Process-safety factor clamped to [0, 100]
        criticality: Canonical criticality label or the original text
        data_quality_score: Weighted completeness score (0-100)
        validation_errors: Non-fatal issues found while cleansing
        normalized_fields: Names of fields whose value was rewritten
        bronze_source_id: RawRecord this row was cleansed from
        created_at: When the row was stored
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    equipment_code: str = Field(..., min_length=1)
    system: str | None = None
    description: str = Field(..., min_length=1)
    detection_date: datetime
    equipment_description: str = Field(..., min_length=1)
    owning_section: str = Field(..., min_length=1)
    reliability: int | None = Field(None, ge=0, le=100)
    availability: int | None = Field(None, ge=0, le=100)
    process_safety: int | None = Field(None, ge=0, le=100)
    criticality: str | None = None
    data_quality_score: int = Field(0, ge=0, le=100)
    validation_errors: list[str] | None = None
    normalized_fields: list[str] | None = None
    bronze_source_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def dedup_key(self) -> DedupKey:
        """Composite natural key used to detect duplicate Silver rows."""
        return (
            self.equipment_code,
            self.description,
            self.detection_date,
            self.equipment_description,
            self.owning_section,
        )

    @property
    def missing_factors(self) -> list[str]:
        """Severity factors the source did not provide; 0 counts as missing."""
        return [
            name
            for name in ("reliability", "availability", "process_safety")
            if not getattr(self, name)
        ]

    class Config:
        json_schema_extra = {
            "example": {
                "equipment_code": "EQ-001-TURB-01",
                "system": "Turbine",
                "description": "Vibration excessive détectée sur palier principal",
                "detection_date": "2024-01-15T10:30:00",
                "equipment_description": "Turbine à vapeur principale unité 1",
                "owning_section": "Production",
                "reliability": 3,
                "availability": 2,
                "process_safety": 3,
                "criticality": "Critique",
                "data_quality_score": 100,
                "validation_errors": None,
                "normalized_fields": ["criticality"]
            }
        }
