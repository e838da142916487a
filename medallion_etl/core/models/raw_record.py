"""
RawRecord model representing one ingested row in the Bronze layer.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class RawRecord(BaseModel):
    """
    One spreadsheet/CSV row exactly as received (Bronze layer).

    Every field except the bookkeeping ones is the trimmed cell text
    resolved by the column mapper, or None when the cell was empty or "null".
    Only `processed`/`processed_at` change after ingest.

    Attributes:
        id: Surrogate key
        equipment_code: Free-text equipment number
        system: Free-text system name
        description: Anomaly description
        detection_date: Detection date as written in the source
        equipment_description: Equipment description
        owning_section: Owning section
        reliability: Reliability factor as text
        availability: Availability factor as text
        process_safety: Process-safety factor as text
        criticality: Criticality (or priority) label as text
        raw_data: Original ordered cell values, the column mapping used and extras
        source_file: Name of the file or upload the row came from
        ingested_at: When the row was stored
        processed: Whether the Bronze->Silver stage has handled the row
        processed_at: When the row was marked processed
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    equipment_code: str | None = None
    system: str | None = None
    description: str | None = None
    detection_date: str | None = None
    equipment_description: str | None = None
    owning_section: str | None = None
    reliability: str | None = None
    availability: str | None = None
    process_safety: str | None = None
    criticality: str | None = None
    raw_data: dict[str, Any] = Field(default_factory=dict)
    source_file: str
    ingested_at: datetime = Field(default_factory=datetime.utcnow)
    processed: bool = False
    processed_at: datetime | None = None

    @property
    def original_values(self) -> list[str] | None:
        """Ordered cell values of the source row, when they were kept."""
        values = self.raw_data.get("original_values")
        return values if isinstance(values, list) else None

    class Config:
        json_schema_extra = {
            "example": {
                "equipment_code": "EQ-001-TURB-01",
                "system": "Turbine",
                "description": "Vibration excessive détectée sur palier principal",
                "detection_date": "2024-01-15 10:30:00",
                "equipment_description": "Turbine à vapeur principale unité 1",
                "owning_section": "Production",
                "reliability": "3",
                "availability": "2",
                "process_safety": "3",
                "criticality": "Haute",
                "raw_data": {
                    "original_values": ["EQ-001-TURB-01", "Turbine", "..."],
                    "mapping": {"equipment_code": 0, "system": 1},
                },
                "source_file": "anomalies_2024.csv",
                "processed": False
            }
        }
