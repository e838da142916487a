"""
GoldRecord model representing a business-ready anomaly (Gold layer).
"""

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"


class Priority(str, Enum):
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class GoldRecord(BaseModel):
    """
    Business anomaly promoted from a Silver row, one per equipment identifier.

    criticality, severity, priority, sla_hours and due_date are all derived
    from the sum of the three severity factors and never set independently.

    Attributes:
        code: Sequential business code, ABO-<year>-<NNN>
        title: Description truncated at a word boundary
        equipment_id: Resolved Equipment id (None when no site exists)
        equipment_identifier: Free-text equipment number (natural key)
        reliability/availability/process_safety: Severity factors (1-3 scale expected)
        estimated_cost/downtime_hours/duration_to_resolve: Placeholder estimates
        ai_factors: Human-readable explanation of the factor sum
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    code: str = Field(..., pattern=r"^ABO-\d{4}-\d{3,}$")
    title: str = Field(..., max_length=100)
    description: str
    equipment_id: str | None = None
    equipment_identifier: str = Field(..., min_length=1)
    system: str | None = None
    category: str = "mechanical"
    status: str = "open"
    origin: str = "csv_import"
    reliability: int
    availability: int
    process_safety: int
    criticality: str
    severity: Severity
    priority: Priority
    sla_hours: int
    reported_at: datetime
    due_date: datetime
    reported_by: str | None = None
    safety_impact: bool = False
    environmental_impact: bool = False
    production_impact: bool = False
    estimated_cost: int = 0
    downtime_hours: int = 0
    duration_to_resolve: int = 0
    ai_suggested_severity: str | None = None
    ai_factors: list[str] = Field(default_factory=list)
    ai_confidence: float | None = Field(None, ge=0.0, le=1.0)
    ai_recommendations: list[str] = Field(default_factory=list)
    silver_source_id: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "ABO-2024-001",
                "title": "Vibration excessive détectée sur palier principal",
                "description": "Vibration excessive détectée sur palier principal",
                "equipment_identifier": "EQ-001-TURB-01",
                "reliability": 3,
                "availability": 3,
                "process_safety": 3,
                "criticality": "Critique",
                "severity": "critical",
                "priority": "P1",
                "sla_hours": 4,
                "reported_at": "2024-01-15T10:30:00",
                "due_date": "2024-01-15T14:30:00",
                "ai_factors": [
                    "Fiabilité: 3/3",
                    "Disponibilité: 3/3",
                    "Process Safety: 3/3",
                    "Score total: 9/9"
                ],
                "ai_confidence": 0.95
            }
        }
