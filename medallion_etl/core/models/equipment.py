"""
Equipment model referenced by Gold anomalies.
"""

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field


class Equipment(BaseModel):
    """
    Minimal equipment record created lazily during Silver->Gold promotion.

    Attributes:
        code: Equipment number (unique natural key)
        name: First 100 characters of the equipment description
        type: Coarse type inferred from keywords (mechanical, electrical, ...)
        site_id: Owning site, the default site for auto-created equipment
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    code: str = Field(..., min_length=1)
    name: str = Field(..., max_length=100)
    description: str | None = None
    type: str = "mechanical"
    site_id: str
    status: str = "operational"
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "code": "EQ-001-TURB-01",
                "name": "Turbine à vapeur principale unité 1",
                "description": "Turbine à vapeur principale unité 1",
                "type": "mechanical",
                "site_id": "8d7f0c4e-3b7a-4c1e-9a51-0f4f6a0e2b11",
                "status": "operational"
            }
        }
