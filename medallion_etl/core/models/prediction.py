"""
Wire models for the external severity prediction service.

Request body: a JSON array of PredictionRequest.
Response body: BatchPredictionResponse.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class PredictionRequest(BaseModel):
    """One anomaly submitted for scoring."""

    anomaly_id: str
    description: str
    equipment_name: str
    equipment_id: str


class FactorScore(BaseModel):
    score: float
    description: str = ""


class FactorPredictions(BaseModel):
    availability: FactorScore
    reliability: FactorScore
    process_safety: FactorScore


class RiskAssessment(BaseModel):
    overall_risk_level: str = ""
    recommended_action: str = ""
    critical_factors: list[str] = Field(default_factory=list)
    weakest_aspect: str = ""


class PredictionResult(BaseModel):
    """
    Scores for one anomaly.

    Attributes:
        anomaly_id: Echo of the request's anomaly_id (the Silver record id)
        status: Per-item status reported by the service ("success" when scored)
        overall_score: Service confidence / aggregate score
        predictions: The three factor scores, typically on a 1-3 scale
    """

    anomaly_id: str
    equipment_id: str | None = None
    equipment_name: str | None = None
    status: str = "success"
    overall_score: float | None = None
    predictions: FactorPredictions
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)
    maintenance_recommendations: list[str] = Field(default_factory=list)

    @field_validator("anomaly_id", "equipment_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v: Any) -> Any:
        """Services sometimes echo numeric ids as JSON numbers."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def succeeded(self) -> bool:
        return self.status.lower() not in ("failed", "error")


class BatchInfo(BaseModel):
    total_anomalies: int = 0
    successful_predictions: int = 0
    failed_predictions: int = 0
    processing_time_seconds: float = 0.0
    average_time_per_anomaly: float = 0.0


class BatchPredictionResponse(BaseModel):
    """
    Whole-batch response.

    status is "completed" for a scored batch, "failed" for the synthetic
    response built when the service could not be reached, and "skipped"
    when there was nothing to send.
    """

    status: str
    batch_info: BatchInfo = Field(default_factory=BatchInfo)
    results: list[PredictionResult] = Field(default_factory=list)

    @classmethod
    def failed(cls, batch_size: int) -> "BatchPredictionResponse":
        return cls(
            status="failed",
            batch_info=BatchInfo(
                total_anomalies=batch_size,
                successful_predictions=0,
                failed_predictions=batch_size,
            ),
            results=[],
        )

    @classmethod
    def skipped(cls) -> "BatchPredictionResponse":
        return cls(status="skipped")

    def by_anomaly_id(self) -> dict[str, PredictionResult]:
        """Successful results keyed by anomaly id."""
        return {result.anomaly_id: result for result in self.results if result.succeeded}

    class Config:
        json_schema_extra = {
            "example": {
                "status": "completed",
                "batch_info": {
                    "total_anomalies": 1,
                    "successful_predictions": 1,
                    "failed_predictions": 0,
                    "processing_time_seconds": 0.04,
                    "average_time_per_anomaly": 0.04
                },
                "results": [
                    {
                        "anomaly_id": "5b0c3e0e-6a43-4d67-8a38-5f3f7c1d9e21",
                        "equipment_id": "EQ-001-TURB-01",
                        "equipment_name": "Turbine à vapeur principale unité 1",
                        "status": "success",
                        "overall_score": 1.47,
                        "predictions": {
                            "availability": {"score": 2, "description": "Equipment uptime"},
                            "reliability": {"score": 1, "description": "Equipment integrity"},
                            "process_safety": {"score": 3, "description": "Safety risk"}
                        },
                        "risk_assessment": {
                            "overall_risk_level": "CRITICAL",
                            "recommended_action": "Immediate action required",
                            "critical_factors": ["Low Availability"],
                            "weakest_aspect": "availability"
                        },
                        "maintenance_recommendations": ["Schedule immediate maintenance"]
                    }
                ]
            }
        }
