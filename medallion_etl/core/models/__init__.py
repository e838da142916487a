"""
Core data models for the medallion anomaly pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .clean_record import CleanRecord, DedupKey
from .equipment import Equipment
from .gold_record import GoldRecord, Priority, Severity
from .pipeline_run import PipelineRun, RunStatus
from .prediction import (
    BatchInfo,
    BatchPredictionResponse,
    FactorPredictions,
    FactorScore,
    PredictionRequest,
    PredictionResult,
    RiskAssessment,
)
from .raw_record import RawRecord
from .results import ImportResult, PipelineResult, StageResult

__all__ = [
    "RawRecord",
    "CleanRecord",
    "DedupKey",
    "GoldRecord",
    "Severity",
    "Priority",
    "Equipment",
    "PipelineRun",
    "RunStatus",
    "ImportResult",
    "StageResult",
    "PipelineResult",
    "PredictionRequest",
    "PredictionResult",
    "BatchPredictionResponse",
    "BatchInfo",
    "FactorPredictions",
    "FactorScore",
    "RiskAssessment",
]
