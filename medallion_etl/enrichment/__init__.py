"""
External prediction enrichment.
"""

from .prediction_client import (
    PredictionClient,
    PredictionFields,
    map_prediction_to_anomaly_fields,
    round_half_up,
)

__all__ = [
    "PredictionClient",
    "PredictionFields",
    "map_prediction_to_anomaly_fields",
    "round_half_up",
]
