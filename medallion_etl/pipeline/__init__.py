"""
Medallion stages and their orchestration.
"""

from .bronze_to_silver import BronzeToSilverCleanser
from .orchestrator import MedallionPipeline
from .silver_to_gold import SilverToGoldTransformer, build_prediction_batch

__all__ = [
    "BronzeToSilverCleanser",
    "SilverToGoldTransformer",
    "MedallionPipeline",
    "build_prediction_batch",
]
