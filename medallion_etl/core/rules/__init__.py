"""
Business rules: criticality bands, value normalization and placeholders.
"""

from .criticality import (
    CRITICAL_BAND,
    LOW_BAND,
    MEDIUM_BAND,
    CriticalityBand,
    Impacts,
    categorize,
    classify,
    confidence,
    due_date,
    factor_explanations,
    generate_title,
    impacts,
    sla_hours,
)
from .normalization import (
    CRITICALITY_SYNONYMS,
    OPTIONAL_SCORED_FIELDS,
    REQUIRED_FIELDS,
    data_quality_score,
    fold_accents,
    normalize_criticality,
)
from .placeholders import PlaceholderPolicy

__all__ = [
    "CriticalityBand",
    "CRITICAL_BAND",
    "MEDIUM_BAND",
    "LOW_BAND",
    "Impacts",
    "classify",
    "sla_hours",
    "due_date",
    "impacts",
    "generate_title",
    "categorize",
    "factor_explanations",
    "confidence",
    "CRITICALITY_SYNONYMS",
    "REQUIRED_FIELDS",
    "OPTIONAL_SCORED_FIELDS",
    "data_quality_score",
    "fold_accents",
    "normalize_criticality",
    "PlaceholderPolicy",
]
