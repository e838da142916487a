"""
Value normalization and data-quality scoring for the Silver layer.
"""

import unicodedata
from collections.abc import Mapping
from typing import Any

REQUIRED_FIELDS = (
    "equipment_code",
    "description",
    "detection_date",
    "equipment_description",
    "owning_section",
)

OPTIONAL_SCORED_FIELDS = (
    "system",
    "reliability",
    "availability",
    "process_safety",
    "criticality",
)

REQUIRED_FIELD_POINTS = 12
OPTIONAL_FIELD_POINTS = 8

CRITIQUE = "Critique"
MOYENNE = "Moyenne"
BASSE = "Basse"

# Lowercased source label -> canonical French label
CRITICALITY_SYNONYMS = {
    "critique": CRITIQUE,
    "critical": CRITIQUE,
    "haute": CRITIQUE,
    "high": CRITIQUE,
    "élevée": CRITIQUE,
    "elevee": CRITIQUE,
    "moyenne": MOYENNE,
    "medium": MOYENNE,
    "moyen": MOYENNE,
    "modérée": MOYENNE,
    "moderee": MOYENNE,
    "basse": BASSE,
    "low": BASSE,
    "faible": BASSE,
    "bas": BASSE,
}


def fold_accents(text: str) -> str:
    """Strip combining diacritics: "détéction" -> "detection"."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_criticality(value: str | None) -> str | None:
    """
    Map a criticality label onto Critique / Moyenne / Basse.

    Matching is case-insensitive on the trimmed value. Unknown labels are
    returned trimmed but otherwise unchanged.
    """
    if value is None:
        return None
    text = value.strip()
    if text == "":
        return None
    return CRITICALITY_SYNONYMS.get(text.lower(), text)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


def data_quality_score(values: Mapping[str, Any]) -> int:
    """
    Weighted completeness of a record, 0-100.

    Each required field present earns 12 points and each optional scored
    field present earns 8, out of a maximum of 100.
    """
    earned = sum(REQUIRED_FIELD_POINTS for name in REQUIRED_FIELDS if _present(values.get(name)))
    earned += sum(
        OPTIONAL_FIELD_POINTS for name in OPTIONAL_SCORED_FIELDS if _present(values.get(name))
    )
    max_possible = (
        REQUIRED_FIELD_POINTS * len(REQUIRED_FIELDS)
        + OPTIONAL_FIELD_POINTS * len(OPTIONAL_SCORED_FIELDS)
    )
    return round(earned / max_possible * 100)
