"""
Criticality engine.

Derives criticality label, severity, priority, SLA and the other business
fields of a Gold anomaly from its three severity factors.

Two band tables exist:

    standard   sum >= 9 -> Critique, 7-8 -> Moyenne, 3-6 -> Basse
    strict     sum >  9 -> Critique, 7-8 -> Moyenne, otherwise Basse

The standard table is used for Silver->Gold promotion. A sum below 3 can
only come from zero-valued factors and falls back to Moyenne.
"""

from datetime import datetime, timedelta
from typing import Literal, NamedTuple

from medallion_etl.core.models import Priority, Severity

from .normalization import BASSE, CRITIQUE, MOYENNE, fold_accents

BandTable = Literal["standard", "strict"]

FACTOR_SCALE = 3
MAX_TITLE_LENGTH = 100
TITLE_MIN_CUT = 50
ELLIPSIS = "..."

SLA_HOURS = {
    Severity.CRITICAL: 4,
    Severity.MEDIUM: 72,
    Severity.LOW: 168,
}
DEFAULT_SLA_HOURS = 72

# Ordered: first group with a matching keyword wins
CATEGORY_KEYWORDS = (
    ("mechanical", ("turbine", "rotor")),
    ("electrical", ("electrique", "electric", "moteur", "motor")),
    ("hydraulic", ("hydraulique", "hydraulic", "pompe", "pump", "valve")),
    ("instrumentation", ("capteur", "sensor", "mesure")),
    ("control", ("controle", "control", "regulation")),
)
DEFAULT_CATEGORY = "mechanical"


class CriticalityBand(NamedTuple):
    label: str
    severity: Severity
    priority: Priority
    sla_hours: int


CRITICAL_BAND = CriticalityBand(CRITIQUE, Severity.CRITICAL, Priority.P1, SLA_HOURS[Severity.CRITICAL])
MEDIUM_BAND = CriticalityBand(MOYENNE, Severity.MEDIUM, Priority.P2, SLA_HOURS[Severity.MEDIUM])
LOW_BAND = CriticalityBand(BASSE, Severity.LOW, Priority.P3, SLA_HOURS[Severity.LOW])


class Impacts(NamedTuple):
    safety: bool
    environmental: bool
    production: bool


def classify(total: int, bands: BandTable = "standard") -> CriticalityBand:
    """
    Classify a factor sum into a criticality band.

    Args:
        total: reliability + availability + process_safety
        bands: Which band table to apply

    Returns:
        The matching CriticalityBand
    """
    if bands == "strict":
        if total > 9:
            return CRITICAL_BAND
        if 7 <= total <= 8:
            return MEDIUM_BAND
        return LOW_BAND

    if bands != "standard":
        raise ValueError(f"Unknown criticality band table: {bands}")

    if total >= 9:
        return CRITICAL_BAND
    if total >= 7:
        return MEDIUM_BAND
    if total >= 3:
        return LOW_BAND
    return MEDIUM_BAND


def sla_hours(severity: Severity | str | None) -> int:
    if severity is None:
        return DEFAULT_SLA_HOURS
    try:
        return SLA_HOURS[Severity(severity)]
    except ValueError:
        return DEFAULT_SLA_HOURS


def due_date(detected_at: datetime, hours: int) -> datetime:
    return detected_at + timedelta(hours=hours)


def impacts(process_safety: int, availability: int, severity: Severity) -> Impacts:
    """Derive impact flags from factor thresholds and severity."""
    return Impacts(
        safety=process_safety <= 2 or severity == Severity.CRITICAL,
        environmental=process_safety <= 2 and severity == Severity.CRITICAL,
        production=availability <= 2 or severity != Severity.LOW,
    )


def generate_title(description: str, max_length: int = MAX_TITLE_LENGTH) -> str:
    """
    Build an anomaly title from its description.

    Descriptions longer than max_length are cut to leave room for an
    ellipsis, at the last space when that space lies beyond position 50.
    """
    text = description.strip()
    if len(text) <= max_length:
        return text

    cut = text[: max_length - len(ELLIPSIS)]
    last_space = cut.rfind(" ")
    if last_space > TITLE_MIN_CUT:
        cut = cut[:last_space]
    return cut.rstrip() + ELLIPSIS


def categorize(*texts: str | None) -> str:
    """Infer a coarse equipment/anomaly category from free text."""
    haystack = fold_accents(" ".join(t for t in texts if t)).lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def factor_explanations(reliability: int, availability: int, process_safety: int) -> list[str]:
    total = reliability + availability + process_safety
    return [
        f"Fiabilité: {reliability}/{FACTOR_SCALE}",
        f"Disponibilité: {availability}/{FACTOR_SCALE}",
        f"Process Safety: {process_safety}/{FACTOR_SCALE}",
        f"Score total: {total}/{FACTOR_SCALE * 3}",
    ]


def confidence(total: int) -> float:
    """Confidence attached to a factor-derived classification, capped at 0.95."""
    return min(0.95, 0.7 + total / 30)
