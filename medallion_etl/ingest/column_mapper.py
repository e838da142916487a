"""
Column mapping from heterogeneous export headers onto canonical anomaly fields.

Exports come from several spreadsheet versions whose headers differ in
accents, quoting, spacing and wording. Each canonical field lists the
header spellings it accepts; a header is matched by exact text, then by
normalized text, then by substring in either direction.
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any

from medallion_etl.config import FallbackSettings
from medallion_etl.core.models import RawRecord
from medallion_etl.core.rules.normalization import fold_accents
from medallion_etl.core.validators import is_blank
from medallion_etl.observability.logger import get_logger

logger = get_logger(__name__)

# Canonical field -> accepted header spellings, preferred first
EXPECTED_COLUMNS: dict[str, tuple[str, ...]] = {
    "equipment_code": ("Num_equipement",),
    "system": ("Systeme",),
    "description": ("Description",),
    "detection_date": (
        "Date de détéction de l'anomalie",
        "Date de detection de l'anomalie",
    ),
    "equipment_description": (
        "Description de l'équipement",
        "Description equipement",
    ),
    "owning_section": ("Section propriétaire", "Section proprietaire"),
    "reliability": ("Fiabilité Intégrité",),
    "availability": ("Disponibilté", "Disponibilité"),
    "process_safety": ("Process Safety",),
    "criticality": ("Criticité",),
    "priority": ("Priorité",),
    "status": ("Statut",),
}

# Fields copied onto RawRecord attributes
RECORD_FIELDS = (
    "equipment_code",
    "system",
    "description",
    "detection_date",
    "equipment_description",
    "owning_section",
    "reliability",
    "availability",
    "process_safety",
    "criticality",
)

_QUOTES = re.compile(r"[\"'’`]")
_WHITESPACE = re.compile(r"\s+")


def normalize_header(text: str) -> str:
    """
    Normalize a header for comparison.

    Lowercases, folds accents, drops quote characters and collapses
    whitespace: "Date de détéction de l'anomalie" -> "date de detection de lanomalie".
    """
    folded = fold_accents(str(text)).lower()
    folded = _QUOTES.sub("", folded)
    return _WHITESPACE.sub(" ", folded).strip()


def clean_cell(value: Any) -> str | None:
    """Trimmed cell text, or None for empty and "null" cells."""
    if is_blank(value):
        return None
    return str(value).strip()


class ColumnMapper:
    """
    Maps a header row onto canonical field names.

    Matching runs in three passes over the whole header (exact, normalized,
    substring) and the first header index matching in the earliest pass
    wins. The substring pass never claims a column already matched by
    another field in an earlier pass. Fields without a match are absent
    from the mapping.

    Example:
        >>> mapper = ColumnMapper()
        >>> mapping = mapper.map_columns(["Num_equipement", "Date de detection de l'anomalie"])
        >>> mapping["detection_date"]
        1
    """

    def __init__(self, expected_columns: Mapping[str, Sequence[str]] | None = None):
        self.expected_columns = dict(expected_columns or EXPECTED_COLUMNS)

    def map_columns(self, header: Sequence[str]) -> dict[str, int]:
        """
        Build the canonical field -> column index mapping for a header row.

        Args:
            header: Ordered header cells

        Returns:
            Mapping of canonical field name to column index
        """
        stripped = [str(h).strip() for h in header]
        normalized = [normalize_header(h) for h in header]
        mapping: dict[str, int] = {}

        for field, aliases in self.expected_columns.items():
            index = self._find_exact(stripped, aliases)
            if index is None:
                index = self._find_exact(normalized, [normalize_header(a) for a in aliases])
            if index is not None:
                mapping[field] = index

        claimed = set(mapping.values())
        for field, aliases in self.expected_columns.items():
            if field in mapping:
                continue
            index = self._find_substring(normalized, aliases, claimed)
            if index is not None:
                mapping[field] = index

        unmatched = [field for field in self.expected_columns if field not in mapping]
        logger.info(f"Column mapping: {mapping}, unmatched fields: {unmatched}")
        return mapping

    @staticmethod
    def _find_exact(cells: Sequence[str], aliases: Sequence[str]) -> int | None:
        for alias in aliases:
            for index, cell in enumerate(cells):
                if cell and cell == alias:
                    return index
        return None

    @staticmethod
    def _find_substring(normalized: Sequence[str], aliases: Sequence[str], claimed: set[int]) -> int | None:
        for alias in aliases:
            target = normalize_header(alias)
            for index, cell in enumerate(normalized):
                if not cell or index in claimed:
                    continue
                if target in cell or cell in target:
                    return index
        return None

    @staticmethod
    def get_value(values: Sequence[Any], mapping: Mapping[str, int], field: str) -> str | None:
        """Cell value for a canonical field; None when unmapped, out of range, empty or "null"."""
        index = mapping.get(field)
        if index is None or index >= len(values):
            return None
        return clean_cell(values[index])

    def map_row(self, values: Sequence[Any], mapping: Mapping[str, int]) -> dict[str, str | None]:
        """
        Extract the RawRecord fields of one data row.

        Criticality falls back to the priority column when empty.
        """
        fields = {name: self.get_value(values, mapping, name) for name in RECORD_FIELDS}
        if fields["criticality"] is None:
            fields["criticality"] = self.get_value(values, mapping, "priority")
        return fields


def resolve_fields(record: RawRecord, settings: FallbackSettings | None = None) -> dict[str, str | None]:
    """
    Effective field values of a Bronze record.

    Fields left empty by the column mapping are recovered from the raw
    ordered row at fixed positions, but only when the row is long enough
    for those positions to be meaningful.

    Args:
        record: Bronze record
        settings: Positional indices and minimum row length

    Returns:
        Canonical field name -> trimmed value or None
    """
    settings = settings or FallbackSettings()
    values = {name: clean_cell(getattr(record, name)) for name in RECORD_FIELDS}

    original = record.original_values
    if not original or len(original) < settings.min_row_length:
        return values

    recovered = []
    for name, index in settings.positional_indices.items():
        if name not in values or values[name] is not None:
            continue
        if 0 <= index < len(original):
            value = clean_cell(original[index])
            if value is not None:
                values[name] = value
                recovered.append(name)

    if recovered:
        logger.debug(f"Recovered {recovered} from raw row positions for record {record.id}")
    return values
