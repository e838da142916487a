"""
Ingest: export readers, column mapping and Bronze loading.
"""

from .bronze_ingest import BronzeIngestor
from .column_mapper import EXPECTED_COLUMNS, ColumnMapper, normalize_header, resolve_fields

__all__ = [
    "BronzeIngestor",
    "ColumnMapper",
    "EXPECTED_COLUMNS",
    "normalize_header",
    "resolve_fields",
]
