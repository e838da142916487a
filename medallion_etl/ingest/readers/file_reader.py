"""
Generic file reader for the supported export formats (CSV, XLSX).
"""

from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import openpyxl

from medallion_etl.exceptions import IngestError

from .csv_reader import CSVReader, Table

SUPPORTED_FORMATS = ("csv", "xlsx")


def cell_to_text(value: Any) -> str:
    """
    Render a spreadsheet cell the way it would appear in a CSV export.

    Empty cells become "", whole floats lose their ".0" and dates are
    written as ISO strings.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.replace(microsecond=0).isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class FileReader:
    """
    Reads CSV or XLSX files into a Table.
    """

    def __init__(self, csv_reader: CSVReader | None = None):
        self.csv_reader = csv_reader or CSVReader()

    def detect_format(self, file_path: str | Path) -> str:
        suffix = Path(file_path).suffix.lower().lstrip(".")
        if suffix not in SUPPORTED_FORMATS:
            raise IngestError(f"Unsupported file format: {suffix or file_path}")
        return suffix

    def read(self, file_path: str | Path, file_format: str | None = None) -> Table:
        """
        Read file into a Table.

        Args:
            file_path: Path to file
            file_format: Format (csv, xlsx); detected from the extension if omitted

        Returns:
            Table of string cells

        Raises:
            IngestError: If file format is unsupported
        """
        file_format = (file_format or self.detect_format(file_path)).lower()

        if file_format == "csv":
            return self.csv_reader.read(file_path)
        elif file_format == "xlsx":
            return self._read_xlsx(file_path)
        else:
            raise IngestError(f"Unsupported file format: {file_format}")

    def _read_xlsx(self, file_path: str | Path) -> Table:
        """First worksheet only; rows with no non-empty cell are dropped."""
        wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
        try:
            ws = wb.worksheets[0]
            rows: list[list[str]] = []
            for row in ws.iter_rows(values_only=True):
                cells = [cell_to_text(value) for value in row]
                if any(cells):
                    rows.append(cells)
        finally:
            wb.close()

        if not rows:
            return Table(header=[], rows=[])
        return Table(header=rows[0], rows=rows[1:])
