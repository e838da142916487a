"""
Quote-aware CSV reader for spreadsheet exports.

Lines are split on newlines first, so quoted fields cannot span lines.
"""

from pathlib import Path
from typing import NamedTuple

BOM = "\ufeff"


class Table(NamedTuple):
    """Header row plus data rows, all cells as strings."""

    header: list[str]
    rows: list[list[str]]


def parse_csv_line(line: str, delimiter: str = ",") -> list[str]:
    r'''
    Split one CSV line into trimmed fields.

    Double quotes toggle quoted mode, in which delimiters are literal.
    Inside quotes, "" is an escaped quote.

    Example:
        >>> parse_csv_line('EQ-1,"Fuite, vanne ""A""",3')
        ['EQ-1', 'Fuite, vanne "A"', '3']
    '''
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]
        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def split_csv_text(text: str, delimiter: str = ",") -> list[list[str]]:
    """
    Parse a whole CSV payload into rows.

    A leading UTF-8 byte order mark is dropped and blank lines are skipped.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]
    return [
        parse_csv_line(line, delimiter)
        for line in text.splitlines()
        if line.strip()
    ]


class CSVReader:
    """
    Reads CSV files into a Table.
    """

    def __init__(self, delimiter: str = ",", encoding: str = "utf-8", errors: str = "replace"):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
            encoding: Text encoding of the files
            errors: Decode error handler; "replace" substitutes undecodable bytes
        """
        self.delimiter = delimiter
        self.encoding = encoding
        self.errors = errors

    def read_text(self, text: str) -> Table:
        rows = split_csv_text(text, self.delimiter)
        if not rows:
            return Table(header=[], rows=[])
        return Table(header=rows[0], rows=rows[1:])

    def read(self, file_path: str | Path) -> Table:
        """
        Read a CSV file.

        Args:
            file_path: Path to CSV file

        Returns:
            Table with the first non-blank line as header
        """
        text = Path(file_path).read_text(encoding=self.encoding, errors=self.errors)
        return self.read_text(text)
