"""
Export file readers.
"""

from .csv_reader import CSVReader, Table, parse_csv_line, split_csv_text
from .file_reader import FileReader, cell_to_text

__all__ = [
    "CSVReader",
    "FileReader",
    "Table",
    "parse_csv_line",
    "split_csv_text",
    "cell_to_text",
]
