"""
DateValidator - parses detection dates written in the formats seen in exports.
"""

import re
from datetime import datetime
from typing import Any

from .base_validator import BaseValidator, is_blank

ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EUROPEAN_DATE = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4})$")

# Tried after the primary formats and ISO 8601
GENERIC_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%Y-%m-%dT%H:%M:%S.%fZ",
)


def parse_date(value: str) -> datetime | None:
    """
    Parse a date string, returning None when no format matches.

    Formats are tried in order: YYYY-MM-DD HH:MM:SS, YYYY-MM-DD,
    DD/MM/YYYY, DD-MM-YYYY, then ISO 8601 and a few generic layouts.
    Day-first formats are never read month-first.
    """
    text = value.strip()

    try:
        if ISO_DATETIME.match(text):
            return datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
        if ISO_DATE.match(text):
            return datetime.strptime(text, "%Y-%m-%d")

        match = EUROPEAN_DATE.match(text)
        if match:
            day, month, year = (int(part) for part in match.groups())
            return datetime(year, month, day)
    except ValueError:
        # Shape matched but the calendar date does not exist (e.g. 31/02)
        return None

    try:
        parsed = datetime.fromisoformat(text)
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass

    for fmt in GENERIC_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return None


class DateValidator(BaseValidator):
    """
    Validates and converts a date field.

    Raises ValidationError when the value is blank or matches no known format.
    """

    def validate(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if is_blank(value):
            raise self.fail("Date value is empty")

        parsed = parse_date(str(value))
        if parsed is None:
            raise self.fail(f"Unrecognized date format: {value!r}")
        return parsed

    @property
    def rule_type(self) -> str:
        return "date_format"
