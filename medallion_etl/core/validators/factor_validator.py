"""
FactorValidator - parses a severity factor and clamps it into a range.
"""

import re
from typing import Any

from .base_validator import BaseValidator, is_blank

LEADING_INTEGER = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value: str) -> int | None:
    """
    Read the integer at the start of a string.

    Trailing text is ignored, so "85.5" reads as 85 and "3 (élevé)" as 3.
    Returns None when the string does not start with digits.
    """
    match = LEADING_INTEGER.match(value)
    if match is None:
        return None
    return int(match.group(1))


class FactorValidator(BaseValidator):
    """
    Validates a numeric severity factor.

    Blank values are allowed and yield None. Numeric values are clamped
    into [min, max] rather than rejected.

    Parameters:
    - min: Lower clamp bound (default 0)
    - max: Upper clamp bound (default 100)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.min_value = self.parameters.get("min", 0)
        self.max_value = self.parameters.get("max", 100)

        if self.min_value > self.max_value:
            raise ValueError("FactorValidator requires min <= max")

    def validate(self, value: Any) -> int | None:
        if is_blank(value):
            return None

        if isinstance(value, bool):
            raise self.fail(f"Value must be numeric, got {value!r}")
        if isinstance(value, (int, float)):
            number = int(value)
        else:
            number = parse_leading_int(str(value))
            if number is None:
                raise self.fail(f"Value must be numeric, got {value!r}")

        return max(self.min_value, min(self.max_value, number))

    @property
    def rule_type(self) -> str:
        return "factor_range"
