"""
Field validators for the Bronze->Silver cleanser.

Provides validators for required fields, detection dates and numeric
severity factors.
"""

from .base_validator import BaseValidator, ValidationError, is_blank
from .date_validator import DateValidator, parse_date
from .factor_validator import FactorValidator, parse_leading_int
from .required_field_validator import RequiredFieldValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "is_blank",
    "RequiredFieldValidator",
    "DateValidator",
    "parse_date",
    "FactorValidator",
    "parse_leading_int",
]
