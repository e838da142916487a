"""
RequiredFieldValidator - ensures a field is present and not null/empty.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field carries a value and returns it trimmed.

    Fails if:
    - Field value is None
    - Field value is empty or whitespace only
    - Field value is the literal "null" (any case)
    """

    def validate(self, value: Any) -> str:
        if value is None:
            raise self.fail("Field value is null")

        text = str(value).strip()
        if text == "":
            raise self.fail("Field value is empty string")
        if text.lower() == "null":
            raise self.fail("Field value is the literal 'null'")

        return text

    @property
    def rule_type(self) -> str:
        return "required_field"
