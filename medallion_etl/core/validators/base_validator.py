"""
Base validator interface for Bronze field validation.

All validators inherit from BaseValidator and implement validate(), which
returns the cleaned value or raises ValidationError.
"""

from abc import ABC, abstractmethod
from typing import Any

NULL_MARKERS = ("", "null")


class ValidationError(Exception):
    """Raised when a field value fails a validation rule."""

    def __init__(self, rule_name: str, field_name: str, message: str):
        self.rule_name = rule_name
        self.field_name = field_name
        self.message = message
        super().__init__(f"[{rule_name}] {field_name}: {message}")


def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings and the literal "null" in any case."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in NULL_MARKERS
    return False


class BaseValidator(ABC):
    """
    Abstract base class for field validators.

    Each validator checks one field of a Bronze row and converts it to
    the type stored in the Silver layer.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        """
        Initialize validator.

        Args:
            field_name: Name of the field to validate
            parameters: Rule-specific parameters (e.g., min/max for range)
        """
        self.field_name = field_name
        self.parameters = parameters or {}

    @abstractmethod
    def validate(self, value: Any) -> Any:
        """
        Validate and convert a raw value.

        Args:
            value: The raw field value

        Returns:
            The cleaned value

        Raises:
            ValidationError: If validation fails
        """
        pass

    @property
    @abstractmethod
    def rule_type(self) -> str:
        """Return the rule type identifier."""
        pass

    def fail(self, message: str) -> ValidationError:
        return ValidationError(rule_name=self.rule_type, field_name=self.field_name, message=message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(field={self.field_name}, params={self.parameters})"
