"""
Pipeline-level exceptions.

Field-level validation failures live in core.validators.base_validator.
"""


class MedallionError(Exception):
    """Base class for errors raised by the medallion pipeline."""


class ConfigurationError(MedallionError):
    """Raised when pipeline settings cannot be loaded or are invalid."""


class IngestError(MedallionError):
    """Raised when an ingest payload has no usable data rows."""


class SchemaError(MedallionError):
    """Raised when the database lacks tables the pipeline writes to."""
