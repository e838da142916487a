"""
Persistence layer: store interface, PostgreSQL implementation and run logs.
"""

from .connection import DatabaseConnectionPool
from .postgres_store import PostgresAnomalyStore
from .processing_log import MAX_SAMPLE_ERRORS, ProcessingRunTracker, final_status
from .store import AnomalyStore

__all__ = [
    "AnomalyStore",
    "DatabaseConnectionPool",
    "PostgresAnomalyStore",
    "ProcessingRunTracker",
    "MAX_SAMPLE_ERRORS",
    "final_status",
]
