"""
Persistence interface shared by every pipeline component.

Components receive an AnomalyStore in their constructor; nothing in the
pipeline reaches for a global database handle.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from medallion_etl.core.models import (
    CleanRecord,
    DedupKey,
    Equipment,
    GoldRecord,
    PipelineRun,
    RawRecord,
)


class AnomalyStore(ABC):
    """
    Storage for the Bronze, Silver and Gold layers, equipment and run logs.

    Implementations must keep these natural keys unique:
    - CleanRecord: (equipment_code, description, detection_date,
      equipment_description, owning_section)
    - GoldRecord: equipment_identifier, and code
    - Equipment: code
    """

    # Bronze

    @abstractmethod
    def insert_raw_record(self, record: RawRecord) -> RawRecord:
        """Store a Bronze row."""

    @abstractmethod
    def list_unprocessed_raw_records(self) -> list[RawRecord]:
        """Bronze rows with processed=False, oldest first."""

    @abstractmethod
    def mark_raw_processed(self, record_id: str, processed_at: datetime | None = None) -> None:
        """Flip processed/processed_at on a Bronze row."""

    # Silver

    @abstractmethod
    def find_clean_record_by_key(self, key: DedupKey) -> CleanRecord | None:
        pass

    @abstractmethod
    def insert_clean_record(self, record: CleanRecord) -> CleanRecord | None:
        """Store a Silver row; None when a row with the same natural key exists."""

    @abstractmethod
    def count_clean_records(self) -> int:
        pass

    @abstractmethod
    def list_clean_records(self, offset: int, limit: int) -> list[CleanRecord]:
        """Page of Silver rows in a stable order (created_at, id)."""

    # Gold

    @abstractmethod
    def find_gold_record_by_equipment(self, equipment_identifier: str) -> GoldRecord | None:
        pass

    @abstractmethod
    def insert_gold_record(self, record: GoldRecord) -> GoldRecord | None:
        """Store a Gold anomaly; None when the equipment identifier is already promoted."""

    @abstractmethod
    def max_code_sequence(self, prefix: str) -> int:
        """Largest numeric suffix among Gold codes starting with prefix, 0 if none."""

    # Equipment

    @abstractmethod
    def find_equipment_by_code(self, code: str) -> Equipment | None:
        pass

    @abstractmethod
    def find_default_site_id(self) -> str | None:
        """Site that receives auto-created equipment (the first site)."""

    @abstractmethod
    def get_or_create_equipment(self, equipment: Equipment) -> Equipment:
        """Insert equipment unless its code exists; return the stored row."""

    # Processing log

    @abstractmethod
    def create_processing_log(self, run: PipelineRun) -> PipelineRun:
        pass

    @abstractmethod
    def update_processing_log(self, run: PipelineRun) -> None:
        pass

    @abstractmethod
    def get_processing_log(self, run_id: str) -> PipelineRun | None:
        pass

    @abstractmethod
    def list_processing_logs(self, limit: int = 20, job_name: str | None = None) -> list[PipelineRun]:
        """Most recent runs first."""
