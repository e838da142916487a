"""
PostgreSQL implementation of the anomaly store.

Schema: docker/init-db.sql. Natural-key uniqueness is enforced by the
database and writes use INSERT ... ON CONFLICT so re-runs are idempotent.
"""

from datetime import datetime
from enum import Enum
from typing import Any

import psycopg
from psycopg.types.json import Jsonb

from medallion_etl.core.models import (
    CleanRecord,
    DedupKey,
    Equipment,
    GoldRecord,
    PipelineRun,
    RawRecord,
)
from medallion_etl.exceptions import SchemaError
from medallion_etl.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .store import AnomalyStore

logger = get_logger(__name__)

RAW_COLUMNS = (
    "id", "equipment_code", "system", "description", "detection_date",
    "equipment_description", "owning_section", "reliability", "availability",
    "process_safety", "criticality", "raw_data", "source_file", "ingested_at",
    "processed", "processed_at",
)

CLEAN_COLUMNS = (
    "id", "equipment_code", "system", "description", "detection_date",
    "equipment_description", "owning_section", "reliability", "availability",
    "process_safety", "criticality", "data_quality_score", "validation_errors",
    "normalized_fields", "bronze_source_id", "created_at",
)

GOLD_COLUMNS = (
    "id", "code", "title", "description", "equipment_id", "equipment_identifier",
    "system", "category", "status", "origin", "reliability", "availability",
    "process_safety", "criticality", "severity", "priority", "sla_hours",
    "reported_at", "due_date", "reported_by", "safety_impact",
    "environmental_impact", "production_impact", "estimated_cost",
    "downtime_hours", "duration_to_resolve", "ai_suggested_severity",
    "ai_factors", "ai_confidence", "ai_recommendations", "silver_source_id",
    "created_at",
)

EQUIPMENT_COLUMNS = ("id", "code", "name", "description", "type", "site_id", "status", "created_at")

LOG_COLUMNS = (
    "id", "job_name", "source_layer", "target_layer", "records_processed",
    "records_succeeded", "records_failed", "start_time", "end_time", "status",
    "metadata", "error_message",
)

PIPELINE_TABLES = (
    "site", "equipment", "bronze_anomalies_raw", "silver_anomalies_clean",
    "anomaly", "data_processing_log",
)

JSON_COLUMNS = {
    "raw_data", "validation_errors", "normalized_fields", "ai_factors",
    "ai_recommendations", "metadata",
}


def _insert_sql(table: str, columns: tuple[str, ...]) -> str:
    names = ", ".join(columns)
    values = ", ".join(f"%({c})s" for c in columns)
    return f"INSERT INTO {table} ({names}) VALUES ({values})"


def _params(model: Any, columns: tuple[str, ...]) -> dict[str, Any]:
    data = model.model_dump(mode="python")
    params = {}
    for column in columns:
        value = data[column]
        if column in JSON_COLUMNS and value is not None:
            value = Jsonb(value)
        elif isinstance(value, Enum):
            value = value.value
        params[column] = value
    return params


class PostgresAnomalyStore(AnomalyStore):
    """
    AnomalyStore backed by PostgreSQL through a DatabaseConnectionPool.

    Each method runs in its own short transaction.
    """

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize store.

        Args:
            pool: Open database connection pool
        """
        self.pool = pool

    def verify_schema(self) -> None:
        """
        Check that every pipeline table exists.

        Raises:
            SchemaError: If docker/init-db.sql has not been applied
        """
        missing = self.pool.missing_tables(PIPELINE_TABLES)
        if missing:
            raise SchemaError(
                f"Database {self.pool.database} is missing tables: {', '.join(missing)}. "
                "Apply docker/init-db.sql first."
            )
        logger.debug(f"Schema check passed for {len(PIPELINE_TABLES)} tables")

    # Bronze

    def insert_raw_record(self, record: RawRecord) -> RawRecord:
        self.pool.execute_command(
            _insert_sql("bronze_anomalies_raw", RAW_COLUMNS),
            _params(record, RAW_COLUMNS),
        )
        return record

    def list_unprocessed_raw_records(self) -> list[RawRecord]:
        rows = self.pool.execute_query(
            """
            SELECT * FROM bronze_anomalies_raw
            WHERE processed = FALSE
            ORDER BY ingested_at, id
            """
        )
        return [RawRecord.model_validate(row) for row in rows]

    def mark_raw_processed(self, record_id: str, processed_at: datetime | None = None) -> None:
        self.pool.execute_command(
            """
            UPDATE bronze_anomalies_raw
            SET processed = TRUE, processed_at = %(processed_at)s
            WHERE id = %(id)s
            """,
            {"id": record_id, "processed_at": processed_at or datetime.utcnow()},
        )

    # Silver

    def find_clean_record_by_key(self, key: DedupKey) -> CleanRecord | None:
        equipment_code, description, detection_date, equipment_description, owning_section = key
        rows = self.pool.execute_query(
            """
            SELECT * FROM silver_anomalies_clean
            WHERE equipment_code = %(equipment_code)s
              AND description = %(description)s
              AND detection_date = %(detection_date)s
              AND equipment_description = %(equipment_description)s
              AND owning_section = %(owning_section)s
            LIMIT 1
            """,
            {
                "equipment_code": equipment_code,
                "description": description,
                "detection_date": detection_date,
                "equipment_description": equipment_description,
                "owning_section": owning_section,
            },
        )
        return CleanRecord.model_validate(rows[0]) if rows else None

    def insert_clean_record(self, record: CleanRecord) -> CleanRecord | None:
        inserted = self.pool.execute_command(
            _insert_sql("silver_anomalies_clean", CLEAN_COLUMNS)
            + """
            ON CONFLICT (equipment_code, description, detection_date,
                         equipment_description, owning_section) DO NOTHING
            """,
            _params(record, CLEAN_COLUMNS),
        )
        return record if inserted else None

    def count_clean_records(self) -> int:
        rows = self.pool.execute_query("SELECT COUNT(*) AS total FROM silver_anomalies_clean")
        return rows[0]["total"]

    def list_clean_records(self, offset: int, limit: int) -> list[CleanRecord]:
        rows = self.pool.execute_query(
            """
            SELECT * FROM silver_anomalies_clean
            ORDER BY created_at, id
            OFFSET %(offset)s LIMIT %(limit)s
            """,
            {"offset": offset, "limit": limit},
        )
        return [CleanRecord.model_validate(row) for row in rows]

    # Gold

    def find_gold_record_by_equipment(self, equipment_identifier: str) -> GoldRecord | None:
        rows = self.pool.execute_query(
            "SELECT * FROM anomaly WHERE equipment_identifier = %(identifier)s",
            {"identifier": equipment_identifier},
        )
        return GoldRecord.model_validate(rows[0]) if rows else None

    def insert_gold_record(self, record: GoldRecord) -> GoldRecord | None:
        inserted = self.pool.execute_command(
            _insert_sql("anomaly", GOLD_COLUMNS)
            + " ON CONFLICT (equipment_identifier) DO NOTHING",
            _params(record, GOLD_COLUMNS),
        )
        return record if inserted else None

    def max_code_sequence(self, prefix: str) -> int:
        rows = self.pool.execute_query(
            r"""
            SELECT COALESCE(MAX(CAST(substring(code FROM '-(\d+)$') AS INTEGER)), 0) AS max_sequence
            FROM anomaly
            WHERE code LIKE %(pattern)s
            """,
            {"pattern": prefix + "%"},
        )
        return rows[0]["max_sequence"]

    # Equipment

    def find_equipment_by_code(self, code: str) -> Equipment | None:
        rows = self.pool.execute_query(
            "SELECT * FROM equipment WHERE code = %(code)s",
            {"code": code},
        )
        return Equipment.model_validate(rows[0]) if rows else None

    def find_default_site_id(self) -> str | None:
        rows = self.pool.execute_query("SELECT id FROM site ORDER BY created_at, id LIMIT 1")
        return rows[0]["id"] if rows else None

    def get_or_create_equipment(self, equipment: Equipment) -> Equipment:
        with self.pool.get_connection() as conn:
            with conn.cursor() as cur:
                # No-op update so RETURNING yields the existing row on conflict
                cur.execute(
                    _insert_sql("equipment", EQUIPMENT_COLUMNS)
                    + " ON CONFLICT (code) DO UPDATE SET code = EXCLUDED.code RETURNING *",
                    _params(equipment, EQUIPMENT_COLUMNS),
                )
                row = cur.fetchone()
            conn.commit()
        return Equipment.model_validate(row)

    # Processing log

    def create_processing_log(self, run: PipelineRun) -> PipelineRun:
        self.pool.execute_command(
            _insert_sql("data_processing_log", LOG_COLUMNS),
            _params(run, LOG_COLUMNS),
        )
        return run

    def update_processing_log(self, run: PipelineRun) -> None:
        assignments = ", ".join(f"{c} = %({c})s" for c in LOG_COLUMNS if c != "id")
        try:
            self.pool.execute_command(
                f"UPDATE data_processing_log SET {assignments} WHERE id = %(id)s",
                _params(run, LOG_COLUMNS),
            )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to update processing log {run.id}: {e}")
            raise

    def get_processing_log(self, run_id: str) -> PipelineRun | None:
        rows = self.pool.execute_query(
            "SELECT * FROM data_processing_log WHERE id = %(id)s",
            {"id": run_id},
        )
        return PipelineRun.model_validate(rows[0]) if rows else None

    def list_processing_logs(self, limit: int = 20, job_name: str | None = None) -> list[PipelineRun]:
        rows = self.pool.execute_query(
            """
            SELECT * FROM data_processing_log
            WHERE %(job_name)s::text IS NULL OR job_name = %(job_name)s
            ORDER BY start_time DESC, id
            LIMIT %(limit)s
            """,
            {"job_name": job_name, "limit": limit},
        )
        return [PipelineRun.model_validate(row) for row in rows]
