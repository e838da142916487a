"""
Bronze ingest: stores every data row of an export verbatim as a RawRecord.

Flow: open processing log -> map header -> one RawRecord per data row ->
finalize processing log. Row-level failures are counted and never abort
the payload.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from medallion_etl.core.models import ImportResult, PipelineRun, RawRecord
from medallion_etl.exceptions import IngestError
from medallion_etl.observability.logger import get_logger, log_operation
from medallion_etl.observability.metrics import (
    record_stage_result,
    stage_duration_seconds,
    track_duration,
)
from medallion_etl.warehouse import MAX_SAMPLE_ERRORS, AnomalyStore, ProcessingRunTracker

from .column_mapper import ColumnMapper
from .readers import FileReader, Table, split_csv_text

logger = get_logger(__name__)

JOB_NAME = "csv_import_to_bronze"
STAGE = "bronze_ingest"
ERROR_MESSAGE_SAMPLE = 5
UNDECODABLE = "\ufffd"


class BronzeIngestor:
    """
    Loads CSV text, parsed rows or export files into the Bronze layer.

    Example:
        >>> ingestor = BronzeIngestor(store)
        >>> result = ingestor.ingest_csv_text(text, "anomalies_2024.csv")
        >>> result.success_count
        42
    """

    def __init__(
        self,
        store: AnomalyStore,
        mapper: ColumnMapper | None = None,
        file_reader: FileReader | None = None,
    ):
        """
        Initialize ingestor.

        Args:
            store: Anomaly store
            mapper: Column mapper (defaults to the standard export columns)
            file_reader: Reader used by ingest_file
        """
        self.store = store
        self.mapper = mapper or ColumnMapper()
        self.file_reader = file_reader or FileReader()
        self.tracker = ProcessingRunTracker(store)

    def ingest_csv_text(self, text: str, source_file: str) -> ImportResult:
        """
        Ingest a decoded CSV payload.

        Raises:
            IngestError: If the payload has no data row
        """
        file_name = Path(source_file).name
        run = self.tracker.start(
            JOB_NAME,
            target_layer="bronze",
            metadata={"file_name": file_name, "operation": "csv_import"},
        )
        try:
            lines = split_csv_text(text)
            if len(lines) < 2:
                raise IngestError("CSV file appears to be empty or has no data rows")
            return self._ingest(run, Table(header=lines[0], rows=lines[1:]), file_name)
        except Exception as e:
            self.tracker.fail(run, e)
            raise

    def ingest_rows(self, rows: Sequence[Mapping[str, Any]], source_file: str) -> ImportResult:
        """
        Ingest rows already decoded from a spreadsheet.

        The header is the union of row keys in first-seen order; missing
        cells become empty strings.

        Raises:
            IngestError: If there are no rows
        """
        file_name = Path(source_file).name
        run = self.tracker.start(
            JOB_NAME,
            target_layer="bronze",
            metadata={"file_name": file_name, "operation": "rows_import"},
        )
        try:
            if not rows:
                raise IngestError("Row payload is empty")
            header: list[str] = []
            for row in rows:
                for key in row:
                    if key not in header:
                        header.append(key)
            values = [
                ["" if row.get(key) is None else str(row.get(key)) for key in header]
                for row in rows
            ]
            return self._ingest(run, Table(header=header, rows=values), file_name)
        except Exception as e:
            self.tracker.fail(run, e)
            raise

    def ingest_file(self, file_path: str | Path, source_label: str | None = None) -> ImportResult:
        """
        Ingest a CSV or XLSX export file.

        Args:
            file_path: Path to the export
            source_label: Name recorded as source file (defaults to the file name)

        Raises:
            IngestError: If the file does not exist, has an unsupported
                extension or has no data row
        """
        path = Path(file_path)
        if not path.exists():
            raise IngestError(f"Input file not found: {path}")

        file_format = self.file_reader.detect_format(path)
        if file_format == "csv":
            csv_reader = self.file_reader.csv_reader
            text = path.read_text(encoding=csv_reader.encoding, errors=csv_reader.errors)
            if UNDECODABLE in text:
                logger.warning(f"{path.name} is not valid {csv_reader.encoding}; undecodable bytes were replaced")
            return self.ingest_csv_text(text, source_label or path.name)

        file_name = Path(source_label or path.name).name
        run = self.tracker.start(
            JOB_NAME,
            target_layer="bronze",
            metadata={"file_name": file_name, "operation": f"{file_format}_import"},
        )
        try:
            table = self.file_reader.read(path, file_format)
            if not table.header or not table.rows:
                raise IngestError(f"{file_format.upper()} file appears to be empty or has no data rows")
            return self._ingest(run, table, file_name)
        except Exception as e:
            self.tracker.fail(run, e)
            raise

    def _ingest(self, run: PipelineRun, table: Table, file_name: str) -> ImportResult:
        logger.info(f"Ingesting {len(table.rows)} rows from {file_name} into bronze")
        mapping = self.mapper.map_columns(table.header)

        total_rows = 0
        success_count = 0
        errors: list[str] = []

        with log_operation(JOB_NAME, logger=logger, run_id=run.id, source_file=file_name), \
                track_duration(stage_duration_seconds, stage=STAGE):
            # Row numbers count the header as row 1
            for row_number, values in enumerate(table.rows, start=2):
                if not any(str(v).strip() for v in values):
                    continue
                total_rows += 1
                try:
                    self.store.insert_raw_record(self._build_record(values, mapping, file_name))
                    success_count += 1
                except Exception as e:
                    message = f"Row {row_number}: {e}"
                    errors.append(message)
                    logger.warning(message)

        error_count = len(errors)
        self.tracker.complete(
            run,
            processed=total_rows,
            succeeded=success_count,
            failed=error_count,
            error_message="; ".join(errors[:ERROR_MESSAGE_SAMPLE]) or None,
        )
        record_stage_result(STAGE, run.status.value, succeeded=success_count, failed=error_count)

        logger.info(f"CSV import completed: {success_count} succeeded, {error_count} failed")
        return ImportResult(
            success=error_count == 0,
            total_rows=total_rows,
            success_count=success_count,
            error_count=error_count,
            errors=errors[:MAX_SAMPLE_ERRORS],
            processing_log_id=run.id,
        )

    def _build_record(self, values: Sequence[str], mapping: dict[str, int], file_name: str) -> RawRecord:
        fields = self.mapper.map_row(values, mapping)
        return RawRecord(
            **fields,
            source_file=file_name,
            raw_data={
                "original_values": list(values),
                "mapping": mapping,
                "imported_at": datetime.utcnow().isoformat(),
                "status": self.mapper.get_value(values, mapping, "status"),
            },
        )
