"""
Unit tests for Bronze ingest

Tests CSV text, row and file ingestion into the Bronze layer, row-level
error accounting and processing-log bookkeeping.
"""
from datetime import datetime

import openpyxl
import pytest

from medallion_etl.core.models import RunStatus
from medallion_etl.exceptions import IngestError
from medallion_etl.ingest import BronzeIngestor


class TestIngestCsvText:
    """Tests for BronzeIngestor.ingest_csv_text"""

    def test_every_data_row_is_stored(self, store, dirty_csv_text):
        """Test that Bronze keeps dirty rows, rejects included"""
        result = BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "anomalies.csv")

        assert result.success is True
        assert result.total_rows == 6
        assert result.success_count == 6
        assert result.error_count == 0
        assert result.errors == []
        assert len(store.raw) == 6
        assert all(not record.processed for record in store.raw.values())

    def test_fields_are_mapped_and_trimmed(self, store, dirty_csv_text):
        BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "anomalies.csv")

        first = next(r for r in store.raw.values() if r.equipment_code == "EQ-001")
        assert first.description == "Vibration excessive, palier principal"
        assert first.detection_date == "2024-01-15 10:30:00"
        assert first.equipment_description == "Turbine à vapeur principale"
        assert first.reliability == "3"
        assert first.criticality == "Haute"
        assert first.source_file == "anomalies.csv"

    def test_null_cells_become_none(self, store, dirty_csv_text):
        BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "anomalies.csv")

        record = next(r for r in store.raw.values() if r.equipment_code == "EQ-005")
        assert record.reliability is None
        assert record.criticality is None

    def test_raw_data_keeps_original_row(self, store, make_csv):
        text = make_csv("EQ-010,Pompe,Fuite,2024-01-15,Pompe P-1,Production,1,2,3,Basse,Ouvert")

        BronzeIngestor(store).ingest_csv_text(text, "anomalies.csv")

        record = next(iter(store.raw.values()))
        assert record.raw_data["original_values"][0] == "EQ-010"
        assert len(record.raw_data["original_values"]) == 11
        assert record.raw_data["mapping"]["equipment_code"] == 0
        assert record.raw_data["status"] == "Ouvert"
        assert "imported_at" in record.raw_data

    def test_processing_log_completed(self, store, dirty_csv_text):
        result = BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "/uploads/2024/anomalies.csv")

        run = store.get_processing_log(result.processing_log_id)
        assert run.job_name == "csv_import_to_bronze"
        assert run.source_layer is None
        assert run.target_layer == "bronze"
        assert run.status == RunStatus.COMPLETED
        assert run.records_processed == 6
        assert run.records_succeeded == 6
        assert run.metadata == {"file_name": "anomalies.csv", "operation": "csv_import"}
        assert run.end_time is not None

    def test_row_errors_are_counted(self, store, dirty_csv_text):
        """Test that a failing row is reported with its file row number"""
        store.fail_raw_insert_when = lambda record: record.equipment_code == "EQ-002"

        result = BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "anomalies.csv")

        assert result.success is False
        assert result.success_count == 5
        assert result.error_count == 1
        assert result.errors == ["Row 3: simulated bronze insert failure"]

        run = store.get_processing_log(result.processing_log_id)
        assert run.status == RunStatus.COMPLETED_WITH_ERRORS
        assert run.error_message == "Row 3: simulated bronze insert failure"

    def test_error_message_samples_first_five(self, store, make_csv):
        rows = [f"EQ-{i},S,D,2024-01-15,E,O,1,1,1,Basse,Ouvert" for i in range(12)]
        store.fail_raw_insert_when = lambda record: True

        result = BronzeIngestor(store).ingest_csv_text(make_csv(*rows), "anomalies.csv")

        assert result.error_count == 12
        assert len(result.errors) == 10
        run = store.get_processing_log(result.processing_log_id)
        assert run.error_message.count("Row ") == 5

    def test_blank_rows_are_skipped(self, store, make_csv):
        text = make_csv("EQ-1,S,D,2024-01-15,E,O,1,1,1,Basse,Ouvert", ",,,,,,,,,,", "  ")

        result = BronzeIngestor(store).ingest_csv_text(text, "anomalies.csv")

        assert result.total_rows == 1
        assert len(store.raw) == 1

    def test_header_only_fails(self, store, export_header):
        """Test that a payload with no data row fails the run"""
        with pytest.raises(IngestError, match="no data rows"):
            BronzeIngestor(store).ingest_csv_text(export_header + "\n", "empty.csv")

        run = next(iter(store.logs.values()))
        assert run.status == RunStatus.FAILED
        assert "no data rows" in run.error_message
        assert store.raw == {}


class TestIngestRows:
    """Tests for BronzeIngestor.ingest_rows"""

    def test_dict_rows(self, store):
        rows = [
            {"Num_equipement": "EQ-1", "Description": "Fuite", "Fiabilité Intégrité": 3},
            {"Num_equipement": "EQ-2", "Description": "Bruit", "Statut": "Ouvert"},
        ]

        result = BronzeIngestor(store).ingest_rows(rows, "upload.xlsx")

        assert result.success_count == 2
        first = next(r for r in store.raw.values() if r.equipment_code == "EQ-1")
        assert first.reliability == "3"
        second = next(r for r in store.raw.values() if r.equipment_code == "EQ-2")
        assert second.reliability is None
        assert second.raw_data["status"] == "Ouvert"

        run = store.get_processing_log(result.processing_log_id)
        assert run.metadata["operation"] == "rows_import"

    def test_empty_rows(self, store):
        with pytest.raises(IngestError):
            BronzeIngestor(store).ingest_rows([], "upload.xlsx")


class TestIngestFile:
    """Tests for BronzeIngestor.ingest_file"""

    def test_csv_file(self, store, tmp_path, dirty_csv_text):
        path = tmp_path / "anomalies.csv"
        path.write_text(dirty_csv_text, encoding="utf-8")

        result = BronzeIngestor(store).ingest_file(path)

        assert result.success_count == 6
        assert all(r.source_file == "anomalies.csv" for r in store.raw.values())

    def test_source_label(self, store, tmp_path, dirty_csv_text):
        path = tmp_path / "tmp-upload-1234.csv"
        path.write_text(dirty_csv_text, encoding="utf-8")

        BronzeIngestor(store).ingest_file(path, source_label="anomalies_mars.csv")

        assert all(r.source_file == "anomalies_mars.csv" for r in store.raw.values())

    def test_xlsx_file(self, store, tmp_path, export_header):
        path = tmp_path / "anomalies.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(export_header.split(","))
        ws.append(["EQ-001", "Pompe", "Fuite", datetime(2024, 1, 15), "Pompe P-1", "Production", 3, 2, 1, "Basse", "Ouvert"])
        wb.save(path)

        result = BronzeIngestor(store).ingest_file(path)

        assert result.success_count == 1
        record = next(iter(store.raw.values()))
        assert record.detection_date == "2024-01-15"
        assert record.process_safety == "1"
        run = store.get_processing_log(result.processing_log_id)
        assert run.metadata == {"file_name": "anomalies.xlsx", "operation": "xlsx_import"}

    def test_missing_file(self, store, tmp_path):
        with pytest.raises(IngestError, match="not found"):
            BronzeIngestor(store).ingest_file(tmp_path / "missing.csv")

    def test_unsupported_format(self, store, tmp_path):
        path = tmp_path / "anomalies.xls"
        path.write_bytes(b"\xd0\xcf\x11\xe0")

        with pytest.raises(IngestError, match="Unsupported file format: xls"):
            BronzeIngestor(store).ingest_file(path)

    def test_latin1_row_is_ingested(self, store, tmp_path, export_header):
        """Test that bytes outside UTF-8 are replaced instead of aborting the import"""
        path = tmp_path / "anomalies_latin1.csv"
        row = "EQ-020,Pompe,Fuite détectée,2024-01-15,Pompe P-2,Maintenance,1,2,3,Basse,Ouvert\n"
        path.write_bytes((export_header + "\n").encode("utf-8") + row.encode("latin-1"))

        result = BronzeIngestor(store).ingest_file(path)

        assert result.success_count == 1
        record = next(iter(store.raw.values()))
        assert record.equipment_code == "EQ-020"
        assert record.description == "Fuite d\ufffdtect\ufffde"
        run = store.get_processing_log(result.processing_log_id)
        assert run.status == RunStatus.COMPLETED
