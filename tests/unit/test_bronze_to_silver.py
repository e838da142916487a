"""
Unit tests for the Bronze->Silver cleanser

Tests rejection of incomplete rows, factor parsing, criticality
normalization, duplicate detection and processing-log bookkeeping.
"""
from datetime import datetime

import pytest

from medallion_etl.core.models import RawRecord, RunStatus
from medallion_etl.ingest import BronzeIngestor
from medallion_etl.pipeline import BronzeToSilverCleanser


def make_raw(**fields) -> RawRecord:
    values = {
        "equipment_code": "EQ-001",
        "system": "Pompe",
        "description": "Fuite hydraulique",
        "detection_date": "2024-01-15",
        "equipment_description": "Pompe de circulation",
        "owning_section": "Maintenance",
        "reliability": "2",
        "availability": "2",
        "process_safety": "3",
        "criticality": "medium",
    }
    values.update(fields)
    return RawRecord(source_file="anomalies.csv", **values)


@pytest.fixture
def loaded_store(store, dirty_csv_text):
    BronzeIngestor(store).ingest_csv_text(dirty_csv_text, "anomalies.csv")
    return store


class TestCleanse:
    """Tests for BronzeToSilverCleanser.cleanse"""

    def test_valid_record(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw())

        assert clean.equipment_code == "EQ-001"
        assert clean.detection_date == datetime(2024, 1, 15)
        assert (clean.reliability, clean.availability, clean.process_safety) == (2, 2, 3)
        assert clean.criticality == "Moyenne"
        assert clean.normalized_fields == ["criticality"]
        assert clean.validation_errors is None
        assert clean.data_quality_score == 100

    @pytest.mark.parametrize(
        "field",
        ["equipment_code", "description", "detection_date", "equipment_description", "owning_section"],
    )
    def test_missing_required_field_rejects(self, store, field):
        assert BronzeToSilverCleanser(store).cleanse(make_raw(**{field: None})) is None

    def test_literal_null_rejects(self, store):
        assert BronzeToSilverCleanser(store).cleanse(make_raw(owning_section="NULL")) is None

    def test_unparseable_date_rejects(self, store):
        assert BronzeToSilverCleanser(store).cleanse(make_raw(detection_date="31/02/2024")) is None

    def test_day_first_date(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(detection_date="03/04/2024"))
        assert clean.detection_date == datetime(2024, 4, 3)

    def test_invalid_factor_is_recorded_not_rejected(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(process_safety="abc"))

        assert clean is not None
        assert clean.process_safety is None
        assert clean.validation_errors == ["Invalid process_safety: abc"]

    def test_factor_is_clamped(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(reliability="250", availability="-3"))
        assert clean.reliability == 100
        assert clean.availability == 0

    def test_missing_factors_stay_missing(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(reliability=None, availability=""))
        assert clean.missing_factors == ["reliability", "availability"]

    def test_values_are_trimmed(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(equipment_code="  EQ-001 "))
        assert clean.equipment_code == "EQ-001"

    def test_unknown_criticality_kept(self, store):
        clean = BronzeToSilverCleanser(store).cleanse(make_raw(criticality="Urgent"))
        assert clean.criticality == "Urgent"
        assert clean.normalized_fields is None

    def test_positional_fallback(self, store):
        """Test that unmapped fields are recovered from the raw row"""
        original = ["EQ-042", "Vanne", "Vanne bloquée", "2024-03-01", "Vanne V-3", "Production", "1", "1", "2", "Basse"]
        raw = RawRecord(
            source_file="anomalies.csv",
            description="Vanne bloquée",
            raw_data={"original_values": original, "mapping": {"description": 2}},
        )

        clean = BronzeToSilverCleanser(store).cleanse(raw)

        assert clean.equipment_code == "EQ-042"
        assert clean.owning_section == "Production"
        assert clean.process_safety == 2
        assert clean.bronze_source_id == raw.id


class TestRun:
    """Tests for BronzeToSilverCleanser.run"""

    def test_dirty_export(self, loaded_store):
        result = BronzeToSilverCleanser(loaded_store).run()

        assert result.success is True
        assert result.records_processed == 6
        assert result.records_succeeded == 4
        assert result.records_failed == 2
        assert result.metadata == {"duplicates_skipped": 1}
        assert len(result.errors) == 2
        assert loaded_store.count_clean_records() == 3

    def test_silver_rows(self, loaded_store):
        BronzeToSilverCleanser(loaded_store).run()

        by_code = {r.equipment_code: r for r in loaded_store.clean.values()}
        assert set(by_code) == {"EQ-001", "EQ-002", "EQ-005"}
        assert by_code["EQ-001"].criticality == "Critique"
        assert by_code["EQ-001"].description == "Vibration excessive, palier principal"
        assert by_code["EQ-002"].detection_date == datetime(2024, 1, 15)
        assert by_code["EQ-002"].validation_errors == ["Invalid process_safety: abc"]
        assert by_code["EQ-005"].detection_date == datetime(2024, 3, 1)
        assert by_code["EQ-005"].missing_factors == ["reliability", "availability", "process_safety"]
        assert by_code["EQ-005"].data_quality_score == 68

    def test_rejected_rows_stay_unprocessed(self, loaded_store):
        """Test that rejected rows are retried by the next run"""
        BronzeToSilverCleanser(loaded_store).run()

        pending = loaded_store.list_unprocessed_raw_records()
        assert {r.equipment_code for r in pending} == {"EQ-003", "EQ-004"}

        second = BronzeToSilverCleanser(loaded_store).run()
        assert second.records_processed == 2
        assert second.records_succeeded == 0
        assert second.records_failed == 2
        assert second.success is True

    def test_duplicates_are_marked_processed(self, loaded_store):
        BronzeToSilverCleanser(loaded_store).run()

        duplicates = [r for r in loaded_store.raw.values() if r.equipment_code == "EQ-001"]
        assert len(duplicates) == 2
        assert all(r.processed and r.processed_at is not None for r in duplicates)

    def test_rerun_is_idempotent(self, loaded_store, dirty_csv_text):
        """Test that importing the same export twice adds no Silver rows"""
        BronzeToSilverCleanser(loaded_store).run()
        BronzeIngestor(loaded_store).ingest_csv_text(dirty_csv_text, "anomalies.csv")

        result = BronzeToSilverCleanser(loaded_store).run()

        assert loaded_store.count_clean_records() == 3
        assert result.metadata["duplicates_skipped"] == 4

    def test_processing_log(self, loaded_store):
        result = BronzeToSilverCleanser(loaded_store).run()

        run = loaded_store.get_processing_log(result.processing_log_id)
        assert run.job_name == "bronze_to_silver_anomalies"
        assert run.source_layer == "bronze"
        assert run.target_layer == "silver"
        assert run.status == RunStatus.COMPLETED_WITH_ERRORS
        assert run.records_succeeded == 4
        assert run.metadata["duplicates_skipped"] == 1
        assert len(run.metadata["duplicate_ids"]) == 1

    def test_clean_export_completes(self, store, make_csv):
        text = make_csv("EQ-1,Pompe,Fuite,2024-01-15,Pompe P-1,Production,1,2,3,Basse,Ouvert")
        BronzeIngestor(store).ingest_csv_text(text, "anomalies.csv")

        result = BronzeToSilverCleanser(store).run()

        assert store.get_processing_log(result.processing_log_id).status == RunStatus.COMPLETED

    def test_empty_bronze(self, store):
        result = BronzeToSilverCleanser(store).run()

        assert result.success is True
        assert result.records_processed == 0

    def test_record_error_is_isolated(self, loaded_store, monkeypatch):
        """Test that a store error on one record does not stop the run"""
        original_insert = loaded_store.insert_clean_record

        def failing_insert(record):
            if record.equipment_code == "EQ-002":
                raise RuntimeError("disk full")
            return original_insert(record)

        monkeypatch.setattr(loaded_store, "insert_clean_record", failing_insert)

        result = BronzeToSilverCleanser(loaded_store).run()

        assert result.records_failed == 3
        assert any("disk full" in error for error in result.errors)
        failed = next(r for r in loaded_store.raw.values() if r.equipment_code == "EQ-002")
        assert failed.processed is False

    def test_stage_failure_marks_run_failed(self, store, monkeypatch):
        def broken():
            raise RuntimeError("connection lost")

        monkeypatch.setattr(store, "list_unprocessed_raw_records", broken)

        with pytest.raises(RuntimeError, match="connection lost"):
            BronzeToSilverCleanser(store).run()

        run = next(iter(store.logs.values()))
        assert run.status == RunStatus.FAILED
        assert run.error_message == "connection lost"
