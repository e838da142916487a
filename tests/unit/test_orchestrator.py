"""
Unit tests for MedallionPipeline orchestration
"""
from datetime import datetime

import pytest

from medallion_etl.config import PipelineSettings
from medallion_etl.core.models import RunStatus
from medallion_etl.exceptions import IngestError
from medallion_etl.pipeline import MedallionPipeline


@pytest.fixture
def pipeline(store, settings, policy, make_prediction_client):
    client, _ = make_prediction_client(scores=(2, 2, 2))
    return MedallionPipeline(
        store,
        settings=settings,
        prediction_client=client,
        policy=policy,
        clock=lambda: datetime(2024, 6, 1),
    )


class TestMedallionPipeline:
    """Tests for MedallionPipeline"""

    def test_complete_pipeline(self, pipeline, store, dirty_csv_text):
        pipeline.ingest_csv(dirty_csv_text, "anomalies.csv")

        result = pipeline.run_complete_pipeline(uploaded_by="user-7")

        assert result.success is True
        assert result.bronze_to_silver.records_succeeded == 4
        assert result.bronze_to_silver.metadata["duplicates_skipped"] == 1
        assert result.silver_to_gold.records_succeeded == 3
        assert result.silver_to_gold.metadata["predictions_requested"] == 2
        assert {g.equipment_identifier for g in store.gold.values()} == {"EQ-001", "EQ-002", "EQ-005"}

    def test_predictions_fill_gaps(self, pipeline, store, dirty_csv_text):
        pipeline.ingest_csv(dirty_csv_text, "anomalies.csv")
        pipeline.run_complete_pipeline()

        gold = store.find_gold_record_by_equipment("EQ-005")
        assert (gold.reliability, gold.availability, gold.process_safety) == (2, 2, 2)
        assert gold.criticality == "Basse"

        partial = store.find_gold_record_by_equipment("EQ-002")
        assert (partial.reliability, partial.availability, partial.process_safety) == (1, 2, 2)

    def test_success_is_conjunction_of_stages(self, pipeline, store, dirty_csv_text):
        pipeline.ingest_csv(dirty_csv_text, "anomalies.csv")
        store.fail_gold_insert_when = lambda gold: gold.equipment_identifier == "EQ-005"

        result = pipeline.run_complete_pipeline()

        assert result.bronze_to_silver.success is True
        assert result.silver_to_gold.success is False
        assert result.success is False

    def test_stage_exception_propagates(self, pipeline, store, monkeypatch):
        def broken():
            raise RuntimeError("store offline")

        monkeypatch.setattr(store, "list_unprocessed_raw_records", broken)

        with pytest.raises(RuntimeError, match="store offline"):
            pipeline.run_complete_pipeline()

        # Silver->Gold never started
        assert [r.job_name for r in store.logs.values()] == ["bronze_to_silver_anomalies"]

    def test_import_and_process(self, pipeline, store, tmp_path, dirty_csv_text):
        path = tmp_path / "anomalies.csv"
        path.write_text(dirty_csv_text, encoding="utf-8")

        import_result, pipeline_result = pipeline.import_and_process(path, uploaded_by="user-7")

        assert import_result.success_count == 6
        assert pipeline_result.success is True
        assert len(store.gold) == 3
        assert all(g.reported_by == "user-7" for g in store.gold.values())

    def test_import_and_process_nothing_imported(self, pipeline, store, tmp_path, dirty_csv_text):
        path = tmp_path / "anomalies.csv"
        path.write_text(dirty_csv_text, encoding="utf-8")
        store.fail_raw_insert_when = lambda record: True

        import_result, pipeline_result = pipeline.import_and_process(path)

        assert import_result.success_count == 0
        assert pipeline_result is None
        assert [r.job_name for r in store.logs.values()] == ["csv_import_to_bronze"]

    def test_import_and_process_empty_file(self, pipeline, tmp_path, export_header):
        path = tmp_path / "empty.csv"
        path.write_text(export_header + "\n", encoding="utf-8")

        with pytest.raises(IngestError):
            pipeline.import_and_process(path)

    def test_ingest_rows(self, pipeline, store):
        result = pipeline.ingest_rows([{"Num_equipement": "EQ-9", "Description": "Fuite"}], "upload.xlsx")

        assert result.success_count == 1
        assert len(store.raw) == 1

    def test_list_processing_logs(self, pipeline, dirty_csv_text):
        pipeline.ingest_csv(dirty_csv_text, "anomalies.csv")
        pipeline.run_complete_pipeline()

        runs = pipeline.list_processing_logs()
        assert {r.job_name for r in runs} == {
            "csv_import_to_bronze",
            "bronze_to_silver_anomalies",
            "silver_to_gold_anomalies",
        }
        assert all(r.status in (RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_ERRORS) for r in runs)

        gold_runs = pipeline.list_processing_logs(job_name="silver_to_gold_anomalies")
        assert len(gold_runs) == 1

    def test_default_prediction_client_from_settings(self, store):
        settings = PipelineSettings.model_validate({"prediction": {"api_url": "http://scorer:9000/predict"}})

        pipeline = MedallionPipeline(store, settings=settings)
        try:
            assert pipeline.prediction_client.api_url == "http://scorer:9000/predict"
            assert pipeline.transformer.prediction_client is pipeline.prediction_client
        finally:
            pipeline.close()

    def test_close(self, pipeline):
        pipeline.close()
        assert pipeline.prediction_client._client.is_closed
