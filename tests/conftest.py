"""
Pytest configuration and fixtures for medallion-etl tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import json
import os
from collections.abc import Callable
from datetime import datetime
from typing import Generator

import httpx
import psycopg
import pytest
from testcontainers.postgres import PostgresContainer

from medallion_etl.config import PipelineSettings
from medallion_etl.core.models import (
    CleanRecord,
    DedupKey,
    Equipment,
    GoldRecord,
    PipelineRun,
    RawRecord,
)
from medallion_etl.core.rules import PlaceholderPolicy
from medallion_etl.enrichment import PredictionClient
from medallion_etl.warehouse import AnomalyStore, DatabaseConnectionPool, PostgresAnomalyStore

PREDICTION_URL = "http://prediction.test/predict"
DEFAULT_SITE_ID = "00000000-0000-4000-8000-000000000001"

HEADER = (
    "Num_equipement,Systeme,Description,Date de détéction de l'anomalie,"
    "Description de l'équipement,Section propriétaire,Fiabilité Intégrité,"
    "Disponibilté,Process Safety,Criticité,Statut"
)


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# IN-MEMORY STORE
# =======================

class InMemoryAnomalyStore(AnomalyStore):
    """
    AnomalyStore test double keeping every layer in dictionaries.

    Enforces the same natural-key uniqueness as the PostgreSQL schema.
    """

    def __init__(self, with_default_site: bool = True):
        self.raw: dict[str, RawRecord] = {}
        self.clean: dict[str, CleanRecord] = {}
        self.gold: dict[str, GoldRecord] = {}
        self.equipment: dict[str, Equipment] = {}
        self.logs: dict[str, PipelineRun] = {}
        self.sites: list[str] = [DEFAULT_SITE_ID] if with_default_site else []
        self.fail_raw_insert_when: Callable[[RawRecord], bool] | None = None
        self.fail_gold_insert_when: Callable[[GoldRecord], bool] | None = None

    def insert_raw_record(self, record):
        if self.fail_raw_insert_when and self.fail_raw_insert_when(record):
            raise RuntimeError("simulated bronze insert failure")
        self.raw[record.id] = record.model_copy(deep=True)
        return record

    def list_unprocessed_raw_records(self):
        return [r.model_copy(deep=True) for r in self.raw.values() if not r.processed]

    def mark_raw_processed(self, record_id, processed_at=None):
        record = self.raw[record_id]
        record.processed = True
        record.processed_at = processed_at or datetime.utcnow()

    def find_clean_record_by_key(self, key: DedupKey):
        for record in self.clean.values():
            if record.dedup_key == key:
                return record
        return None

    def insert_clean_record(self, record):
        if self.find_clean_record_by_key(record.dedup_key) is not None:
            return None
        self.clean[record.id] = record
        return record

    def count_clean_records(self):
        return len(self.clean)

    def list_clean_records(self, offset, limit):
        ordered = list(self.clean.values())
        return ordered[offset:offset + limit]

    def find_gold_record_by_equipment(self, equipment_identifier):
        for record in self.gold.values():
            if record.equipment_identifier == equipment_identifier:
                return record
        return None

    def insert_gold_record(self, record):
        if self.fail_gold_insert_when and self.fail_gold_insert_when(record):
            raise RuntimeError("simulated gold insert failure")
        if self.find_gold_record_by_equipment(record.equipment_identifier) is not None:
            return None
        if any(g.code == record.code for g in self.gold.values()):
            raise ValueError(f"duplicate code {record.code}")
        self.gold[record.id] = record
        return record

    def max_code_sequence(self, prefix):
        numbers = [
            int(g.code.rsplit("-", 1)[1])
            for g in self.gold.values()
            if g.code.startswith(prefix)
        ]
        return max(numbers, default=0)

    def find_equipment_by_code(self, code):
        return self.equipment.get(code)

    def find_default_site_id(self):
        return self.sites[0] if self.sites else None

    def get_or_create_equipment(self, equipment):
        return self.equipment.setdefault(equipment.code, equipment)

    def create_processing_log(self, run):
        self.logs[run.id] = run.model_copy(deep=True)
        return run

    def update_processing_log(self, run):
        self.logs[run.id] = run.model_copy(deep=True)

    def get_processing_log(self, run_id):
        return self.logs.get(run_id)

    def list_processing_logs(self, limit=20, job_name=None):
        runs = [r for r in self.logs.values() if job_name is None or r.job_name == job_name]
        runs.sort(key=lambda r: r.start_time, reverse=True)
        return runs[:limit]


@pytest.fixture
def store() -> InMemoryAnomalyStore:
    return InMemoryAnomalyStore()


@pytest.fixture
def store_without_site() -> InMemoryAnomalyStore:
    return InMemoryAnomalyStore(with_default_site=False)


@pytest.fixture
def settings() -> PipelineSettings:
    """Default settings without the inter-page delay"""
    return PipelineSettings.model_validate({"batching": {"page_delay_seconds": 0}})


@pytest.fixture
def policy() -> PlaceholderPolicy:
    return PlaceholderPolicy(seed=1234)


# =======================
# PREDICTION SERVICE FIXTURES
# =======================

def prediction_payload(requests: list[dict], scores: tuple[float, float, float] = (3, 3, 3)) -> dict:
    """Build a well-formed service response scoring every request identically"""
    availability, reliability, process_safety = scores
    return {
        "status": "completed",
        "batch_info": {
            "total_anomalies": len(requests),
            "successful_predictions": len(requests),
            "failed_predictions": 0,
            "processing_time_seconds": 0.01,
            "average_time_per_anomaly": 0.01,
        },
        "results": [
            {
                "anomaly_id": item["anomaly_id"],
                "equipment_id": item["equipment_id"],
                "equipment_name": item["equipment_name"],
                "status": "success",
                "overall_score": 0.9,
                "predictions": {
                    "availability": {"score": availability, "description": "uptime"},
                    "reliability": {"score": reliability, "description": "integrity"},
                    "process_safety": {"score": process_safety, "description": "safety"},
                },
                "risk_assessment": {
                    "overall_risk_level": "HIGH",
                    "recommended_action": "Inspect within 24h",
                    "critical_factors": ["Low Availability"],
                    "weakest_aspect": "availability",
                },
                "maintenance_recommendations": ["Replace bearing"],
            }
            for item in requests
        ],
    }


class RecordingPredictionService:
    """MockTransport handler that records request bodies"""

    def __init__(self, scores=(3, 3, 3), status_code=200):
        self.scores = scores
        self.status_code = status_code
        self.calls: list[list[dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"detail": "boom"})
        return httpx.Response(200, json=prediction_payload(body, self.scores))


@pytest.fixture
def prediction_service() -> RecordingPredictionService:
    return RecordingPredictionService()


@pytest.fixture
def prediction_client(prediction_service) -> Generator[PredictionClient, None, None]:
    client = PredictionClient(PREDICTION_URL, transport=httpx.MockTransport(prediction_service))
    yield client
    client.close()


@pytest.fixture
def make_prediction_client():
    """Factory for clients backed by a recording service with given scores"""
    clients: list[PredictionClient] = []

    def factory(scores=(3, 3, 3), status_code=200):
        service = RecordingPredictionService(scores=scores, status_code=status_code)
        client = PredictionClient(PREDICTION_URL, transport=httpx.MockTransport(service))
        clients.append(client)
        return client, service

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def unreachable_prediction_client() -> Generator[PredictionClient, None, None]:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    client = PredictionClient(PREDICTION_URL, transport=httpx.MockTransport(refuse))
    yield client
    client.close()


# =======================
# SAMPLE DATA FIXTURES
# =======================

def csv_text(*rows: str, header: str = HEADER) -> str:
    return "\n".join([header, *rows]) + "\n"


@pytest.fixture
def export_header() -> str:
    """Header line of the standard anomaly export"""
    return HEADER


@pytest.fixture
def make_csv() -> Callable[..., str]:
    """Builds an export payload from data lines under the standard header"""
    return csv_text


@pytest.fixture
def dirty_csv_text() -> str:
    """Export with accents, quoting, duplicates, bad factors and rejected rows"""
    return csv_text(
        'EQ-001,Turbine,"Vibration excessive, palier principal",2024-01-15 10:30:00,'
        'Turbine à vapeur principale,Production,3,3,3,Haute,Ouvert',
        'EQ-002,Pompe,Fuite hydraulique,15/01/2024,Pompe de circulation,Maintenance,1,2,abc,low,Ouvert',
        # Same natural key as the first row
        'EQ-001,Turbine,"Vibration excessive, palier principal",2024-01-15 10:30:00,'
        'Turbine à vapeur principale,Production,3,3,3,Haute,Ouvert',
        # Missing equipment description
        'EQ-003,Moteur,Surchauffe moteur,2024-02-01,,Electricité,2,2,2,Moyenne,Ouvert',
        # Unparseable date
        'EQ-004,Capteur,Mesure incohérente,pas une date,Capteur de pression,Instrumentation,1,1,1,Basse,Ouvert',
        'EQ-005,Vanne,Vanne bloquée,01-03-2024,Vanne de régulation,Production,,,,null,Ouvert',
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with initialized database
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_medallion",
        driver=None,
    ) as postgres:
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, "r", encoding="utf-8") as f:
            init_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield postgres


@pytest.fixture(scope="session")
def pg_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_medallion",
        user="test_pipeline",
        password="test_password",
    )
    pool.open()
    yield pool
    pool.close()


@pytest.fixture(scope="function")
def clean_db(pg_pool) -> DatabaseConnectionPool:
    """
    Provide a clean database by truncating all pipeline tables before each test

    The default site row is kept.
    """
    pg_pool.execute_command(
        "TRUNCATE TABLE anomaly, equipment, silver_anomalies_clean, "
        "bronze_anomalies_raw, data_processing_log CASCADE"
    )
    return pg_pool


@pytest.fixture(scope="function")
def pg_store(clean_db) -> PostgresAnomalyStore:
    return PostgresAnomalyStore(clean_db)


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_env_vars():
    """
    Set test environment variables

    This fixture loads config/test.env and sets environment variables
    """
    from dotenv import load_dotenv

    env_path = os.path.join(
        os.path.dirname(os.path.dirname(__file__)),
        "config",
        "test.env"
    )

    if os.path.exists(env_path):
        load_dotenv(env_path, override=True)
