"""
Medallion pipeline orchestration.

Coordinates the flow: ingest -> Bronze->Silver -> Silver->Gold
"""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from medallion_etl.config import PipelineSettings
from medallion_etl.core.models import ImportResult, PipelineResult, PipelineRun, StageResult
from medallion_etl.core.rules import PlaceholderPolicy
from medallion_etl.enrichment import PredictionClient
from medallion_etl.ingest import BronzeIngestor
from medallion_etl.observability.logger import get_logger
from medallion_etl.warehouse import AnomalyStore

from .bronze_to_silver import BronzeToSilverCleanser
from .silver_to_gold import SilverToGoldTransformer

logger = get_logger(__name__)


class MedallionPipeline:
    """
    Runs the medallion stages against one store.

    Stages run strictly in order. A stage that raises stops the pipeline;
    a stage that merely reports failed records does not.

    Example:
        >>> pipeline = MedallionPipeline(store, settings=load_settings())
        >>> result = pipeline.import_and_process("anomalies.csv")
    """

    def __init__(
        self,
        store: AnomalyStore,
        settings: PipelineSettings | None = None,
        prediction_client: PredictionClient | None = None,
        policy: PlaceholderPolicy | None = None,
        **transformer_options: Any,
    ):
        """
        Initialize pipeline.

        Args:
            store: Anomaly store shared by every stage
            settings: Pipeline settings
            prediction_client: Prediction client (built from settings if omitted)
            policy: Placeholder source (seeded from settings if omitted)
            **transformer_options: Extra SilverToGoldTransformer arguments (sleep, clock)
        """
        self.store = store
        self.settings = settings or PipelineSettings()
        self.prediction_client = prediction_client or PredictionClient(
            api_url=self.settings.prediction.api_url,
            timeout=self.settings.prediction.timeout_seconds,
        )
        self.policy = policy or PlaceholderPolicy(seed=self.settings.placeholders.seed)

        self.ingestor = BronzeIngestor(store)
        self.cleanser = BronzeToSilverCleanser(store, self.settings)
        self.transformer = SilverToGoldTransformer(
            store,
            prediction_client=self.prediction_client,
            settings=self.settings,
            policy=self.policy,
            **transformer_options,
        )

    def ingest_csv(self, text: str, source_file: str) -> ImportResult:
        return self.ingestor.ingest_csv_text(text, source_file)

    def ingest_rows(self, rows: Sequence[Mapping[str, Any]], source_file: str) -> ImportResult:
        return self.ingestor.ingest_rows(rows, source_file)

    def ingest_file(self, file_path: str | Path, source_label: str | None = None) -> ImportResult:
        return self.ingestor.ingest_file(file_path, source_label)

    def run_bronze_to_silver(self) -> StageResult:
        return self.cleanser.run()

    def run_silver_to_gold(self, uploaded_by: str | None = None) -> StageResult:
        return self.transformer.run(uploaded_by)

    def run_complete_pipeline(self, uploaded_by: str | None = None) -> PipelineResult:
        """
        Run Bronze->Silver then Silver->Gold.

        Returns:
            PipelineResult; success is the AND of both stage results
        """
        logger.info("Starting complete medallion pipeline")
        try:
            bronze_to_silver = self.run_bronze_to_silver()
            silver_to_gold = self.run_silver_to_gold(uploaded_by)
        except Exception as e:
            logger.error(f"Complete pipeline failed: {e}", exc_info=True)
            raise

        result = PipelineResult(
            success=bronze_to_silver.success and silver_to_gold.success,
            bronze_to_silver=bronze_to_silver,
            silver_to_gold=silver_to_gold,
        )
        logger.info(f"Complete medallion pipeline finished: success={result.success}")
        return result

    def import_and_process(
        self,
        file_path: str | Path,
        source_label: str | None = None,
        uploaded_by: str | None = None,
    ) -> tuple[ImportResult, PipelineResult | None]:
        """
        Ingest a file then run the complete pipeline.

        The pipeline is skipped (None) when the import stored no row.
        """
        import_result = self.ingest_file(file_path, source_label)
        if import_result.success_count == 0:
            logger.warning(f"No rows imported from {file_path}, skipping pipeline")
            return import_result, None
        return import_result, self.run_complete_pipeline(uploaded_by)

    def list_processing_logs(self, limit: int = 20, job_name: str | None = None) -> list[PipelineRun]:
        return self.store.list_processing_logs(limit=limit, job_name=job_name)

    def close(self) -> None:
        self.prediction_client.close()
