"""
Silver->Gold transformer.

Silver records are read in fixed-size pages. For each page, records not
yet promoted and missing a severity factor are sent to the prediction
service in one call; then every record is turned into a Gold anomaly
unless its equipment identifier is already promoted.

Factor resolution per record: Silver value, else the prediction's
rounded score, else a random placeholder in [1, 3].
"""

import time
from collections.abc import Callable, Sequence
from datetime import datetime

from medallion_etl.config import PipelineSettings
from medallion_etl.core.models import (
    BatchPredictionResponse,
    CleanRecord,
    Equipment,
    GoldRecord,
    PredictionRequest,
    PredictionResult,
    StageResult,
)
from medallion_etl.core.rules import (
    PlaceholderPolicy,
    categorize,
    classify,
    confidence,
    due_date,
    factor_explanations,
    generate_title,
    impacts,
)
from medallion_etl.enrichment import PredictionClient, round_half_up
from medallion_etl.observability.logger import get_logger, log_operation
from medallion_etl.observability.metrics import (
    record_stage_result,
    stage_duration_seconds,
    track_duration,
)
from medallion_etl.warehouse import MAX_SAMPLE_ERRORS, AnomalyStore, ProcessingRunTracker

logger = get_logger(__name__)

JOB_NAME = "silver_to_gold_anomalies"
STAGE = "silver_to_gold"
CODE_PREFIX = "ABO"
EQUIPMENT_NAME_LENGTH = 100

FACTOR_FIELDS = ("reliability", "availability", "process_safety")


def build_prediction_batch(records: Sequence[CleanRecord]) -> list[PredictionRequest]:
    """Prediction requests keyed by Silver record id."""
    return [
        PredictionRequest(
            anomaly_id=record.id,
            description=record.description,
            equipment_name=record.equipment_description,
            equipment_id=record.equipment_code,
        )
        for record in records
    ]


class SilverToGoldTransformer:
    """
    Promotes Silver records to Gold anomalies, once per equipment identifier.
    """

    def __init__(
        self,
        store: AnomalyStore,
        prediction_client: PredictionClient | None = None,
        settings: PipelineSettings | None = None,
        policy: PlaceholderPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize transformer.

        Args:
            store: Anomaly store
            prediction_client: Prediction service client; None disables enrichment
            settings: Pipeline settings (batching, criticality bands)
            policy: Placeholder source (defaults to one seeded from settings)
            sleep: Delay function used between pages
            clock: Current time, used for the code year
        """
        self.store = store
        self.prediction_client = prediction_client
        self.settings = settings or PipelineSettings()
        self.policy = policy or PlaceholderPolicy(seed=self.settings.placeholders.seed)
        self.sleep = sleep
        self.clock = clock
        self.tracker = ProcessingRunTracker(store)

    def run(self, uploaded_by: str | None = None) -> StageResult:
        """
        Promote every Silver record not yet in Gold.

        Args:
            uploaded_by: User id recorded as reporter of new anomalies

        Returns:
            StageResult; success is True when no record failed

        Raises:
            Exception: Stage-level failures, after the run is marked FAILED
        """
        run = self.tracker.start(JOB_NAME, source_layer="silver", target_layer="gold")
        page_size = self.settings.batching.page_size

        succeeded = 0
        failed = 0
        existing_skipped = 0
        predictions_requested = 0
        predictions_received = 0
        errors: list[str] = []

        try:
            with log_operation(JOB_NAME, logger=logger, run_id=run.id), track_duration(stage_duration_seconds, stage=STAGE):
                total = self.store.count_clean_records()
                logger.info(f"Found {total} silver records to process to gold")

                offset = 0
                while offset < total:
                    page = self.store.list_clean_records(offset, page_size)
                    if not page:
                        break
                    logger.info(
                        f"Processing page {offset // page_size + 1}: "
                        f"records {offset + 1} to {offset + len(page)}"
                    )

                    promoted = {
                        record.id
                        for record in page
                        if self.store.find_gold_record_by_equipment(record.equipment_code) is not None
                    }
                    to_predict = [
                        record for record in page
                        if record.id not in promoted and record.missing_factors
                    ]
                    response = self._request_predictions(to_predict)
                    predictions = response.by_anomaly_id()
                    predictions_requested += len(to_predict)
                    predictions_received += len(predictions)

                    for record in page:
                        if record.id in promoted:
                            existing_skipped += 1
                            logger.info(
                                f"Anomaly with equipment identifier {record.equipment_code} "
                                "already exists, skipping"
                            )
                            continue
                        try:
                            gold = self.transform(record, predictions.get(record.id), uploaded_by)
                            if self.store.insert_gold_record(gold) is None:
                                existing_skipped += 1
                                logger.info(
                                    f"Anomaly with equipment identifier {record.equipment_code} "
                                    "already exists, skipping"
                                )
                                continue
                            succeeded += 1
                            logger.info(f"Successfully processed anomaly {record.id} -> {gold.code}")
                        except Exception as e:
                            failed += 1
                            errors.append(f"{record.id}: {e}")
                            logger.error(f"Failed to process record {record.id}: {e}", exc_info=True)

                    offset += page_size
                    self.tracker.progress(run, min(offset, total), succeeded, failed)

                    if offset < total and self.settings.batching.page_delay_seconds > 0:
                        self.sleep(self.settings.batching.page_delay_seconds)

            metadata = {
                "existing_skipped": existing_skipped,
                "predictions_requested": predictions_requested,
                "predictions_received": predictions_received,
            }
            run = self.tracker.complete(
                run,
                processed=total,
                succeeded=succeeded,
                failed=failed,
                metadata=metadata,
            )
        except Exception as e:
            self.tracker.fail(run, e)
            record_stage_result(STAGE, run.status.value, succeeded=succeeded, failed=failed)
            raise

        record_stage_result(
            STAGE,
            run.status.value,
            succeeded=succeeded,
            failed=failed,
            skipped=existing_skipped,
        )
        logger.info(f"Completed {JOB_NAME}: {succeeded} succeeded, {failed} failed")

        return StageResult(
            success=failed == 0,
            records_processed=total,
            records_succeeded=succeeded,
            records_failed=failed,
            metadata=metadata,
            errors=errors[:MAX_SAMPLE_ERRORS],
            processing_log_id=run.id,
        )

    def _request_predictions(self, records: Sequence[CleanRecord]) -> BatchPredictionResponse:
        if not records or self.prediction_client is None:
            return BatchPredictionResponse.skipped()
        response = self.prediction_client.predict(build_prediction_batch(records))
        logger.info(f"Received {len(response.results)} predictions for page ({response.status})")
        return response

    def transform(
        self,
        record: CleanRecord,
        prediction: PredictionResult | None = None,
        uploaded_by: str | None = None,
    ) -> GoldRecord:
        """
        Build the Gold anomaly for a Silver record.

        Args:
            record: Silver record
            prediction: Successful prediction for this record, if any
            uploaded_by: Reporter user id (defaults to reporting.default_reporter)

        Returns:
            GoldRecord with a freshly generated code
        """
        factors, used_prediction = self._resolve_factors(record, prediction)
        reliability = factors["reliability"]
        availability = factors["availability"]
        process_safety = factors["process_safety"]

        total = reliability + availability + process_safety
        band = classify(total, self.settings.criticality.bands)
        sla = band.sla_hours
        impact = impacts(process_safety, availability, band.severity)

        ai_factors = factor_explanations(reliability, availability, process_safety)
        ai_suggested_severity = band.severity.value
        ai_recommendations: list[str] = []
        if used_prediction:
            ai_factors.extend(prediction.risk_assessment.critical_factors)
            ai_suggested_severity = prediction.risk_assessment.overall_risk_level or ai_suggested_severity
            ai_recommendations = list(prediction.maintenance_recommendations)

        return GoldRecord(
            code=self.generate_code(),
            title=generate_title(record.description),
            description=record.description,
            equipment_id=self.resolve_equipment(record),
            equipment_identifier=record.equipment_code,
            system=record.system,
            category=categorize(record.system, record.description),
            reliability=reliability,
            availability=availability,
            process_safety=process_safety,
            criticality=band.label,
            severity=band.severity,
            priority=band.priority,
            sla_hours=sla,
            reported_at=record.detection_date,
            due_date=due_date(record.detection_date, sla),
            reported_by=uploaded_by or self.settings.reporting.default_reporter,
            safety_impact=impact.safety,
            environmental_impact=impact.environmental,
            production_impact=impact.production,
            estimated_cost=self.policy.estimated_cost(band.severity),
            downtime_hours=self.policy.downtime_hours(band.severity),
            duration_to_resolve=self.policy.duration_to_resolve(band.severity),
            ai_suggested_severity=ai_suggested_severity,
            ai_factors=ai_factors,
            ai_confidence=confidence(total),
            ai_recommendations=ai_recommendations,
            silver_source_id=record.id,
        )

    def _resolve_factors(
        self, record: CleanRecord, prediction: PredictionResult | None
    ) -> tuple[dict[str, int], bool]:
        factors: dict[str, int] = {}
        used_prediction = False
        for name in FACTOR_FIELDS:
            value = getattr(record, name)
            if not value and prediction is not None:
                value = round_half_up(getattr(prediction.predictions, name).score)
                used_prediction = True
            if not value:
                value = self.policy.fallback_factor()
            factors[name] = value
        return factors, used_prediction

    def generate_code(self) -> str:
        """Next ABO-<year>-NNN code after the largest existing suffix of the current year."""
        prefix = f"{CODE_PREFIX}-{self.clock().year}-"
        next_number = self.store.max_code_sequence(prefix) + 1
        return f"{prefix}{next_number:03d}"

    def resolve_equipment(self, record: CleanRecord) -> str | None:
        """
        Equipment id for a record's equipment code, creating the equipment if needed.

        Returns None (and logs) when no site exists or the lookup fails, so a
        missing equipment reference never blocks promotion.
        """
        try:
            equipment = self.store.find_equipment_by_code(record.equipment_code)
            if equipment is not None:
                return equipment.id

            site_id = self.store.find_default_site_id()
            if site_id is None:
                logger.warning(f"No default site found for equipment creation: {record.equipment_code}")
                return None

            equipment = self.store.get_or_create_equipment(
                Equipment(
                    code=record.equipment_code,
                    name=record.equipment_description[:EQUIPMENT_NAME_LENGTH],
                    description=record.equipment_description,
                    type=categorize(record.system, record.equipment_description),
                    site_id=site_id,
                )
            )
            logger.info(f"Created new equipment record: {record.equipment_code}")
            return equipment.id
        except Exception as e:
            logger.error(f"Failed to find/create equipment {record.equipment_code}: {e}", exc_info=True)
            return None
