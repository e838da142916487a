"""
Bronze->Silver cleanser.

For every unprocessed Bronze row:
1. Resolve field values (column mapping, then positional fallback)
2. Reject rows missing a required field or with an unparseable date
3. Parse severity factors, normalize criticality, score data quality
4. Skip rows whose natural key already exists in Silver (duplicate success)
5. Insert the CleanRecord and mark the Bronze row processed

Rejected and errored rows stay unprocessed, so a later run re-evaluates them.
"""

from datetime import datetime

from medallion_etl.config import PipelineSettings
from medallion_etl.core.models import CleanRecord, RawRecord, StageResult
from medallion_etl.core.rules import REQUIRED_FIELDS, data_quality_score, normalize_criticality
from medallion_etl.core.validators import (
    DateValidator,
    FactorValidator,
    RequiredFieldValidator,
    ValidationError,
)
from medallion_etl.ingest.column_mapper import resolve_fields
from medallion_etl.observability.logger import get_logger, log_operation
from medallion_etl.observability.metrics import (
    data_quality_score as data_quality_histogram,
    observe_histogram,
    record_stage_result,
    record_validation_failure,
    stage_duration_seconds,
    track_duration,
)
from medallion_etl.warehouse import MAX_SAMPLE_ERRORS, AnomalyStore, ProcessingRunTracker

logger = get_logger(__name__)

JOB_NAME = "bronze_to_silver_anomalies"
STAGE = "bronze_to_silver"

FACTOR_FIELDS = ("reliability", "availability", "process_safety")


class BronzeToSilverCleanser:
    """
    Cleanses Bronze rows into deduplicated Silver records.
    """

    def __init__(self, store: AnomalyStore, settings: PipelineSettings | None = None):
        """
        Initialize cleanser.

        Args:
            store: Anomaly store
            settings: Pipeline settings (positional fallback configuration)
        """
        self.store = store
        self.settings = settings or PipelineSettings()
        self.tracker = ProcessingRunTracker(store)

        self.required_validators = {
            name: RequiredFieldValidator(name) for name in REQUIRED_FIELDS
        }
        self.date_validator = DateValidator("detection_date")
        self.factor_validators = {
            name: FactorValidator(name, {"min": 0, "max": 100}) for name in FACTOR_FIELDS
        }

    def cleanse(self, raw: RawRecord) -> CleanRecord | None:
        """
        Build the Silver record for one Bronze row.

        Args:
            raw: Bronze row

        Returns:
            CleanRecord, or None when the row is rejected
        """
        values = resolve_fields(raw, self.settings.fallback)

        try:
            required = {
                name: validator.validate(values.get(name))
                for name, validator in self.required_validators.items()
            }
            detection_date = self.date_validator.validate(required["detection_date"])
        except ValidationError as e:
            record_validation_failure(e.rule_name, e.field_name)
            logger.warning(f"Rejected bronze record {raw.id}: {e}")
            return None

        validation_errors: list[str] = []
        factors: dict[str, int | None] = {}
        for name, validator in self.factor_validators.items():
            try:
                factors[name] = validator.validate(values.get(name))
            except ValidationError:
                factors[name] = None
                validation_errors.append(f"Invalid {name}: {values.get(name)}")

        normalized_fields: list[str] = []
        criticality = normalize_criticality(values.get("criticality"))
        if criticality != values.get("criticality"):
            normalized_fields.append("criticality")

        return CleanRecord(
            equipment_code=required["equipment_code"],
            system=values.get("system"),
            description=required["description"],
            detection_date=detection_date,
            equipment_description=required["equipment_description"],
            owning_section=required["owning_section"],
            criticality=criticality,
            data_quality_score=data_quality_score(values),
            validation_errors=validation_errors or None,
            normalized_fields=normalized_fields or None,
            bronze_source_id=raw.id,
            **factors,
        )

    def run(self) -> StageResult:
        """
        Cleanse every unprocessed Bronze row.

        Returns:
            StageResult; duplicates count as succeeded and are reported in
            metadata["duplicates_skipped"]

        Raises:
            Exception: Stage-level failures, after the run is marked FAILED
        """
        run = self.tracker.start(JOB_NAME, source_layer="bronze", target_layer="silver")

        try:
            with log_operation(JOB_NAME, logger=logger, run_id=run.id), track_duration(stage_duration_seconds, stage=STAGE):
                raw_records = self.store.list_unprocessed_raw_records()
                logger.info(f"Found {len(raw_records)} unprocessed bronze records")

                succeeded = 0
                failed = 0
                duplicate_ids: list[str] = []
                errors: list[str] = []

                for raw in raw_records:
                    try:
                        outcome = self._process(raw)
                    except Exception as e:
                        failed += 1
                        errors.append(f"{raw.id}: {e}")
                        logger.error(f"Error processing bronze record {raw.id}: {e}", exc_info=True)
                        continue

                    if outcome == "rejected":
                        failed += 1
                        errors.append(f"{raw.id}: required fields missing or invalid")
                    elif outcome == "duplicate":
                        succeeded += 1
                        duplicate_ids.append(raw.id)
                    else:
                        succeeded += 1

            metadata = {
                "duplicates_skipped": len(duplicate_ids),
                "duplicate_ids": duplicate_ids[:10],
            }
            run = self.tracker.complete(
                run,
                processed=len(raw_records),
                succeeded=succeeded,
                failed=failed,
                metadata=metadata,
            )
        except Exception as e:
            self.tracker.fail(run, e)
            record_stage_result(STAGE, run.status.value, succeeded=0, failed=0)
            raise

        record_stage_result(
            STAGE,
            run.status.value,
            succeeded=succeeded,
            failed=failed,
            duplicates=len(duplicate_ids),
        )
        logger.info(
            f"Completed {JOB_NAME}: {succeeded} succeeded, {failed} failed, "
            f"{len(duplicate_ids)} duplicates skipped"
        )

        return StageResult(
            success=True,
            records_processed=len(raw_records),
            records_succeeded=succeeded,
            records_failed=failed,
            metadata={"duplicates_skipped": len(duplicate_ids)},
            errors=errors[:MAX_SAMPLE_ERRORS],
            processing_log_id=run.id,
        )

    def _process(self, raw: RawRecord) -> str:
        """Returns "rejected", "duplicate" or "inserted"."""
        clean = self.cleanse(raw)
        if clean is None:
            return "rejected"

        if self.store.find_clean_record_by_key(clean.dedup_key) is not None:
            self.store.mark_raw_processed(raw.id, datetime.utcnow())
            logger.info(f"Duplicate record found and skipped: {raw.id}")
            return "duplicate"

        if self.store.insert_clean_record(clean) is None:
            # Inserted by someone else between the lookup and the insert
            self.store.mark_raw_processed(raw.id, datetime.utcnow())
            logger.info(f"Duplicate record found and skipped: {raw.id}")
            return "duplicate"

        self.store.mark_raw_processed(raw.id, datetime.utcnow())
        observe_histogram(data_quality_histogram, clean.data_quality_score)
        return "inserted"
