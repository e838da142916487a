"""
Processing-log bookkeeping for pipeline stage runs.

A run is opened before a stage loops over its records, updated with
counters as it progresses and finalized exactly once.
"""

from datetime import datetime
from typing import Any

from medallion_etl.core.models import PipelineRun, RunStatus
from medallion_etl.observability.logger import get_logger

from .store import AnomalyStore

logger = get_logger(__name__)

MAX_SAMPLE_ERRORS = 10


def final_status(records_failed: int) -> RunStatus:
    return RunStatus.COMPLETED_WITH_ERRORS if records_failed > 0 else RunStatus.COMPLETED


class ProcessingRunTracker:
    """
    Opens, updates and finalizes PipelineRun rows through the store.
    """

    def __init__(self, store: AnomalyStore):
        self.store = store

    def start(
        self,
        job_name: str,
        target_layer: str,
        source_layer: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PipelineRun:
        """
        Open a run in RUNNING state.

        Args:
            job_name: Stage job name
            target_layer: Layer written to
            source_layer: Layer read from, None for external input
            metadata: Initial metadata

        Returns:
            The stored PipelineRun
        """
        run = PipelineRun(
            job_name=job_name,
            source_layer=source_layer,
            target_layer=target_layer,
            metadata=metadata or {},
        )
        run = self.store.create_processing_log(run)
        logger.info(f"Started {job_name} run {run.id}")
        return run

    def progress(
        self,
        run: PipelineRun,
        processed: int,
        succeeded: int,
        failed: int,
        metadata: dict[str, Any] | None = None,
    ) -> PipelineRun:
        """Persist intermediate counters of a run still in progress."""
        run.records_processed = processed
        run.records_succeeded = succeeded
        run.records_failed = failed
        if metadata:
            run.metadata.update(metadata)
        self.store.update_processing_log(run)
        return run

    def complete(
        self,
        run: PipelineRun,
        processed: int,
        succeeded: int,
        failed: int,
        metadata: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> PipelineRun:
        """
        Finalize a run that reached the end of its records.

        Status is COMPLETED, or COMPLETED_WITH_ERRORS when any record failed.
        """
        run.records_processed = processed
        run.records_succeeded = succeeded
        run.records_failed = failed
        run.status = final_status(failed)
        run.end_time = datetime.utcnow()
        run.error_message = error_message
        if metadata:
            run.metadata.update(metadata)
        self.store.update_processing_log(run)

        logger.info(
            f"Finished {run.job_name} run {run.id}: status={run.status.value}, "
            f"processed={processed}, succeeded={succeeded}, failed={failed}"
        )
        return run

    def fail(self, run: PipelineRun, error: BaseException | str) -> PipelineRun:
        """
        Mark a run FAILED after a stage-level error.

        Failures while writing the log itself are logged and not raised, so
        the original error reaches the caller.
        """
        run.status = RunStatus.FAILED
        run.end_time = datetime.utcnow()
        run.error_message = str(error)
        try:
            self.store.update_processing_log(run)
        except Exception as e:
            logger.error(f"Could not mark run {run.id} as failed: {e}", exc_info=True)

        logger.error(f"{run.job_name} run {run.id} failed: {error}")
        return run
