"""
Client for the external severity prediction service.

The service scores a batch of anomalies on availability, reliability and
process safety. It is best effort: predict() never raises, and any
transport, status or payload failure yields a failed batch response so
the Silver->Gold stage can fall back to placeholder factors.
"""

import math
import time
from collections.abc import Sequence
from typing import NamedTuple

import httpx

from medallion_etl.config import DEFAULT_PREDICTION_URL
from medallion_etl.core.models import (
    BatchPredictionResponse,
    Priority,
    PredictionRequest,
    PredictionResult,
    Severity,
)
from medallion_etl.core.rules import PlaceholderPolicy, classify
from medallion_etl.core.rules.criticality import BandTable
from medallion_etl.observability.logger import get_logger
from medallion_etl.observability.metrics import (
    increment_counter,
    observe_histogram,
    prediction_latency_seconds,
    prediction_requests_total,
)

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive scores (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


class PredictionFields(NamedTuple):
    """Anomaly fields derived from one prediction result."""

    reliability: int
    availability: int
    process_safety: int
    criticality: str
    severity: Severity
    priority: Priority
    duration_to_resolve: int
    ai_suggested_severity: str | None
    ai_factors: list[str]
    ai_confidence: float | None


class PredictionClient:
    """
    Synchronous HTTP client for the batch prediction endpoint.

    Example:
        >>> with PredictionClient("http://localhost:3333/predict") as client:
        ...     response = client.predict(requests)
        >>> response.status
        'completed'
    """

    def __init__(
        self,
        api_url: str = DEFAULT_PREDICTION_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize client.

        Args:
            api_url: Full URL of the predict endpoint
            timeout: Request timeout in seconds
            client: Preconfigured httpx client (its timeout is kept)
            transport: Transport for a client built here (tests use MockTransport)
        """
        self.api_url = api_url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def predict(self, batch: Sequence[PredictionRequest]) -> BatchPredictionResponse:
        """
        Score a batch of anomalies in one call.

        Args:
            batch: Anomalies to score

        Returns:
            The service response, a failed response (status "failed", no
            results) on any error, or a skipped response for an empty batch
        """
        if not batch:
            increment_counter(prediction_requests_total, status="skipped")
            return BatchPredictionResponse.skipped()

        logger.info(f"Requesting predictions for {len(batch)} anomalies from {self.api_url}")
        payload = [request.model_dump(mode="json") for request in batch]
        started = time.perf_counter()

        try:
            response = self._client.post(self.api_url, json=payload)
            response.raise_for_status()
            result = BatchPredictionResponse.model_validate(response.json())
        except httpx.TimeoutException as e:
            return self._failed(batch, f"Request timed out after {self.timeout}s: {e}")
        except httpx.ConnectError as e:
            return self._failed(
                batch, f"Could not connect to prediction service at {self.api_url}: {e}"
            )
        except httpx.HTTPStatusError as e:
            return self._failed(
                batch,
                f"Server responded with status {e.response.status_code}: {e.response.reason_phrase}",
            )
        except httpx.HTTPError as e:
            return self._failed(batch, f"Transport error: {e}")
        except ValueError as e:
            # Invalid JSON or a body that does not match the response model
            return self._failed(batch, f"Malformed prediction response: {e}")
        finally:
            observe_histogram(prediction_latency_seconds, time.perf_counter() - started)

        increment_counter(prediction_requests_total, status="completed")
        logger.info(
            f"Predictions received: {len(result.results)} results, "
            f"{result.batch_info.failed_predictions} failed"
        )
        return result

    def _failed(self, batch: Sequence[PredictionRequest], reason: str) -> BatchPredictionResponse:
        increment_counter(prediction_requests_total, status="failed")
        logger.error(f"Error getting predictions: {reason}")
        return BatchPredictionResponse.failed(len(batch))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def map_prediction_to_anomaly_fields(
    result: PredictionResult,
    policy: PlaceholderPolicy | None = None,
    bands: BandTable = "strict",
) -> PredictionFields:
    """
    Map one prediction onto anomaly fields.

    Scores are rounded half up and summed; the sum is classified with the
    strict band table unless told otherwise. The duration to resolve is a
    1-1000 h placeholder.

    Args:
        result: One successful prediction
        policy: Placeholder source for the duration
        bands: Band table used to classify the factor sum
    """
    policy = policy or PlaceholderPolicy()
    availability = round_half_up(result.predictions.availability.score)
    reliability = round_half_up(result.predictions.reliability.score)
    process_safety = round_half_up(result.predictions.process_safety.score)

    total = availability + reliability + process_safety
    band = classify(total, bands)
    duration = policy.prediction_duration()

    logger.debug(
        f"Prediction for {result.anomaly_id}: sum={total}, criticality={band.label}, "
        f"severity={band.severity.value}, priority={band.priority.value}, duration={duration}h"
    )

    return PredictionFields(
        reliability=reliability,
        availability=availability,
        process_safety=process_safety,
        criticality=band.label,
        severity=band.severity,
        priority=band.priority,
        duration_to_resolve=duration,
        ai_suggested_severity=result.risk_assessment.overall_risk_level or None,
        ai_factors=list(result.risk_assessment.critical_factors),
        ai_confidence=result.overall_score,
    )
