"""
Placeholder values for fields the source data cannot supply.

Missing severity factors and the cost, downtime and resolution-time
estimates of a Gold anomaly are drawn from severity-scaled ranges. All
draws go through one random.Random so a seed makes a run reproducible.
"""

import random

from medallion_etl.core.models import Severity

FACTOR_RANGE = (1, 3)
PREDICTION_DURATION_RANGE = (1, 1000)

# Inclusive (low, high) bounds per severity
DURATION_TO_RESOLVE_HOURS = {
    Severity.CRITICAL: (1, 24),
    Severity.MEDIUM: (24, 191),
    Severity.LOW: (168, 667),
}
ESTIMATED_COST = {
    Severity.CRITICAL: (50000, 149999),
    Severity.MEDIUM: (20000, 69999),
    Severity.LOW: (5000, 24999),
}
DOWNTIME_HOURS = {
    Severity.CRITICAL: (1, 48),
    Severity.MEDIUM: (1, 24),
    Severity.LOW: (1, 12),
}


class PlaceholderPolicy:
    """
    Seedable source of placeholder values.

    Example:
        >>> policy = PlaceholderPolicy(seed=42)
        >>> 1 <= policy.fallback_factor() <= 3
        True
    """

    def __init__(self, seed: int | None = None, rng: random.Random | None = None):
        self.rng = rng or random.Random(seed)

    def _draw(self, bounds: tuple[int, int]) -> int:
        low, high = bounds
        return self.rng.randint(low, high)

    def fallback_factor(self) -> int:
        """Severity factor used when neither the source nor a prediction has one."""
        return self._draw(FACTOR_RANGE)

    def duration_to_resolve(self, severity: Severity) -> int:
        return self._draw(DURATION_TO_RESOLVE_HOURS[Severity(severity)])

    def prediction_duration(self) -> int:
        return self._draw(PREDICTION_DURATION_RANGE)

    def estimated_cost(self, severity: Severity) -> int:
        return self._draw(ESTIMATED_COST[Severity(severity)])

    def downtime_hours(self, severity: Severity) -> int:
        return self._draw(DOWNTIME_HOURS[Severity(severity)])
