"""Prometheus metrics definitions and helpers"""
import logging
import time
from contextlib import contextmanager
from prometheus_client import Counter, Histogram
from achievement_engine.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all Prometheus metrics"""

    def __init__(self, enabled: bool = ENABLE_PROMETHEUS):
        self._enabled = enabled
        if not enabled:
            logger.info("Prometheus metrics disabled")
            return

        # Achievement metrics
        self.achievement_unlocks_total = Counter(
            'achievement_unlocks_total',
            'Total achievements unlocked',
            ['slug']
        )

        self.achievement_evaluation_errors_total = Counter(
            'achievement_evaluation_errors_total',
            'Achievement evaluations skipped because of an error',
            ['criteria_type']
        )

        self.achievement_check_duration_seconds = Histogram(
            'achievement_check_duration_seconds',
            'Latency of one unlock check across all achievements',
            ['event_type'],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0]
        )

        # Progression metrics
        self.xp_awarded_total = Counter(
            'xp_awarded_total',
            'Total experience points awarded'
        )

        self.level_ups_total = Counter(
            'level_ups_total',
            'Total level-ups'
        )

        # Trigger metrics
        self.trigger_failures_total = Counter(
            'trigger_failures_total',
            'Trigger invocations that failed and were swallowed',
            ['event_type']
        )

        # Database metrics
        self.db_queries_total = Counter(
            'achievement_db_queries_total',
            'Total achievement engine database queries',
            ['query_type', 'table']
        )

        self.db_query_duration_seconds = Histogram(
            'achievement_db_query_duration_seconds',
            'Achievement engine database query latency',
            ['query_type'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
        )

        logger.info("Prometheus metrics initialized")

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled


# Global metrics instance
metrics = PrometheusMetrics()


def record_unlock(slug: str) -> None:
    """Count an achievement unlock"""
    if not metrics.enabled:
        return
    metrics.achievement_unlocks_total.labels(slug=slug).inc()


def record_evaluation_error(criteria_type: str) -> None:
    """Count an achievement skipped because evaluation failed"""
    if not metrics.enabled:
        return
    metrics.achievement_evaluation_errors_total.labels(criteria_type=criteria_type).inc()


def record_xp_award(amount: int, levels_gained: int) -> None:
    """Count awarded XP and level-ups"""
    if not metrics.enabled:
        return
    metrics.xp_awarded_total.inc(amount)
    if levels_gained > 0:
        metrics.level_ups_total.inc(levels_gained)


def record_trigger_failure(event_type: str) -> None:
    """Count a swallowed trigger failure"""
    if not metrics.enabled:
        return
    metrics.trigger_failures_total.labels(event_type=event_type).inc()


@contextmanager
def track_achievement_check(event_type: str):
    """Track how long an unlock check takes"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()
    try:
        yield
    finally:
        metrics.achievement_check_duration_seconds.labels(
            event_type=event_type
        ).observe(time.time() - start_time)


@contextmanager
def track_database_query(query_type: str, table: str = ""):
    """Track database query metrics"""
    if not metrics.enabled:
        yield
        return

    start_time = time.time()

    try:
        yield
    finally:
        duration = time.time() - start_time
        metrics.db_query_duration_seconds.labels(
            query_type=query_type
        ).observe(duration)

        metrics.db_queries_total.labels(
            query_type=query_type,
            table=table
        ).inc()
