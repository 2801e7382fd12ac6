"""Monitoring infrastructure for the achievement engine"""
from achievement_engine.monitoring.sentry_config import init_sentry, capture_exception, set_user_context
from achievement_engine.monitoring.prometheus_metrics import (
    metrics,
    record_unlock,
    record_evaluation_error,
    record_xp_award,
    record_trigger_failure,
    track_achievement_check,
    track_database_query,
)

__all__ = [
    "init_sentry",
    "capture_exception",
    "set_user_context",
    "metrics",
    "record_unlock",
    "record_evaluation_error",
    "record_xp_award",
    "record_trigger_failure",
    "track_achievement_check",
    "track_database_query",
]
