"""Unit tests for the exception hierarchy (achievement_engine/exceptions.py)"""
import psycopg
import pytest

from achievement_engine.exceptions import (
    ConnectionError,
    DatabaseError,
    EvaluationError,
    GamificationError,
    PersistenceError,
    QueryError,
    ValidationError,
    wrap_external_exception,
)


def test_error_carries_context():
    error = ValidationError(
        message="XP amount must be non-negative",
        field="amount",
        value=-5,
        user_id="u1",
        operation="award_xp",
    )

    assert error.field == "amount"
    assert error.context == {"field": "amount", "value": -5}
    assert error.user_id == "u1"
    assert error.request_id
    assert str(error) == "XP amount must be non-negative"


def test_to_dict():
    error = EvaluationError(message="boom", criteria_type="earnings", operation="evaluate_criteria")

    data = error.to_dict()

    assert data["error"] == "EvaluationError"
    assert data["message"] == "boom"
    assert data["operation"] == "evaluate_criteria"
    assert data["request_id"] == error.request_id
    assert "timestamp" in data


def test_error_is_logged_on_creation(caplog):
    GamificationError(message="Failed to persist progress", user_id="u1")

    assert "GamificationError: Failed to persist progress" in caplog.text


def test_wrap_operational_error():
    wrapped = wrap_external_exception(
        psycopg.OperationalError("connection refused"), operation="get_user_stats", user_id="u1"
    )

    assert isinstance(wrapped, ConnectionError)
    assert isinstance(wrapped, DatabaseError)
    assert wrapped.operation == "get_user_stats"
    assert "connection refused" in wrapped.message


def test_wrap_query_error():
    wrapped = wrap_external_exception(psycopg.ProgrammingError("syntax error"), operation="count_referrals")

    assert isinstance(wrapped, QueryError)
    assert isinstance(wrapped.cause, psycopg.ProgrammingError)


def test_wrap_generic_error():
    wrapped = wrap_external_exception(ValueError("bad"), operation="unlock_achievement")

    assert type(wrapped) is GamificationError
    assert wrapped.message == "unlock_achievement failed: bad"


def test_wrap_passes_engine_errors_through():
    original = ValidationError(message="bad amount", field="amount")

    assert wrap_external_exception(original, operation="award_xp") is original


def test_raise_and_catch_as_base():
    with pytest.raises(GamificationError):
        raise QueryError(message="Database query failed", query="SELECT 1")


def test_persistence_error_keeps_record_type_and_context():
    error = PersistenceError(
        message="Failed to persist user_stats",
        record_type="user_stats",
        context={"points": 25},
        user_id="u1",
    )

    assert isinstance(error, DatabaseError)
    assert error.record_type == "user_stats"
    assert error.context == {"record_type": "user_stats", "points": 25}
