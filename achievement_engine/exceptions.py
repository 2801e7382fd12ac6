"""
Standardized exception hierarchy for the achievement engine
Provides rich context and consistent logging for engine failures
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class GamificationError(Exception):
    """
    Base exception for all achievement engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - Structured context
    - Automatic logging

    Example:
        raise GamificationError(
            message="Failed to persist achievement progress",
            user_id="user-123",
            operation="update_achievement_progress",
            context={"achievement_id": "ach-1"}
        )
    """

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data, exc_info=self.cause)
        else:
            logger.error(f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logs and API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors
# ==========================================

class ValidationError(GamificationError):
    """
    Raised when an engine call receives invalid input

    Example:
        raise ValidationError(
            message="XP amount must be non-negative",
            field="amount",
            value=-5,
            user_id="user-123"
        )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        super().__init__(
            message=message,
            context={"field": field, "value": value},
            **kwargs
        )


class CatalogValidationError(GamificationError):
    """An achievement definition in the catalog is malformed"""

    def __init__(
        self,
        message: str,
        slug: Optional[str] = None,
        errors: Optional[list] = None,
        **kwargs
    ):
        self.slug = slug
        self.errors = errors or []
        super().__init__(
            message=message,
            context={"slug": slug, "errors": self.errors},
            **kwargs
        )


# ==========================================
# Database Errors
# ==========================================

class DatabaseError(GamificationError):
    """
    Base class for data store errors
    """
    pass


class ConnectionError(DatabaseError):
    """Database connection failed"""

    def __init__(self, message: str = "Database connection failed", **kwargs):
        super().__init__(message=message, **kwargs)


class QueryError(DatabaseError):
    """Database query execution failed"""

    def __init__(
        self,
        message: str,
        query: Optional[str] = None,
        **kwargs
    ):
        self.query = query
        super().__init__(
            message=message,
            context={"query": query},
            **kwargs
        )


class PersistenceError(DatabaseError):
    """Writing progress or stats failed; the cycle's result must be discarded"""

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        self.record_type = record_type
        super().__init__(
            message=message,
            context={"record_type": record_type, **(context or {})},
            **kwargs
        )


# ==========================================
# Evaluation Errors
# ==========================================

class EvaluationError(GamificationError):
    """A criteria evaluator failed for one achievement"""

    def __init__(
        self,
        message: str,
        criteria_type: Optional[str] = None,
        **kwargs
    ):
        self.criteria_type = criteria_type
        super().__init__(
            message=message,
            context={"criteria_type": criteria_type},
            **kwargs
        )


# ==========================================
# Configuration Errors
# ==========================================

class ConfigurationError(GamificationError):
    """System configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            context={"config_key": config_key},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_external_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> GamificationError:
    """
    Wrap external exceptions (psycopg, etc.) into our exception hierarchy

    Args:
        error: Original exception
        operation: What operation was being performed
        user_id: User ID if applicable
        context: Additional context

    Returns:
        Appropriate GamificationError subclass

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="award_xp", user_id="user-123")
    """
    import psycopg

    if isinstance(error, GamificationError):
        return error

    if isinstance(error, psycopg.OperationalError):
        return ConnectionError(
            message=f"Database connection failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )
    elif isinstance(error, psycopg.Error):
        return QueryError(
            message=f"Database query failed: {str(error)}",
            user_id=user_id,
            operation=operation,
            cause=error
        )

    # Generic fallback
    return GamificationError(
        message=f"{operation} failed: {str(error)}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )
