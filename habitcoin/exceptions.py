"""
Exception hierarchy for the habit ledger.

Validation and not-found errors are raised before any write happens, so a
failed mutation never leaves a partial ledger change behind. Persistence
errors always reach the caller; they are never logged and dropped.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class HabitcoinError(Exception):
    """
    Base exception for all ledger errors.

    Carries structured context for logging and a serializable form for
    API responses.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "operation": self.operation,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ValidationError(HabitcoinError):
    """
    Raised when caller input is rejected.

    Example:
        raise ValidationError("Habit name must not be empty", field="name")
    """

    status_code = 400

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


class NotFoundError(HabitcoinError):
    """Referenced habit, completion or catalog item does not exist"""

    status_code = 404

    def __init__(
        self,
        message: str,
        record_type: Optional[str] = None,
        record_id: Optional[Any] = None,
        **kwargs
    ):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(
            message=message,
            context={"record_type": record_type, "record_id": record_id},
            **kwargs
        )


class PersistenceError(HabitcoinError):
    """Store read or write failed; the transaction was rolled back"""

    status_code = 503

    def __init__(self, message: str = "Database operation failed", **kwargs):
        super().__init__(message=message, **kwargs)
        if self.cause:
            logger.error(f"PersistenceError: {self.message}", exc_info=self.cause)


class ConfigurationError(HabitcoinError):
    """Required backend configuration is missing at startup"""

    status_code = 500
