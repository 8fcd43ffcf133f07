"""
Service layer primitives shared by every app.
Services log through BaseService and report outcomes as ServiceResult
objects; domain failures are raised as ServiceException subclasses and
converted to failed results at the public service boundary.
"""
import logging
from typing import Any, Dict, Optional


class BaseService:
    """
    Base class for services.
    Gives each service a named logger and structured logging helpers.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"apps.{self.__class__.__name__}")

    def log_info(self, message: str, **kwargs) -> None:
        """
        Log an info message.

        Args:
            message: The message to log
            **kwargs: Structured context attached under ``extra['context']``
        """
        self.logger.info(message, extra={'context': kwargs})

    def log_warning(self, message: str, **kwargs) -> None:
        """Log a warning message with structured context."""
        self.logger.warning(message, extra={'context': kwargs})

    def log_error(self, message: str, exception: Optional[Exception] = None, **kwargs) -> None:
        """
        Log an error, including the traceback of ``exception`` when given.

        Args:
            message: The error message
            exception: Exception that caused the error, if any
            **kwargs: Structured context attached under ``extra['context']``
        """
        self.logger.error(
            message,
            exc_info=exception,
            extra={'context': kwargs}
        )


class ServiceException(Exception):
    """Base exception for service layer errors."""

    default_code: Optional[str] = None

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict] = None):
        """
        Args:
            message: Human readable error message
            code: Machine readable error code (falls back to ``default_code``)
            details: Extra information about the failure
        """
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}


class ValidationError(ServiceException):
    """Raised when input to a service fails validation."""
    default_code = 'VALIDATION_ERROR'


class BusinessRuleViolation(ServiceException):
    """Raised when an operation would break a business rule."""
    default_code = 'BUSINESS_RULE_VIOLATION'


class ServiceResult:
    """
    Outcome of a service operation.
    Public service methods return one of these instead of raising, so views
    can map ``error_code`` to an HTTP status without catching exceptions.
    """

    def __init__(self, success: bool, data: Optional[Any] = None,
                 error: Optional[str] = None, error_code: Optional[str] = None):
        self.success = success
        self.data = data
        self.error = error
        self.error_code = error_code

    @classmethod
    def ok(cls, data: Any = None) -> 'ServiceResult':
        """Create a successful result carrying ``data``."""
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_code: Optional[str] = None) -> 'ServiceResult':
        """Create a failed result with a message and error code."""
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def from_exception(cls, exc: ServiceException) -> 'ServiceResult':
        """Create a failed result from a raised service exception."""
        return cls.fail(exc.message, exc.code)

    def __bool__(self) -> bool:
        return self.success

    def __repr__(self) -> str:
        if self.success:
            return f"<ServiceResult: Success, data={self.data}>"
        return f"<ServiceResult: Failure, error={self.error}, code={self.error_code}>"
