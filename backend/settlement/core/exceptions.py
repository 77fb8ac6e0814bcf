# backend/settlement/core/exceptions.py
"""
Domain-specific exceptions for the settlement engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class BatchFetchException(ServiceException):
    """Raised when the eligible bookings for a batch run cannot be listed."""

    def __init__(self, batch: str, reason: str):
        super().__init__(
            message=f"Error fetching bookings for {batch}",
            code="BATCH_FETCH_FAILED",
            details={"batch": batch, "reason": reason},
        )


class ProcessorErrorKind(str, Enum):
    """Closed set of payment processor failure kinds."""

    NOT_CONFIGURED = "not_configured"  # provider onboarding incomplete, retry after setup
    PROVIDER_ERROR = "provider_error"  # transient, retried by the next run
    NOT_FOUND = "not_found"  # payment record or intent vanished


class PaymentProcessorError(ServiceException):
    """Raised by the payment processor adapter for a failed capture or transfer."""

    def __init__(
        self,
        kind: ProcessorErrorKind,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=f"PAYMENT_{kind.name}", details=details)
        self.kind = kind

    @property
    def retryable(self) -> bool:
        return self.kind is ProcessorErrorKind.PROVIDER_ERROR


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
