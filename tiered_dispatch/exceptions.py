"""
Exception classes for tiered-dispatch.

This module defines the error hierarchy used by the dispatcher and the
tier adapters. Every error carries a stable code for programmatic handling.
"""

from typing import Any


class DispatchError(Exception):
    """Base exception class for tiered-dispatch errors."""

    def __init__(
        self,
        message: str,
        code: str = "DISPATCH_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize dispatch error.

        Args:
            message: Error message
            code: Error code for programmatic handling
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class HandlerNotFoundError(DispatchError):
    """Exception for operations without a registered origin handler."""

    def __init__(self, operation: str, **kwargs):
        """
        Initialize handler not found error.

        Args:
            operation: The operation name that has no handler
            **kwargs: Additional details
        """
        if operation:
            message = f"method: {operation} does not exist"
        else:
            message = "Method can not be empty"
        details = {"operation": operation, **kwargs}
        super().__init__(message, code="HANDLER_NOT_FOUND", details=details)
        self.operation = operation


class KeyDerivationError(DispatchError):
    """Exception raised when a cache key cannot be derived."""

    def __init__(self, message: str, code: str = "KEY_EMPTY", **kwargs):
        super().__init__(message, code=code, details=kwargs)


class OriginFailureError(DispatchError):
    """Exception for origin handlers that raised or produced nothing."""

    def __init__(self, message: str, operation: str, code: str = "ORIGIN_FAILURE", **kwargs):
        """
        Initialize origin failure error.

        Args:
            message: Error message (usually the handler's exception text)
            operation: Operation whose handler failed
            code: Error code
            **kwargs: Additional details
        """
        details = {"operation": operation, **kwargs}
        super().__init__(message, code=code, details=details)
        self.operation = operation


class NoDataError(OriginFailureError):
    """Exception for origin handlers that returned no data."""

    def __init__(self, operation: str, arguments: tuple[Any, ...] = (), **kwargs):
        message = f"No data returned from method: {operation} {arguments!r}"
        super().__init__(
            message, operation=operation, code="ORIGIN_NO_DATA", arguments=repr(arguments), **kwargs
        )
        self.arguments = arguments


class StorageWriteError(DispatchError):
    """Exception for failed document store writes (non-fatal during dispatch)."""

    def __init__(self, message: str, index: str | None = None, doc_id: str | None = None, **kwargs):
        details = {"index": index, "doc_id": doc_id, **kwargs}
        super().__init__(message, code="STORAGE_WRITE_FAILURE", details=details)


class MalformedEnvelopeError(DispatchError):
    """Exception for stored values that are not well-formed envelopes."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="MALFORMED_ENVELOPE", details=kwargs)


class DocumentStoreError(DispatchError):
    """Exception for document store transport errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ):
        """
        Initialize document store error.

        Args:
            message: Error message
            status_code: HTTP status code
            response_body: Response body returned by the store
            **kwargs: Additional details
        """
        details = {
            "status_code": status_code,
            "response_body": response_body,
            **kwargs,
        }
        super().__init__(message, code="DOCUMENT_STORE_ERROR", details=details)
        self.status_code = status_code
        self.response_body = response_body


class ValidationError(DispatchError):
    """Exception for validation errors."""

    def __init__(self, message: str, field: str | None = None, **kwargs):
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field that failed validation
            **kwargs: Additional details
        """
        details = {"field": field, **kwargs}
        super().__init__(message, code="VALIDATION_ERROR", details=details)
        self.field = field


class ConfigurationError(DispatchError):
    """Exception for configuration errors."""

    def __init__(self, message: str, setting: str | None = None, **kwargs):
        """
        Initialize configuration error.

        Args:
            message: Error message
            setting: Configuration setting that caused the error
            **kwargs: Additional details
        """
        details = {"setting": setting, **kwargs}
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)
        self.setting = setting
