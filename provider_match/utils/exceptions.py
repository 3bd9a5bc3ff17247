"""
Custom Exception Classes for the Provider Matching API
"""
from typing import Dict, Any

from fastapi import HTTPException
from pymongo.errors import PyMongoError


class ProviderMatchBaseException(Exception):
    """Base exception for the Provider Matching API"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ValidationError(ProviderMatchBaseException):
    """Raised when a match request is missing fields or carries invalid values"""

    def __init__(self, message: str, field: str = None, value: Any = None, fields: list = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if field:
            details['field'] = field
        if fields:
            details['fields'] = list(fields)
        if value is not None:
            details['invalid_value'] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details, **kwargs)


class ConfigurationError(ProviderMatchBaseException):
    """Raised when matching configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class NotFoundError(ProviderMatchBaseException):
    """Raised when a referenced provider or listing does not exist"""

    def __init__(self, message: str, resource: str = None, resource_id: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if resource:
            details['resource'] = resource
        if resource_id:
            details['resource_id'] = resource_id
        super().__init__(message, error_code="NOT_FOUND", details=details, **kwargs)


class CollaboratorError(ProviderMatchBaseException):
    """Raised when the provider directory, service catalog or booking ledger fails"""

    def __init__(self, message: str, collaborator: str = None, operation: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if collaborator:
            details['collaborator'] = collaborator
        if operation:
            details['operation'] = operation
        super().__init__(message, error_code="COLLABORATOR_ERROR", details=details, **kwargs)


class ListingExistsError(ProviderMatchBaseException):
    """Raised by the service catalog when a (provider, category) listing already exists"""

    def __init__(self, message: str, provider_id: str = None, category: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if provider_id:
            details['provider_id'] = provider_id
        if category:
            details['category'] = category
        super().__init__(message, error_code="LISTING_EXISTS", details=details, **kwargs)


class SynthesisError(ProviderMatchBaseException):
    """Raised when a synthetic listing cannot be materialized for one provider"""

    def __init__(self, message: str, provider_id: str = None, category: str = None, **kwargs):
        details = kwargs.pop('details', None) or {}
        if provider_id:
            details['provider_id'] = provider_id
        if category:
            details['category'] = category
        super().__init__(message, error_code="SYNTHESIS_ERROR", details=details, **kwargs)


STATUS_CODE_MAPPING = {
    ValidationError: 400,
    ConfigurationError: 400,
    NotFoundError: 404,
    ListingExistsError: 409,
    CollaboratorError: 500,
    SynthesisError: 500,
}


def status_code_for(exc: ProviderMatchBaseException) -> int:
    return STATUS_CODE_MAPPING.get(type(exc), 500)


def map_to_http_exception(exc: ProviderMatchBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""
    status_code = status_code_for(exc)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)


class ExceptionContext:
    """Context manager that logs a collaborator operation and wraps driver failures.

    Custom exceptions pass through untouched; PyMongo and connection failures
    become CollaboratorError so the API answers with a generic 500.
    """

    def __init__(self, operation: str, logger=None, collaborator: str = None, **context):
        self.operation = operation
        self.logger = logger
        self.collaborator = collaborator
        self.context = context

    def __enter__(self):
        if self.logger:
            self.logger.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            if self.logger:
                self.logger.debug(f"Operation completed: {self.operation}", extra=self.context)
            return False

        if self.logger:
            self.logger.error(
                f"Operation failed: {self.operation} - {exc_val}",
                extra={**self.context, "exception_type": exc_type.__name__}
            )

        if isinstance(exc_val, ProviderMatchBaseException):
            return False

        if isinstance(exc_val, (PyMongoError, ConnectionError, TimeoutError, OSError)):
            raise CollaboratorError(
                f"{self.collaborator or 'Data store'} unavailable during {self.operation}",
                collaborator=self.collaborator,
                operation=self.operation,
                details=dict(self.context),
                cause=exc_val
            ) from exc_val

        return False
