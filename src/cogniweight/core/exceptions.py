"""
cogniweight Domain-Specific Exceptions
=======================================

This module defines a hierarchy of exceptions for consistent error handling
across the cognitive state engine.

Exception Hierarchy:
    CogniWeightError (base)
    ├── RecoverableError (transient, retry possible)
    │   ├── ServiceError
    │   └── MalformedResponseError
    ├── IrrecoverableError (permanent, requires intervention)
    │   ├── ConfigurationError
    │   ├── InvalidApiKeyError
    │   ├── NodeNotFoundError
    │   └── DataCorruptionError
    └── QuestionGenerationError (per-document, after retries)

Usage Guidelines:
    - Degenerate input (empty text, empty graph, untracked node) is never
      an error: return the documented floor value instead.
    - Remote-service failures and unparseable payloads are recoverable and
      retried; once retries are exhausted the caller skips that document.
    - Always include context in error messages.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Categories for error classification."""
    SERVICE = "SERVICE"
    CONFIG = "CONFIG"
    STORAGE = "STORAGE"
    GRAPH = "GRAPH"
    REVIEW = "REVIEW"
    SYSTEM = "SYSTEM"


class CogniWeightError(Exception):
    """
    Base exception for all cogniweight errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        context: Additional context about the error
        recoverable: Whether the error is potentially recoverable
        category: Coarse subsystem the error belongs to
    """

    error_code: str = "COGNIWEIGHT_ERROR"
    recoverable: bool = True
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: str,
        context: Optional[dict] = None,
        error_code: Optional[str] = None,
        recoverable: Optional[bool] = None
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if error_code is not None:
            self.error_code = error_code
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to a JSON-serialisable dictionary."""
        result = {
            "error": self.message,
            "code": self.error_code,
            "category": self.category.value,
            "recoverable": self.recoverable,
        }
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# Base Categories: Recoverable vs Irrecoverable
# =============================================================================

class RecoverableError(CogniWeightError):
    """
    Base class for recoverable errors.

    These are transient errors that may succeed on retry:
    - Connection failures and timeouts
    - Non-200 responses from the remote service
    - Payloads that could not be parsed
    """
    recoverable = True


class IrrecoverableError(CogniWeightError):
    """
    Base class for irrecoverable errors.

    These are permanent errors that require intervention:
    - Invalid configuration
    - Malformed API key
    - Unknown node
    - Corrupt persisted state
    """
    recoverable = False


# =============================================================================
# Remote Service Errors
# =============================================================================

class ServiceError(RecoverableError):
    """Raised when the remote question/embedding service fails."""
    error_code = "SERVICE_ERROR"
    category = ErrorCategory.SERVICE

    def __init__(
        self,
        operation: str,
        reason: str,
        status: Optional[int] = None,
        context: Optional[dict] = None,
    ):
        ctx = {"operation": operation}
        if status is not None:
            ctx["status"] = status
        if context:
            ctx.update(context)
        super().__init__(f"Service call '{operation}' failed: {reason}", ctx)
        self.operation = operation
        self.status = status


class MalformedResponseError(RecoverableError):
    """Raised when a service payload cannot be parsed."""
    error_code = "MALFORMED_RESPONSE"
    category = ErrorCategory.SERVICE

    def __init__(self, reason: str, payload: Optional[str] = None, context: Optional[dict] = None):
        ctx = dict(context or {})
        if payload is not None:
            ctx["payload"] = payload[:200]
        super().__init__(f"Malformed response: {reason}", ctx)
        self.payload = payload


# =============================================================================
# Configuration / Key Errors
# =============================================================================

class ConfigurationError(IrrecoverableError):
    """Raised when configuration is invalid or missing."""
    error_code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIG

    def __init__(self, config_key: str, reason: str, context: Optional[dict] = None):
        ctx = {"config_key": config_key}
        if context:
            ctx.update(context)
        super().__init__(f"Configuration error for '{config_key}': {reason}", ctx)
        self.config_key = config_key


class InvalidApiKeyError(IrrecoverableError):
    """Raised when an API key is rejected locally, before any network call."""
    error_code = "INVALID_API_KEY"
    category = ErrorCategory.CONFIG

    def __init__(self, reason: str):
        super().__init__(f"Invalid API key: {reason}")


# =============================================================================
# Graph / Storage Errors
# =============================================================================

class NodeNotFoundError(IrrecoverableError):
    """Raised when an operation requires a node that is not tracked."""
    error_code = "NODE_NOT_FOUND"
    category = ErrorCategory.GRAPH

    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' not found", {"node_id": node_id})
        self.node_id = node_id


class DataCorruptionError(IrrecoverableError):
    """Raised when persisted state is corrupt or cannot be deserialized."""
    error_code = "DATA_CORRUPTION_ERROR"
    category = ErrorCategory.STORAGE

    def __init__(self, resource_id: str, reason: str = "Data corruption detected", context: Optional[dict] = None):
        ctx = {"resource_id": resource_id}
        if context:
            ctx.update(context)
        super().__init__(f"{reason} for resource '{resource_id}'", ctx)
        self.resource_id = resource_id


# =============================================================================
# Review Errors
# =============================================================================

class QuestionGenerationError(CogniWeightError):
    """
    Raised when a question could not be generated for a document after
    all retry attempts. Batch callers skip the document.
    """
    error_code = "QUESTION_GENERATION_ERROR"
    category = ErrorCategory.REVIEW
    recoverable = False

    def __init__(self, path: str, attempts: int, cause: Optional[Exception] = None):
        ctx = {"path": path, "attempts": attempts}
        if cause is not None:
            ctx["cause"] = str(cause)
        super().__init__(f"Failed to generate question for '{path}' after {attempts} attempts", ctx)
        self.path = path
        self.attempts = attempts


__all__ = [
    "ErrorCategory",
    "CogniWeightError",
    "RecoverableError",
    "IrrecoverableError",
    "ServiceError",
    "MalformedResponseError",
    "ConfigurationError",
    "InvalidApiKeyError",
    "NodeNotFoundError",
    "DataCorruptionError",
    "QuestionGenerationError",
]
