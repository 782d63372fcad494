#!/usr/bin/env python3
"""
Standardized exception hierarchy for the news node.

Provides specific exception types for the failure classes the node
distinguishes: transient I/O, partial enrichment, validation, fatal
configuration, store and lifecycle errors.
"""

from typing import Optional, Dict, Any


class NewsNodeError(Exception):
    """Base exception for all news node errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'error_code': self.error_code,
            'message': self.message,
            'context': self.context
        }


# Source-related exceptions (transient I/O)
class SourceError(NewsNodeError):
    """Base exception for news source errors."""
    pass


class SourceConnectionError(SourceError):
    """Failed to connect to news source."""

    def __init__(self, url: str, original_error: Exception):
        message = f"Failed to fetch {url}: {original_error}"
        context = {
            'url': url,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


class SourceParseError(SourceError):
    """Failed to parse content from news source."""

    def __init__(self, source_name: str, parse_stage: str, original_error: Exception):
        message = f"Failed to parse {parse_stage} from {source_name}: {original_error}"
        context = {
            'source_name': source_name,
            'parse_stage': parse_stage,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


class SourceTimeoutError(SourceError):
    """Source request timed out."""

    def __init__(self, url: str, timeout_seconds: float):
        message = f"Timeout fetching {url} after {timeout_seconds}s"
        context = {
            'url': url,
            'timeout_seconds': timeout_seconds
        }
        super().__init__(message, context=context)


# Store-related exceptions
class StoreError(NewsNodeError):
    """Base exception for document and blob store errors."""
    pass


class StoreOperationError(StoreError):
    """A write against a store collection failed."""

    def __init__(self, operation: str, collection: str, original_error: Exception):
        message = f"Store {operation} failed on collection {collection}: {original_error}"
        context = {
            'operation': operation,
            'collection': collection,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


class StoreLockedError(StoreError):
    """Storage directory is held by a lock sentinel."""

    def __init__(self, lock_path: str):
        message = f"IO error: lock {lock_path}: Resource temporarily unavailable"
        super().__init__(message, context={'lock_path': lock_path})


class StoreClosedError(StoreError):
    """Operation attempted on a closed collection or engine."""

    def __init__(self, name: str):
        super().__init__(f"Store {name} is closed", context={'name': name})


class BlobNotFoundError(StoreError):
    """Content identifier is not present locally or at any peer."""

    def __init__(self, cid: str):
        super().__init__(f"Block not found: {cid}", context={'cid': cid})


class InvalidCIDError(StoreError):
    """String is not a content identifier this node can decode."""

    def __init__(self, cid: str, reason: str):
        super().__init__(f"Invalid CID {cid!r}: {reason}", context={'cid': cid, 'reason': reason})


# Analysis-related exceptions (partial enrichment)
class AnalysisError(NewsNodeError):
    """Base exception for enrichment errors."""
    pass


class AnalysisUnavailableError(AnalysisError):
    """No analysis backend is configured."""

    def __init__(self, operation: str):
        message = f"No analysis backend configured for {operation}"
        super().__init__(message, context={'operation': operation})


class LLMError(AnalysisError):
    """LLM/AI analysis error."""

    def __init__(self, provider: str, model: str, original_error: Exception):
        message = f"LLM error from {provider} ({model}): {original_error}"
        context = {
            'provider': provider,
            'model': model,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


# Configuration-related exceptions (fatal)
class ConfigurationError(NewsNodeError):
    """Configuration is invalid or missing."""

    def __init__(self, config_key: str, issue: str):
        message = f"Configuration error for {config_key}: {issue}"
        context = {
            'config_key': config_key,
            'issue': issue
        }
        super().__init__(message, context=context)


class MissingCollaboratorError(ConfigurationError):
    """A required collaborator or one of its functions was not provided."""

    def __init__(self, component: str, collaborator: str):
        super().__init__(component, f"required collaborator '{collaborator}' not provided")
        self.context['collaborator'] = collaborator


class StorageDirectoryError(ConfigurationError):
    """Storage directory is missing and cannot be used."""

    def __init__(self, path: str, issue: str):
        super().__init__(path, issue)


# Lifecycle exceptions
class LifecycleError(NewsNodeError):
    """A subsystem failed to start or stop."""

    def __init__(self, step: str, original_error: Exception):
        message = f"Lifecycle step '{step}' failed: {original_error}"
        context = {
            'step': step,
            'original_error': str(original_error)
        }
        super().__init__(message, context=context)


# Validation-related exceptions
class ValidationError(NewsNodeError):
    """Data validation failed."""

    def __init__(self, field: str, value: Any, expected: str):
        message = f"Validation failed for {field}: expected {expected}, got {value!r}"
        context = {
            'field': field,
            'value': str(value)[:200],
            'expected': expected,
            'actual_type': type(value).__name__
        }
        super().__init__(message, context=context)


# Recovery utilities
class ErrorRecovery:
    """Utilities for classifying errors by the recovery the node applies."""

    @staticmethod
    def is_transient(error: Exception) -> bool:
        """Check if an error belongs to the transient I/O class."""
        transient_types = (
            SourceConnectionError,
            SourceTimeoutError,
            BlobNotFoundError,
        )
        return isinstance(error, transient_types)

    @staticmethod
    def is_fatal(error: Exception) -> bool:
        """Check if an error should abort the current operation."""
        return isinstance(error, ConfigurationError)

    @staticmethod
    def severity(error: Exception) -> str:
        """Severity tag reported to API callers and the audit log."""
        if isinstance(error, (ValidationError, SourceError, AnalysisError)):
            return 'warn'
        return 'error'
