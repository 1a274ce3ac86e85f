"""
Custom Exception Classes for the Philagora Editorial Pipeline

This module defines custom exceptions for better error handling and
categorization of failures across the pipeline.
"""


class PhilagoraError(Exception):
    """Base exception for all Philagora pipeline errors."""
    pass


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(PhilagoraError):
    """Raised when configuration validation fails or required settings are missing."""
    pass


# =============================================================================
# Article / Feed Errors
# =============================================================================

class ArticleError(PhilagoraError):
    """Base exception for article and feed related errors."""
    pass


class FeedFetchError(ArticleError):
    """Raised when an RSS feed cannot be downloaded or parsed."""
    pass


# =============================================================================
# AI Service Errors
# =============================================================================

class AIServiceError(PhilagoraError):
    """Base exception for AI service errors."""
    pass


class GenerationFailedError(AIServiceError):
    """Raised when the text-generation call fails (network, timeout, rate limit)."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ResponseParseError(AIServiceError):
    """Raised when model output cannot be coerced to JSON, even after repair."""

    def __init__(self, message: str, raw_output: str = ""):
        super().__init__(message)
        self.raw_output = raw_output


class SchemaMismatchError(AIServiceError):
    """Raised when parsed JSON lacks the fields required by its content type."""
    pass


class NoActivePromptError(AIServiceError):
    """Raised when a philosopher has no active system prompt."""
    pass


# =============================================================================
# Review Errors
# =============================================================================

class ReviewError(PhilagoraError):
    """Base exception for review and approval errors."""
    pass


class InvalidTransitionError(ReviewError):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")
        self.entity = entity
        self.current = current
        self.target = target


class InvalidRequestError(ReviewError):
    """Raised when a request is missing required fields or references unknown ids."""
    pass


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(PhilagoraError):
    """Base exception for database-related errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when database connection fails."""
    pass


class QueryError(DatabaseError):
    """Raised when a database query fails."""
    pass
