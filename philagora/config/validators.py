"""
Configuration Validation for the Philagora Editorial Pipeline

This module contains configuration validation logic. Kept apart from
settings.py so that settings can be imported without side effects.
"""

import logging

from philagora.utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def validate_settings(require_ai: bool = False):
    """
    Validate that all required settings are properly configured.

    Args:
        require_ai: If True, a missing generation API key is an error rather
            than a warning. Ingestion can run without one; generation cannot.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    # Import settings here to avoid circular imports
    from philagora.config import settings

    errors = []

    # Required environment variables
    required_vars = [
        ("DB_SERVER", settings.DB_SERVER),
        ("DB_NAME", settings.DB_NAME),
        ("DB_USER", settings.DB_USER),
        ("DB_PASSWORD", settings.DB_PASSWORD)
    ]

    for var_name, var_value in required_vars:
        if not var_value:
            errors.append(f"Missing required environment variable: {var_name}")

    # Verify database connection string was built successfully
    if not settings.DB_CONNECTION_STRING:
        errors.append("Database connection string could not be built. Check DB_SERVER, DB_NAME, DB_USER, DB_PASSWORD.")

    ai_configured = bool(settings.GOOGLE_AI_API_KEY) and settings.GOOGLE_AI_API_KEY != settings.PLACEHOLDER_API_KEY
    if not ai_configured:
        if require_ai:
            errors.append("GOOGLE_AI_API_KEY is not configured. Set it in .env to enable AI generation.")
        else:
            logger.warning("GOOGLE_AI_API_KEY is not configured; generation and scoring will report the client as unavailable.")

    # Validate numeric settings are within reasonable bounds
    numeric_validations = [
        ("GENERATION_TEMPERATURE", settings.GENERATION_TEMPERATURE, 0.0, 2.0),
        ("SYNTHESIS_TEMPERATURE", settings.SYNTHESIS_TEMPERATURE, 0.0, 2.0),
        ("SCORING_TEMPERATURE", settings.SCORING_TEMPERATURE, 0.0, 2.0),
        ("DEFAULT_MAX_TOKENS", settings.DEFAULT_MAX_TOKENS, 16, 8192),
        ("SYNTHESIS_MAX_TOKENS", settings.SYNTHESIS_MAX_TOKENS, 16, 8192),
        ("SCORING_MAX_TOKENS", settings.SCORING_MAX_TOKENS, 16, 8192),
        ("SHORT_POST_MAX_WORDS", settings.SHORT_POST_MAX_WORDS, 10, 500),
        ("SHORT_POST_MAX_ATTEMPTS", settings.SHORT_POST_MAX_ATTEMPTS, 1, 10),
        ("SCORING_BATCH_SIZE", settings.SCORING_BATCH_SIZE, 1, 500),
        ("MIN_WORTHWHILE_SCORE", settings.MIN_WORTHWHILE_SCORE, 0, 100),
    ]

    for name, value, min_val, max_val in numeric_validations:
        if value < min_val or value > max_val:
            errors.append(f"{name} must be between {min_val} and {max_val}, got {value}")

    for length, tokens in settings.LENGTH_MAX_TOKENS.items():
        if tokens <= 0:
            errors.append(f"LENGTH_MAX_TOKENS[{length}] must be positive, got {tokens}")

    # Validate timeout values are positive
    timeout_settings = [
        ("LLM_REQUEST_TIMEOUT", settings.LLM_REQUEST_TIMEOUT),
        ("FEED_FETCH_TIMEOUT", settings.FEED_FETCH_TIMEOUT),
        ("OG_IMAGE_TIMEOUT", settings.OG_IMAGE_TIMEOUT),
    ]

    for name, value in timeout_settings:
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    if settings.RETRY_DELAY_SECONDS < 0:
        errors.append(f"RETRY_DELAY_SECONDS must not be negative, got {settings.RETRY_DELAY_SECONDS}")

    # Raise all errors at once
    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

    return True


def get_config_summary() -> dict:
    """
    Returns a summary of current configuration (without sensitive values).
    Useful for logging startup state.
    """
    # Import settings here to avoid circular imports
    from philagora.config import settings

    return {
        "ai": {
            "configured": bool(settings.GOOGLE_AI_API_KEY) and settings.GOOGLE_AI_API_KEY != settings.PLACEHOLDER_API_KEY,
            "generation_model": settings.GENERATION_MODEL,
            "scoring_model": settings.SCORING_MODEL,
            "strict_stance_validation": settings.STRICT_STANCE_VALIDATION,
        },
        "database": {
            "server": settings.DB_SERVER[:20] + "..." if settings.DB_SERVER and len(settings.DB_SERVER) > 20 else settings.DB_SERVER,
            "database": settings.DB_NAME,
        },
        "generation_settings": {
            "short_post_max_words": settings.SHORT_POST_MAX_WORDS,
            "short_post_max_attempts": settings.SHORT_POST_MAX_ATTEMPTS,
            "length_max_tokens": dict(settings.LENGTH_MAX_TOKENS),
        },
        "news_scout_settings": {
            "scoring_batch_size": settings.SCORING_BATCH_SIZE,
            "feed_fetch_timeout": settings.FEED_FETCH_TIMEOUT,
        }
    }
