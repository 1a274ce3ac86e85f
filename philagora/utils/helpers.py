"""
Helper Utility Module

This module provides various helper functions used throughout the Philagora pipeline.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlparse

from philagora.utils.logger import get_logger

logger = get_logger(__name__)


def is_valid_url(url: str) -> bool:
    """
    Check if a URL is valid.

    Args:
        url: The URL to validate

    Returns:
        bool: True if the URL is valid, False otherwise
    """
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if not text or not text.strip():
        return 0
    return len(text.split())


def strip_html_tags(text: str) -> str:
    """
    Remove HTML tags from text.

    Args:
        text: The text to clean

    Returns:
        str: Text with HTML tags removed
    """
    clean = re.compile('<.*?>', re.DOTALL)
    return re.sub(clean, '', text)


def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length].rstrip()
    if add_ellipsis:
        truncated += "..."

    return truncated


# =============================================================================
# Bounded retry
# =============================================================================

@dataclass
class RetryPolicy:
    """
    Bounded retry policy.

    Attributes:
        max_attempts: Hard ceiling on the number of calls.
        inter_attempt_delay: Seconds to sleep between attempts.
        accept: Predicate deciding whether an attempt's result is good enough.
    """
    max_attempts: int = 3
    inter_attempt_delay: float = 1.0
    accept: Callable[[Any], bool] = bool


@dataclass
class RetryResult:
    """Outcome of retry_until: the last value produced and whether it was accepted."""
    value: Any
    attempts: int
    accepted: bool


def retry_until(func: Callable[[int], Any], policy: RetryPolicy) -> RetryResult:
    """
    Call func until policy.accept approves its result or attempts run out.

    func receives the 1-based attempt number. Exceptions raised by func are
    not caught; callers that want to retry on failure should return a
    failure value instead.

    Args:
        func: The function to call.
        policy: The retry policy to apply.

    Returns:
        RetryResult: The last result, how many attempts were made, and
            whether it was accepted.
    """
    if policy.max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    value = None
    for attempt in range(1, policy.max_attempts + 1):
        value = func(attempt)
        if policy.accept(value):
            return RetryResult(value=value, attempts=attempt, accepted=True)

        if attempt < policy.max_attempts:
            logger.debug(f"Attempt {attempt}/{policy.max_attempts} not accepted, retrying in {policy.inter_attempt_delay}s")
            if policy.inter_attempt_delay > 0:
                time.sleep(policy.inter_attempt_delay)

    return RetryResult(value=value, attempts=policy.max_attempts, accepted=False)
