"""
Short Post Service Module

Generates genuinely short posts. The token cap for the 'short' length keeps
most replies brief, but models still overshoot, so each result is word
counted and the whole generation is retried a bounded number of times.
"""

from dataclasses import dataclass
from typing import Optional

from philagora.config import settings
from philagora.data.models import (
    ERROR_NO_ACTIVE_PROMPT,
    ERROR_SCHEMA,
    ERROR_UNAVAILABLE,
    ERROR_VALIDATION,
    GenerationLogEntry,
    GenerationOutcome,
)
from philagora.services.generation_service import GenerationService
from philagora.utils.helpers import RetryPolicy, retry_until, word_count
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

# Failures that another attempt cannot fix
NON_RETRYABLE_ERRORS = (ERROR_UNAVAILABLE, ERROR_NO_ACTIVE_PROMPT, ERROR_VALIDATION)

# Persona types whose payload is a single "content" string the word cap applies to
SHORT_POST_TYPES = ("news_reaction", "timeless_reflection", "cross_philosopher_reply")


@dataclass
class ShortPostAttempt:
    outcome: GenerationOutcome
    words: int = 0
    log_entry: Optional[GenerationLogEntry] = None

    @property
    def final(self) -> bool:
        return self.outcome.success or self.outcome.error_kind in NON_RETRYABLE_ERRORS


@dataclass
class ShortPostResult:
    """
    Result of generate_short_post.

    skipped is True when no attempt produced an acceptable post; words then
    holds the word count of the last attempt that produced content.
    """
    outcome: GenerationOutcome
    attempts: int
    words: int
    skipped: bool
    log_entry: Optional[GenerationLogEntry] = None

    @property
    def reason(self) -> str:
        if not self.skipped:
            return ""
        if self.outcome.error_kind in NON_RETRYABLE_ERRORS:
            return self.outcome.error or self.outcome.error_kind
        return (f"All {self.attempts} attempts failed or exceeded {settings.SHORT_POST_MAX_WORDS} words "
                f"(last: {self.words})")


class ShortPostService:
    """Service for short news reactions with a hard word ceiling."""

    def __init__(self, generation_service: GenerationService, policy: Optional[RetryPolicy] = None,
                 max_words: Optional[int] = None):
        self.generation_service = generation_service
        self.max_words = max_words or settings.SHORT_POST_MAX_WORDS
        self.policy = policy or RetryPolicy(
            max_attempts=settings.SHORT_POST_MAX_ATTEMPTS,
            inter_attempt_delay=settings.RETRY_DELAY_SECONDS,
        )

    def _attempt(self, philosopher_id: str, content_type_key: str, source_material: str,
                 attempt: int) -> ShortPostAttempt:
        outcome = self.generation_service.generate_content(
            philosopher_id, content_type_key, source_material, target_length="short"
        )

        words = 0
        if outcome.success:
            words = word_count(outcome.data.get("content", ""))
            if words > self.max_words:
                logger.warning(f"[attempt {attempt}/{self.policy.max_attempts}] {philosopher_id}: "
                               f"{words} words (over {self.max_words} limit)")
                outcome = GenerationOutcome.failure(
                    f"Content has {words} words; the limit is {self.max_words}",
                    ERROR_SCHEMA,
                    raw_output=outcome.raw_output,
                    system_prompt_id=outcome.system_prompt_id,
                )
            else:
                logger.info(f"[attempt {attempt}/{self.policy.max_attempts}] {philosopher_id}: {words} words")
        else:
            logger.warning(f"[attempt {attempt}/{self.policy.max_attempts}] {philosopher_id}: {outcome.error}")

        log_entry = self.generation_service.record_outcome(
            outcome, content_type_key, source_material, philosopher_id=philosopher_id
        )
        return ShortPostAttempt(outcome=outcome, words=words, log_entry=log_entry)

    def generate_short_post(self, philosopher_id: str, source_material: str,
                            content_type_key: str = "news_reaction") -> ShortPostResult:
        """
        Generate a short post, retrying while the result is too long.

        Every attempt is written to the generation log: the accepted one as
        'generated', discarded ones as 'rejected'. Unavailable generators,
        missing prompts and invalid requests stop the loop at once.

        Returns:
            ShortPostResult: The accepted outcome, or a skip with the last
                word count.
        """
        if content_type_key not in SHORT_POST_TYPES:
            logger.warning(f"Short posts are not available for {content_type_key}")
            return ShortPostResult(
                outcome=GenerationOutcome.failure(
                    f"Short posts support {', '.join(SHORT_POST_TYPES)}, not {content_type_key}",
                    ERROR_VALIDATION,
                ),
                attempts=0,
                words=0,
                skipped=True,
            )

        policy = RetryPolicy(
            max_attempts=self.policy.max_attempts,
            inter_attempt_delay=self.policy.inter_attempt_delay,
            accept=lambda result: result.final,
        )
        last_words = 0

        def attempt(n: int) -> ShortPostAttempt:
            nonlocal last_words
            result = self._attempt(philosopher_id, content_type_key, source_material, n)
            if result.words:
                last_words = result.words
            return result

        retry = retry_until(attempt, policy)
        last = retry.value
        accepted = last.outcome.success

        if not accepted:
            logger.warning(f"Skipping {philosopher_id}: no acceptable short post after {retry.attempts} attempt(s)")

        return ShortPostResult(
            outcome=last.outcome,
            attempts=retry.attempts,
            words=last.words if accepted else last_words,
            skipped=not accepted,
            log_entry=last.log_entry,
        )
