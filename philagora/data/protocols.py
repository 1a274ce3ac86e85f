"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for data layer operations.
These protocols enable dependency injection for database operations,
making services testable without real database connections.

Protocols defined:
- GenerationStorage: personas, prompts, the generation log and approved content
- NewsStorage: news sources and article candidates
"""

from typing import Any, Dict, List, Optional, Protocol, Tuple

from philagora.data.models import (
    AgoraResponse,
    AgoraThread,
    ArticleCandidate,
    ArticleScore,
    Contribution,
    Debate,
    DebatePost,
    FeedEntry,
    GenerationLogEntry,
    NewsSource,
    Philosopher,
    Post,
    SystemPrompt,
)


class GenerationStorage(Protocol):
    """Protocol for everything the generation and review services persist.

    Status updates are conditional: they take the status the caller expects
    the row to be in and return False when the row has moved on. Methods
    that write more than one row run inside a single transaction.
    """

    def get_philosopher_with_active_prompt(
        self, philosopher_id: str
    ) -> Tuple[Optional[Philosopher], Optional[SystemPrompt]]:
        """Read a philosopher and its active system prompt in one query."""
        ...

    def get_philosopher(self, philosopher_id: str) -> Optional[Philosopher]:
        ...

    # -- prompts --------------------------------------------------------------

    def get_active_prompt(self, philosopher_id: str) -> Optional[SystemPrompt]:
        ...

    def list_prompts(self, philosopher_id: str) -> List[SystemPrompt]:
        ...

    def create_prompt_version(self, philosopher_id: str, text: str) -> SystemPrompt:
        """Insert a new, inactive prompt with version max(existing) + 1."""
        ...

    def set_active_prompt(self, prompt_id: int) -> SystemPrompt:
        """Deactivate every prompt of the owning philosopher, then activate this one."""
        ...

    # -- generation log -------------------------------------------------------

    def insert_generation_log(self, entry: GenerationLogEntry) -> int:
        """Insert a log entry and return its id."""
        ...

    def get_generation_log(self, log_id: int) -> Optional[GenerationLogEntry]:
        ...

    def update_generation_log_status(self, log_id: int, current: str, target: str) -> bool:
        ...

    # -- approved content -----------------------------------------------------

    def approve_post(self, log_id: int, post: Post) -> Post:
        """Insert the post and mark the log entry approved, atomically."""
        ...

    def approve_debate_post(
        self,
        log_id: int,
        debate_id: str,
        philosopher_id: str,
        content: str,
        phase: str,
        target_philosopher_id: Optional[str] = None,
    ) -> DebatePost:
        ...

    def approve_agora_response(
        self, log_id: int, thread_id: str, philosopher_id: str, posts: List[str]
    ) -> AgoraResponse:
        ...

    def save_debate_synthesis(self, log_id: int, debate_id: str, data: Dict[str, Any]) -> None:
        ...

    def save_agora_synthesis(self, log_id: int, thread_id: str, data: Dict[str, Any]) -> None:
        ...

    def publish_log_entry(self, log_id: int) -> None:
        """Move an approved entry (and any post created from it) to published."""
        ...

    # -- source material ------------------------------------------------------

    def get_debate(self, debate_id: str) -> Optional[Debate]:
        ...

    def get_debate_contributions(self, debate_id: str) -> List[Contribution]:
        """Approved debate posts, openings first, in sort order."""
        ...

    def get_agora_thread(self, thread_id: str) -> Optional[AgoraThread]:
        ...

    def get_agora_contributions(self, thread_id: str) -> List[Contribution]:
        ...


class NewsStorage(Protocol):
    """Protocol for news sources and article candidates."""

    def get_active_sources(self) -> List[NewsSource]:
        ...

    def insert_candidate_if_new(self, source_id: str, entry: FeedEntry) -> bool:
        """Insert a candidate with status 'new'.

        Returns:
            False if a candidate with the same (source_id, url) already exists.
            The existing row is left untouched.
        """
        ...

    def touch_source_fetched(self, source_id: str) -> None:
        ...

    def get_new_candidates(self, batch_size: int) -> List[ArticleCandidate]:
        """Up to batch_size 'new' candidates, sampled evenly across sources."""
        ...

    def mark_candidate_scored(self, candidate_id: str, score: ArticleScore) -> bool:
        """Store score fields and move new -> scored. False if no longer 'new'."""
        ...

    def update_candidate_status(self, candidate_id: str, current: str, target: str) -> bool:
        ...

    def update_candidate_image(self, candidate_id: str, image_url: str) -> None:
        ...

    def get_candidate(self, candidate_id: str) -> Optional[ArticleCandidate]:
        ...
