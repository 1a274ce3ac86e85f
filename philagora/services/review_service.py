"""
Review Service Module

Editorial decisions on generated content and article candidates: approving
a log entry into a post, debate post, Agora response or synthesis; rejecting;
publishing; and moving candidates through the news scout workflow.

Every decision is checked against review_state first, and the storage update
is conditional on the status that was checked, so two editors acting on the
same entry cannot both succeed.
"""

import json
import uuid
from typing import Any, Dict, List, Optional

from philagora.data.models import (
    AgoraResponse,
    ArticleCandidate,
    DebatePost,
    GenerationLogEntry,
    Post,
)
from philagora.data.protocols import GenerationStorage, NewsStorage
from philagora.services.content_templates import STANCES
from philagora.services.review_state import (
    OPERATOR_CANDIDATE_TARGETS,
    check_candidate_transition,
    check_generation_transition,
)
from philagora.utils.exceptions import InvalidRequestError, InvalidTransitionError
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

POST_LOG_TYPES = ("post", "reflection")
DEBATE_LOG_TYPES = {"debate_opening": "opening", "debate_rebuttal": "rebuttal"}


class ReviewService:
    """Service for review and approval of generated content."""

    def __init__(self, storage: GenerationStorage, news_storage: Optional[NewsStorage] = None):
        self.storage = storage
        self.news_storage = news_storage

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_entry(self, log_id: int) -> GenerationLogEntry:
        entry = self.storage.get_generation_log(log_id)
        if entry is None:
            raise InvalidRequestError(f"Generation log entry {log_id} not found")
        return entry

    def _entry_for_approval(self, log_id: int, allowed_types) -> GenerationLogEntry:
        entry = self._get_entry(log_id)
        check_generation_transition(entry.status, "approved")
        if entry.content_type not in allowed_types:
            raise InvalidRequestError(
                f"Generation log entry {log_id} is a {entry.content_type}, expected one of {', '.join(allowed_types)}"
            )
        return entry

    @staticmethod
    def _generated_data(entry: GenerationLogEntry) -> Dict[str, Any]:
        try:
            data = json.loads(entry.raw_output)
        except ValueError as e:
            raise InvalidRequestError(f"Generation log entry {entry.id} does not hold generated JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidRequestError(f"Generation log entry {entry.id} does not hold a JSON object")
        return data

    # =========================================================================
    # Approvals
    # =========================================================================

    def approve_post(self, log_id: int, citation_title: Optional[str] = None,
                     citation_source: Optional[str] = None, citation_url: Optional[str] = None,
                     reply_to: Optional[str] = None, content: Optional[str] = None) -> Post:
        """
        Approve a generated news reaction, reflection or reply as a feed post.

        Args:
            log_id: Generation log entry to approve.
            citation_title / citation_source / citation_url: Article cited by the post.
            reply_to: Id of the post this one replies to.
            content: Edited content to publish instead of the generated text.

        Returns:
            Post: The stored post.
        """
        entry = self._entry_for_approval(log_id, POST_LOG_TYPES)
        data = self._generated_data(entry)

        body = content if content is not None else data.get("content", "")
        if not body or not body.strip():
            raise InvalidRequestError(f"Generation log entry {log_id} has no content to approve")

        stance = data.get("stance") or "observes"
        if stance not in STANCES:
            logger.warning(f"Approving post with unknown stance '{stance}'; storing 'observes'")
            stance = "observes"

        post = Post(
            id=f"post-gen-{uuid.uuid4().hex[:12]}",
            philosopher_id=entry.philosopher_id,
            content=body.strip(),
            thesis=data.get("thesis") or "",
            stance=stance,
            tag=data.get("tag") or "",
            citation_title=citation_title,
            citation_source=citation_source,
            citation_url=citation_url,
            reply_to=reply_to,
        )
        return self.storage.approve_post(log_id, post)

    def approve_debate_post(self, log_id: int, debate_id: str,
                            target_philosopher_id: Optional[str] = None) -> DebatePost:
        """
        Approve a generated opening statement or rebuttal into a debate.

        A rebuttal needs the philosopher it rebuts; it is threaded under that
        philosopher's opening statement.
        """
        entry = self._entry_for_approval(log_id, tuple(DEBATE_LOG_TYPES))
        phase = DEBATE_LOG_TYPES[entry.content_type]
        if phase == "rebuttal" and not target_philosopher_id:
            raise InvalidRequestError("A rebuttal needs target_philosopher_id")

        data = self._generated_data(entry)
        content = data.get("content")
        if not isinstance(content, str) or not content.strip():
            raise InvalidRequestError(f"Generation log entry {log_id} has no content to approve")

        return self.storage.approve_debate_post(
            log_id, debate_id, entry.philosopher_id, content.strip(), phase,
            target_philosopher_id=target_philosopher_id,
        )

    def approve_agora_response(self, log_id: int, thread_id: str) -> AgoraResponse:
        entry = self._entry_for_approval(log_id, ("agora_response",))
        data = self._generated_data(entry)
        posts: List[str] = [p.strip() for p in data.get("posts") or [] if isinstance(p, str) and p.strip()]
        if not posts:
            raise InvalidRequestError(f"Generation log entry {log_id} has no posts to approve")
        return self.storage.approve_agora_response(log_id, thread_id, entry.philosopher_id, posts)

    def approve_synthesis(self, log_id: int, debate_id: Optional[str] = None,
                          thread_id: Optional[str] = None) -> None:
        """Attach an approved synthesis to its debate or Agora thread."""
        if bool(debate_id) == bool(thread_id):
            raise InvalidRequestError("Give exactly one of debate_id or thread_id")

        entry = self._entry_for_approval(log_id, ("synthesis",))
        data = self._generated_data(entry)

        if debate_id:
            self.storage.save_debate_synthesis(log_id, debate_id, data)
        else:
            self.storage.save_agora_synthesis(log_id, thread_id, data)

    # =========================================================================
    # Other transitions
    # =========================================================================

    def reject(self, log_id: int) -> GenerationLogEntry:
        entry = self._get_entry(log_id)
        check_generation_transition(entry.status, "rejected")
        if not self.storage.update_generation_log_status(log_id, entry.status, "rejected"):
            raise InvalidTransitionError("generation log entry", entry.status, "rejected")
        logger.info(f"Rejected generation log {log_id}")
        entry.status = "rejected"
        return entry

    def publish(self, log_id: int) -> GenerationLogEntry:
        entry = self._get_entry(log_id)
        check_generation_transition(entry.status, "published")
        self.storage.publish_log_entry(log_id)
        entry.status = "published"
        return entry

    def set_candidate_status(self, candidate_id: str, target: str) -> ArticleCandidate:
        """
        Move an article candidate to a new status (approve, dismiss, mark used).

        Raises:
            InvalidRequestError: If the candidate does not exist.
            InvalidTransitionError: If the move is not allowed, the target
                is only reachable by scoring, or the candidate changed status
                in the meantime.
        """
        if self.news_storage is None:
            raise InvalidRequestError("No news storage configured")

        candidate = self.news_storage.get_candidate(candidate_id)
        if candidate is None:
            raise InvalidRequestError(f"Article candidate {candidate_id} not found")

        if target not in OPERATOR_CANDIDATE_TARGETS:
            raise InvalidTransitionError("article candidate", candidate.status, target)
        check_candidate_transition(candidate.status, target)
        if not self.news_storage.update_candidate_status(candidate_id, candidate.status, target):
            raise InvalidTransitionError("article candidate", candidate.status, target)

        logger.info(f"Candidate {candidate_id}: {candidate.status} -> {target}")
        candidate.status = target
        return candidate
