"""
Data Models for the Philagora Editorial Pipeline

This module contains data classes and status vocabularies used throughout
the pipeline. Rows read from the database are converted to these classes
with the from_row() helpers.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# Vocabularies
# =============================================================================

GENERATION_STATUSES = ("generated", "approved", "rejected", "published", "pending")
CANDIDATE_STATUSES = ("new", "scored", "approved", "dismissed", "used")

TARGET_LENGTHS = ("short", "medium", "long")

PERSONA_CONTENT_TYPES = (
    "news_reaction",
    "timeless_reflection",
    "cross_philosopher_reply",
    "debate_opening",
    "debate_rebuttal",
    "agora_response",
)
SYNTHESIS_TYPES = ("debate_synthesis", "agora_synthesis")
CONTENT_TYPE_KEYS = PERSONA_CONTENT_TYPES + SYNTHESIS_TYPES

# Values stored in generation_log.content_type
LOG_CONTENT_TYPES = {
    "news_reaction": "post",
    "cross_philosopher_reply": "post",
    "timeless_reflection": "reflection",
    "debate_opening": "debate_opening",
    "debate_rebuttal": "debate_rebuttal",
    "agora_response": "agora_response",
    "debate_synthesis": "synthesis",
    "agora_synthesis": "synthesis",
}

# Failure categories carried by GenerationOutcome.error_kind
ERROR_UNAVAILABLE = "unavailable"
ERROR_UPSTREAM = "upstream"
ERROR_PARSE = "parse"
ERROR_SCHEMA = "schema"
ERROR_NO_ACTIVE_PROMPT = "no_active_prompt"
ERROR_VALIDATION = "validation"


def _json_field(value: Any, default: Any) -> Any:
    """Decode a JSON text column, falling back to default on empty or bad data."""
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return default


# =============================================================================
# Personas
# =============================================================================

@dataclass
class Philosopher:
    """A philosopher persona. Read-only input to the pipeline."""
    id: str
    name: str
    tradition: str = ""
    era: str = ""
    core_principles: List[Dict[str, str]] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Philosopher":
        return cls(
            id=row["id"],
            name=row["name"],
            tradition=row.get("tradition") or "",
            era=row.get("era") or "",
            core_principles=_json_field(row.get("core_principles"), []),
        )

    def principles_text(self) -> str:
        """Render core principles as a bulleted list for prompts."""
        lines = []
        for principle in self.core_principles:
            if isinstance(principle, dict) and principle.get("title"):
                lines.append(f"- {principle['title']}: {principle.get('description', '')}")
        return "\n".join(lines) if lines else "(no principles available)"


@dataclass
class SystemPrompt:
    """One version of a philosopher's system prompt."""
    id: int
    philosopher_id: str
    prompt_version: int
    system_prompt_text: str
    is_active: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SystemPrompt":
        return cls(
            id=row["id"],
            philosopher_id=row["philosopher_id"],
            prompt_version=row.get("prompt_version") or 1,
            system_prompt_text=row.get("system_prompt_text") or "",
            is_active=bool(row.get("is_active")),
        )


# =============================================================================
# Generation
# =============================================================================

@dataclass
class GenerationOutcome:
    """
    Result of one generation attempt.

    raw_output is kept on both success and failure so the generation log
    always shows what the model actually returned.
    """
    success: bool
    data: Optional[Any] = None
    raw_output: str = ""
    system_prompt_id: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def failure(cls, error: str, error_kind: str, raw_output: str = "",
                system_prompt_id: Optional[int] = None) -> "GenerationOutcome":
        return cls(success=False, error=error, error_kind=error_kind,
                   raw_output=raw_output or "", system_prompt_id=system_prompt_id)

    def log_status(self) -> str:
        """Initial generation_log status for this outcome."""
        return "generated" if self.success else "rejected"

    def log_output(self) -> str:
        """Text stored in generation_log.raw_output for this outcome."""
        if self.success:
            return json.dumps(self.data, indent=2, ensure_ascii=False)
        return self.raw_output or self.error or ""


@dataclass
class GenerationLogEntry:
    """Durable audit record of a generation attempt and its review status."""
    content_type: str
    user_input: str
    raw_output: str
    status: str
    philosopher_id: Optional[str] = None
    system_prompt_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "GenerationLogEntry":
        return cls(
            id=row.get("id"),
            philosopher_id=row.get("philosopher_id"),
            content_type=row["content_type"],
            system_prompt_id=row.get("system_prompt_id"),
            user_input=row.get("user_input") or "",
            raw_output=row.get("raw_output") or "",
            status=row["status"],
            created_at=row.get("created_at"),
        )


# =============================================================================
# Published content
# =============================================================================

@dataclass
class Post:
    """A feed post created from an approved news reaction, reflection or reply."""
    id: str
    philosopher_id: str
    content: str
    thesis: str = ""
    stance: str = "observes"
    tag: str = ""
    citation_title: Optional[str] = None
    citation_source: Optional[str] = None
    citation_url: Optional[str] = None
    reply_to: Optional[str] = None
    status: str = "approved"


@dataclass
class DebatePost:
    """An opening statement or rebuttal in a debate."""
    id: str
    debate_id: str
    philosopher_id: str
    content: str
    phase: str
    reply_to: Optional[str] = None
    sort_order: Optional[int] = None


@dataclass
class AgoraResponse:
    """A philosopher's one or two posts answering an Agora question."""
    id: str
    thread_id: str
    philosopher_id: str
    posts: List[str]
    sort_order: Optional[int] = None


@dataclass
class Debate:
    id: str
    title: str
    trigger_article_title: str = ""
    trigger_article_source: str = ""
    trigger_article_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Debate":
        return cls(
            id=row["id"],
            title=row["title"],
            trigger_article_title=row.get("trigger_article_title") or "",
            trigger_article_source=row.get("trigger_article_source") or "",
            trigger_article_url=row.get("trigger_article_url"),
        )


@dataclass
class AgoraThread:
    id: str
    question: str
    asked_by: str = "Anonymous"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "AgoraThread":
        return cls(id=row["id"], question=row["question"], asked_by=row.get("asked_by") or "Anonymous")


@dataclass
class Contribution:
    """A prior-phase contribution fed into a synthesis."""
    philosopher_name: str
    content: str
    tradition: str = ""
    phase: str = ""
    replying_to: Optional[str] = None
    philosopher_id: Optional[str] = None
    posts: List[str] = field(default_factory=list)


# =============================================================================
# News scout
# =============================================================================

@dataclass
class NewsSource:
    """An RSS feed configured for ingestion."""
    id: str
    name: str
    feed_url: str
    category: str = "world"
    is_active: bool = True
    last_fetched_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "NewsSource":
        return cls(
            id=row["id"],
            name=row["name"],
            feed_url=row["feed_url"],
            category=row.get("category") or "world",
            is_active=bool(row.get("is_active", True)),
            last_fetched_at=row.get("last_fetched_at"),
        )


@dataclass
class FeedEntry:
    """One entry parsed out of an RSS or Atom feed."""
    title: str
    link: str
    description: str = ""
    published_at: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class ArticleCandidate:
    """An ingested article awaiting, or holding, a relevance score."""
    id: str
    source_id: str
    title: str
    url: str
    description: str = ""
    pub_date: Optional[str] = None
    image_url: Optional[str] = None
    status: str = "new"
    fetched_at: Optional[datetime] = None
    score: Optional[int] = None
    score_reasoning: Optional[str] = None
    suggested_philosophers: List[str] = field(default_factory=list)
    suggested_stances: Dict[str, str] = field(default_factory=dict)
    primary_tensions: List[str] = field(default_factory=list)
    philosophical_entry_point: Optional[str] = None
    category_tag: Optional[str] = None
    scored_at: Optional[datetime] = None
    source_name: Optional[str] = None
    source_category: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ArticleCandidate":
        return cls(
            id=row["id"],
            source_id=row["source_id"],
            title=row["title"],
            url=row["url"],
            description=row.get("description") or "",
            pub_date=row.get("pub_date"),
            image_url=row.get("image_url"),
            status=row.get("status") or "new",
            fetched_at=row.get("fetched_at"),
            score=row.get("score"),
            score_reasoning=row.get("score_reasoning"),
            suggested_philosophers=_json_field(row.get("suggested_philosophers"), []),
            suggested_stances=_json_field(row.get("suggested_stances"), {}),
            primary_tensions=_json_field(row.get("primary_tensions"), []),
            philosophical_entry_point=row.get("philosophical_entry_point"),
            category_tag=row.get("category_tag"),
            scored_at=row.get("scored_at"),
            source_name=row.get("source_name"),
            source_category=row.get("source_category"),
        )


@dataclass
class ArticleScore:
    """Parsed scoring response for one candidate."""
    score: int
    reasoning: str = ""
    suggested_philosophers: List[str] = field(default_factory=list)
    suggested_stances: Dict[str, str] = field(default_factory=dict)
    primary_tensions: List[str] = field(default_factory=list)
    philosophical_entry_point: str = ""

    @property
    def category_tag(self) -> Optional[str]:
        return self.primary_tensions[0] if self.primary_tensions else None


@dataclass
class IngestionReport:
    """Summary of one fetch_all_feeds run."""
    sources_fetched: int = 0
    candidates_added: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class ScoringReport:
    """Summary of one score_unscored run."""
    scored: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)
