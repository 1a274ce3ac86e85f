"""
News Scout Service Module

Finds articles worth reacting to. fetch_all_feeds() ingests new items from
every active RSS source; score_unscored() asks the model how much
philosophical material each new article offers.

Problems with a single feed or a single article are recorded in the run
report and the batch carries on, including a write that the database
refuses. Connection failures are not caught here.
"""

from typing import Any, Optional

from philagora.config import settings
from philagora.data.models import ArticleScore, IngestionReport, ScoringReport
from philagora.data.protocols import NewsStorage
from philagora.services.article_service import ArticleService
from philagora.services.feed_service import FeedService
from philagora.services.llm_client import TextGenerationClient
from philagora.services.response_parser import parse_json_response
from philagora.utils.exceptions import (
    FeedFetchError,
    GenerationFailedError,
    QueryError,
    ResponseParseError,
    SchemaMismatchError,
)
from philagora.utils.helpers import strip_html_tags, truncate_text
from philagora.utils.logger import get_logger

logger = get_logger(__name__)

PHILOSOPHER_ROSTER = (
    "Nietzsche", "Marcus Aurelius", "Camus", "Confucius", "Kant", "Bertrand Russell",
    "Kierkegaard", "Plato", "Seneca", "Carl Jung", "Dostoevsky", "Cicero",
)

SCORING_SYSTEM_PROMPT = f"""You are a content curator for Philagora, a social platform where AI agents speak as historical philosophers and debate current events. Decide whether a news article would produce rich, differentiated philosophical commentary.

The philosopher roster is: {", ".join(PHILOSOPHER_ROSTER)}.

Score the article's philosophical potential from 0 to 100 using these criteria:
1. Multi-framework applicability: would two or more philosophers react in meaningfully DIFFERENT ways?
2. Ethical or existential ambiguity: does it sit on a fault line where reasonable frameworks disagree?
3. Concreteness and depth: does it offer specific details to grab onto while implying bigger questions?
4. Stance diversity: would it draw varied stances (challenges, defends, reframes, questions, warns, observes)?
5. Cross-domain resonance: does it touch timeless themes such as freedom vs order, truth vs power, individual vs collective, duty vs desire?

Below {settings.MIN_WORTHWHILE_SCORE} an article is not worth reacting to. 40-60 is decent, 60-80 good, 80 and above excellent.

Score 0 for articles that are:
- Bare scores or results with no narrative depth
- Listicles or promotional content
- Too narrowly technical for philosophical engagement
- Breaking news with no substance yet

RESPOND WITH VALID JSON ONLY. No markdown, no code fences:
{{
  "score": 75,
  "reasoning": "Brief explanation of the score",
  "suggested_philosophers": ["nietzsche", "kant", "confucius"],
  "suggested_stances": {{ "nietzsche": "challenges", "kant": "questions", "confucius": "reframes" }},
  "primary_tensions": ["freedom_vs_order", "individual_vs_collective"],
  "philosophical_entry_point": "One sentence describing the key philosophical angle"
}}"""


def parse_score(data: Any) -> ArticleScore:
    """
    Build an ArticleScore from a parsed scoring response.

    The score is clamped to 0-100. Missing optional fields become empty.

    Raises:
        SchemaMismatchError: If the response is not an object with a numeric score.
    """
    if not isinstance(data, dict):
        raise SchemaMismatchError("Scoring response is not a JSON object")

    raw_score = data.get("score")
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        raise SchemaMismatchError(f"Scoring response has no numeric score: {raw_score!r}")

    philosophers = data.get("suggested_philosophers") or []
    stances = data.get("suggested_stances") or {}
    tensions = data.get("primary_tensions") or []

    return ArticleScore(
        score=max(0, min(100, int(round(raw_score)))),
        reasoning=str(data.get("reasoning") or ""),
        suggested_philosophers=[str(p) for p in philosophers] if isinstance(philosophers, list) else [],
        suggested_stances={str(k): str(v) for k, v in stances.items()} if isinstance(stances, dict) else {},
        primary_tensions=[str(t) for t in tensions] if isinstance(tensions, list) else [],
        philosophical_entry_point=str(data.get("philosophical_entry_point") or ""),
    )


class NewsScoutService:
    """Service for ingesting and scoring news articles."""

    def __init__(self, storage: NewsStorage, client: Optional[TextGenerationClient] = None,
                 feed_service: Optional[FeedService] = None,
                 article_service: Optional[ArticleService] = None):
        self.storage = storage
        self.client = client or TextGenerationClient(model=settings.SCORING_MODEL)
        self.feed_service = feed_service or FeedService()
        self.article_service = article_service or ArticleService()

    def fetch_all_feeds(self) -> IngestionReport:
        """
        Fetch every active source and store unseen articles as 'new' candidates.

        Returns:
            IngestionReport: Sources fetched, candidates added, and
                (source_id, reason) for every source that failed.
        """
        report = IngestionReport()
        sources = self.storage.get_active_sources()
        logger.info(f"Fetching {len(sources)} active news sources")

        for source in sources:
            try:
                entries = self.feed_service.fetch(source.feed_url)
            except FeedFetchError as e:
                logger.warning(f"Skipping {source.name}: {e}")
                report.errors.append((source.id, str(e)))
                continue

            try:
                added = self._store_entries(source.id, entries)
            except QueryError as e:
                logger.error(f"Storing entries from {source.name} failed: {e}")
                report.errors.append((source.id, str(e)))
                continue

            self.storage.touch_source_fetched(source.id)
            report.sources_fetched += 1
            report.candidates_added += added
            logger.info(f"{source.name}: {added} new of {len(entries)} entries")

        logger.info(f"Ingestion finished: {report.candidates_added} new candidates, {len(report.errors)} failed sources")
        return report

    def _store_entries(self, source_id: str, entries) -> int:
        added = 0
        for entry in entries:
            if not entry.title or not entry.link:
                continue
            entry.description = truncate_text(
                strip_html_tags(entry.description or "").strip(),
                settings.ARTICLE_DESCRIPTION_MAX_LENGTH,
                add_ellipsis=False,
            )
            if self.storage.insert_candidate_if_new(source_id, entry):
                added += 1
        return added

    def score_unscored(self, batch_size: Optional[int] = None) -> ScoringReport:
        """
        Score a batch of 'new' candidates.

        Candidates are sampled evenly across sources. A candidate that fails
        to score stays 'new' and is reported; already scored candidates are
        never selected.

        Args:
            batch_size: Maximum candidates to score. Defaults to SCORING_BATCH_SIZE.

        Returns:
            ScoringReport: Number scored and (candidate_id, reason) per failure.
        """
        report = ScoringReport()
        batch_size = batch_size or settings.SCORING_BATCH_SIZE

        if not self.client.is_available:
            logger.error("Cannot score articles: GOOGLE_AI_API_KEY is not configured")
            report.errors.append(("", "GOOGLE_AI_API_KEY is not configured"))
            return report

        candidates = self.storage.get_new_candidates(batch_size)
        logger.info(f"Scoring {len(candidates)} candidates")

        for candidate in candidates:
            user_message = (
                f"ARTICLE TO EVALUATE:\n"
                f"Title: {candidate.title}\n"
                f"Source: {candidate.source_name or candidate.source_id}\n"
                f"Category: {candidate.source_category or 'unknown'}\n"
                f"Published: {candidate.pub_date or 'Unknown'}\n"
                f"Description:\n{candidate.description}"
            )

            try:
                raw_output = self.client.complete(
                    SCORING_SYSTEM_PROMPT,
                    user_message,
                    max_output_tokens=settings.SCORING_MAX_TOKENS,
                    temperature=settings.SCORING_TEMPERATURE,
                    model=settings.SCORING_MODEL,
                )
                if raw_output is None:
                    raise GenerationFailedError("Text generation client is unavailable")
                score = parse_score(parse_json_response(raw_output))
            except (GenerationFailedError, ResponseParseError, SchemaMismatchError) as e:
                logger.warning(f'Scoring "{truncate_text(candidate.title, 60)}" failed: {e}')
                report.errors.append((candidate.id, str(e)))
                continue

            try:
                stored = self.storage.mark_candidate_scored(candidate.id, score)
            except QueryError as e:
                logger.error(f"Storing the score for {candidate.id} failed: {e}")
                report.errors.append((candidate.id, str(e)))
                continue
            if not stored:
                logger.info(f"Candidate {candidate.id} was no longer new; score discarded")
                continue

            report.scored += 1
            logger.info(f'Scored {score.score:3d}: "{truncate_text(candidate.title, 60)}"')

            if not candidate.image_url:
                image_url = self.article_service.fetch_og_image(candidate.url)
                if image_url:
                    self.storage.update_candidate_image(candidate.id, image_url)

        logger.info(f"Scoring finished: {report.scored} scored, {len(report.errors)} errors")
        return report
