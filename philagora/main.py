"""
Philagora Editorial Pipeline

This is the main entry point for the editorial pipeline. It ingests and
scores news, generates persona content and syntheses, and carries generated
content through review and publication.

Usage:
    python -m philagora.main fetch-feeds
    python -m philagora.main score --batch-size 20
    python -m philagora.main generate nietzsche news_reaction --article article-1234
    python -m philagora.main approve-post 42
"""

import sys
import json
import argparse
import logging
from typing import Optional, Tuple

from philagora.config import settings
from philagora.config.validators import validate_settings, get_config_summary
from philagora.data.database import db
from philagora.data.models import (
    TARGET_LENGTHS,
    GenerationLogEntry,
    GenerationOutcome,
    IngestionReport,
    ScoringReport,
)
from philagora.services import content_templates, source_material
from philagora.services.generation_service import GenerationService
from philagora.services.llm_client import TextGenerationClient
from philagora.services.news_scout_service import NewsScoutService
from philagora.services.prompt_service import PromptService
from philagora.services.review_service import ReviewService
from philagora.services.review_state import OPERATOR_CANDIDATE_TARGETS
from philagora.services.short_post_service import SHORT_POST_TYPES, ShortPostResult, ShortPostService
from philagora.utils.exceptions import (
    PhilagoraError, ConfigurationError, AIServiceError, ArticleError, ReviewError, DatabaseError,
    InvalidRequestError,
)
from philagora.utils.logger import get_logger, setup_file_logging

# Set up logging
logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


class EditorialPipeline:
    """
    Main application class for the editorial pipeline.

    Wires the storage layer into the generation, news scout, review and
    prompt services and exposes the operations the CLI drives.
    """

    def __init__(self, storage=None, client: Optional[TextGenerationClient] = None):
        """
        Initialize the pipeline.

        Args:
            storage: Object implementing GenerationStorage and NewsStorage.
                Defaults to the shared database connection.
            client: Text generation client shared by all services.
        """
        self.storage = storage or db
        self.generation_service = GenerationService(self.storage, client)
        self.short_post_service = ShortPostService(self.generation_service)
        self.news_scout_service = NewsScoutService(self.storage, client)
        self.review_service = ReviewService(self.storage, self.storage)
        self.prompt_service = PromptService(self.storage)

    # =========================================================================
    # Generation
    # =========================================================================

    @staticmethod
    def resolve_content_type_key(raw_type: Optional[str], ui_label: Optional[str] = None) -> str:
        return content_templates.resolve_content_type_key(raw_type, ui_label)

    def generate_content(self, philosopher_id: str, content_type: str, source: str,
                         target_length: Optional[str] = None, ui_label: Optional[str] = None
                         ) -> Tuple[GenerationOutcome, Optional[GenerationLogEntry]]:
        """
        Generate persona content and write the attempt to the generation log.

        Args:
            content_type: A template key, or a stored type ('post',
                'reflection') disambiguated by ui_label.

        Returns:
            Tuple of the outcome and its log entry (None for invalid requests).
        """
        key = self.resolve_content_type_key(content_type, ui_label)
        outcome = self.generation_service.generate_content(philosopher_id, key, source, target_length)
        entry = self.generation_service.record_outcome(outcome, key, source or "", philosopher_id=philosopher_id)
        return outcome, entry

    def generate_short_post(self, philosopher_id: str, source: str,
                            content_type: str = "news_reaction") -> ShortPostResult:
        return self.short_post_service.generate_short_post(philosopher_id, source, content_type)

    def generate_synthesis(self, synthesis_type: str, source: str
                           ) -> Tuple[GenerationOutcome, Optional[GenerationLogEntry]]:
        outcome = self.generation_service.generate_synthesis(synthesis_type, source)
        entry = self.generation_service.record_outcome(outcome, synthesis_type, source or "")
        return outcome, entry

    def synthesize_debate(self, debate_id: str) -> Tuple[GenerationOutcome, Optional[GenerationLogEntry]]:
        debate = self.storage.get_debate(debate_id)
        if debate is None:
            raise InvalidRequestError(f'Debate "{debate_id}" not found')
        contributions = self.storage.get_debate_contributions(debate_id)
        if not contributions:
            raise InvalidRequestError(f'Debate "{debate_id}" has no posts to synthesize')
        return self.generate_synthesis("debate_synthesis", source_material.debate_synthesis(debate, contributions))

    def synthesize_agora(self, thread_id: str) -> Tuple[GenerationOutcome, Optional[GenerationLogEntry]]:
        thread = self.storage.get_agora_thread(thread_id)
        if thread is None:
            raise InvalidRequestError(f'Agora thread "{thread_id}" not found')
        contributions = self.storage.get_agora_contributions(thread_id)
        if not contributions:
            raise InvalidRequestError(f'Agora thread "{thread_id}" has no responses to synthesize')
        return self.generate_synthesis("agora_synthesis", source_material.agora_synthesis(thread, contributions))

    # =========================================================================
    # Source material
    # =========================================================================

    def article_material(self, candidate_id: str) -> str:
        candidate = self.storage.get_candidate(candidate_id)
        if candidate is None:
            raise InvalidRequestError(f"Article candidate {candidate_id} not found")
        return source_material.news_article(candidate)

    def debate_material(self, debate_id: str, rebut_philosopher_id: Optional[str] = None) -> str:
        """Opening material for a debate, or rebuttal material against one philosopher's opening."""
        debate = self.storage.get_debate(debate_id)
        if debate is None:
            raise InvalidRequestError(f'Debate "{debate_id}" not found')
        if not rebut_philosopher_id:
            return source_material.debate_opening(debate)

        opening = source_material.find_opening(self.storage.get_debate_contributions(debate_id), rebut_philosopher_id)
        if opening is None:
            raise InvalidRequestError(f'{rebut_philosopher_id} has no opening statement in debate "{debate_id}"')
        return source_material.debate_rebuttal(debate, opening.philosopher_name, opening.content)

    def agora_material(self, thread_id: str) -> str:
        thread = self.storage.get_agora_thread(thread_id)
        if thread is None:
            raise InvalidRequestError(f'Agora thread "{thread_id}" not found')
        return source_material.agora_question(thread)

    # =========================================================================
    # News scout
    # =========================================================================

    def fetch_all_feeds(self) -> IngestionReport:
        return self.news_scout_service.fetch_all_feeds()

    def score_unscored(self, batch_size: Optional[int] = None) -> ScoringReport:
        return self.news_scout_service.score_unscored(batch_size)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _source_from_args(pipeline: EditorialPipeline, args) -> str:
    if args.article:
        return pipeline.article_material(args.article)
    if args.debate:
        return pipeline.debate_material(args.debate, args.rebut)
    if args.thread:
        return pipeline.agora_material(args.thread)
    if args.file:
        with open(args.file, encoding='utf-8') as f:
            return f.read()
    return args.text or ""


def _report_outcome(outcome: GenerationOutcome, entry: Optional[GenerationLogEntry]) -> int:
    log_id = entry.id if entry else None
    if outcome.success:
        logger.info(f"Generation succeeded (log id {log_id})")
        _print_json(outcome.data)
        return EXIT_OK
    logger.warning(f"Generation failed [{outcome.error_kind}]: {outcome.error} (log id {log_id})")
    return EXIT_FAILED


def run_command(pipeline: EditorialPipeline, args) -> int:
    """
    Run one CLI command.

    Returns:
        int: Exit code.
    """
    command = args.command

    if command == "init-db":
        batches = pipeline.storage.init_schema(args.schema_file)
        logger.info(f"Schema applied ({batches} batches)")
        return EXIT_OK

    if command == "fetch-feeds":
        report = pipeline.fetch_all_feeds()
        for source_id, reason in report.errors:
            logger.warning(f"  {source_id}: {reason}")
        return EXIT_OK if report.sources_fetched or not report.errors else EXIT_FAILED

    if command == "score":
        report = pipeline.score_unscored(args.batch_size)
        return EXIT_OK if report.scored or not report.errors else EXIT_FAILED

    if command == "generate":
        source = _source_from_args(pipeline, args)
        outcome, entry = pipeline.generate_content(
            args.philosopher, args.content_type, source, args.length, args.label
        )
        return _report_outcome(outcome, entry)

    if command == "short-post":
        source = _source_from_args(pipeline, args)
        result = pipeline.generate_short_post(args.philosopher, source, args.content_type)
        if result.skipped:
            logger.warning(f"Skipped {args.philosopher}: {result.reason}")
            return EXIT_FAILED
        logger.info(f"Short post accepted after {result.attempts} attempt(s), {result.words} words")
        _print_json(result.outcome.data)
        return EXIT_OK

    if command == "synthesize-debate":
        return _report_outcome(*pipeline.synthesize_debate(args.debate_id))

    if command == "synthesize-agora":
        return _report_outcome(*pipeline.synthesize_agora(args.thread_id))

    if command == "approve-post":
        post = pipeline.review_service.approve_post(
            args.log_id, args.citation_title, args.citation_source, args.citation_url, args.reply_to
        )
        logger.info(f"Approved log {args.log_id} as post {post.id}")
        return EXIT_OK

    if command == "approve-debate-post":
        post = pipeline.review_service.approve_debate_post(args.log_id, args.debate_id, args.target)
        logger.info(f"Approved log {args.log_id} as {post.phase} {post.id}")
        return EXIT_OK

    if command == "approve-agora-response":
        response = pipeline.review_service.approve_agora_response(args.log_id, args.thread_id)
        logger.info(f"Approved log {args.log_id} as Agora response {response.id}")
        return EXIT_OK

    if command == "approve-synthesis":
        pipeline.review_service.approve_synthesis(args.log_id, args.debate, args.thread)
        logger.info(f"Approved synthesis log {args.log_id}")
        return EXIT_OK

    if command == "reject":
        pipeline.review_service.reject(args.log_id)
        return EXIT_OK

    if command == "publish":
        pipeline.review_service.publish(args.log_id)
        logger.info(f"Published log {args.log_id}")
        return EXIT_OK

    if command == "set-candidate-status":
        pipeline.review_service.set_candidate_status(args.candidate_id, args.status)
        return EXIT_OK

    if command == "set-active-prompt":
        prompt = pipeline.prompt_service.set_active(args.prompt_id)
        logger.info(f"{prompt.philosopher_id}: v{prompt.prompt_version} is now active")
        return EXIT_OK

    if command == "add-guardrail":
        with open(args.guardrail_file, encoding='utf-8') as f:
            guardrail = f.read()
        for philosopher_id in args.philosophers:
            pipeline.prompt_service.append_guardrail(philosopher_id, guardrail)
        return EXIT_OK

    raise InvalidRequestError(f"Unknown command: {command}")


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument('--article', help='Article candidate id to react to')
    group.add_argument('--debate', help='Debate id (opening statement, or rebuttal with --rebut)')
    group.add_argument('--thread', help='Agora thread id to answer')
    group.add_argument('--file', help='File holding the source material')
    group.add_argument('--text', help='Source material text')
    parser.add_argument('--rebut', help='Philosopher whose opening statement is rebutted (with --debate)')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Philagora Editorial Pipeline')
    parser.add_argument('--log-file', type=str, default=settings.LOG_FILE, help='Log file path')
    parser.add_argument('--log-level', type=str, choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('init-db', help='Create pipeline tables and seed news sources')
    p.add_argument('--schema-file', default=None, help='Alternative schema.sql')

    sub.add_parser('fetch-feeds', help='Ingest new articles from every active RSS source')

    p = sub.add_parser('score', help='Score new article candidates')
    p.add_argument('--batch-size', type=int, default=None)

    p = sub.add_parser('generate', help='Generate persona content and log it for review')
    p.add_argument('philosopher')
    p.add_argument('content_type', help='Template key, or a stored type (post, reflection)')
    p.add_argument('--length', choices=TARGET_LENGTHS, default=None)
    p.add_argument('--label', default=None, help='Editor label used to disambiguate "post"')
    _add_source_arguments(p)

    p = sub.add_parser('short-post', help='Generate a short post, retrying while it runs long')
    p.add_argument('philosopher')
    p.add_argument('--content-type', choices=SHORT_POST_TYPES, default='news_reaction')
    _add_source_arguments(p)

    p = sub.add_parser('synthesize-debate', help='Generate a synthesis of a debate')
    p.add_argument('debate_id')

    p = sub.add_parser('synthesize-agora', help='Generate a synthesis of an Agora thread')
    p.add_argument('thread_id')

    p = sub.add_parser('approve-post', help='Approve a generated post into the feed')
    p.add_argument('log_id', type=int)
    p.add_argument('--citation-title')
    p.add_argument('--citation-source')
    p.add_argument('--citation-url')
    p.add_argument('--reply-to')

    p = sub.add_parser('approve-debate-post', help='Approve a generated opening or rebuttal')
    p.add_argument('log_id', type=int)
    p.add_argument('debate_id')
    p.add_argument('--target', help='Philosopher rebutted (rebuttals only)')

    p = sub.add_parser('approve-agora-response', help='Approve a generated Agora response')
    p.add_argument('log_id', type=int)
    p.add_argument('thread_id')

    p = sub.add_parser('approve-synthesis', help='Attach a generated synthesis to its debate or thread')
    p.add_argument('log_id', type=int)
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument('--debate')
    target.add_argument('--thread')

    p = sub.add_parser('reject', help='Reject a generated log entry')
    p.add_argument('log_id', type=int)

    p = sub.add_parser('publish', help='Publish an approved log entry')
    p.add_argument('log_id', type=int)

    p = sub.add_parser('set-candidate-status', help='Approve, dismiss or mark an article candidate used')
    p.add_argument('candidate_id')
    p.add_argument('status', choices=OPERATOR_CANDIDATE_TARGETS)

    p = sub.add_parser('set-active-prompt', help='Make a prompt version the active one')
    p.add_argument('prompt_id', type=int)

    p = sub.add_parser('add-guardrail', help='Append guardrail text to active prompts as new versions')
    p.add_argument('guardrail_file')
    p.add_argument('philosophers', nargs='+')

    return parser


def parse_arguments(argv=None):
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv=None):
    """Main entry point for the application."""
    # Parse command line arguments
    args = parse_arguments(argv)

    # Set up logging
    log_level = getattr(logging, args.log_level)
    setup_file_logging(args.log_file, log_level)

    logger.info(f"Starting Philagora pipeline: {args.command}")

    try:
        validate_settings()
        logger.debug(f"Configuration: {get_config_summary()}")
        pipeline = EditorialPipeline()
        exit_code = run_command(pipeline, args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        exit_code = EXIT_ERROR
    except AIServiceError as e:
        logger.error(f"AI service error: {e}", exc_info=True)
        exit_code = EXIT_FAILED
    except ArticleError as e:
        logger.error(f"Article processing error: {e}", exc_info=True)
        exit_code = EXIT_FAILED
    except ReviewError as e:
        logger.error(f"Review error: {e}", exc_info=True)
        exit_code = EXIT_FAILED
    except DatabaseError as e:
        logger.error(f"Database error: {e}", exc_info=True)
        exit_code = EXIT_ERROR
    except PhilagoraError as e:
        logger.error(f"Pipeline error: {e}", exc_info=True)
        exit_code = EXIT_FAILED
    except Exception as e:
        logger.error(f"Unhandled exception in Philagora pipeline: {e}", exc_info=True)
        exit_code = EXIT_ERROR
    finally:
        db.close()

    # Log application end
    logger.info(f"Philagora pipeline finished with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
