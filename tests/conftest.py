"""
Shared Test Fixtures for the Philagora Editorial Pipeline

This module provides common fixtures used across all test modules.
Fixtures include mocks for settings, database connections, the text
generation client and HTTP responses, an in-memory storage that implements
the storage protocols, and factories for test objects.
"""

import pytest
from unittest.mock import MagicMock, patch
from datetime import datetime
from typing import Optional, Dict, Any, List
import itertools
import json
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from philagora.data.models import (
    AgoraResponse,
    AgoraThread,
    ArticleCandidate,
    Contribution,
    Debate,
    DebatePost,
    FeedEntry,
    NewsSource,
    Philosopher,
    SystemPrompt,
)
from philagora.utils.exceptions import InvalidRequestError, InvalidTransitionError


# =============================================================================
# Settings Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """
    Patch the settings module with test configuration values.

    Only the values the tests depend on are overridden; everything else
    keeps its real default.

    Usage:
        def test_something(mock_settings):
            mock_settings.SHORT_POST_MAX_WORDS = 10
            # ... test code

    Returns:
        module: The patched settings module.
    """
    from philagora.config import settings

    overrides = {
        "GOOGLE_AI_API_KEY": "test-google-api-key",
        "DB_SERVER": "test-server",
        "DB_NAME": "test-db",
        "DB_USER": "test-user",
        "DB_PASSWORD": "test-password",
        "DB_CONNECTION_STRING": "DRIVER={Test};SERVER=test-server;DATABASE=test-db;",
        "RETRY_DELAY_SECONDS": 0,
        "USER_AGENT": "Test User Agent",
        "REQUEST_HEADERS": {"User-Agent": "Test User Agent"},
    }
    with patch.multiple(settings, **overrides):
        yield settings


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def mock_db_connection():
    """
    Mock pyodbc database connection and cursor.

    This fixture provides a mock database connection that simulates
    pyodbc behavior without requiring an actual database connection.

    Usage:
        def test_database(mock_db_connection):
            conn, cursor = mock_db_connection
            cursor.fetchall.return_value = [('row1',), ('row2',)]
            # ... test code

    Returns:
        tuple: A tuple of (mock_connection, mock_cursor).
    """
    mock_cursor = MagicMock()
    mock_cursor.description = [('column1',), ('column2',)]
    mock_cursor.fetchall.return_value = []
    mock_cursor.fetchone.return_value = None
    mock_cursor.rowcount = 0

    mock_conn = MagicMock()
    mock_conn.cursor.return_value = mock_cursor
    mock_conn.commit.return_value = None
    mock_conn.rollback.return_value = None
    mock_conn.close.return_value = None

    with patch('pyodbc.connect', return_value=mock_conn):
        yield mock_conn, mock_cursor


class InMemoryStorage:
    """
    Dictionary-backed storage implementing GenerationStorage and NewsStorage.

    Mirrors the database's conditional updates: approvals only succeed for
    'generated' entries and raise InvalidTransitionError otherwise, without
    writing the content item.
    """

    def __init__(self):
        self.philosophers: Dict[str, Philosopher] = {}
        self.prompts: Dict[int, SystemPrompt] = {}
        self.logs: Dict[int, Any] = {}
        self.posts: List[Any] = []
        self.debate_posts: List[DebatePost] = []
        self.agora_responses: List[AgoraResponse] = []
        self.debates: Dict[str, Debate] = {}
        self.debate_contributions: Dict[str, List[Contribution]] = {}
        self.debate_syntheses: Dict[str, Dict[str, Any]] = {}
        self.threads: Dict[str, AgoraThread] = {}
        self.agora_contributions: Dict[str, List[Contribution]] = {}
        self.agora_syntheses: Dict[str, Dict[str, Any]] = {}
        self.sources: List[NewsSource] = []
        self.candidates: Dict[str, ArticleCandidate] = {}
        self.touched_sources: List[str] = []
        self._ids = itertools.count(1)

    # Philosophers and prompts

    def add_philosopher(self, philosopher: Philosopher, prompt_text: Optional[str] = None) -> None:
        self.philosophers[philosopher.id] = philosopher
        if prompt_text is not None:
            prompt = self.create_prompt_version(philosopher.id, prompt_text)
            self.set_active_prompt(prompt.id)

    def get_philosopher(self, philosopher_id):
        return self.philosophers.get(philosopher_id)

    def get_philosopher_with_active_prompt(self, philosopher_id):
        return self.get_philosopher(philosopher_id), self.get_active_prompt(philosopher_id)

    def get_active_prompt(self, philosopher_id):
        for prompt in self.prompts.values():
            if prompt.philosopher_id == philosopher_id and prompt.is_active:
                return prompt
        return None

    def list_prompts(self, philosopher_id):
        prompts = [p for p in self.prompts.values() if p.philosopher_id == philosopher_id]
        return sorted(prompts, key=lambda p: p.prompt_version, reverse=True)

    def create_prompt_version(self, philosopher_id, text):
        versions = [p.prompt_version for p in self.prompts.values() if p.philosopher_id == philosopher_id]
        prompt = SystemPrompt(id=next(self._ids), philosopher_id=philosopher_id,
                              prompt_version=max(versions, default=0) + 1, system_prompt_text=text)
        self.prompts[prompt.id] = prompt
        return prompt

    def set_active_prompt(self, prompt_id):
        target = self.prompts.get(prompt_id)
        if target is None:
            raise InvalidRequestError(f"System prompt {prompt_id} not found")
        for prompt in self.prompts.values():
            if prompt.philosopher_id == target.philosopher_id:
                prompt.is_active = prompt.id == prompt_id
        return target

    # Generation log

    def insert_generation_log(self, entry):
        entry.id = next(self._ids)
        self.logs[entry.id] = entry
        return entry.id

    def get_generation_log(self, log_id):
        return self.logs.get(log_id)

    def update_generation_log_status(self, log_id, current, target):
        entry = self.logs.get(log_id)
        if entry is None or entry.status != current:
            return False
        entry.status = target
        return True

    def _move_log(self, log_id, current, target):
        entry = self.logs.get(log_id)
        if entry is None:
            raise InvalidRequestError(f"Generation log entry {log_id} not found")
        if entry.status != current:
            raise InvalidTransitionError(f"generation log {log_id}", entry.status, target)

    def _approve_log(self, log_id):
        self._move_log(log_id, "generated", "approved")

    def approve_post(self, log_id, post):
        self._approve_log(log_id)
        self.posts.append(post)
        self.logs[log_id].status = "approved"
        return post

    def approve_debate_post(self, log_id, debate_id, philosopher_id, content, phase, target_philosopher_id=None):
        if debate_id not in self.debates:
            raise InvalidRequestError(f'Debate "{debate_id}" not found')
        self._approve_log(log_id)
        reply_to = None
        if target_philosopher_id:
            for existing in self.debate_posts:
                if (existing.debate_id == debate_id and existing.philosopher_id == target_philosopher_id
                        and existing.phase == "opening"):
                    reply_to = existing.id
                    break
        sort_order = sum(1 for p in self.debate_posts if p.debate_id == debate_id and p.phase == phase)
        post = DebatePost(id=f"dp-{debate_id}-{philosopher_id}-{phase}", debate_id=debate_id,
                          philosopher_id=philosopher_id, content=content, phase=phase,
                          reply_to=reply_to, sort_order=sort_order)
        self.debate_posts.append(post)
        self.logs[log_id].status = "approved"
        return post

    def approve_agora_response(self, log_id, thread_id, philosopher_id, posts):
        if thread_id not in self.threads:
            raise InvalidRequestError(f'Agora thread "{thread_id}" not found')
        self._approve_log(log_id)
        sort_order = sum(1 for r in self.agora_responses if r.thread_id == thread_id)
        response = AgoraResponse(id=f"ar-{thread_id}-{philosopher_id}", thread_id=thread_id,
                                 philosopher_id=philosopher_id, posts=list(posts), sort_order=sort_order)
        self.agora_responses.append(response)
        self.logs[log_id].status = "approved"
        return response

    def save_debate_synthesis(self, log_id, debate_id, data):
        if debate_id not in self.debates:
            raise InvalidRequestError(f'Debate "{debate_id}" not found')
        self._approve_log(log_id)
        self.debate_syntheses[debate_id] = data
        self.logs[log_id].status = "approved"

    def save_agora_synthesis(self, log_id, thread_id, data):
        if thread_id not in self.threads:
            raise InvalidRequestError(f'Agora thread "{thread_id}" not found')
        self._approve_log(log_id)
        self.agora_syntheses[thread_id] = data
        self.logs[log_id].status = "approved"

    def publish_log_entry(self, log_id):
        self._move_log(log_id, "approved", "published")
        self.logs[log_id].status = "published"

    # Source material

    def get_debate(self, debate_id):
        return self.debates.get(debate_id)

    def get_debate_contributions(self, debate_id):
        return list(self.debate_contributions.get(debate_id, []))

    def get_agora_thread(self, thread_id):
        return self.threads.get(thread_id)

    def get_agora_contributions(self, thread_id):
        return list(self.agora_contributions.get(thread_id, []))

    # News

    def get_active_sources(self):
        return [s for s in self.sources if s.is_active]

    def insert_candidate_if_new(self, source_id, entry: FeedEntry):
        for candidate in self.candidates.values():
            if candidate.source_id == source_id and candidate.url == entry.link:
                return False
        candidate_id = f"article-{next(self._ids)}"
        self.candidates[candidate_id] = ArticleCandidate(
            id=candidate_id, source_id=source_id, title=entry.title, url=entry.link,
            description=entry.description, pub_date=entry.published_at, image_url=entry.image_url,
        )
        return True

    def touch_source_fetched(self, source_id):
        self.touched_sources.append(source_id)

    def get_new_candidates(self, batch_size):
        return [c for c in self.candidates.values() if c.status == "new"][:batch_size]

    def mark_candidate_scored(self, candidate_id, score):
        candidate = self.candidates.get(candidate_id)
        if candidate is None or candidate.status != "new":
            return False
        candidate.status = "scored"
        candidate.score = score.score
        candidate.score_reasoning = score.reasoning
        candidate.suggested_philosophers = score.suggested_philosophers
        candidate.suggested_stances = score.suggested_stances
        candidate.primary_tensions = score.primary_tensions
        candidate.philosophical_entry_point = score.philosophical_entry_point
        candidate.category_tag = score.category_tag
        candidate.scored_at = datetime.now()
        return True

    def update_candidate_status(self, candidate_id, current, target):
        candidate = self.candidates.get(candidate_id)
        if candidate is None or candidate.status != current:
            return False
        candidate.status = target
        return True

    def update_candidate_image(self, candidate_id, image_url):
        self.candidates[candidate_id].image_url = image_url

    def get_candidate(self, candidate_id):
        return self.candidates.get(candidate_id)


@pytest.fixture
def memory_storage():
    """
    In-memory storage with two philosophers, one of them with an active prompt.

    Returns:
        InMemoryStorage: Fresh storage for each test.
    """
    storage = InMemoryStorage()
    storage.add_philosopher(
        Philosopher(
            id="nietzsche",
            name="Friedrich Nietzsche",
            tradition="Existentialism",
            era="19th century",
            core_principles=[{"title": "Will to power", "description": "Life as self-overcoming"}],
        ),
        prompt_text="You are Friedrich Nietzsche.",
    )
    storage.add_philosopher(Philosopher(id="kant", name="Immanuel Kant", tradition="Deontology", era="18th century"))
    return storage


# =============================================================================
# Text Generation Fixtures
# =============================================================================

@pytest.fixture
def mock_llm_client():
    """
    Mock TextGenerationClient.

    Usage:
        def test_generation(mock_llm_client):
            mock_llm_client.complete.return_value = '{"content": "..."}'

    Returns:
        MagicMock: An available client whose complete() returns nothing useful
            until configured.
    """
    client = MagicMock()
    client.is_available = True
    client.complete.return_value = "{}"
    return client


@pytest.fixture
def llm_json():
    """Factory serializing a dict the way the model would return it."""
    def _create(**fields) -> str:
        return json.dumps(fields)
    return _create


@pytest.fixture
def mock_genai():
    """
    Mock the google-genai module used by the text generation client.

    Returns:
        MagicMock: The patched genai module; genai.Client() returns
            mock_genai.Client.return_value.
    """
    with patch('philagora.services.llm_client.genai') as mock_genai_module:
        yield mock_genai_module


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def capture_logs():
    """
    Capture log messages for assertion in tests.

    Captures actual log records from the philagora logger namespace for
    inspection.

    Returns:
        list: A list that will contain captured log records.
    """
    import logging

    class LogCapture(logging.Handler):
        def __init__(self):
            super().__init__()
            self.records = []

        def emit(self, record):
            self.records.append(record)

    handler = LogCapture()
    handler.setLevel(logging.DEBUG)

    pipeline_logger = logging.getLogger("philagora")
    original_level = pipeline_logger.level
    pipeline_logger.setLevel(logging.DEBUG)
    pipeline_logger.addHandler(handler)

    yield handler.records

    pipeline_logger.removeHandler(handler)
    pipeline_logger.setLevel(original_level)


# =============================================================================
# HTTP Response Fixtures
# =============================================================================

@pytest.fixture
def mock_http_response():
    """
    Factory fixture for creating mock HTTP responses.

    Usage:
        def test_http_request(mock_http_response):
            response = mock_http_response(status_code=200, content=b'<rss/>')

    Returns:
        callable: A factory function for creating mock responses.
    """
    def _create_response(
        status_code: int = 200,
        content: bytes = b'',
        text: str = '',
        headers: Optional[Dict[str, str]] = None,
        url: str = 'https://example.com',
    ) -> MagicMock:
        mock_response = MagicMock()
        mock_response.status_code = status_code
        mock_response.content = content
        mock_response.url = url
        mock_response.headers = headers or {'Content-Type': 'text/html'}
        mock_response.ok = 200 <= status_code < 300
        mock_response.text = text or (content.decode('utf-8') if content else '')

        if status_code >= 400:
            from requests.exceptions import HTTPError
            mock_response.raise_for_status.side_effect = HTTPError(
                f"{status_code} Error",
                response=mock_response
            )
        else:
            mock_response.raise_for_status.return_value = None

        return mock_response

    return _create_response


# =============================================================================
# Data Model Factories
# =============================================================================

@pytest.fixture
def candidate_factory():
    """
    Factory fixture for creating ArticleCandidate test objects.

    Returns:
        callable: A factory function for creating ArticleCandidate objects.
    """
    def _create_candidate(
        id: str = 'article-1',
        source_id: str = 'bbc-world',
        title: str = 'Parliament debates mandatory voting',
        url: str = 'https://example.com/article-1',
        description: str = 'Lawmakers argue over whether voting should be compulsory.',
        status: str = 'new',
        image_url: Optional[str] = None,
        **kwargs
    ) -> ArticleCandidate:
        return ArticleCandidate(
            id=id, source_id=source_id, title=title, url=url, description=description,
            status=status, image_url=image_url, **kwargs
        )

    return _create_candidate


@pytest.fixture
def feed_entry_factory():
    """Factory fixture for creating FeedEntry test objects."""
    def _create_entry(n: int = 1, **kwargs) -> FeedEntry:
        defaults = {
            'title': f'Story {n}',
            'link': f'https://example.com/story-{n}',
            'description': f'<p>Summary of story {n}</p>',
        }
        defaults.update(kwargs)
        return FeedEntry(**defaults)

    return _create_entry
