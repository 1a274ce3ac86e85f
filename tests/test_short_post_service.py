"""
Tests for the Short Post Service

Covers the word ceiling, the bounded retry loop, logging of every attempt
and skip reporting.
"""

import json
import pytest
from unittest.mock import MagicMock, patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from philagora.data.models import ERROR_SCHEMA, ERROR_VALIDATION
from philagora.services.generation_service import GenerationService
from philagora.services.short_post_service import ShortPostService
from philagora.utils.exceptions import GenerationFailedError
from philagora.utils.helpers import RetryPolicy


def reaction(words: int) -> str:
    return json.dumps({
        "content": " ".join(["word"] * words),
        "thesis": "A thesis.",
        "stance": "warns",
        "tag": "Ethical Analysis",
    })


@pytest.fixture
def short_posts(memory_storage, mock_llm_client):
    generation_service = GenerationService(memory_storage, mock_llm_client)
    return ShortPostService(
        generation_service,
        policy=RetryPolicy(max_attempts=3, inter_attempt_delay=0.5),
        max_words=20,
    )


@pytest.fixture(autouse=True)
def no_sleep():
    with patch('philagora.utils.helpers.time.sleep') as mock_sleep:
        yield mock_sleep


class TestShortPostRetry:
    """Tests for generate_short_post."""

    def test_first_attempt_accepted(self, short_posts, mock_llm_client, memory_storage, no_sleep):
        mock_llm_client.complete.return_value = reaction(12)

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert not result.skipped
        assert result.attempts == 1
        assert result.words == 12
        assert result.log_entry.status == "generated"
        no_sleep.assert_not_called()

    def test_retries_until_short_enough(self, short_posts, mock_llm_client, memory_storage, no_sleep):
        mock_llm_client.complete.side_effect = [reaction(40), reaction(15)]

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert not result.skipped
        assert result.attempts == 2
        statuses = [entry.status for entry in memory_storage.logs.values()]
        assert statuses == ["rejected", "generated"]
        no_sleep.assert_called_once_with(0.5)

    def test_ceiling_respected_and_reported_as_skip(self, short_posts, mock_llm_client, memory_storage):
        mock_llm_client.complete.side_effect = [reaction(30), reaction(35), reaction(25)]

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert result.skipped
        assert result.attempts == 3
        assert result.words == 25
        assert mock_llm_client.complete.call_count == 3
        assert result.outcome.error_kind == ERROR_SCHEMA
        assert "25" in result.reason
        assert len(memory_storage.logs) == 3
        assert all(entry.status == "rejected" for entry in memory_storage.logs.values())

    def test_over_limit_attempt_keeps_raw_output_in_log(self, short_posts, mock_llm_client, memory_storage):
        long_post = reaction(50)
        mock_llm_client.complete.side_effect = [long_post, reaction(5)]

        short_posts.generate_short_post("nietzsche", "An article")

        first = min(memory_storage.logs)
        assert memory_storage.logs[first].raw_output == long_post

    def test_upstream_errors_are_retried(self, short_posts, mock_llm_client):
        mock_llm_client.complete.side_effect = [GenerationFailedError("503"), reaction(10)]

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert not result.skipped
        assert result.attempts == 2

    def test_skip_reports_last_word_count_after_error(self, short_posts, mock_llm_client):
        mock_llm_client.complete.side_effect = [reaction(30), reaction(44), GenerationFailedError("503")]

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert result.skipped
        assert result.words == 44

    def test_missing_prompt_stops_immediately(self, short_posts, mock_llm_client, memory_storage):
        result = short_posts.generate_short_post("kant", "An article")

        assert result.skipped
        assert result.attempts == 1
        assert "No active system prompt" in result.reason
        mock_llm_client.complete.assert_not_called()

    def test_unavailable_client_stops_immediately(self, short_posts, mock_llm_client):
        mock_llm_client.complete.return_value = None

        result = short_posts.generate_short_post("nietzsche", "An article")

        assert result.skipped
        assert result.attempts == 1

    def test_requests_short_length(self, memory_storage):
        generation_service = MagicMock(spec=GenerationService)
        generation_service.generate_content.return_value = MagicMock(success=True, data={"content": "brief"})
        service = ShortPostService(generation_service, policy=RetryPolicy(max_attempts=1), max_words=20)

        service.generate_short_post("nietzsche", "An article")

        assert generation_service.generate_content.call_args[1]["target_length"] == "short"

    def test_reflection_counts_content_words(self, short_posts, mock_llm_client):
        mock_llm_client.complete.return_value = reaction(30)

        result = short_posts.generate_short_post("nietzsche", "An article", "timeless_reflection")

        assert result.skipped
        assert result.attempts == 3
        assert result.words == 30


class TestShortPostTypes:
    """Short posts only apply to types with a single content field."""

    def test_agora_response_refused_before_generation(self, short_posts, mock_llm_client, memory_storage):
        mock_llm_client.complete.return_value = json.dumps({"posts": [" ".join(["word"] * 500)]})

        result = short_posts.generate_short_post("nietzsche", "Should I quit my job?", "agora_response")

        assert result.skipped
        assert result.attempts == 0
        assert result.outcome.error_kind == ERROR_VALIDATION
        assert "agora_response" in result.reason
        mock_llm_client.complete.assert_not_called()
        assert memory_storage.logs == {}

    def test_debate_types_refused(self, short_posts, mock_llm_client):
        for content_type in ("debate_opening", "debate_rebuttal"):
            assert short_posts.generate_short_post("nietzsche", "Topic", content_type).skipped
        mock_llm_client.complete.assert_not_called()
