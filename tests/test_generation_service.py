"""
Tests for the Generation Service

Covers prompt composition, outcome categories, two-phase validation and the
rule that every attempt that reached the generator is logged.
"""

import json
import pytest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from philagora.config import settings
from philagora.data.models import (
    ERROR_NO_ACTIVE_PROMPT,
    ERROR_PARSE,
    ERROR_SCHEMA,
    ERROR_UNAVAILABLE,
    ERROR_UPSTREAM,
    ERROR_VALIDATION,
    GenerationOutcome,
)
from philagora.services.content_templates import resolve
from philagora.services.generation_service import (
    GenerationService,
    build_user_message,
    max_tokens_for,
    validate_shape,
)
from philagora.utils.exceptions import GenerationFailedError, SchemaMismatchError

REACTION = {"content": "God is dead, and so is the ballot.", "thesis": "Votes are herd instinct.",
            "stance": "challenges", "tag": "Political Commentary"}


@pytest.fixture
def service(memory_storage, mock_llm_client):
    return GenerationService(memory_storage, mock_llm_client, strict_stances=False)


class TestPromptComposition:
    """Tests for the system and user messages handed to the client."""

    def test_system_message_layers_persona_metadata_and_template(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = json.dumps(REACTION)

        service.generate_content("nietzsche", "news_reaction", "An article", "short")

        system_message, user_message = mock_llm_client.complete.call_args[0][:2]
        assert system_message.startswith("You are Friedrich Nietzsche.")
        assert "PHILOSOPHER METADATA:" in system_message
        assert "Tradition: Existentialism" in system_message
        assert "- Will to power: Life as self-overcoming" in system_message
        assert "Length: 40-80 words" in system_message
        assert user_message == "SOURCE MATERIAL:\nAn article"

    def test_reply_types_get_reply_framing(self):
        assert build_user_message("cross_philosopher_reply", "post").startswith("YOU ARE REPLYING TO THE FOLLOWING:")
        assert build_user_message("debate_rebuttal", "post").startswith("YOU ARE REPLYING TO THE FOLLOWING:")
        assert build_user_message("agora_response", "q").startswith("SOURCE MATERIAL:")

    def test_target_length_sets_token_cap(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = json.dumps(REACTION)

        service.generate_content("nietzsche", "news_reaction", "An article", "short")

        assert mock_llm_client.complete.call_args[1]["max_output_tokens"] == settings.LENGTH_MAX_TOKENS["short"]

    def test_default_token_cap(self):
        assert max_tokens_for(None) == settings.DEFAULT_MAX_TOKENS


class TestGenerateContent:
    """Tests for generate_content outcomes."""

    def test_success(self, service, mock_llm_client, memory_storage):
        mock_llm_client.complete.return_value = "```json\n" + json.dumps(REACTION) + "\n```"

        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        assert outcome.success
        assert outcome.data == REACTION
        assert outcome.system_prompt_id == memory_storage.get_active_prompt("nietzsche").id

    def test_missing_source_is_validation_failure(self, service, mock_llm_client):
        outcome = service.generate_content("nietzsche", "news_reaction", "   ")

        assert outcome.error_kind == ERROR_VALIDATION
        mock_llm_client.complete.assert_not_called()

    def test_unknown_content_type_is_validation_failure(self, service):
        assert service.generate_content("nietzsche", "debate_synthesis", "x").error_kind == ERROR_VALIDATION

    def test_unknown_philosopher_is_validation_failure(self, service):
        outcome = service.generate_content("socrates", "news_reaction", "x")

        assert outcome.error_kind == ERROR_VALIDATION
        assert "not found" in outcome.error

    def test_no_active_prompt(self, service, mock_llm_client):
        outcome = service.generate_content("kant", "news_reaction", "An article")

        assert not outcome.success
        assert outcome.error_kind == ERROR_NO_ACTIVE_PROMPT
        mock_llm_client.complete.assert_not_called()

    def test_unavailable_client(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = None

        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        assert outcome.error_kind == ERROR_UNAVAILABLE
        assert "GOOGLE_AI_API_KEY" in outcome.error

    def test_upstream_error(self, service, mock_llm_client):
        mock_llm_client.complete.side_effect = GenerationFailedError("quota exceeded")

        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        assert outcome.error_kind == ERROR_UPSTREAM
        assert "quota exceeded" in outcome.error

    def test_parse_failure_keeps_raw_output(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = "I refuse to speak in JSON."

        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        assert outcome.error_kind == ERROR_PARSE
        assert outcome.raw_output == "I refuse to speak in JSON."

    def test_schema_failure(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = json.dumps({"content": "Only content"})

        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        assert outcome.error_kind == ERROR_SCHEMA
        assert "thesis" in outcome.error


class TestValidateShape:
    """Tests for validate_shape."""

    def test_unknown_stance_allowed_when_permissive(self, capture_logs):
        data = dict(REACTION, stance="muses")

        validate_shape(resolve("news_reaction"), data, strict_stances=False)

        assert any("muses" in r.getMessage() for r in capture_logs)

    def test_unknown_stance_rejected_when_strict(self):
        with pytest.raises(SchemaMismatchError):
            validate_shape(resolve("news_reaction"), dict(REACTION, stance="muses"), strict_stances=True)

    def test_non_object_rejected(self):
        with pytest.raises(SchemaMismatchError):
            validate_shape(resolve("news_reaction"), ["content"])

    def test_agora_response_post_count(self):
        template = resolve("agora_response")
        validate_shape(template, {"posts": ["one"]})
        validate_shape(template, {"posts": ["one", "two"]})
        with pytest.raises(SchemaMismatchError):
            validate_shape(template, {"posts": []})
        with pytest.raises(SchemaMismatchError):
            validate_shape(template, {"posts": ["one", "two", "three"]})

    def test_list_fields_must_hold_strings(self):
        with pytest.raises(SchemaMismatchError):
            validate_shape(resolve("agora_synthesis"),
                           {"tensions": [1], "agreements": [], "practicalTakeaways": []})

    def test_missing_mention_only_warns(self, capture_logs):
        data = dict(REACTION, content="I disagree entirely.")

        validate_shape(resolve("cross_philosopher_reply"), data)

        assert any("@-mention" in r.getMessage() for r in capture_logs)


class TestGenerateSynthesis:
    """Tests for generate_synthesis."""

    def test_synthesis_uses_template_as_whole_system_instruction(self, service, mock_llm_client):
        mock_llm_client.complete.return_value = json.dumps(
            {"tensions": ["a"], "agreements": ["b"], "practicalTakeaways": ["c"]}
        )

        outcome = service.generate_synthesis("agora_synthesis", "USER QUESTION: ...")

        assert outcome.success
        assert outcome.system_prompt_id is None
        assert mock_llm_client.complete.call_args[0][0] == resolve("agora_synthesis").instructions
        assert mock_llm_client.complete.call_args[1]["temperature"] == settings.SYNTHESIS_TEMPERATURE

    def test_unknown_synthesis_type(self, service):
        assert service.generate_synthesis("news_reaction", "x").error_kind == ERROR_VALIDATION


class TestRecordOutcome:
    """Tests for writing outcomes to the generation log."""

    def test_success_logged_as_generated(self, service, mock_llm_client, memory_storage):
        mock_llm_client.complete.return_value = json.dumps(REACTION)
        outcome = service.generate_content("nietzsche", "news_reaction", "An article")

        entry = service.record_outcome(outcome, "news_reaction", "An article", "nietzsche")

        assert entry.status == "generated"
        assert entry.content_type == "post"
        assert json.loads(memory_storage.logs[entry.id].raw_output) == REACTION

    def test_failure_logged_as_rejected_with_raw_output(self, service, mock_llm_client, memory_storage):
        mock_llm_client.complete.return_value = "not json"
        outcome = service.generate_content("nietzsche", "timeless_reflection", "Solitude")

        entry = service.record_outcome(outcome, "timeless_reflection", "Solitude", "nietzsche")

        assert entry.status == "rejected"
        assert entry.content_type == "reflection"
        assert entry.raw_output == "not json"
        assert entry.id in memory_storage.logs

    def test_failure_without_output_logs_error_text(self, service, memory_storage):
        outcome = GenerationOutcome.failure("Text generation error: timeout", ERROR_UPSTREAM)

        entry = service.record_outcome(outcome, "debate_synthesis", "material")

        assert entry.raw_output == "Text generation error: timeout"
        assert entry.content_type == "synthesis"
        assert entry.philosopher_id is None

    def test_validation_failures_not_logged(self, service, memory_storage):
        outcome = GenerationOutcome.failure("Source material is required", ERROR_VALIDATION)

        assert service.record_outcome(outcome, "news_reaction", "", "nietzsche") is None
        assert memory_storage.logs == {}

    def test_storage_errors_propagate(self, mock_llm_client):
        storage = MagicMock()
        storage.insert_generation_log.side_effect = RuntimeError("disk full")
        service = GenerationService(storage, mock_llm_client)

        with pytest.raises(RuntimeError):
            service.record_outcome(GenerationOutcome(success=True, data={}), "news_reaction", "x", "nietzsche")
