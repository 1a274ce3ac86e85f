"""
Tests for the Prompt Service

Covers prompt versioning, activation and guardrail appending.
"""

import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from philagora.config import settings
from philagora.services.prompt_service import PromptService
from philagora.utils.exceptions import InvalidRequestError, NoActivePromptError

GUARDRAIL = "Never invent quotations or statistics."


@pytest.fixture
def prompts(memory_storage):
    return PromptService(memory_storage)


def active_prompts(storage, philosopher_id):
    return [p for p in storage.list_prompts(philosopher_id) if p.is_active]


class TestVersions:
    """Tests for create_version and set_active."""

    def test_new_version_is_inactive_and_numbered(self, prompts, memory_storage):
        prompt = prompts.create_version("nietzsche", "You are Nietzsche, revised.")

        assert prompt.prompt_version == 2
        assert not prompt.is_active
        assert memory_storage.get_active_prompt("nietzsche").prompt_version == 1

    def test_create_and_activate(self, prompts, memory_storage):
        prompt = prompts.create_version("kant", "You are Kant.", activate=True)

        assert prompt.prompt_version == 1
        assert memory_storage.get_active_prompt("kant").id == prompt.id

    def test_exactly_one_active_after_switching(self, prompts, memory_storage):
        v2 = prompts.create_version("nietzsche", "v2")
        v3 = prompts.create_version("nietzsche", "v3")

        prompts.set_active(v2.id)
        prompts.set_active(v3.id)

        active = active_prompts(memory_storage, "nietzsche")
        assert [p.id for p in active] == [v3.id]

    def test_unknown_philosopher(self, prompts):
        with pytest.raises(InvalidRequestError):
            prompts.create_version("socrates", "You are Socrates.")

    def test_empty_text(self, prompts):
        with pytest.raises(InvalidRequestError):
            prompts.create_version("nietzsche", "  ")

    def test_list_newest_first(self, prompts):
        prompts.create_version("nietzsche", "v2")

        assert [p.prompt_version for p in prompts.list_prompts("nietzsche")] == [2, 1]


class TestAppendGuardrail:
    """Tests for append_guardrail."""

    def test_appends_as_new_active_version(self, prompts, memory_storage):
        prompt = prompts.append_guardrail("nietzsche", GUARDRAIL)

        assert prompt.prompt_version == 2
        assert prompt.is_active
        assert prompt.system_prompt_text.startswith("You are Friedrich Nietzsche.")
        assert settings.GUARDRAIL_SENTINEL in prompt.system_prompt_text
        assert prompt.system_prompt_text.endswith(GUARDRAIL)
        assert len(active_prompts(memory_storage, "nietzsche")) == 1

    def test_second_append_is_noop(self, prompts, memory_storage):
        prompts.append_guardrail("nietzsche", GUARDRAIL)

        assert prompts.append_guardrail("nietzsche", "Another rule.") is None
        assert len(memory_storage.list_prompts("nietzsche")) == 2

    def test_guardrail_with_sentinel_not_prefixed_twice(self, prompts):
        text = f"{settings.GUARDRAIL_SENTINEL}: {GUARDRAIL}"

        prompt = prompts.append_guardrail("nietzsche", text)

        assert prompt.system_prompt_text.count(settings.GUARDRAIL_SENTINEL) == 1

    def test_no_active_prompt(self, prompts):
        with pytest.raises(NoActivePromptError):
            prompts.append_guardrail("kant", GUARDRAIL)

    def test_empty_guardrail(self, prompts):
        with pytest.raises(InvalidRequestError):
            prompts.append_guardrail("nietzsche", "")
