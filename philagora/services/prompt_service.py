"""
Prompt Service Module

Versioned system prompts. Prompts are never edited in place: a change is a
new version, and switching versions flips the active flag in one storage
transaction so a philosopher always has at most one active prompt.
"""

from typing import List, Optional

from philagora.config import settings
from philagora.data.models import SystemPrompt
from philagora.data.protocols import GenerationStorage
from philagora.utils.exceptions import InvalidRequestError, NoActivePromptError
from philagora.utils.logger import get_logger

logger = get_logger(__name__)


class PromptService:
    """Service for creating and activating system prompt versions."""

    def __init__(self, storage: GenerationStorage, sentinel: Optional[str] = None):
        self.storage = storage
        self.sentinel = sentinel or settings.GUARDRAIL_SENTINEL

    def list_prompts(self, philosopher_id: str) -> List[SystemPrompt]:
        return self.storage.list_prompts(philosopher_id)

    def create_version(self, philosopher_id: str, text: str, activate: bool = False) -> SystemPrompt:
        """
        Store a new prompt version, inactive unless activate is set.

        Raises:
            InvalidRequestError: If the philosopher is unknown or the text is empty.
        """
        if not text or not text.strip():
            raise InvalidRequestError("Prompt text is required")
        if self.storage.get_philosopher(philosopher_id) is None:
            raise InvalidRequestError(f'Philosopher "{philosopher_id}" not found')

        prompt = self.storage.create_prompt_version(philosopher_id, text)
        if activate:
            prompt = self.storage.set_active_prompt(prompt.id)
        return prompt

    def set_active(self, prompt_id: int) -> SystemPrompt:
        return self.storage.set_active_prompt(prompt_id)

    def append_guardrail(self, philosopher_id: str, guardrail_text: str) -> Optional[SystemPrompt]:
        """
        Append a guardrail to a philosopher's active prompt as a new active version.

        The guardrail is marked with the sentinel heading. If the active
        prompt already carries the sentinel, nothing changes.

        Returns:
            Optional[SystemPrompt]: The new active version, or None if the
                active prompt already had a guardrail.

        Raises:
            NoActivePromptError: If the philosopher has no active prompt.
            InvalidRequestError: If the guardrail text is empty.
        """
        if not guardrail_text or not guardrail_text.strip():
            raise InvalidRequestError("Guardrail text is required")

        active = self.storage.get_active_prompt(philosopher_id)
        if active is None:
            raise NoActivePromptError(f"No active system prompt for {philosopher_id}")

        if self.sentinel in active.system_prompt_text:
            logger.info(f"{philosopher_id} already has guardrails (v{active.prompt_version}); skipping")
            return None

        guardrail = guardrail_text.strip()
        if self.sentinel not in guardrail:
            guardrail = f"{self.sentinel}:\n{guardrail}"

        text = f"{active.system_prompt_text.rstrip()}\n\n{guardrail}"
        prompt = self.storage.create_prompt_version(philosopher_id, text)
        prompt = self.storage.set_active_prompt(prompt.id)
        logger.info(f"{philosopher_id}: guardrail added as v{prompt.prompt_version} "
                    f"({len(active.system_prompt_text)} -> {len(text)} chars)")
        return prompt
