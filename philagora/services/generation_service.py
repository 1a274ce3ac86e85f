"""
Generation Service Module

Composes persona prompts, calls the text generation client and validates what
comes back. Results are returned as GenerationOutcome values rather than
raised, so every attempt, good or bad, can be written to the generation log.

Validation happens in two phases: parse_json_response turns text into JSON,
then validate_shape checks the JSON against the content type's template.
"""

from typing import Any, Optional

from philagora.config import settings
from philagora.data.models import (
    ERROR_NO_ACTIVE_PROMPT,
    ERROR_PARSE,
    ERROR_SCHEMA,
    ERROR_UNAVAILABLE,
    ERROR_UPSTREAM,
    ERROR_VALIDATION,
    LOG_CONTENT_TYPES,
    PERSONA_CONTENT_TYPES,
    SYNTHESIS_TYPES,
    TARGET_LENGTHS,
    GenerationLogEntry,
    GenerationOutcome,
    Philosopher,
    SystemPrompt,
)
from philagora.data.protocols import GenerationStorage
from philagora.services import content_templates
from philagora.services.content_templates import REPLY_TYPES, STANCES, ContentTemplate
from philagora.services.llm_client import TextGenerationClient
from philagora.services.response_parser import parse_json_response
from philagora.utils.exceptions import (
    GenerationFailedError,
    ResponseParseError,
    SchemaMismatchError,
)
from philagora.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Prompt composition
# =============================================================================

def build_system_message(philosopher: Philosopher, prompt: SystemPrompt,
                         content_type_key: str, target_length: Optional[str] = None) -> str:
    """Persona prompt, then philosopher metadata, then template instructions."""
    instructions = content_templates.render_instructions(content_type_key, target_length)
    return (
        f"{prompt.system_prompt_text}\n\n"
        f"---\n\n"
        f"PHILOSOPHER METADATA:\n"
        f"Name: {philosopher.name}\n"
        f"Tradition: {philosopher.tradition}\n"
        f"Era: {philosopher.era}\n"
        f"Core Principles:\n"
        f"{philosopher.principles_text()}\n\n"
        f"---\n\n"
        f"{instructions}"
    )


def build_user_message(content_type_key: str, source_material: str) -> str:
    if content_type_key in REPLY_TYPES:
        return f"YOU ARE REPLYING TO THE FOLLOWING:\n\n{source_material}"
    return f"SOURCE MATERIAL:\n{source_material}"


def max_tokens_for(target_length: Optional[str]) -> int:
    if not target_length:
        return settings.DEFAULT_MAX_TOKENS
    return settings.LENGTH_MAX_TOKENS.get(target_length, settings.DEFAULT_MAX_TOKENS)


# =============================================================================
# Shape validation
# =============================================================================

def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def validate_shape(template: ContentTemplate, data: Any, strict_stances: bool = False) -> None:
    """
    Check parsed JSON against a template's expected fields.

    Raises:
        SchemaMismatchError: If a required field is missing or has the wrong
            type, or (with strict_stances) the stance is not a known value.
    """
    if not isinstance(data, dict):
        raise SchemaMismatchError(f"{template.key}: expected a JSON object, got {type(data).__name__}")

    missing = [name for name in template.expected_fields if name not in data]
    if missing:
        raise SchemaMismatchError(f"{template.key}: missing field(s) {', '.join(missing)}")

    for name in template.expected_fields:
        value = data[name]
        if name in template.list_fields:
            if not _is_string_list(value):
                raise SchemaMismatchError(f"{template.key}: '{name}' must be a list of strings")
        elif not isinstance(value, str):
            raise SchemaMismatchError(f"{template.key}: '{name}' must be a string")

    if "content" in template.expected_fields and not data["content"].strip():
        raise SchemaMismatchError(f"{template.key}: 'content' is empty")

    if template.key == "agora_response":
        posts = data["posts"]
        if not 1 <= len(posts) <= 2:
            raise SchemaMismatchError(f"agora_response: expected 1-2 posts, got {len(posts)}")
        if any(not post.strip() for post in posts):
            raise SchemaMismatchError("agora_response: posts must not be empty")

    if template.key == "debate_synthesis" and "synthesisSummary" in data:
        summary = data["synthesisSummary"]
        if not isinstance(summary, dict) or not all(isinstance(v, str) for v in summary.values()):
            raise SchemaMismatchError("debate_synthesis: 'synthesisSummary' must be an object of strings")

    if "stance" in template.expected_fields and data["stance"] not in STANCES:
        if strict_stances:
            raise SchemaMismatchError(f"{template.key}: unknown stance '{data['stance']}'")
        logger.warning(f"{template.key}: stance '{data['stance']}' is not one of {', '.join(STANCES)}")

    if template.mention_required and not data["content"].lstrip().startswith("@"):
        logger.warning(f"{template.key}: content does not open with an @-mention")


# =============================================================================
# Service
# =============================================================================

class GenerationService:
    """Service for generating persona content and editorial syntheses."""

    def __init__(self, storage: GenerationStorage, client: Optional[TextGenerationClient] = None,
                 strict_stances: Optional[bool] = None):
        """
        Initialize the generation service.

        Args:
            storage: Reads philosophers and prompts, writes the generation log.
            client: Text generation client. A default client is built if omitted.
            strict_stances: Treat unknown stances as schema failures.
                Defaults to STRICT_STANCE_VALIDATION.
        """
        self.storage = storage
        self.client = client or TextGenerationClient()
        self.strict_stances = settings.STRICT_STANCE_VALIDATION if strict_stances is None else strict_stances

    def generate_content(self, philosopher_id: str, content_type_key: str, source_material: str,
                         target_length: Optional[str] = None) -> GenerationOutcome:
        """
        Generate one piece of persona content.

        Args:
            philosopher_id: Persona to write as.
            content_type_key: One of the persona content type keys.
            source_material: Article, post or question the persona reacts to.
            target_length: 'short', 'medium' or 'long'. Also sets the token cap.

        Returns:
            GenerationOutcome: Never raises for generation problems; the
                failure category is in error_kind.
        """
        if not philosopher_id:
            return GenerationOutcome.failure("philosopher_id is required", ERROR_VALIDATION)
        if content_type_key not in PERSONA_CONTENT_TYPES:
            return GenerationOutcome.failure(f"Unknown content type: {content_type_key}", ERROR_VALIDATION)
        if not source_material or not source_material.strip():
            return GenerationOutcome.failure("Source material is required", ERROR_VALIDATION)
        if target_length is not None and target_length not in TARGET_LENGTHS:
            return GenerationOutcome.failure(f"Unknown target length: {target_length}", ERROR_VALIDATION)

        philosopher, prompt = self.storage.get_philosopher_with_active_prompt(philosopher_id)
        if philosopher is None:
            return GenerationOutcome.failure(f'Philosopher "{philosopher_id}" not found', ERROR_VALIDATION)
        if prompt is None:
            logger.warning(f"No active system prompt for {philosopher.name}")
            return GenerationOutcome.failure(
                f"No active system prompt for {philosopher.name}. Create and activate one first.",
                ERROR_NO_ACTIVE_PROMPT,
            )

        system_message = build_system_message(philosopher, prompt, content_type_key, target_length)
        user_message = build_user_message(content_type_key, source_material.strip())

        logger.info(f"Generating {content_type_key} for {philosopher.name} (prompt v{prompt.prompt_version}, length {target_length or 'default'})")
        return self._call_and_validate(
            content_type_key,
            system_message,
            user_message,
            max_output_tokens=max_tokens_for(target_length),
            temperature=settings.GENERATION_TEMPERATURE,
            system_prompt_id=prompt.id,
        )

    def generate_synthesis(self, synthesis_type: str, source_material: str) -> GenerationOutcome:
        """
        Generate an editorial synthesis of a debate or Agora thread.

        No persona is involved: the template instructions are the whole
        system instruction, and sampling is cooler than for persona content.
        """
        if synthesis_type not in SYNTHESIS_TYPES:
            return GenerationOutcome.failure(f"Unknown synthesis type: {synthesis_type}", ERROR_VALIDATION)
        if not source_material or not source_material.strip():
            return GenerationOutcome.failure("Source material is required", ERROR_VALIDATION)

        logger.info(f"Generating {synthesis_type}")
        return self._call_and_validate(
            synthesis_type,
            content_templates.resolve(synthesis_type).instructions,
            f"SOURCE MATERIAL:\n{source_material.strip()}",
            max_output_tokens=settings.SYNTHESIS_MAX_TOKENS,
            temperature=settings.SYNTHESIS_TEMPERATURE,
            system_prompt_id=None,
        )

    def _call_and_validate(self, content_type_key: str, system_message: str, user_message: str,
                           max_output_tokens: int, temperature: float,
                           system_prompt_id: Optional[int]) -> GenerationOutcome:
        try:
            raw_output = self.client.complete(
                system_message,
                user_message,
                max_output_tokens=max_output_tokens,
                temperature=temperature,
            )
        except GenerationFailedError as e:
            return GenerationOutcome.failure(
                f"Text generation error: {e.reason}", ERROR_UPSTREAM, system_prompt_id=system_prompt_id
            )

        if raw_output is None:
            return GenerationOutcome.failure(
                "GOOGLE_AI_API_KEY is not configured. Set it in .env to enable AI generation.",
                ERROR_UNAVAILABLE,
                system_prompt_id=system_prompt_id,
            )

        try:
            data = parse_json_response(raw_output)
        except ResponseParseError as e:
            logger.error(f"{content_type_key}: {e}")
            return GenerationOutcome.failure(
                "Failed to parse the model output as JSON. The raw output is kept in the generation log.",
                ERROR_PARSE,
                raw_output=raw_output,
                system_prompt_id=system_prompt_id,
            )

        try:
            validate_shape(content_templates.resolve(content_type_key), data, self.strict_stances)
        except SchemaMismatchError as e:
            logger.error(str(e))
            return GenerationOutcome.failure(str(e), ERROR_SCHEMA, raw_output=raw_output,
                                             system_prompt_id=system_prompt_id)

        return GenerationOutcome(success=True, data=data, raw_output=raw_output,
                                 system_prompt_id=system_prompt_id)

    def record_outcome(self, outcome: GenerationOutcome, content_type_key: str, user_input: str,
                       philosopher_id: Optional[str] = None) -> Optional[GenerationLogEntry]:
        """
        Write an outcome to the generation log.

        Successful outcomes are logged as 'generated', failures as 'rejected'.
        Requests that failed validation never reached the generator and are
        not logged.

        Returns:
            The stored entry, or None for validation failures.
        """
        if outcome.error_kind == ERROR_VALIDATION:
            logger.info(f"Not logging invalid request: {outcome.error}")
            return None

        entry = GenerationLogEntry(
            philosopher_id=philosopher_id,
            content_type=LOG_CONTENT_TYPES.get(content_type_key, "post"),
            system_prompt_id=outcome.system_prompt_id,
            user_input=user_input.strip(),
            raw_output=outcome.log_output(),
            status=outcome.log_status(),
        )
        entry.id = self.storage.insert_generation_log(entry)
        logger.info(f"Logged {content_type_key} attempt as {entry.status} (log id {entry.id})")
        return entry
