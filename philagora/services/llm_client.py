"""
Text Generation Client Module

Thin adapter over Google's Gemini API (google-genai SDK). It sends one system
instruction plus one user turn and returns the text of the reply.

An unconfigured client is not an error: complete() returns None so callers
can report the generator as unavailable. Anything that goes wrong once a call
is actually made raises GenerationFailedError.
"""

from typing import Optional

from google import genai
from google.genai import types

from philagora.config import settings
from philagora.utils.exceptions import GenerationFailedError
from philagora.utils.logger import get_logger

logger = get_logger(__name__)


class TextGenerationClient:
    """Client for single-turn text generation with the Gemini API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the client. No network traffic happens until the first call.

        Args:
            api_key: Gemini API key. Defaults to GOOGLE_AI_API_KEY.
            model: Default model name. Defaults to GENERATION_MODEL.
            timeout: Per-request deadline in seconds. Defaults to LLM_REQUEST_TIMEOUT.
        """
        self.api_key = api_key if api_key is not None else settings.GOOGLE_AI_API_KEY
        self.model = model or settings.GENERATION_MODEL
        self.timeout = timeout or settings.LLM_REQUEST_TIMEOUT
        self._client = None

    @property
    def is_available(self) -> bool:
        """True if an API key (other than the placeholder) is configured."""
        return bool(self.api_key) and self.api_key != settings.PLACEHOLDER_API_KEY

    def _get_client(self):
        if self._client is None:
            # HttpOptions.timeout is in milliseconds
            self._client = genai.Client(
                api_key=self.api_key,
                http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
            )
        return self._client

    def complete(self, system_prompt: str, user_message: str, max_output_tokens: int,
                 temperature: Optional[float] = None, model: Optional[str] = None) -> Optional[str]:
        """
        Generate a reply to one user message under a system instruction.

        Args:
            system_prompt: The system instruction.
            user_message: The single user turn.
            max_output_tokens: Output token budget.
            temperature: Sampling temperature. Defaults to GENERATION_TEMPERATURE.
            model: Model override for this call.

        Returns:
            Optional[str]: The reply text, or None if no API key is configured.

        Raises:
            GenerationFailedError: On network, timeout, quota or SDK errors, or
                when the model returns no text at all.
        """
        if not self.is_available:
            logger.warning("Text generation requested but GOOGLE_AI_API_KEY is not configured")
            return None

        model_name = model or self.model
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=max_output_tokens,
            temperature=settings.GENERATION_TEMPERATURE if temperature is None else temperature,
        )

        try:
            response = self._get_client().models.generate_content(
                model=model_name,
                contents=user_message,
                config=config,
            )
        except Exception as e:
            logger.error(f"Text generation with {model_name} failed: {e}")
            raise GenerationFailedError(f"Text generation failed: {e}") from e

        text = response.text
        if not text:
            finish_reason = None
            if getattr(response, "candidates", None):
                finish_reason = getattr(response.candidates[0], "finish_reason", None)
            logger.error(f"{model_name} returned no text (finish reason: {finish_reason})")
            raise GenerationFailedError(f"Model returned an empty response (finish reason: {finish_reason})")

        logger.debug(f"{model_name} returned {len(text)} characters")
        return text
