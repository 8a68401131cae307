"""Gemini API client used for AI-assisted title extraction."""

import asyncio
import logging
import re
from typing import Protocol

from google import genai
from google.genai import types

from postboxd.config import settings

logger = logging.getLogger(__name__)

CODE_FENCE_START = re.compile(r"^```(?:json)?\s*\n?")
CODE_FENCE_END = re.compile(r"\n?```\s*$")


class TextGenerator(Protocol):
    """Anything that turns a prompt into model text."""

    async def generate_text(self, prompt: str, *, system_prompt: str | None = None) -> str: ...


class GeminiUnavailableError(RuntimeError):
    """Raised when a generation is requested without a configured API key."""


def strip_code_fences(text: str) -> str:
    """
    Strip markdown code fences that Gemini sometimes wraps around JSON.

    Safe to call on text without fences.
    """
    text = CODE_FENCE_START.sub("", text)
    text = CODE_FENCE_END.sub("", text)
    return text.strip()


class GeminiClient:
    """Thin async wrapper around the google-genai client."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key (uses settings if not provided)
            model: Model name (uses settings if not provided)
            timeout: Per-request timeout in seconds (uses settings.lookup_timeout if not provided)
        """
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.timeout = timeout if timeout is not None else settings.lookup_timeout
        self._client: genai.Client | None = None
        if not self.api_key:
            logger.warning("Gemini API key not configured")

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise GeminiUnavailableError("Gemini API key not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate_text(self, prompt: str, *, system_prompt: str | None = None) -> str:
        """
        Generate text from a prompt.

        Raises:
            GeminiUnavailableError: No API key configured
            TimeoutError: The model did not answer within the timeout
        """
        config = (
            types.GenerateContentConfig(system_instruction=system_prompt)
            if system_prompt
            else None
        )
        response = await asyncio.wait_for(
            self.client.aio.models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            ),
            timeout=self.timeout,
        )
        return response.text or ""
