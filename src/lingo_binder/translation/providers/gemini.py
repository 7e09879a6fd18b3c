"""Structured-output backend using the Gemini API."""

import json
import logging

from google import genai
from google.genai import errors, types

from lingo_binder.exceptions import ProviderError, ProviderFormatError, RateLimited

from .base import TranslationProvider, looks_rate_limited

log = logging.getLogger(__name__)

STRUCTURED_PROMPT = """Translate the following array of text segments into {target_language}.
Maintain the tone and nuance of the original text.
Do not merge segments. Return strictly an array of translated strings in the same order.

Input Segments:
{segments}"""


class StructuredTranslationProvider(TranslationProvider):
    """Gemini call constrained by a ``list[str]`` response schema."""

    name = "gemini"
    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        temperature: float = 0.3,
        timeout: float = 60.0,
    ):
        # Non-Gemini model names (left over from another provider) fall back
        self.model = model if model and "gemini" in model else self.DEFAULT_MODEL
        self.temperature = temperature
        self._client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )
        log.info("Initialized Gemini provider with model=%s", self.model)

    def _request(self, texts: list[str], target_language: str) -> str:
        prompt = STRUCTURED_PROMPT.format(
            target_language=target_language,
            segments=json.dumps(texts, ensure_ascii=False),
        )
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=list[str],
                    temperature=self.temperature,
                ),
            )
        except errors.APIError as e:
            if looks_rate_limited(e.code, str(e)):
                raise RateLimited(str(e), self.name) from e
            raise ProviderError(str(e), self.name) from e

        if not response.text:
            raise ProviderFormatError("Empty response", self.name)
        return response.text
