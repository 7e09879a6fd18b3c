"""Chat-completion backend for OpenAI-compatible endpoints."""

import json
import logging
import re

from openai import APIStatusError, OpenAI, OpenAIError

from lingo_binder.exceptions import (
    ConfigurationError,
    ProviderError,
    ProviderFormatError,
    RateLimited,
)

from .base import TranslationProvider, looks_rate_limited

log = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = "You are a translator. Output strictly JSON array."

CHAT_PROMPT = """You are a professional translator. Translate the following JSON array of text segments into {target_language}.
Maintain the tone and nuance.
IMPORTANT: Return ONLY a raw JSON array of strings. No markdown formatting, no backticks.
Example: ["Hello", "World"]

Input:
{segments}"""

_LEADING_FENCE = re.compile(r"^```[\w-]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")
_LOCAL_HOSTS = ("localhost", "127.0.0.1", "0.0.0.0")


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` wrapper, if present."""
    content = content.strip()
    content = _LEADING_FENCE.sub("", content)
    return _TRAILING_FENCE.sub("", content)


def normalize_base_url(base_url: str) -> str:
    """Trim trailing slashes and an explicit /chat/completions suffix."""
    url = base_url.rstrip("/")
    if url.endswith("/chat/completions"):
        url = url[: -len("/chat/completions")]
    return url


def is_local_url(base_url: str) -> bool:
    return any(host in base_url for host in _LOCAL_HOSTS)


class ChatTranslationProvider(TranslationProvider):
    """Free-form chat completion whose content must hold a JSON array."""

    name = "openai"
    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://api.openai.com/v1",
        model: str | None = None,
        temperature: float = 0.3,
        timeout: float = 60.0,
    ):
        if not api_key and not is_local_url(base_url):
            raise ConfigurationError(
                "API key required for OpenAI-compatible endpoints"
            )
        self.model = model or self.DEFAULT_MODEL
        self.temperature = temperature
        # Retries are owned by the orchestrator
        self._client = OpenAI(
            api_key=api_key or "not-needed",
            base_url=normalize_base_url(base_url),
            timeout=timeout,
            max_retries=0,
        )
        log.info(
            "Initialized chat provider with model=%s, base_url=%s",
            self.model,
            base_url,
        )

    def _request(self, texts: list[str], target_language: str) -> str:
        prompt = CHAT_PROMPT.format(
            target_language=target_language,
            segments=json.dumps(texts, ensure_ascii=False),
        )
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CHAT_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
            )
        except APIStatusError as e:
            if looks_rate_limited(e.status_code, str(e)):
                raise RateLimited(str(e), self.name) from e
            raise ProviderError(f"API error {e.status_code}: {e}", self.name) from e
        except OpenAIError as e:
            raise ProviderError(str(e), self.name) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderFormatError("No content in response", self.name)
        return content

    def _unwrap(self, content: str) -> str:
        return strip_code_fences(content)
