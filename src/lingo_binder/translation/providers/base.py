"""Translation provider interface."""

import json
from abc import ABC, abstractmethod

from lingo_binder.exceptions import ProviderFormatError

RATE_LIMIT_STATUS_CODES = frozenset({429, 503})
RATE_LIMIT_MARKERS = ("429", "quota", "RESOURCE_EXHAUSTED")


def looks_rate_limited(status_code: int | None, message: str) -> bool:
    """Classify a backend failure as rate limiting or overload."""
    if status_code in RATE_LIMIT_STATUS_CODES:
        return True
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def parse_translation_array(content: str, provider_name: str | None = None) -> list[str]:
    """Parse a JSON array whose elements are all string-coercible.

    Raises:
        ProviderFormatError: If the content is not such an array
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise ProviderFormatError(f"Response is not valid JSON: {e}", provider_name) from e

    if not isinstance(parsed, list):
        raise ProviderFormatError(
            f"Expected a JSON array, got {type(parsed).__name__}", provider_name
        )

    result = []
    for index, item in enumerate(parsed):
        if isinstance(item, str):
            result.append(item)
        elif isinstance(item, (int, float, bool)):
            result.append(str(item))
        else:
            raise ProviderFormatError(
                f"Element {index} is not a string: {type(item).__name__}",
                provider_name,
            )
    return result


class TranslationProvider(ABC):
    """Translate an ordered batch of texts in one backend call.

    Implementations raise ``RateLimited`` for throttling or overload,
    ``ProviderFormatError`` for unusable output and ``ProviderError`` for
    anything else. Retrying is the orchestrator's job.
    """

    name: str = "provider"

    def translate(self, texts: list[str], target_language: str) -> list[str]:
        """Translate ``texts`` and return the parsed string array."""
        content = self._request(texts, target_language)
        return parse_translation_array(self._unwrap(content), self.name)

    @abstractmethod
    def _request(self, texts: list[str], target_language: str) -> str:
        """Perform the backend call and return the raw response content."""
        pass

    def _unwrap(self, content: str) -> str:
        return content
