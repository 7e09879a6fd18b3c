"""Translation backends."""

from .base import TranslationProvider, parse_translation_array
from .factory import create_provider

__all__ = [
    "TranslationProvider",
    "create_provider",
    "parse_translation_array",
]
