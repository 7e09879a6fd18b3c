"""Provider construction from configuration."""

from lingo_binder.config import ProviderConfig
from lingo_binder.exceptions import ConfigurationError

from .base import TranslationProvider


def create_provider(config: ProviderConfig) -> TranslationProvider:
    """Create a translation provider from config.

    Args:
        config: Provider configuration (kind, model, credentials)

    Returns:
        Configured TranslationProvider implementation

    Raises:
        ValueError: If the provider kind is unknown
        ConfigurationError: If the provider cannot be set up

    Example:
        >>> provider = create_provider(ProviderConfig(kind="gemini"))
        >>> provider.translate(["Hello"], "French")
    """
    api_key = config.api_key.get_secret_value() if config.api_key else None

    if config.kind == "gemini":
        from .gemini import StructuredTranslationProvider

        try:
            return StructuredTranslationProvider(
                api_key=api_key,
                model=config.model,
                temperature=config.temperature,
                timeout=config.timeout,
            )
        except ValueError as e:
            raise ConfigurationError(f"Gemini client setup failed: {e}") from e

    if config.kind == "openai":
        from .openai_chat import ChatTranslationProvider

        return ChatTranslationProvider(
            api_key=api_key,
            base_url=config.base_url,
            model=config.model,
            temperature=config.temperature,
            timeout=config.timeout,
        )

    raise ValueError(f"Unknown translation provider: {config.kind}")
