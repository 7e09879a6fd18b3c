"""Translation orchestration and provider backends."""

from lingo_binder.translation.cancel import CancelToken
from lingo_binder.translation.orchestrator import (
    RunResult,
    RunState,
    TranslationOrchestrator,
)
from lingo_binder.translation.providers import TranslationProvider, create_provider

__all__ = [
    "CancelToken",
    "RunResult",
    "RunState",
    "TranslationOrchestrator",
    "TranslationProvider",
    "create_provider",
]
