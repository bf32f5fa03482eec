"""Lazy backend registry: one backend instance per ExtractionMethod.

Adding a provider means one BaseLLMBackend subclass plus one branch in
_create_backend; nothing else in the engine switches on the provider.
"""

import logging

from config import Settings
from models.schemas.extraction import ExtractionMethod
from services.llm.base import BaseLLMBackend

logger = logging.getLogger(__name__)

# model id prefix -> backend, used when a caller names a model but no method
_MODEL_PREFIXES: list[tuple[str, ExtractionMethod]] = [
    ("gpt-", ExtractionMethod.OPENAI),
    ("o1", ExtractionMethod.OPENAI),
    ("o3", ExtractionMethod.OPENAI),
    ("o4", ExtractionMethod.OPENAI),
    ("claude-", ExtractionMethod.CLAUDE),
    ("gemini-", ExtractionMethod.GEMINI),
]


def method_for_model(model: str | None) -> ExtractionMethod:
    """Pick the backend serving `model`; no model means pattern matching."""
    if not model:
        return ExtractionMethod.PATTERN
    lowered = model.lower()
    for prefix, method in _MODEL_PREFIXES:
        if lowered.startswith(prefix):
            return method
    raise ValueError(f"Cannot infer backend for model: {model}")


def _create_backend(method: ExtractionMethod, settings: Settings) -> BaseLLMBackend:
    """Factory: create a backend by method with deferred SDK imports."""
    common = {
        "temperature": settings.llm_temperature,
        "max_output_tokens": settings.llm_max_output_tokens,
    }
    if method == ExtractionMethod.OPENAI:
        from services.llm.openai_backend import OpenAIBackend
        return OpenAIBackend(settings.openai_api_key, settings.openai_default_model, **common)
    elif method == ExtractionMethod.CLAUDE:
        from services.llm.claude_backend import ClaudeBackend
        return ClaudeBackend(settings.anthropic_api_key, settings.claude_default_model, **common)
    elif method == ExtractionMethod.GEMINI:
        from services.llm.gemini_backend import GeminiBackend
        return GeminiBackend(settings.gemini_api_key, settings.gemini_default_model, **common)
    else:
        raise ValueError(f"No LLM backend for method: {method}")


class BackendRegistry:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._backends: dict[ExtractionMethod, BaseLLMBackend] = {}

    def get(self, method: ExtractionMethod) -> BaseLLMBackend:
        """Get a backend, creating it on first access."""
        if method not in self._backends:
            self._backends[method] = _create_backend(method, self._settings)
        return self._backends[method]

    def register(self, backend: BaseLLMBackend) -> None:
        """Install a backend instance directly (tests, custom providers)."""
        self._backends[backend.method] = backend

    def clear(self) -> None:
        self._backends.clear()
