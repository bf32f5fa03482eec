"""Abstract base class for remote LLM backends."""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel

from models.schemas.extraction import ExtractionMethod

logger = logging.getLogger(__name__)


class LLMCompletion(BaseModel):
    """Raw text answer plus the token usage the backend reported."""
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0


class BaseLLMBackend(ABC):
    """One remote model provider behind a uniform completion call.

    Subclasses must implement:
        - method: the ExtractionMethod this backend serves
        - credential_name: env var holding the API key (for error messages)
        - is_configured: whether credentials are present
        - _create_client(): build the provider SDK client
        - complete(): send system + user prompt, return an LLMCompletion,
          translating provider exceptions into services.errors
    """

    method: ExtractionMethod
    credential_name: str = ""

    def __init__(self, api_key: str, default_model: str, temperature: float = 0.1,
                 max_output_tokens: int = 4096) -> None:
        self._api_key = api_key
        self.default_model = default_model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def client(self):
        """Provider client, created on first use."""
        if self._client is None:
            logger.info("Creating %s client", self.method.value)
            self._client = self._create_client()
        return self._client

    @abstractmethod
    def _create_client(self):
        """Build the provider SDK client."""

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        """Run one completion. Raises TransientBackendError / PermanentBackendError."""
