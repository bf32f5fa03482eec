"""Anthropic Claude messages backend."""

import logging

import anthropic
from anthropic import AsyncAnthropic

from models.schemas.extraction import ExtractionMethod
from services.errors import TransientBackendError, error_for_status
from services.llm.base import BaseLLMBackend, LLMCompletion

logger = logging.getLogger(__name__)


class ClaudeBackend(BaseLLMBackend):
    method = ExtractionMethod.CLAUDE
    credential_name = "ANTHROPIC_API_KEY"

    def _create_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(api_key=self._api_key, max_retries=0)

    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        try:
            response = await self.client.messages.create(
                model=model,
                max_tokens=self.max_output_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIStatusError as e:
            raise error_for_status(e.status_code, e.message) from e
        except anthropic.APIConnectionError as e:
            raise TransientBackendError(f"Anthropic connection error: {e}") from e

        # Claude has no JSON mode; the parser tolerates prose around the object
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMCompletion(
            text=text,
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
        )
