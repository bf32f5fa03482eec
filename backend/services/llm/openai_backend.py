"""OpenAI chat-completions backend."""

import logging

import openai
from openai import AsyncOpenAI

from models.schemas.extraction import ExtractionMethod
from services.errors import TransientBackendError, error_for_status
from services.llm.base import BaseLLMBackend, LLMCompletion

logger = logging.getLogger(__name__)


class OpenAIBackend(BaseLLMBackend):
    method = ExtractionMethod.OPENAI
    credential_name = "OPENAI_API_KEY"

    def _create_client(self) -> AsyncOpenAI:
        # retries are owned by the engine's RetryPolicy
        return AsyncOpenAI(api_key=self._api_key, max_retries=0)

    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as e:
            raise error_for_status(e.status_code, e.message) from e
        except openai.APIConnectionError as e:  # includes APITimeoutError
            raise TransientBackendError(f"OpenAI connection error: {e}") from e

        usage = response.usage
        return LLMCompletion(
            text=response.choices[0].message.content or "",
            prompt_tokens=usage.prompt_tokens if usage else 0,
            completion_tokens=usage.completion_tokens if usage else 0,
        )
