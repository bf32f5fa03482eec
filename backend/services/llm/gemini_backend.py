"""Google Gemini backend."""

import logging

import httpx
from google import genai
from google.genai import errors, types

from models.schemas.extraction import ExtractionMethod
from services.errors import TransientBackendError, error_for_status
from services.llm.base import BaseLLMBackend, LLMCompletion

logger = logging.getLogger(__name__)


class GeminiBackend(BaseLLMBackend):
    method = ExtractionMethod.GEMINI
    credential_name = "GEMINI_API_KEY"

    def _create_client(self) -> genai.Client:
        return genai.Client(api_key=self._api_key)

    async def complete(self, system_prompt: str, user_prompt: str, model: str) -> LLMCompletion:
        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=user_prompt,
                config=types.GenerateContentConfig(
                    system_instruction=system_prompt,
                    temperature=self.temperature,
                    max_output_tokens=self.max_output_tokens,
                    response_mime_type="application/json",
                ),
            )
        except errors.APIError as e:
            raise error_for_status(e.code, f"Gemini API error: {e}") from e
        except httpx.TransportError as e:  # connect/read timeouts, dropped connections
            raise TransientBackendError(f"Gemini connection error: {e}") from e

        usage = response.usage_metadata
        return LLMCompletion(
            text=(response.text or "").strip(),
            prompt_tokens=(usage.prompt_token_count or 0) if usage else 0,
            completion_tokens=(usage.candidates_token_count or 0) if usage else 0,
        )
