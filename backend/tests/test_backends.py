"""Tests for provider backends against mocked SDK clients, and the registry."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import anthropic
import httpx
import openai
import pytest
from google.genai import errors as genai_errors

from models.schemas.extraction import ExtractionMethod
from services.errors import PermanentBackendError, TransientBackendError
from services.llm.claude_backend import ClaudeBackend
from services.llm.gemini_backend import GeminiBackend
from services.llm.openai_backend import OpenAIBackend
from services.llm.registry import BackendRegistry, method_for_model

REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _status_error(module, status: int, message: str):
    return module.APIStatusError(
        message, response=httpx.Response(status, request=REQUEST), body=None
    )


class TestOpenAIBackend:
    def _backend(self, create: AsyncMock) -> OpenAIBackend:
        backend = OpenAIBackend("sk-test", "gpt-3.5-turbo", temperature=0.1)
        backend._client = SimpleNamespace(
            chat=SimpleNamespace(completions=SimpleNamespace(create=create))
        )
        return backend

    @pytest.mark.asyncio
    async def test_maps_response_and_usage(self):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content='{"skills": []}'))],
            usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
        )
        create = AsyncMock(return_value=response)

        completion = await self._backend(create).complete("system", "user", "gpt-4")

        assert completion.text == '{"skills": []}'
        assert (completion.prompt_tokens, completion.completion_tokens) == (12, 3)
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self):
        create = AsyncMock(side_effect=_status_error(openai, 429, "Rate limit exceeded"))
        with pytest.raises(TransientBackendError) as exc_info:
            await self._backend(create).complete("s", "u", "gpt-4")
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_bad_credentials_are_permanent(self):
        create = AsyncMock(side_effect=_status_error(openai, 401, "Invalid API key"))
        with pytest.raises(PermanentBackendError, match="Invalid API key"):
            await self._backend(create).complete("s", "u", "gpt-4")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        create = AsyncMock(side_effect=openai.APIConnectionError(request=REQUEST))
        with pytest.raises(TransientBackendError):
            await self._backend(create).complete("s", "u", "gpt-4")

    def test_client_is_created_lazily_without_sdk_retries(self):
        backend = OpenAIBackend("sk-test", "gpt-3.5-turbo")
        assert backend._client is None
        assert backend.client.max_retries == 0
        assert backend.client is backend.client


class TestClaudeBackend:
    def _backend(self, create: AsyncMock) -> ClaudeBackend:
        backend = ClaudeBackend("sk-ant-test", "claude-3-haiku-20240307", max_output_tokens=1024)
        backend._client = SimpleNamespace(messages=SimpleNamespace(create=create))
        return backend

    @pytest.mark.asyncio
    async def test_joins_text_blocks(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text='{"skills": '),
                SimpleNamespace(type="tool_use", input={}),
                SimpleNamespace(type="text", text="[]}"),
            ],
            usage=SimpleNamespace(input_tokens=20, output_tokens=4),
        )
        create = AsyncMock(return_value=response)

        completion = await self._backend(create).complete("system", "user", "claude-3-opus")

        assert completion.text == '{"skills": []}'
        assert (completion.prompt_tokens, completion.completion_tokens) == (20, 4)
        kwargs = create.await_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["max_tokens"] == 1024

    @pytest.mark.asyncio
    async def test_overloaded_is_transient(self):
        create = AsyncMock(side_effect=_status_error(anthropic, 503, "Overloaded"))
        with pytest.raises(TransientBackendError):
            await self._backend(create).complete("s", "u", "claude-3-haiku")

    @pytest.mark.asyncio
    async def test_bad_request_is_permanent(self):
        create = AsyncMock(side_effect=_status_error(anthropic, 400, "max_tokens too large"))
        with pytest.raises(PermanentBackendError) as exc_info:
            await self._backend(create).complete("s", "u", "claude-3-haiku")
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        create = AsyncMock(side_effect=anthropic.APIConnectionError(request=REQUEST))
        with pytest.raises(TransientBackendError):
            await self._backend(create).complete("s", "u", "claude-3-haiku")


class TestGeminiBackend:
    def _backend(self, generate: AsyncMock) -> GeminiBackend:
        backend = GeminiBackend("gm-test", "gemini-2.5-flash")
        backend._client = SimpleNamespace(
            aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate))
        )
        return backend

    @pytest.mark.asyncio
    async def test_maps_response_and_usage(self):
        response = SimpleNamespace(
            text=' {"skills": []} ',
            usage_metadata=SimpleNamespace(prompt_token_count=7, candidates_token_count=2),
        )
        generate = AsyncMock(return_value=response)

        completion = await self._backend(generate).complete("system", "user", "gemini-2.5-flash")

        assert completion.text == '{"skills": []}'
        assert (completion.prompt_tokens, completion.completion_tokens) == (7, 2)
        config = generate.await_args.kwargs["config"]
        assert config.system_instruction == "system"
        assert config.response_mime_type == "application/json"

    @pytest.mark.asyncio
    async def test_missing_usage_counts_zero(self):
        generate = AsyncMock(return_value=SimpleNamespace(text=None, usage_metadata=None))
        completion = await self._backend(generate).complete("s", "u", "gemini-2.5-flash")
        assert completion.text == ""
        assert completion.prompt_tokens == 0

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        error = genai_errors.ServerError(
            503, {"error": {"code": 503, "message": "overloaded", "status": "UNAVAILABLE"}}
        )
        with pytest.raises(TransientBackendError):
            await self._backend(AsyncMock(side_effect=error)).complete("s", "u", "gemini-2.5-flash")

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self):
        error = genai_errors.ClientError(
            400, {"error": {"code": 400, "message": "API key not valid", "status": "INVALID_ARGUMENT"}}
        )
        with pytest.raises(PermanentBackendError):
            await self._backend(AsyncMock(side_effect=error)).complete("s", "u", "gemini-2.5-flash")

    @pytest.mark.asyncio
    async def test_transport_error_is_transient(self):
        generate = AsyncMock(side_effect=httpx.ConnectTimeout("timed out"))
        with pytest.raises(TransientBackendError):
            await self._backend(generate).complete("s", "u", "gemini-2.5-flash")


class TestRegistry:
    def test_creates_backends_from_settings(self, test_settings):
        registry = BackendRegistry(test_settings)

        openai_backend = registry.get(ExtractionMethod.OPENAI)
        claude_backend = registry.get(ExtractionMethod.CLAUDE)
        gemini_backend = registry.get(ExtractionMethod.GEMINI)

        assert isinstance(openai_backend, OpenAIBackend)
        assert claude_backend.default_model == "claude-3-haiku-20240307"
        assert openai_backend.is_configured is True
        assert gemini_backend.is_configured is False
        assert registry.get(ExtractionMethod.OPENAI) is openai_backend

    def test_register_and_clear(self, test_settings, fake_backend):
        registry = BackendRegistry(test_settings)
        registry.register(fake_backend)
        assert registry.get(ExtractionMethod.OPENAI) is fake_backend
        registry.clear()
        assert registry.get(ExtractionMethod.OPENAI) is not fake_backend

    def test_pattern_has_no_backend(self, test_settings):
        with pytest.raises(ValueError):
            BackendRegistry(test_settings).get(ExtractionMethod.PATTERN)

    @pytest.mark.parametrize(
        "model, method",
        [
            ("gpt-4", ExtractionMethod.OPENAI),
            ("GPT-4o", ExtractionMethod.OPENAI),
            ("o1-preview", ExtractionMethod.OPENAI),
            ("claude-3-5-sonnet-latest", ExtractionMethod.CLAUDE),
            ("gemini-2.5-pro", ExtractionMethod.GEMINI),
            ("", ExtractionMethod.PATTERN),
        ],
    )
    def test_method_for_model(self, model, method):
        assert method_for_model(model) == method
