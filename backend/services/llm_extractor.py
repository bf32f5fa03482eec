"""LLM-backed skill extraction shared by every backend.

Flow:
    text + catalog
      -> prompt_builder            (system prompt + catalog grouped by category)
      -> RateLimiter / RetryPolicy (bounded, spaced, retried dispatch)
      -> backend.complete()        (OpenAI | Claude | Gemini)
      -> response_parser           (JSON -> LLMSkillGuess list)
      -> skill_matcher             (guesses -> catalog-backed matches)
      -> ExtractionSummary + ExtractionLogEntry

Missing credentials, backend errors and unparseable responses return a
failed summary (success=False, error_message) and append a log entry.
Anything else is a bug and propagates.
"""

import asyncio
import logging
import time

from config import ModelPrice
from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import (
    ExtractionLogEntry,
    ExtractionMethod,
    ExtractionSummary,
)
from services import prompt_builder
from services.errors import (
    BackendError,
    ConfigurationError,
    ParseError,
    TransientBackendError,
)
from services.llm.base import BaseLLMBackend, LLMCompletion
from services.llm.registry import BackendRegistry
from services.pricing import estimate_cost
from services.rate_limiter import RateLimiter, RetryPolicy
from services.repositories import ExtractionLogStore, SkillCatalog, record_attempt
from services.response_parser import parse_skill_response
from services.skill_matcher import match_skills
from services.text_normalizer import text_hash

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class LLMExtractor:
    def __init__(
        self,
        catalog: SkillCatalog,
        log_store: ExtractionLogStore,
        backends: BackendRegistry,
        limiter: RateLimiter,
        retry_policy: RetryPolicy,
        pricing: dict[str, ModelPrice],
        request_timeout: float = 60.0,
    ) -> None:
        self._catalog = catalog
        self._log_store = log_store
        self._backends = backends
        self._limiter = limiter
        self._retry = retry_policy
        self._pricing = pricing
        self._timeout = request_timeout

    def resolve_model(self, method: ExtractionMethod, model: str | None) -> str:
        return model or self._backends.get(method).default_model

    async def extract(
        self,
        subject_id: str,
        text: str,
        method: ExtractionMethod,
        model: str | None = None,
    ) -> ExtractionSummary:
        start = time.perf_counter()
        backend = self._backends.get(method)
        model = model or backend.default_model
        digest = text_hash(text)

        try:
            if not backend.is_configured:
                raise ConfigurationError(f"{backend.credential_name} is not configured")
            skills = await self._catalog.list_active_skills()
            user_prompt = prompt_builder.build_extraction_prompt(text, skills)
            completion = await self._dispatch(backend, user_prompt, model)
        except ConfigurationError as e:
            logger.warning("%s - %s extraction disabled", e, method.value)
            return await self._failed(subject_id, method, model, digest, start, str(e))
        except BackendError as e:
            logger.error("%s extraction failed for %s: %s", method.value, subject_id, e)
            return await self._failed(subject_id, method, model, digest, start, str(e))

        total_cost = estimate_cost(
            model, completion.prompt_tokens, completion.completion_tokens, self._pricing
        )
        usage = {
            "prompt_tokens": completion.prompt_tokens,
            "completion_tokens": completion.completion_tokens,
            "total_cost": total_cost,
        }

        try:
            guesses = parse_skill_response(completion.text)
        except ParseError as e:
            logger.error("Failed to parse %s response for %s: %s", method.value, subject_id, e)
            return await self._failed(
                subject_id, method, model, digest, start, str(e),
                raw_response=completion.text, **usage,
            )

        matches = match_skills(guesses, skills)
        summary = ExtractionSummary(
            subject_id=subject_id,
            matches=matches,
            total_matches=len(matches),
            processing_time_ms=_elapsed_ms(start),
            method=method,
            model=model,
            success=True,
            raw_response=completion.text,
            **usage,
        )
        await record_attempt(self._log_store, ExtractionLogEntry.from_summary(summary, digest))
        logger.info(
            "%s extraction for %s: %d/%d skills matched, %d+%d tokens, $%.6f, %d ms",
            method.value, subject_id, len(matches), len(guesses),
            completion.prompt_tokens, completion.completion_tokens, total_cost,
            summary.processing_time_ms,
        )
        return summary

    async def reuse_from_log(
        self, subject_id: str, method: ExtractionMethod, model: str, text: str
    ) -> ExtractionSummary | None:
        """Rebuild a summary from the latest successful logged response.

        Only an attempt that ran on exactly `text` qualifies, so an edited
        CV always reaches the backend. Only the skill matcher runs again,
        against the current catalog. Returns None when nothing usable is
        logged.
        """
        start = time.perf_counter()
        entry = await self._log_store.find_latest_successful(
            subject_id, method, model, text_sha256=text_hash(text)
        )
        if entry is None or not entry.raw_response:
            return None

        try:
            guesses = parse_skill_response(entry.raw_response)
        except ParseError as e:
            logger.warning("Logged %s response for %s is unusable: %s", method.value, subject_id, e)
            return None

        skills: list[SkillCatalogEntry] = await self._catalog.list_active_skills()
        matches = match_skills(guesses, skills)
        logger.info("Reused logged %s response for %s (%d skills)", method.value, subject_id, len(matches))
        return ExtractionSummary(
            subject_id=subject_id,
            matches=matches,
            total_matches=len(matches),
            processing_time_ms=_elapsed_ms(start),
            method=method,
            model=model,
            prompt_tokens=entry.prompt_tokens,
            completion_tokens=entry.completion_tokens,
            total_cost=entry.total_cost,
            success=True,
            raw_response=entry.raw_response,
            reused_from_cache=True,
        )

    async def _dispatch(
        self, backend: BaseLLMBackend, user_prompt: str, model: str
    ) -> LLMCompletion:
        description = f"{backend.method.value.lower()}:{model}"

        async def attempt() -> LLMCompletion:
            async with self._limiter.slot():
                try:
                    return await asyncio.wait_for(
                        backend.complete(prompt_builder.SYSTEM_PROMPT, user_prompt, model),
                        timeout=self._timeout,
                    )
                except asyncio.TimeoutError as e:
                    raise TransientBackendError(
                        f"{description} timed out after {self._timeout:g}s", status_code=408
                    ) from e

        return await self._retry.run(attempt, description=description)

    async def _failed(
        self,
        subject_id: str,
        method: ExtractionMethod,
        model: str,
        text_sha256: str,
        start: float,
        error_message: str,
        raw_response: str | None = None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        total_cost: float = 0.0,
    ) -> ExtractionSummary:
        summary = ExtractionSummary(
            subject_id=subject_id,
            processing_time_ms=_elapsed_ms(start),
            method=method,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_cost=total_cost,
            success=False,
            error_message=error_message,
            raw_response=raw_response,
        )
        await record_attempt(self._log_store, ExtractionLogEntry.from_summary(summary, text_sha256))
        return summary
