"""Engine facade: wires collaborators, caches and extractors together.

Build one engine per process and share it; the cache, in-flight map and
rate limiter it owns only work when every caller goes through the same
instance.
"""

import logging

from config import Settings, settings as default_settings
from models.schemas.batch import BatchOptions, BatchResult
from models.schemas.extraction import ExtractionMethod, ExtractionSummary
from services.extraction_cache import ExtractionCache, extraction_key
from services.llm.registry import BackendRegistry
from services.llm_extractor import LLMExtractor
from services.pattern_extractor import PatternExtractor
from services.rate_limiter import RateLimiter, RetryPolicy
from services.repositories import ExtractionLogStore, SkillCatalog, SubjectRepository

logger = logging.getLogger(__name__)


class SkillExtractionEngine:
    def __init__(
        self,
        catalog: SkillCatalog,
        log_store: ExtractionLogStore,
        subjects: SubjectRepository,
        settings: Settings | None = None,
        backends: BackendRegistry | None = None,
        cache: ExtractionCache | None = None,
        limiter: RateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.catalog = catalog
        self.log_store = log_store
        self.subjects = subjects
        self.backends = backends or BackendRegistry(self.settings)
        self.cache = cache or ExtractionCache(
            summary_ttl=self.settings.summary_cache_ttl_s,
            text_ttl=self.settings.text_cache_ttl_s,
        )
        self.limiter = limiter or RateLimiter(
            max_concurrent=self.settings.llm_max_concurrency,
            min_interval=self.settings.llm_min_interval_ms / 1000,
        )
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.retry_max_attempts,
            base_delay=self.settings.retry_base_delay_s,
            max_delay=self.settings.retry_max_delay_s,
        )
        self.pattern_extractor = PatternExtractor(catalog, log_store)
        self.llm_extractor = LLMExtractor(
            catalog=catalog,
            log_store=log_store,
            backends=self.backends,
            limiter=self.limiter,
            retry_policy=self.retry_policy,
            pricing=self.settings.model_pricing,
            request_timeout=self.settings.llm_request_timeout_s,
        )

    async def extract_by_pattern(self, subject_id: str, text: str) -> ExtractionSummary:
        """Local keyword extraction. Cheap and deterministic, so not cached."""
        return await self.pattern_extractor.extract(subject_id, text)

    async def extract_by_llm(
        self,
        subject_id: str,
        text: str,
        method: ExtractionMethod = ExtractionMethod.OPENAI,
        model: str | None = None,
    ) -> ExtractionSummary:
        """LLM extraction through the summary cache and in-flight collapsing."""
        if not method.is_llm:
            raise ValueError(f"{method.value} is not an LLM backend")

        model = self.llm_extractor.resolve_model(method, model)
        key = extraction_key(subject_id, method, model, text)
        return await self.cache.get_or_extract(
            key,
            execute=lambda: self.llm_extractor.extract(subject_id, text, method, model),
            reuse=lambda: self.llm_extractor.reuse_from_log(subject_id, method, model, text),
        )

    async def extract(
        self,
        subject_id: str,
        text: str,
        method: ExtractionMethod,
        model: str | None = None,
    ) -> ExtractionSummary:
        if method == ExtractionMethod.PATTERN:
            return await self.extract_by_pattern(subject_id, text)
        return await self.extract_by_llm(subject_id, text, method, model)

    async def run_batch(
        self, subject_ids: list[str], options: BatchOptions | None = None
    ) -> BatchResult:
        from services.batch_orchestrator import BatchOrchestrator

        orchestrator = BatchOrchestrator(
            engine=self,
            min_text_length=self.settings.min_text_length,
        )
        return await orchestrator.run(subject_ids, options or BatchOptions(
            concurrency=self.settings.batch_concurrency,
        ))
