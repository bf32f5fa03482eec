"""Shared test configuration, fixtures and a scripted LLM backend."""

import asyncio

import pytest

from config import Settings
from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import ExtractionMethod
from services.engine import SkillExtractionEngine
from services.llm.base import BaseLLMBackend, LLMCompletion
from services.llm.registry import BackendRegistry
from services.rate_limiter import RateLimiter, RetryPolicy
from services.repositories import (
    InMemoryExtractionLogStore,
    InMemorySkillCatalog,
    InMemorySubjectRepository,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: calls a real LLM backend (needs API keys)"
    )


SKILLS_JSON = """{
  "skills": [
    {"name": "BSP", "level": "advanced", "yearsExperience": 5, "confidence": 0.95,
     "reasoning": "Licence mentioned", "context": "BSP valide", "isSecurityRelated": true},
    {"name": "ms excel", "level": "INTERMEDIATE", "confidence": 0.8},
    {"name": "Underwater basket weaving", "confidence": 0.7}
  ]
}"""


class FakeBackend(BaseLLMBackend):
    """Backend replaying a script of completions / exceptions.

    The last script item repeats once the script is exhausted.
    """

    credential_name = "FAKE_API_KEY"

    def __init__(self, method=ExtractionMethod.OPENAI, script=None, delay=0.0,
                 api_key="test-key", default_model="gpt-3.5-turbo"):
        super().__init__(api_key=api_key, default_model=default_model)
        self.method = method
        self.script = list(script or [LLMCompletion(text=SKILLS_JSON, prompt_tokens=1000,
                                                    completion_tokens=200)])
        self.delay = delay
        self.calls: list[dict] = []

    def _create_client(self):
        return None

    async def complete(self, system_prompt, user_prompt, model):
        index = min(len(self.calls), len(self.script) - 1)
        self.calls.append({"system": system_prompt, "user": user_prompt, "model": model})
        if self.delay:
            await asyncio.sleep(self.delay)
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def catalog_entries() -> list[SkillCatalogEntry]:
    return [
        SkillCatalogEntry(id="s-permis", name="Permis classe 4B",
                          keywords=["permis classe 4b", "classe 4b"], category="TRANSPORT"),
        SkillCatalogEntry(id="s-rcr", name="RCR",
                          keywords=["rcr", "reanimation cardio respiratoire"],
                          category="SECURITE", is_security_related=True),
        SkillCatalogEntry(id="s-bsp", name="BSP",
                          keywords=["bsp", "bureau de la securite privee"],
                          category="SECURITE", is_security_related=True),
        SkillCatalogEntry(id="s-excel", name="Microsoft Excel",
                          keywords=["excel", "ms excel"], category="BUREAU"),
        SkillCatalogEntry(id="s-service", name="Service à la clientèle",
                          keywords=["service a la clientele", "service client"],
                          category="BUREAU"),
        SkillCatalogEntry(id="s-python", name="Python", keywords=["python"],
                          category="INFORMATIQUE"),
        SkillCatalogEntry(id="s-fax", name="Fax", keywords=["fax"], category="BUREAU",
                          is_active=False),
    ]


@pytest.fixture
def catalog(catalog_entries) -> InMemorySkillCatalog:
    return InMemorySkillCatalog(catalog_entries)


@pytest.fixture
def log_store() -> InMemoryExtractionLogStore:
    return InMemoryExtractionLogStore()


@pytest.fixture
def subjects() -> InMemorySubjectRepository:
    return InMemorySubjectRepository()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        openai_api_key="test-key",
        anthropic_api_key="test-key",
        gemini_api_key="",
        llm_min_interval_ms=0,
        retry_base_delay_s=0.0,
        retry_max_delay_s=0.0,
        llm_request_timeout_s=5.0,
        _env_file=None,
    )


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def engine(catalog, log_store, subjects, test_settings, fake_backend) -> SkillExtractionEngine:
    backends = BackendRegistry(test_settings)
    backends.register(fake_backend)
    return SkillExtractionEngine(
        catalog=catalog,
        log_store=log_store,
        subjects=subjects,
        settings=test_settings,
        backends=backends,
        limiter=RateLimiter(max_concurrent=5, min_interval=0.0),
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.0, jitter=False),
    )
