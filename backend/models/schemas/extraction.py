"""Extraction results: per-skill matches, per-attempt summaries and log entries."""

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_YEARS_EXPERIENCE = 50


class SkillLevel(str, Enum):
    UNKNOWN = "UNKNOWN"
    BEGINNER = "BEGINNER"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"
    EXPERT = "EXPERT"


class ExtractionMethod(str, Enum):
    PATTERN = "PATTERN"
    OPENAI = "OPENAI"
    CLAUDE = "CLAUDE"
    GEMINI = "GEMINI"

    @property
    def is_llm(self) -> bool:
        return self is not ExtractionMethod.PATTERN


class ExtractionMatch(BaseModel):
    """A (subject, skill) pair with its supporting evidence."""
    skill_id: str
    skill_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    extracted_text: str = ""
    years_experience: int | None = Field(default=None, ge=0, le=MAX_YEARS_EXPERIENCE)
    level: SkillLevel = SkillLevel.UNKNOWN
    reasoning: str | None = None
    is_security_related: bool | None = None


class LLMSkillGuess(BaseModel):
    """One free-text skill record as returned by an LLM backend.

    Field aliases follow the camelCase keys requested in the prompt.
    Out-of-range values are repaired instead of rejected so one sloppy
    record never sinks the whole response.
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    level: str | None = None
    years_experience: int | None = Field(default=None, alias="yearsExperience")
    confidence: float = 0.5
    reasoning: str | None = None
    context: str | None = None
    is_security_related: bool | None = Field(default=None, alias="isSecurityRelated")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("empty skill name")
        return v

    @field_validator("level", mode="before")
    @classmethod
    def _level_as_text(cls, v):
        # numeric or structured levels are unrecognized, not invalid
        return v if isinstance(v, str) else None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        if v is None:
            return 0.5
        try:
            confidence = float(v)
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"confidence is not a number: {v!r}") from e
        if math.isnan(confidence):
            raise ValueError("confidence is NaN")
        return min(1.0, max(0.0, confidence))

    @field_validator("years_experience", mode="before")
    @classmethod
    def _drop_out_of_range_years(cls, v):
        if v is None or v == "":
            return None
        try:
            years = int(float(v))
        except (TypeError, ValueError, OverflowError):
            return None
        if 0 <= years <= MAX_YEARS_EXPERIENCE:
            return years
        return None


class ExtractionSummary(BaseModel):
    """Outcome of a single extraction attempt. Never persisted as-is."""
    subject_id: str
    matches: list[ExtractionMatch] = []
    total_matches: int = 0
    processing_time_ms: int = 0
    method: ExtractionMethod
    model: str | None = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_cost: float = 0.0
    success: bool = True
    error_message: str | None = None
    raw_response: str | None = None
    reused_from_cache: bool = False


class ExtractionLogEntry(BaseModel):
    """Durable audit record written at the end of every attempt."""
    model_config = ConfigDict(frozen=True)

    subject_id: str
    method: ExtractionMethod
    model: str | None = None
    match_count: int = 0
    processing_time_ms: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_cost: float = 0.0
    success: bool = True
    error_message: str | None = None
    raw_response: str | None = None
    text_sha256: str | None = None  # hash of the text the attempt ran on
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_summary(
        cls, summary: ExtractionSummary, text_sha256: str | None = None
    ) -> "ExtractionLogEntry":
        return cls(
            subject_id=summary.subject_id,
            method=summary.method,
            model=summary.model,
            match_count=summary.total_matches,
            processing_time_ms=summary.processing_time_ms,
            prompt_tokens=summary.prompt_tokens,
            completion_tokens=summary.completion_tokens,
            total_cost=summary.total_cost,
            success=summary.success,
            error_message=summary.error_message,
            raw_response=summary.raw_response,
            text_sha256=text_sha256,
        )
