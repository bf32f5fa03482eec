"""Catalog-driven skill extraction using keyword pattern matching.

Every active catalog entry is tried against the normalized text:
1. Each keyword is matched on word boundaries and its occurrences counted
2. Confidence grows with the count; the best keyword represents the skill
3. A context snippet and years of experience are read around the match
"""

import logging
import re
import time

from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import (
    MAX_YEARS_EXPERIENCE,
    ExtractionLogEntry,
    ExtractionMatch,
    ExtractionMethod,
    ExtractionSummary,
    SkillLevel,
)
from services.repositories import ExtractionLogStore, SkillCatalog, record_attempt
from services.text_normalizer import normalize, strip_accents, text_hash

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
CONFIDENCE_PER_MATCH = 0.1
SNIPPET_RADIUS = 20
YEARS_RADIUS = 100

# Applied to normalized text, so punctuation such as ":" or "+" is already
# a space. Covers "5 ans", "3 annees", "2+ years", "experience: 4".
_YEARS_PATTERNS: list[re.Pattern] = [
    re.compile(r"\b(\d+)\s*\+?\s*(?:ans?|annees?|years?|yrs?)\b"),
    re.compile(r"\bexperiences?\s*:?\s*(\d+)\b"),
    re.compile(r"\b(?:ans?|annees?|years?)\s*:?\s*(\d+)\b"),
]


def _keyword_regex(normalized_keyword: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(normalized_keyword)}\b")


def extract_years_experience(normalized_text: str, position: int) -> int | None:
    """Look for a years-of-experience figure near `position`.

    The first pattern that yields an in-range value wins; values outside
    0-50 are treated as absent rather than clamped.
    """
    start = max(0, position - YEARS_RADIUS)
    end = min(len(normalized_text), position + YEARS_RADIUS)
    context = normalized_text[start:end]

    for pattern in _YEARS_PATTERNS:
        match = pattern.search(context)
        if match:
            years = int(match.group(1))
            if 0 <= years <= MAX_YEARS_EXPERIENCE:
                return years
    return None


def level_from_years(years: int | None) -> SkillLevel:
    if years is None:
        return SkillLevel.UNKNOWN
    if years < 1:
        return SkillLevel.BEGINNER
    if years < 3:
        return SkillLevel.INTERMEDIATE
    if years < 5:
        return SkillLevel.ADVANCED
    return SkillLevel.EXPERT


def _context_snippet(raw_text: str, keyword: str) -> str:
    """Raw text around the first occurrence of `keyword`, or the keyword itself.

    Accents and punctuation between words are ignored while searching, so
    "Sécurité-privée" is found for the keyword "securite privee".
    """
    tokens = normalize(keyword).split()
    if not tokens:
        return keyword
    pattern = re.compile(
        r"(?<!\w)" + r"\W+".join(map(re.escape, tokens)) + r"(?!\w)", re.IGNORECASE
    )
    # folding must keep offsets aligned with the raw text
    folded = strip_accents(raw_text)
    found = pattern.search(folded if len(folded) == len(raw_text) else raw_text)
    if not found:
        return keyword

    lo = max(0, found.start() - SNIPPET_RADIUS)
    hi = min(len(raw_text), found.end() + SNIPPET_RADIUS)
    return raw_text[lo:hi].strip() or keyword


def match_skill(
    skill: SkillCatalogEntry, normalized_text: str, raw_text: str
) -> ExtractionMatch | None:
    """Match one catalog entry. Returns None when no keyword occurs."""
    best_keyword: str | None = None
    best_position = 0
    best_confidence = 0.0

    for keyword in skill.keywords:
        normalized_keyword = normalize(keyword)
        if not normalized_keyword:
            continue
        occurrences = list(_keyword_regex(normalized_keyword).finditer(normalized_text))
        if not occurrences:
            continue
        confidence = min(BASE_CONFIDENCE + CONFIDENCE_PER_MATCH * len(occurrences), 1.0)
        if confidence > best_confidence:
            best_confidence = confidence
            best_keyword = keyword
            best_position = occurrences[0].start()

    if best_keyword is None:
        return None

    years = extract_years_experience(normalized_text, best_position)
    return ExtractionMatch(
        skill_id=skill.id,
        skill_name=skill.name,
        confidence=round(best_confidence, 4),
        extracted_text=_context_snippet(raw_text, best_keyword),
        years_experience=years,
        level=level_from_years(years),
        is_security_related=skill.is_security_related,
    )


def match_catalog(skills: list[SkillCatalogEntry], raw_text: str) -> list[ExtractionMatch]:
    """Run every active catalog entry against `raw_text`."""
    normalized_text = normalize(raw_text)
    if not normalized_text:
        return []

    matches: list[ExtractionMatch] = []
    seen: set[str] = set()
    for skill in skills:
        if not skill.is_active or skill.id in seen:
            continue
        match = match_skill(skill, normalized_text, raw_text)
        if match:
            matches.append(match)
            seen.add(skill.id)
    return matches


class PatternExtractor:
    """Local extractor: no network, always produces a summary."""

    def __init__(self, catalog: SkillCatalog, log_store: ExtractionLogStore) -> None:
        self._catalog = catalog
        self._log_store = log_store

    async def extract(self, subject_id: str, text: str) -> ExtractionSummary:
        start = time.perf_counter()
        try:
            skills = await self._catalog.list_active_skills()
            matches = match_catalog(skills, text or "")
            summary = ExtractionSummary(
                subject_id=subject_id,
                matches=matches,
                total_matches=len(matches),
                method=ExtractionMethod.PATTERN,
                success=True,
            )
        except Exception as e:
            logger.exception("Pattern extraction failed for %s", subject_id)
            summary = ExtractionSummary(
                subject_id=subject_id,
                method=ExtractionMethod.PATTERN,
                success=False,
                error_message=str(e),
            )

        summary.processing_time_ms = int((time.perf_counter() - start) * 1000)
        await record_attempt(
            self._log_store, ExtractionLogEntry.from_summary(summary, text_hash(text or ""))
        )
        logger.info(
            "Pattern extraction for %s: %d skills in %d ms",
            subject_id, summary.total_matches, summary.processing_time_ms,
        )
        return summary
