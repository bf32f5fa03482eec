"""Resolve free-text skill names returned by an LLM to catalog entries.

Strategies, first hit wins:
1. case-insensitive exact name
2. case-insensitive keyword equality
3. substring in either direction against the catalog name
The guess is tried as written first; only when no strategy hits is it
retried in its canonical spelling (accents folded, common typos fixed,
known synonyms mapped, close misspellings fuzzy-matched).
Guesses that match nothing are dropped; the catalog is never extended.
"""

import logging

from rapidfuzz import fuzz, process

from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import ExtractionMatch, LLMSkillGuess, SkillLevel
from services.text_normalizer import strip_accents

logger = logging.getLogger(__name__)

# canonical name -> synonyms (all lower-case, accent-free)
SKILL_SYNONYMS: dict[str, list[str]] = {
    "microsoft excel": ["excel", "ms excel", "excel avance"],
    "microsoft office": ["office", "suite office", "ms office"],
    "microsoft word": ["word", "ms word"],
    "powerpoint": ["ms powerpoint", "ppt", "pptx"],
    "microsoft project": ["ms project"],
    "javascript": ["js", "java script", "ecmascript"],
    "typescript": ["ts"],
    "node.js": ["node", "nodejs"],
    "python": ["py", "python3"],
    "sap": ["sap erp"],
    "oracle": ["oracle ebs"],
    "bsp": ["bureau de la securite privee"],
    "premiers secours": ["premiers soins", "first aid", "secourisme"],
    "rcr": ["reanimation cardio respiratoire", "cpr"],
}

COMMON_TYPOS: dict[str, str] = {
    "javascrpit": "javascript",
    "paython": "python",
    "microsft": "microsoft",
    "exell": "excel",
    "mangement": "management",
}

FUZZY_THRESHOLD = 85

# every spelling -> its canonical name
_VOCABULARY: dict[str, str] = {
    spelling: canonical
    for canonical, synonyms in SKILL_SYNONYMS.items()
    for spelling in [canonical, *synonyms]
}


def _fold(value: str) -> str:
    return strip_accents(value.strip().lower())


def canonical_skill_name(name: str) -> str:
    """Fold accents, fix known typos and map synonyms to a canonical name."""
    if not name:
        return ""
    folded = _fold(name)
    folded = COMMON_TYPOS.get(folded, folded)
    if folded in _VOCABULARY:
        return _VOCABULARY[folded]

    # typos the table does not list; terms under four characters are not fuzzed
    if len(folded) >= 4:
        best = process.extractOne(
            folded, list(_VOCABULARY), scorer=fuzz.ratio, score_cutoff=FUZZY_THRESHOLD
        )
        if best is not None:
            return _VOCABULARY[best[0]]
    return folded


def normalize_level(level: str | None) -> SkillLevel:
    if not level:
        return SkillLevel.UNKNOWN
    try:
        return SkillLevel(level.strip().upper())
    except ValueError:
        return SkillLevel.UNKNOWN


def _by_exact_name(name: str, catalog: list[SkillCatalogEntry]) -> SkillCatalogEntry | None:
    return next((s for s in catalog if _fold(s.name) == name), None)


def _by_keyword(name: str, catalog: list[SkillCatalogEntry]) -> SkillCatalogEntry | None:
    return next((s for s in catalog if any(_fold(k) == name for k in s.keywords)), None)


def _by_substring(name: str, catalog: list[SkillCatalogEntry]) -> SkillCatalogEntry | None:
    for skill in catalog:
        catalog_name = _fold(skill.name)
        if catalog_name and (name in catalog_name or catalog_name in name):
            return skill
    return None


_STRATEGIES = (_by_exact_name, _by_keyword, _by_substring)


def find_catalog_entry(
    guess_name: str, catalog: list[SkillCatalogEntry]
) -> SkillCatalogEntry | None:
    """Best catalog entry for a free-text name, or None."""
    raw = _fold(guess_name)
    if not raw:
        return None
    candidates = [raw]
    canonical = canonical_skill_name(guess_name)
    if canonical and canonical != raw:
        candidates.append(canonical)

    for name in candidates:
        for strategy in _STRATEGIES:
            entry = strategy(name, catalog)
            if entry is not None:
                return entry
    return None


def dedupe_matches(matches: list[ExtractionMatch]) -> list[ExtractionMatch]:
    """Keep one match per skill id, the most confident; first-seen order."""
    best: dict[str, ExtractionMatch] = {}
    for match in matches:
        existing = best.get(match.skill_id)
        if existing is None or match.confidence > existing.confidence:
            best[match.skill_id] = match
    return list(best.values())


def match_skills(
    guesses: list[LLMSkillGuess], catalog: list[SkillCatalogEntry]
) -> list[ExtractionMatch]:
    """Resolve LLM guesses into catalog-backed matches."""
    matches: list[ExtractionMatch] = []
    for guess in guesses:
        entry = find_catalog_entry(guess.name, catalog)
        if entry is None:
            logger.debug("No catalog entry for LLM skill %r", guess.name)
            continue

        security = guess.is_security_related
        matches.append(ExtractionMatch(
            skill_id=entry.id,
            skill_name=entry.name,
            confidence=guess.confidence,
            extracted_text=guess.context or guess.name,
            years_experience=guess.years_experience,
            level=normalize_level(guess.level),
            reasoning=guess.reasoning,
            is_security_related=security if security is not None else entry.is_security_related,
        ))
    return dedupe_matches(matches)
