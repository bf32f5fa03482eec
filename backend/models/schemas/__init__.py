"""Pydantic contracts shared by the extraction services."""

from models.schemas.batch import BatchItemResult, BatchOptions, BatchResult, BatchSummary
from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import (
    ExtractionLogEntry,
    ExtractionMatch,
    ExtractionMethod,
    ExtractionSummary,
    LLMSkillGuess,
    SkillLevel,
)
from models.schemas.subject import SaveResult, SubjectKind

__all__ = [
    "BatchItemResult",
    "BatchOptions",
    "BatchResult",
    "BatchSummary",
    "ExtractionLogEntry",
    "ExtractionMatch",
    "ExtractionMethod",
    "ExtractionSummary",
    "LLMSkillGuess",
    "SaveResult",
    "SkillCatalogEntry",
    "SkillLevel",
    "SubjectKind",
]
