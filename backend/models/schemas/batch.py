"""Batch extraction inputs and outputs."""

from pydantic import BaseModel, Field

from models.schemas.extraction import ExtractionMethod
from models.schemas.subject import SaveResult


class BatchOptions(BaseModel):
    overwrite: bool = False
    method: ExtractionMethod | None = None  # inferred from `model` when omitted
    model: str | None = None
    concurrency: int = Field(default=5, ge=1)


class BatchItemResult(BaseModel):
    """Outcome for one subject of a batch run."""
    subject_id: str
    success: bool
    skipped: bool = False
    reason: str | None = None
    error: str | None = None
    skills_found: int = 0
    is_preliminary: bool = False
    saved: SaveResult | None = None
    save_error: str | None = None


class BatchSummary(BaseModel):
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    processed: int = 0  # succeeded - skipped
    total_matches: int = 0


class BatchResult(BaseModel):
    message: str = ""
    results: list[BatchItemResult] = []
    summary: BatchSummary = BatchSummary()
