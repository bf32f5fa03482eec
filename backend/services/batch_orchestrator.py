"""Batch extraction over many subjects with bounded concurrency.

Subjects are processed in chunks of `options.concurrency`; each chunk runs
concurrently and the next chunk starts once it completes. Every subject
ends as exactly one of: skipped, succeeded, failed. A failing subject is
recorded and never aborts the batch.
"""

import asyncio
import logging
from typing import TYPE_CHECKING

from models.schemas.batch import BatchItemResult, BatchOptions, BatchResult, BatchSummary
from models.schemas.extraction import ExtractionMethod
from services.errors import NotFoundError, SkillExtractionError, ValidationError
from services.llm.registry import method_for_model

if TYPE_CHECKING:
    from services.engine import SkillExtractionEngine

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already processed"


def resolve_method(options: BatchOptions) -> ExtractionMethod:
    """Explicit method wins; otherwise the model id decides; else PATTERN.

    A model id with no known prefix goes to the OpenAI backend, which also
    serves OpenAI-compatible models.
    """
    if options.method is not None:
        return options.method
    try:
        return method_for_model(options.model)
    except ValueError:
        logger.warning(
            "Unknown model %s, sending it to %s", options.model, ExtractionMethod.OPENAI.value
        )
        return ExtractionMethod.OPENAI


def summarize(results: list[BatchItemResult]) -> BatchSummary:
    succeeded = sum(1 for r in results if r.success)
    skipped = sum(1 for r in results if r.skipped)
    return BatchSummary(
        total=len(results),
        succeeded=succeeded,
        skipped=skipped,
        failed=len(results) - succeeded,
        processed=succeeded - skipped,
        total_matches=sum(r.skills_found for r in results),
    )


class BatchOrchestrator:
    def __init__(self, engine: "SkillExtractionEngine", min_text_length: int = 50) -> None:
        self._engine = engine
        self._min_text_length = min_text_length

    async def run(self, subject_ids: list[str], options: BatchOptions) -> BatchResult:
        if not subject_ids:
            raise ValueError("At least one subject id is required")

        method = resolve_method(options)
        logger.info(
            "Batch extraction of %d subjects with %s (model=%s, overwrite=%s, concurrency=%d)",
            len(subject_ids), method.value, options.model, options.overwrite, options.concurrency,
        )

        results: list[BatchItemResult] = []
        for i in range(0, len(subject_ids), options.concurrency):
            chunk = subject_ids[i:i + options.concurrency]
            chunk_results = await asyncio.gather(
                *(self._process_one(subject_id, method, options) for subject_id in chunk)
            )
            results.extend(chunk_results)

        summary = summarize(results)
        message = (
            f"Batch extraction finished: {summary.succeeded}/{summary.total} succeeded "
            f"({summary.skipped} already processed, {summary.processed} new)"
        )
        logger.info(message)
        return BatchResult(message=message, results=results, summary=summary)

    async def _process_one(
        self, subject_id: str, method: ExtractionMethod, options: BatchOptions
    ) -> BatchItemResult:
        try:
            return await self._extract_subject(subject_id, method, options)
        except SkillExtractionError as e:
            logger.warning("Subject %s failed: %s", subject_id, e)
            return BatchItemResult(subject_id=subject_id, success=False, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error while processing subject %s", subject_id)
            return BatchItemResult(subject_id=subject_id, success=False, error=str(e))

    async def _extract_subject(
        self, subject_id: str, method: ExtractionMethod, options: BatchOptions
    ) -> BatchItemResult:
        engine = self._engine

        kind = await engine.subjects.get_subject_kind(subject_id)
        if not kind.exists:
            raise NotFoundError(f"Candidate or prospect not found: {subject_id}")

        if not options.overwrite:
            previous = await engine.log_store.find_latest_successful(subject_id)
            if previous is not None and previous.match_count > 0:
                return BatchItemResult(
                    subject_id=subject_id,
                    success=True,
                    skipped=True,
                    reason=ALREADY_PROCESSED,
                    skills_found=previous.match_count,
                    is_preliminary=kind.is_preliminary,
                )

        text = await engine.cache.get_text(subject_id)
        if text is None:
            text = await engine.subjects.get_subject_text(subject_id, kind.is_preliminary)
            await engine.cache.put_text(subject_id, text)

        if not text or len(text) < self._min_text_length:
            raise ValidationError(
                f"Insufficient CV text (fewer than {self._min_text_length} characters)"
            )

        extraction = await engine.extract(subject_id, text, method, options.model)
        if not extraction.success:
            return BatchItemResult(
                subject_id=subject_id,
                success=False,
                error=extraction.error_message,
                is_preliminary=kind.is_preliminary,
            )

        result = BatchItemResult(
            subject_id=subject_id,
            success=True,
            skills_found=extraction.total_matches,
            is_preliminary=kind.is_preliminary,
        )
        try:
            result.saved = await engine.subjects.save_matches(
                subject_id, extraction.matches, options.overwrite, kind.is_preliminary
            )
        except Exception as e:
            logger.exception("Error saving skills for %s", subject_id)
            result.save_error = str(e)
        return result
