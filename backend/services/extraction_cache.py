"""Content-addressed summary cache with in-flight request collapsing.

Resolution order for a key:
1. live cache entry             -> copy tagged reused_from_cache
2. in-flight task for the key   -> await the shared task
3. otherwise start a task that
   a. tries durable reuse (a successful log entry re-matched locally)
   b. falls back to running the extractor
   and caches successful results.

Durable reuse runs inside the shared task, so concurrent callers collapse
onto it as well. Expired entries are dropped when read; there is no
background sweep. One instance per process, passed to every caller.
"""

import asyncio
import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from models.schemas.extraction import ExtractionMethod, ExtractionSummary
from services.text_normalizer import text_hash

logger = logging.getLogger(__name__)

SummaryFactory = Callable[[], Awaitable[ExtractionSummary]]
OptionalSummaryFactory = Callable[[], Awaitable[ExtractionSummary | None]]


def build_cache_key(prefix: str, payload: dict) -> str:
    """Stable key: sha256 over the payload serialized with sorted keys."""
    normalized = json.dumps(payload, sort_keys=True, default=str)
    return f"{prefix}:{hashlib.sha256(normalized.encode('utf-8')).hexdigest()}"


def extraction_key(
    subject_id: str, method: ExtractionMethod, model: str | None, text: str
) -> str:
    return build_cache_key("extraction", {
        "subject_id": subject_id,
        "method": method.value,
        "model": model or "",
        "text_sha256": text_hash(text),
    })


@dataclass
class CacheEntry:
    subject_id: str
    summary: ExtractionSummary
    expires_at: float


@dataclass
class _TextEntry:
    text: str
    expires_at: float


@dataclass
class CacheStats:
    hits: int = 0
    durable_hits: int = 0
    collapsed: int = 0
    executed: int = 0


class ExtractionCache:
    def __init__(
        self,
        summary_ttl: float = 24 * 60 * 60,
        text_ttl: float = 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.summary_ttl = summary_ttl
        self.text_ttl = text_ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._texts: dict[str, _TextEntry] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self.stats = CacheStats()

    # --- summaries ---

    def _live_entry(self, key: str) -> CacheEntry | None:
        """Caller must hold the lock."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry

    def _store(self, key: str, summary: ExtractionSummary) -> None:
        """Caller must hold the lock."""
        self._entries[key] = CacheEntry(
            subject_id=summary.subject_id,
            summary=summary.model_copy(deep=True),
            expires_at=self._clock() + self.summary_ttl,
        )

    async def get_or_extract(
        self,
        key: str,
        execute: SummaryFactory,
        reuse: OptionalSummaryFactory | None = None,
    ) -> ExtractionSummary:
        async with self._lock:
            entry = self._live_entry(key)
            if entry is not None:
                self.stats.hits += 1
                logger.debug("Cache hit for %s", key)
                return entry.summary.model_copy(deep=True, update={"reused_from_cache": True})

            task = self._in_flight.get(key)
            if task is None:
                task = asyncio.ensure_future(self._resolve(key, execute, reuse))
                self._in_flight[key] = task
            else:
                self.stats.collapsed += 1
                logger.debug("Joining in-flight extraction for %s", key)

        # shield: a cancelled caller must not cancel the work others await
        summary = await asyncio.shield(task)
        return summary.model_copy(deep=True)

    async def _resolve(
        self,
        key: str,
        execute: SummaryFactory,
        reuse: OptionalSummaryFactory | None,
    ) -> ExtractionSummary:
        this_task = asyncio.current_task()
        try:
            summary = await reuse() if reuse is not None else None
            if summary is not None:
                self.stats.durable_hits += 1
                summary.reused_from_cache = True
            else:
                self.stats.executed += 1
                summary = await execute()

            if summary.success:
                async with self._lock:
                    self._store(key, summary)
            return summary
        finally:
            async with self._lock:
                if self._in_flight.get(key) is this_task:
                    del self._in_flight[key]

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    # --- raw text ---

    async def get_text(self, subject_id: str) -> str | None:
        async with self._lock:
            entry = self._texts.get(subject_id)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._texts[subject_id]
                return None
            return entry.text

    async def put_text(self, subject_id: str, text: str) -> None:
        async with self._lock:
            self._texts[subject_id] = _TextEntry(text=text, expires_at=self._clock() + self.text_ttl)

    # --- maintenance ---

    async def invalidate(self, subject_id: str) -> int:
        """Drop every cached summary and the cached text of one subject."""
        async with self._lock:
            stale = [k for k, e in self._entries.items() if e.subject_id == subject_id]
            for k in stale:
                del self._entries[k]
            self._texts.pop(subject_id, None)
        if stale:
            logger.info("Invalidated %d cached extractions for %s", len(stale), subject_id)
        return len(stale)

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()
            self._texts.clear()
