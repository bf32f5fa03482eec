"""Collaborator interfaces consumed by the engine, plus in-memory versions.

The HR domain, the skill catalog and the extraction log live outside the
engine. Production code plugs in database-backed implementations; the
in-memory ones back local runs and tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

from models.schemas.catalog import SkillCatalogEntry
from models.schemas.extraction import ExtractionLogEntry, ExtractionMatch, ExtractionMethod
from models.schemas.subject import SaveResult, SubjectKind
from services.errors import NotFoundError

logger = logging.getLogger(__name__)


class SkillCatalog(ABC):
    @abstractmethod
    async def list_active_skills(self) -> list[SkillCatalogEntry]:
        """Active catalog entries, ordered by category."""


class ExtractionLogStore(ABC):
    @abstractmethod
    async def append(self, entry: ExtractionLogEntry) -> None:
        """Persist one entry. Entries are never updated afterwards."""

    @abstractmethod
    async def find_latest_successful(
        self,
        subject_id: str,
        method: ExtractionMethod | None = None,
        model: str | None = None,
        text_sha256: str | None = None,
    ) -> ExtractionLogEntry | None:
        """Most recent successful entry; None filters match anything."""

    @abstractmethod
    async def list_for_subject(self, subject_id: str) -> list[ExtractionLogEntry]:
        """All entries for a subject, newest first."""


class SubjectRepository(ABC):
    @abstractmethod
    async def get_subject_kind(self, subject_id: str) -> SubjectKind:
        ...

    @abstractmethod
    async def get_subject_text(self, subject_id: str, is_preliminary: bool = False) -> str:
        """Concatenated profile + document text. Raises NotFoundError."""

    @abstractmethod
    async def save_matches(
        self,
        subject_id: str,
        matches: list[ExtractionMatch],
        overwrite: bool = False,
        is_preliminary: bool = False,
    ) -> SaveResult:
        ...


class InMemorySkillCatalog(SkillCatalog):
    def __init__(self, entries: list[SkillCatalogEntry] | None = None) -> None:
        self._entries = list(entries or [])

    async def list_active_skills(self) -> list[SkillCatalogEntry]:
        active = [e for e in self._entries if e.is_active]
        return sorted(active, key=lambda e: e.category)


class InMemoryExtractionLogStore(ExtractionLogStore):
    def __init__(self) -> None:
        self._entries: list[ExtractionLogEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: ExtractionLogEntry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def find_latest_successful(
        self,
        subject_id: str,
        method: ExtractionMethod | None = None,
        model: str | None = None,
        text_sha256: str | None = None,
    ) -> ExtractionLogEntry | None:
        for entry in await self.list_for_subject(subject_id):
            if not entry.success:
                continue
            if method is not None and entry.method != method:
                continue
            if model is not None and entry.model != model:
                continue
            if text_sha256 is not None and entry.text_sha256 != text_sha256:
                continue
            return entry
        return None

    async def list_for_subject(self, subject_id: str) -> list[ExtractionLogEntry]:
        async with self._lock:
            matching = [e for e in self._entries if e.subject_id == subject_id]
        # stable sort keeps insertion order for identical timestamps
        return sorted(reversed(matching), key=lambda e: e.created_at, reverse=True)

    @property
    def entries(self) -> list[ExtractionLogEntry]:
        return list(self._entries)


class InMemorySubjectRepository(SubjectRepository):
    """Candidates and prospects keyed by id, with their saved skills.

    A prospect (preliminary subject) is promoted to a candidate the first
    time matches are saved for it.
    """

    def __init__(self) -> None:
        self._texts: dict[str, str] = {}
        self._names: dict[str, str] = {}
        self._preliminary: set[str] = set()
        self._skills: dict[str, dict[str, ExtractionMatch]] = {}
        self._lock = asyncio.Lock()

    def add_subject(
        self,
        subject_id: str,
        text: str,
        display_name: str = "",
        is_preliminary: bool = False,
    ) -> None:
        self._texts[subject_id] = text
        self._names[subject_id] = display_name or subject_id
        if is_preliminary:
            self._preliminary.add(subject_id)

    def saved_skills(self, subject_id: str) -> dict[str, ExtractionMatch]:
        return dict(self._skills.get(subject_id, {}))

    async def get_subject_kind(self, subject_id: str) -> SubjectKind:
        if subject_id not in self._texts:
            return SubjectKind(exists=False)
        return SubjectKind(
            exists=True,
            display_name=self._names[subject_id],
            is_preliminary=subject_id in self._preliminary,
        )

    async def get_subject_text(self, subject_id: str, is_preliminary: bool = False) -> str:
        if subject_id not in self._texts:
            kind = "Prospect" if is_preliminary else "Candidate"
            raise NotFoundError(f"{kind} not found: {subject_id}")
        return self._texts[subject_id]

    async def save_matches(
        self,
        subject_id: str,
        matches: list[ExtractionMatch],
        overwrite: bool = False,
        is_preliminary: bool = False,
    ) -> SaveResult:
        if subject_id not in self._texts:
            raise NotFoundError(f"Subject not found: {subject_id}")

        async with self._lock:
            if is_preliminary and subject_id in self._preliminary:
                self._preliminary.discard(subject_id)
                logger.info("Prospect %s promoted to candidate", subject_id)

            saved = self._skills.setdefault(subject_id, {})
            result = SaveResult()
            for match in matches:
                existing = saved.get(match.skill_id)
                if existing is None:
                    saved[match.skill_id] = match
                    result.added += 1
                elif overwrite and match.confidence > existing.confidence:
                    saved[match.skill_id] = match
                    result.updated += 1
                else:
                    result.skipped += 1
            return result


async def record_attempt(store: ExtractionLogStore, entry: ExtractionLogEntry) -> None:
    """Append an audit entry; a failing log store must not fail the extraction."""
    try:
        await store.append(entry)
    except Exception:
        logger.exception("Failed to write extraction log for %s", entry.subject_id)
