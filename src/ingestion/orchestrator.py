import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List

from extraction.entry_extractor import EntryExtractor
from gazette_tracker.errors import PersistenceFailure
from gazette_tracker.models import TaskDraft, utc_now
from ingestion.dedup_gate import admit
from storage.task_store import TaskStore
from synthesis.task_synthesizer import synthesize_all

logger = logging.getLogger(__name__)


class IngestionPhase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    ADMITTING = "admitting"
    PERSISTING = "persisting"


@dataclass(frozen=True)
class IngestionReport:
    new_entries: int = 0
    extracted: int = 0
    admitted: int = 0
    failed: int = 0
    skipped: int = 0


class IngestionOrchestrator:
    """
    One ingestion run: fetch -> extract -> classify/synthesize -> dedup -> persist.

    Runs on the same orchestrator are serialized. The dedup check and the
    writes are not transactional, so overlapping runs from separate
    orchestrators (or processes) can still admit a source twice; schedule a
    single active job.
    """

    def __init__(self, store: TaskStore, extractor: EntryExtractor, clock: Callable = utc_now):
        self._store = store
        self._extractor = extractor
        self._clock = clock
        self._lock = asyncio.Lock()
        self.phase = IngestionPhase.IDLE

    async def _existing_sources(self, drafts: List[TaskDraft]) -> set:
        existing = set()
        for source in {d.source for d in drafts}:
            if await self._store.find_by("source", source, limit=1):
                existing.add(source)
        return existing

    async def _persist(self, drafts: List[TaskDraft]) -> int:
        written = 0
        for draft in drafts:
            try:
                await self._store.create(draft)
            except Exception as e:
                failure = PersistenceFailure(draft.source, e)
                logger.error(str(failure))
                continue
            written += 1
        return written

    async def run(self) -> IngestionReport:
        async with self._lock:
            try:
                return await self._run()
            finally:
                self.phase = IngestionPhase.IDLE

    async def _run(self) -> IngestionReport:
        self.phase = IngestionPhase.FETCHING
        # requests blocks, keep it off the event loop.
        html = await asyncio.to_thread(self._extractor.fetch_page)

        self.phase = IngestionPhase.EXTRACTING
        entries = self._extractor.parse(html)
        if not entries:
            logger.info("No gazette entries extracted; nothing to ingest")
            return IngestionReport()
        drafts = synthesize_all(entries, self._clock(), self._extractor.base_url)

        self.phase = IngestionPhase.ADMITTING
        admitted = admit(drafts, await self._existing_sources(drafts))

        self.phase = IngestionPhase.PERSISTING
        written = await self._persist(admitted)

        report = IngestionReport(
            new_entries=written,
            extracted=len(entries),
            admitted=len(admitted),
            failed=len(admitted) - written,
            skipped=len(entries) - len(drafts),
        )
        logger.info(
            f"Gazette ingestion finished: {report.extracted} extracted, {report.skipped} skipped, "
            f"{report.admitted} admitted, {report.new_entries} stored, {report.failed} failed"
        )
        return report
