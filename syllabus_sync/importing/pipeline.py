from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import TYPE_CHECKING, List, Optional

from .cancellation import CancellationController, ImportCancelled
from .classifier import ErrorClassifier
from .config import ProgressConfig
from .errors import EmptyPayloadError
from .models import CourseRecord, EventItem, ImportStage, StructuredExtraction
from .parser import SyllabusParser
from .progress import ProgressSimulator
from .repository import EventRepository
from .session import ImportSession, Source
from .storage import LocalImportStorage

if TYPE_CHECKING:
    from .engine import SyllabusExtractor

logger = logging.getLogger(__name__)

COMPLETION_MESSAGE = "Import complete!"


class ImportPipeline:
    """
    Drives one syllabus import at a time through
    preparation -> extraction -> pre-analysis -> remote parse -> merge.

    Progress is simulated by a `ProgressSimulator` running beside the stages.
    Cancellation is cooperative: `cancel_import` only raises a flag, which is
    checked after every await so results arriving late are never published.
    """

    def __init__(
        self,
        extractor: SyllabusExtractor,
        parser: SyllabusParser,
        event_store: EventRepository,
        session: Optional[ImportSession] = None,
        storage: Optional[LocalImportStorage] = None,
        classifier: Optional[ErrorClassifier] = None,
        progress_config: Optional[ProgressConfig] = None,
        preview_max_dimension: int = 600,
        rng: Optional[random.Random] = None,
    ):
        self.extractor = extractor
        self.parser = parser
        self.event_store = event_store
        self.session = session or ImportSession()
        self.storage = storage
        self.classifier = classifier or ErrorClassifier()
        self.progress_config = progress_config or ProgressConfig()
        self.preview_max_dimension = preview_max_dimension
        self.rng = rng
        self.cancellation = CancellationController()
        self._merging = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.session.is_running

    async def start_import(self, source: Source) -> bool:
        """
        Run the full import for `source`.

        Returns True only when the attempt completed. A call made while another
        import is running returns False without touching the session.
        """
        if self.session.is_running:
            logger.info("Import already running; ignoring request for %s", source)
            return False
        request_id = self._begin(source)
        return await self._execute(request_id, source)

    def launch(self, source: Source) -> Optional[asyncio.Task]:
        """
        Start an import for `source` as a background task.

        The session switches to Running before this returns, so a second
        caller sees the import immediately. Returns None if one is already
        running.
        """
        if self.session.is_running:
            logger.info("Import already running; ignoring request for %s", source)
            return None
        request_id = self._begin(source)
        self._task = asyncio.create_task(self._execute(request_id, source), name=f"import-{request_id}")
        return self._task

    def cancel_import(self) -> bool:
        """
        Request cancellation of the running import.

        Refused once the merge stage has started persisting events; the
        attempt then runs to its terminal state.
        """
        if not self.session.is_running:
            return False
        if self._merging:
            logger.info("Import %s is saving events; cancellation refused", self.session.request_id)
            return False
        logger.info("Cancellation requested for import %s", self.session.request_id)
        self.cancellation.request()
        return True

    async def retry_last_import(self) -> bool:
        if self.session.is_running:
            return False
        source = self.session.last_source
        if source is None:
            return False
        logger.info("Retrying import for %s", source)
        return await self.start_import(source)

    def clear_results(self) -> None:
        if self.session.is_running:
            logger.info("Ignoring clear_results while import %s is running", self.session.request_id)
            return
        self.session.clear_results()

    async def apply_edited_event(self, event: EventItem) -> bool:
        """
        Replace the session's copy of `event` (matched by id) and persist it.
        Returns whether the session held a matching event.
        """
        replaced = self.session.replace_event(event)
        await asyncio.to_thread(self.event_store.update_event, event)
        return replaced

    def _begin(self, source: Source) -> str:
        request_id = uuid.uuid4().hex
        self.cancellation.reset()
        self._merging = False
        self.session.begin(request_id, source)
        logger.info("Import %s started for %s", request_id, source)
        return request_id

    async def _execute(self, request_id: str, source: Source) -> bool:
        simulator = ProgressSimulator(self.session, self.cancellation, self.progress_config, self.rng)
        simulator.start()
        try:
            await self._run_stages(simulator, request_id, source)
        except ImportCancelled:
            await self._handle_cancellation(simulator, request_id)
            return False
        except asyncio.CancelledError:
            await self._handle_cancellation(simulator, request_id)
            raise
        except Exception as exc:  # noqa: BLE001
            await self._handle_failure(simulator, exc)
            return False
        finally:
            self._merging = False
        logger.info("Import %s completed with %d events", request_id, len(self.session.events))
        return True

    async def _run_stages(
self, simulator: ProgressSimulator, request_id: str, source: Source) -> None:
        token = self.cancellation

        async with simulator.stage(ImportStage.PREPARATION, "Document prepared"):
            preview = await self.extractor.preview(source, self.preview_max_dimension)
            page_count = await self.extractor.count_pages(source)
            token.checkpoint("preparation")
            self.session.set_preview(preview)
            self.session.set_page_count(page_count)
            if preview and self.storage:
                await asyncio.to_thread(self.storage.write_preview, request_id, preview)
        self._stage_closed(request_id, ImportStage.PREPARATION)
        token.checkpoint("preparation")

        async with simulator.stage(ImportStage.EXTRACTION, "Document ready"):
            extraction = await self.extractor.extract_structured(source)
            token.checkpoint("extraction")
            self.session.set_extraction(extraction)
            if self.storage:
                await asyncio.to_thread(self.storage.write_extraction, request_id, extraction)
        self._stage_closed(request_id, ImportStage.EXTRACTION)
        token.checkpoint("extraction")

        parser_input = self._validated_parser_input(extraction)

        async with simulator.stage(ImportStage.PRE_ANALYSIS, "Content analyzed", play_through=True):
            self.session.set_parser_input(parser_input)
        self._stage_closed(request_id, ImportStage.PRE_ANALYSIS)
        token.checkpoint("pre_analysis")

        async with simulator.stage(ImportStage.REMOTE_PARSE, "Events extracted"):
            events = await self.parser.parse(parser_input)
            token.checkpoint("remote_parse")
        self._stage_closed(request_id, ImportStage.REMOTE_PARSE)
        token.checkpoint("remote_parse")

        await self._merge(simulator, request_id, events)

    def _validated_parser_input(self, extraction: StructuredExtraction) -> str:
        table_text = (extraction.table_text or "").strip()
        if not table_text:
            raise EmptyPayloadError()
        return table_text

    async def _merge(self, simulator: ProgressSimulator, request_id: str, events: List[EventItem]) -> None:
        self.cancellation.checkpoint("merge")
        self._merging = True
        start, _end = ImportStage.MERGE.window
        self.session.update_progress(start, "Saving events...")
        self.session.set_events(events)

        await asyncio.to_thread(self.event_store.auto_approve, events)
        await asyncio.to_thread(self._ensure_courses, events)

        diagnostics = self.parser.latest_diagnostics
        raw_response = self.parser.raw_response
        self.session.set_parse_results(diagnostics, raw_response, self.parser.latest_preprocessed_text)
        if self.storage:
            await asyncio.to_thread(self.storage.write_parser_output, request_id, raw_response, diagnostics)

        await simulator.finish(COMPLETION_MESSAGE)
        self.session.mark_completed(COMPLETION_MESSAGE)
        self.cancellation.reset()

    def _ensure_courses(self, events: List[EventItem]) -> None:
        for code in sorted({event.course_code for event in events}):
            if self.event_store.get_course_by_code(code) is None:
                self.event_store.save_course(CourseRecord(id=str(uuid.uuid4()), code=code, title=code))

    def _stage_closed(self, request_id: str, stage: ImportStage) -> None:
        logger.info(
            "Import %s: stage %s closed at %.2f (%s)",
            request_id,
            stage.value,
            self.session.progress,
            self.session.status_message,
        )

    async def _handle_cancellation(self, simulator: ProgressSimulator, request_id: str) -> None:
        await simulator.stop()
        self.cancellation.reset()
        self.session.mark_cancelled()
        logger.info("Import %s cancelled", request_id)

    async def _handle_failure(self, simulator: ProgressSimulator, exc: Exception) -> None:
        await simulator.stop()
        error_state = self.classifier.build_error(exc, self.session.request_id)
        self.cancellation.reset()
        self.session.mark_failed(error_state)
