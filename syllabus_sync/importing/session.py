from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .models import EventItem, ImportErrorState, ImportStatus, ParseDiagnostics, StructuredExtraction

logger = logging.getLogger(__name__)

Source = Union[str, Path]
SessionListener = Callable[["SessionSnapshot"], None]


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of an `ImportSession` published after every mutation."""

    status: ImportStatus
    progress: float
    status_message: str
    events: Tuple[EventItem, ...]
    request_id: Optional[str]
    error_state: Optional[ImportErrorState]
    source: Optional[str]
    extracted_text: Optional[str]
    extracted_table: Optional[str]
    page_count: Optional[int]
    parser_input_text: Optional[str]
    preprocessed_text: Optional[str]
    diagnostics: Optional[ParseDiagnostics]
    raw_response: Optional[str]
    has_preview: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "progress": self.progress,
            "statusMessage": self.status_message,
            "events": [event.to_dict() for event in self.events],
            "requestId": self.request_id,
            "error": self.error_state.to_dict() if self.error_state else None,
            "source": self.source,
            "extractedText": self.extracted_text,
            "extractedTable": self.extracted_table,
            "pageCount": self.page_count,
            "parserInputText": self.parser_input_text,
            "preprocessedText": self.preprocessed_text,
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
            "diagnosticsSummary": self.diagnostics.summary() if self.diagnostics else None,
            "rawResponse": self.raw_response,
            "hasPreview": self.has_preview,
        }


@dataclass
class ImportSession:
    """
    Long-lived state container for syllabus imports.

    Only the pipeline and its progress simulator mutate it, both on the event
    loop thread. Observers never read fields mid-update: every mutation method
    publishes a `SessionSnapshot` to registered listeners and queue subscribers,
    which is the state-change stream the presentation layer consumes.
    """

    status: ImportStatus = ImportStatus.IDLE
    progress: float = 0.0
    status_message: str = "Ready"
    events: List[EventItem] = field(default_factory=list)
    request_id: Optional[str] = None
    error_state: Optional[ImportErrorState] = None
    source: Optional[str] = None
    last_source: Optional[Source] = None
    extracted_text: Optional[str] = None
    extracted_table: Optional[str] = None
    page_count: Optional[int] = None
    preview: Optional[bytes] = None
    parser_input_text: Optional[str] = None
    preprocessed_text: Optional[str] = None
    diagnostics: Optional[ParseDiagnostics] = None
    raw_response: Optional[str] = None
    _listeners: List[SessionListener] = field(default_factory=list, repr=False)
    _queues: List["asyncio.Queue[SessionSnapshot]"] = field(default_factory=list, repr=False)

    @property
    def is_running(self) -> bool:
        return self.status == ImportStatus.RUNNING

    @property
    def diagnostics_summary(self) -> Optional[str]:
        return self.diagnostics.summary() if self.diagnostics else None

    # region Observation
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            progress=self.progress,
            status_message=self.status_message,
            events=tuple(self.events),
            request_id=self.request_id,
            error_state=self.error_state,
            source=self.source,
            extracted_text=self.extracted_text,
            extracted_table=self.extracted_table,
            page_count=self.page_count,
            parser_input_text=self.parser_input_text,
            preprocessed_text=self.preprocessed_text,
            diagnostics=self.diagnostics,
            raw_response=self.raw_response,
            has_preview=self.preview is not None,
        )

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def subscribe(self) -> "asyncio.Queue[SessionSnapshot]":
        queue: "asyncio.Queue[SessionSnapshot]" = asyncio.Queue()
        self._queues.append(queue)
        return queue

    def unsubscribe(self, queue: "asyncio.Queue[SessionSnapshot]") -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:  # noqa: BLE001
                logger.exception("Session listener %r failed", listener)
        for queue in list(self._queues):
            queue.put_nowait(snap)

    # endregion

    # region Mutations
    def begin(self, request_id: str, source: Source) -> None:
        self.error_state = None
        self._clear_result_fields()
        self.progress = 0.0
        self.status_message = "Ready"
        self.request_id = request_id
        self.source = str(source)
        self.last_source = source
        self.status = ImportStatus.RUNNING
        self._notify()

    def update_progress(self, value: float, message: str) -> None:
        value = min(max(value, 0.0), 1.0)
        if self.is_running:
            # Running progress only moves forward.
            value = max(value, self.progress)
        self.progress = value
        self.status_message = message
        self._notify()

    def set_preview(self, preview: Optional[bytes]) -> None:
        self.preview = preview
        self._notify()

    def set_page_count(self, page_count: Optional[int]) -> None:
        self.page_count = page_count
        self._notify()

    def set_extraction(self, extraction: StructuredExtraction) -> None:
        self.extracted_text = extraction.plain_text
        self.extracted_table = extraction.table_text
        if extraction.page_count:
            self.page_count = extraction.page_count
        self._notify()

    def set_parser_input(self, text: str) -> None:
        self.parser_input_text = text
        self.preprocessed_text = None
        self._notify()

    def set_events(self, events: List[EventItem]) -> None:
        self.events = list(events)
        self._notify()

    def set_parse_results(
        self,
        diagnostics: Optional[ParseDiagnostics],
        raw_response: Optional[str],
        preprocessed_text: Optional[str],
    ) -> None:
        self.diagnostics = diagnostics
        self.raw_response = raw_response
        self.preprocessed_text = preprocessed_text
        self._notify()

    def replace_event(self, event: EventItem) -> bool:
        for index, existing in enumerate(self.events):
            if existing.id == event.id:
                self.events[index] = event
                self._notify()
                return True
        return False

    def mark_completed(self, message: str) -> None:
        self.progress = 1.0
        self.status_message = message
        self.status = ImportStatus.COMPLETED
        self.error_state = None
        self.request_id = None
        self._notify()

    def mark_failed(self, error_state: ImportErrorState) -> None:
        self.error_state = error_state
        self.status = ImportStatus.FAILED
        self.progress = 0.0
        self.status_message = "Failed"
        self.request_id = None
        self._notify()

    def mark_cancelled(self) -> None:
        self.error_state = None
        self.status = ImportStatus.CANCELLED
        self.progress = 0.0
        self.status_message = "Cancelled"
        self.request_id = None
        self._notify()

    def clear_results(self) -> None:
        self._clear_result_fields()
        self._notify()

    def _clear_result_fields(self) -> None:
        self.events = []
        self.diagnostics = None
        self.extracted_text = None
        self.extracted_table = None
        self.page_count = None
        self.parser_input_text = None
        self.preprocessed_text = None
        self.preview = None
        self.raw_response = None

    # endregion
