import asyncio
import random
from datetime import datetime
from typing import List, Optional

import pytest

from syllabus_sync.importing import (
    EventItem,
    EventType,
    ImportPipeline,
    InMemoryEventRepository,
    ParseDiagnostics,
    ProgressConfig,
    StructuredExtraction,
)

SAMPLE_TABLE = "Week\tDate\tTopic\n1\tSep 3\tIntro\n5\tOct 1\tMidterm"


def make_event(event_id: str = "evt-1", course_code: str = "CS101", title: str = "Midterm") -> EventItem:
    return EventItem(
        id=event_id,
        course_code=course_code,
        type=EventType.MIDTERM,
        title=title,
        start=datetime(2025, 10, 1, 9, 0),
        end=datetime(2025, 10, 1, 11, 0),
        all_day=False,
        location="Room 204",
        confidence=0.9,
    )


class FakeExtractor:
    """
    Extractor double. `gate_on` names a method that blocks until `gate` is
    set, with `entered` signalling that the call is in flight.
    """

    def __init__(
        self,
        table_text: str = SAMPLE_TABLE,
        plain_text: str = "CS101 syllabus",
        error: Optional[Exception] = None,
        gate_on: Optional[str] = None,
    ):
        self.table_text = table_text
        self.plain_text = plain_text
        self.error = error
        self.gate_on = gate_on
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()
        self.calls: List[str] = []

    async def _call(self, name: str) -> None:
        self.calls.append(name)
        if name == self.gate_on:
            self.entered.set()
            await self.gate.wait()

    async def preview(self, source, max_dimension=600):
        await self._call("preview")
        return b"\x89PNG fake"

    async def count_pages(self, source):
        await self._call("count_pages")
        return 2

    async def extract_structured(self, source):
        await self._call("extract_structured")
        if self.error is not None:
            raise self.error
        return StructuredExtraction(plain_text=self.plain_text, table_text=self.table_text, page_count=2)


class FakeParser:
    """
    Parser double. When `gate` is set, `parse` blocks until the test releases
    it, with `entered` signalling that the call is in flight.
    """

    def __init__(self, events: Optional[List[EventItem]] = None, error: Optional[Exception] = None, gated: bool = False):
        self.events = events if events is not None else [make_event()]
        self.error = error
        self.gate: Optional[asyncio.Event] = asyncio.Event() if gated else None
        self.entered = asyncio.Event()
        self.inputs: List[str] = []
        self.latest_diagnostics = None
        self.raw_response = None
        self.latest_preprocessed_text = None

    async def parse(self, text: str) -> List[EventItem]:
        self.inputs.append(text)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.latest_diagnostics = ParseDiagnostics(source="openai", confidence=0.87, model="gpt-4o-mini")
        self.raw_response = '{"events": []}'
        self.latest_preprocessed_text = text
        return list(self.events)


@pytest.fixture
def repo():
    return InMemoryEventRepository()


@pytest.fixture
def make_pipeline(repo):
    def _make(extractor=None, parser=None, storage=None, event_store=None) -> ImportPipeline:
        return ImportPipeline(
            extractor=extractor or FakeExtractor(),
            parser=parser or FakeParser(),
            event_store=event_store or repo,
            storage=storage,
            progress_config=ProgressConfig.instant(),
            rng=random.Random(7),
        )

    return _make
