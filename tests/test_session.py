from datetime import datetime, timezone

import pytest

from syllabus_sync.importing import (
    EventItem,
    ImportConfig,
    ImportErrorKind,
    ImportErrorState,
    ImportSession,
    ImportStage,
    ImportStatus,
    ParseDiagnostics,
)

from conftest import make_event


def test_running_progress_never_moves_backwards():
    session = ImportSession()
    session.begin("req-1", "syllabus.pdf")

    session.update_progress(0.4, "Working...")
    session.update_progress(0.3, "Analyzing...")
    session.update_progress(1.7, "Too far")

    assert session.progress == 1.0
    assert session.status_message == "Too far"


def test_terminal_transitions():
    session = ImportSession()
    session.begin("req-1", "syllabus.pdf")
    session.set_events([make_event()])
    session.mark_completed("Import complete!")
    assert (session.status, session.progress, session.request_id) == (ImportStatus.COMPLETED, 1.0, None)

    session.begin("req-2", "syllabus.pdf")
    assert session.events == []
    error = ImportErrorState("req-2", ImportErrorKind.NETWORK, "offline", datetime.now(timezone.utc))
    session.mark_failed(error)
    assert (session.status, session.progress, session.status_message) == (ImportStatus.FAILED, 0.0, "Failed")
    assert session.error_state == error

    session.begin("req-3", "syllabus.pdf")
    assert session.error_state is None
    session.mark_cancelled()
    assert (session.status, session.progress, session.status_message) == (ImportStatus.CANCELLED, 0.0, "Cancelled")
    assert session.last_source == "syllabus.pdf"


def test_replace_event_matches_by_id():
    session = ImportSession()
    session.set_events([make_event("a"), make_event("b")])

    assert session.replace_event(make_event("b", title="Final")) is True
    assert session.replace_event(make_event("zzz")) is False
    assert [e.title for e in session.events] == ["Midterm", "Final"]


def test_listener_failures_do_not_break_mutations():
    session = ImportSession()
    seen = []

    def broken(_snap):
        raise RuntimeError("listener bug")

    session.add_listener(broken)
    session.add_listener(seen.append)
    session.begin("req-1", "syllabus.pdf")

    assert seen[-1].status == ImportStatus.RUNNING
    session.remove_listener(seen.append)
    session.update_progress(0.5, "Working...")
    assert len(seen) == 1


def test_stage_windows_are_contiguous():
    stages = list(ImportStage)
    assert stages[0].window[0] == 0.0
    assert stages[-1].window[1] == 1.0
    for previous, current in zip(stages, stages[1:]):
        assert previous.window[1] == current.window[0]


def test_event_wire_format():
    event = EventItem.from_dict(
        {
            "id": "evt-1",
            "courseCode": "CS101",
            "type": "quiz",
            "title": "Quiz 1",
            "start": "2025-09-12T14:30:00Z",
            "reminderMinutes": "30",
        }
    )
    assert event.start == datetime(2025, 9, 12, 14, 30, tzinfo=timezone.utc)
    assert event.reminder_minutes == 30
    payload = event.to_dict()
    assert payload["start"] == "2025-09-12T14:30:00.000+00:00"
    assert payload["type"] == "QUIZ"
    assert payload["end"] is None


def test_diagnostics_summary_variants():
    assert ParseDiagnostics(source="heuristic", confidence=0.5).summary() == "heuristic • Confidence 50%"
    denied = ParseDiagnostics(source="openai", confidence=0.1, denied_reason="content policy")
    assert denied.summary() == "OpenAI • Confidence 10% • Denied: content policy"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("PARSER_BASE_URL", "https://parser.example.com")
    monkeypatch.setenv("PARSER_MAX_RETRIES", "3")
    monkeypatch.setenv("PARSER_API_KEY", "secret")
    monkeypatch.setenv("PERFORM_OCR", "true")
    monkeypatch.delenv("SYLLABUS_TIMEZONE", raising=False)

    config = ImportConfig.from_env()
    client_config = config.parser_client_config()

    assert config.perform_ocr is True
    assert config.timezone == "UTC"
    assert client_config.base_url == "https://parser.example.com"
    assert client_config.max_retry_count == 3
    assert client_config.default_headers == {"Authorization": "Bearer secret"}


@pytest.mark.asyncio
async def test_subscribers_receive_snapshots_in_order():
    session = ImportSession()
    queue = session.subscribe()

    session.begin("req-1", "syllabus.pdf")
    session.update_progress(0.3, "Working...")
    session.unsubscribe(queue)
    session.update_progress(0.4, "Analyzing...")

    first = await queue.get()
    second = await queue.get()
    assert (first.progress, second.progress) == (0.0, 0.3)
    assert queue.empty()
