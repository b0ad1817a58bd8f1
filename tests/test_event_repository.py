from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from syllabus_sync.importing import (
    CourseRecord,
    EventType,
    InMemoryEventRepository,
    SqlAlchemyEventRepository,
)

from conftest import make_event


@pytest.fixture(params=["memory", "sqlalchemy"])
def any_repo(request, tmp_path):
    if request.param == "memory":
        return InMemoryEventRepository()
    return SqlAlchemyEventRepository(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")


def test_sqlalchemy_repository_roundtrip(tmp_path):
    repo = SqlAlchemyEventRepository(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    event = make_event()
    repo.upsert_events([event])

    fetched = repo.get_event(event.id)
    assert fetched == event
    assert fetched.type == EventType.MIDTERM
    assert fetched.start == datetime(2025, 10, 1, 9, 0)

    course = CourseRecord(id="course-1", code="CS101", title="Intro to CS")
    repo.save_course(course)
    assert repo.get_course_by_code("CS101").title == "Intro to CS"
    assert [c.code for c in repo.list_courses()] == ["CS101"]

    # Reopening the same file sees the stored rows.
    reopened = SqlAlchemyEventRepository(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    assert [e.id for e in reopened.list_events()] == [event.id]


def test_events_are_listed_by_start(any_repo):
    later = make_event("evt-late")
    earlier = make_event("evt-early", title="Quiz 1")
    earlier = replace(earlier, start=datetime(2025, 9, 5, 10, 0))
    any_repo.upsert_events([later, earlier])

    assert [e.id for e in any_repo.list_events()] == ["evt-early", "evt-late"]


def test_update_and_delete(any_repo):
    event = make_event()
    any_repo.upsert_events([event])

    edited = replace(event, title="Midterm Exam")
    any_repo.update_event(edited)
    assert any_repo.get_event(event.id).title == "Midterm Exam"

    any_repo.delete_event(event.id)
    assert any_repo.get_event(event.id) is None


def test_auto_approve_replaces_stale_events_for_same_course(any_repo):
    any_repo.upsert_events(
        [
            make_event("cs-old", course_code="CS101"),
            make_event("cs-keep", course_code="CS101"),
            make_event("ma-1", course_code="MATH200"),
        ]
    )

    any_repo.auto_approve([make_event("cs-keep", course_code="CS101"), make_event("cs-new", course_code="CS101")])

    assert {e.id for e in any_repo.list_events()} == {"cs-keep", "cs-new", "ma-1"}


def test_auto_approve_empty_batch_keeps_store(any_repo):
    any_repo.upsert_events([make_event()])
    any_repo.auto_approve([])
    assert len(any_repo.list_events()) == 1


def test_delete_all(any_repo):
    any_repo.upsert_events([make_event()])
    any_repo.save_course(CourseRecord(id="course-1", code="CS101"))

    any_repo.delete_all()

    assert any_repo.list_events() == []
    assert any_repo.list_courses() == []


def test_in_memory_repository_returns_copies():
    repo = InMemoryEventRepository()
    course = CourseRecord(id="course-1", code="CS101")
    repo.save_course(course)
    course.title = "changed"
    assert repo.get_course_by_code("CS101").title is None


def test_offset_qualified_times_keep_their_offset(any_repo):
    eastern = timezone(timedelta(hours=-4))
    event = replace(
        make_event(),
        start=datetime(2025, 10, 1, 9, 0, tzinfo=eastern),
        end=datetime(2025, 10, 1, 11, 0, tzinfo=eastern),
    )
    any_repo.upsert_events([event])

    stored = any_repo.get_event(event.id)
    assert stored.start == event.start
    assert stored.start.utcoffset() == timedelta(hours=-4)
    assert stored.end.isoformat() == "2025-10-01T11:00:00-04:00"


def test_course_timestamps_are_timezone_aware():
    assert CourseRecord(id="course-1", code="CS101").created_at.tzinfo is not None
