from __future__ import annotations

import logging
from copy import deepcopy
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import CourseRecord, EventItem, EventType

logger = logging.getLogger(__name__)

Base = declarative_base()


class EventModel(Base):
    __tablename__ = "events"
    id = Column(String, primary_key=True)
    course_code = Column(String, index=True)
    type = Column(String)
    title = Column(String)
    # ISO 8601 text; keeps the UTC offset of offset-qualified times.
    start = Column(String)
    end = Column(String)
    all_day = Column(Boolean)
    location = Column(String)
    notes = Column(Text)
    recurrence_rule = Column(String)
    reminder_minutes = Column(Integer)
    confidence = Column(Float)
    updated_at = Column(DateTime)


class CourseModel(Base):
    __tablename__ = "courses"
    id = Column(String, primary_key=True)
    code = Column(String, unique=True, index=True)
    title = Column(String)
    created_at = Column(DateTime)


def sort_events(events: Iterable[EventItem]) -> List[EventItem]:
    return sorted(events, key=lambda e: (e.start.replace(tzinfo=None), e.title))


class EventRepository:
    """
    Persistence boundary for imported calendar events and their courses.
    Methods are synchronous; the import pipeline offloads them to a worker
    thread so they never block the event loop.
    """

    # Event operations
    def list_events(self) -> List[EventItem]:
        raise NotImplementedError

    def get_event(self, event_id: str) -> Optional[EventItem]:
        raise NotImplementedError

    def upsert_events(self, events: Iterable[EventItem]) -> None:
        raise NotImplementedError

    def update_event(self, event: EventItem) -> None:
        raise NotImplementedError

    def delete_event(self, event_id: str) -> None:
        raise NotImplementedError

    def delete_all(self) -> None:
        raise NotImplementedError

    # Course operations
    def get_course_by_code(self, code: str) -> Optional[CourseRecord]:
        raise NotImplementedError

    def save_course(self, course: CourseRecord) -> None:
        raise NotImplementedError

    def list_courses(self) -> List[CourseRecord]:
        raise NotImplementedError

    def auto_approve(self, events: List[EventItem]) -> None:
        """
        Accept a freshly parsed batch. For every course in the batch, stored
        events that the batch no longer contains are removed before the batch
        is upserted.
        """
        if not events:
            return
        new_ids_by_course: Dict[str, set] = {}
        for event in events:
            new_ids_by_course.setdefault(event.course_code, set()).add(event.id)
        for existing in self.list_events():
            new_ids = new_ids_by_course.get(existing.course_code)
            if new_ids is not None and existing.id not in new_ids:
                self.delete_event(existing.id)
        self.upsert_events(events)
        logger.info("Imported %d events across %d courses", len(events), len(new_ids_by_course))


class InMemoryEventRepository(EventRepository):
    """
    Simple in-memory store for local runs and tests. Keeps copies so callers
    cannot mutate stored records.
    """

    def __init__(self):
        self.events: Dict[str, EventItem] = {}
        self.courses: Dict[str, CourseRecord] = {}

    def _clone(self, obj):
        return deepcopy(obj)

    def list_events(self) -> List[EventItem]:
        return sort_events(self._clone(e) for e in self.events.values())

    def get_event(self, event_id: str) -> Optional[EventItem]:
        event = self.events.get(event_id)
        return self._clone(event) if event else None

    def upsert_events(self, events: Iterable[EventItem]) -> None:
        for event in events:
            self.events[event.id] = self._clone(event)

    def update_event(self, event: EventItem) -> None:
        self.events[event.id] = self._clone(event)

    def delete_event(self, event_id: str) -> None:
        self.events.pop(event_id, None)

    def delete_all(self) -> None:
        self.events.clear()
        self.courses.clear()

    def get_course_by_code(self, code: str) -> Optional[CourseRecord]:
        for course in self.courses.values():
            if course.code == code:
                return self._clone(course)
        return None

    def save_course(self, course: CourseRecord) -> None:
        self.courses[course.id] = self._clone(course)

    def list_courses(self) -> List[CourseRecord]:
        return [self._clone(c) for c in self.courses.values()]


class SqlAlchemyEventRepository(EventRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.engine = create_engine(database_url, future=True, connect_args=connect_args)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    @staticmethod
    def _to_record(model: EventModel) -> EventItem:
        return EventItem(
            id=model.id,
            course_code=model.course_code,
            type=EventType.parse(model.type),
            title=model.title,
            start=datetime.fromisoformat(model.start),
            end=datetime.fromisoformat(model.end) if model.end else None,
            all_day=model.all_day,
            location=model.location,
            notes=model.notes,
            recurrence_rule=model.recurrence_rule,
            reminder_minutes=model.reminder_minutes,
            confidence=model.confidence,
        )

    @staticmethod
    def _to_model(event: EventItem) -> EventModel:
        return EventModel(
            id=event.id,
            course_code=event.course_code,
            type=event.type.value,
            title=event.title,
            start=event.start.isoformat(),
            end=event.end.isoformat() if event.end else None,
            all_day=event.all_day,
            location=event.location,
            notes=event.notes,
            recurrence_rule=event.recurrence_rule,
            reminder_minutes=event.reminder_minutes,
            confidence=event.confidence,
            updated_at=datetime.now(timezone.utc),
        )

    # region Event operations
    def list_events(self) -> List[EventItem]:
        with self._session() as session:
            models = session.execute(select(EventModel)).scalars().all()
            return sort_events(self._to_record(m) for m in models)

    def get_event(self, event_id: str) -> Optional[EventItem]:
        with self._session() as session:
            model = session.get(EventModel, event_id)
            return self._to_record(model) if model else None

    def upsert_events(self, events: Iterable[EventItem]) -> None:
        with self._session() as session:
            for event in events:
                session.merge(self._to_model(event))
            session.commit()

    def update_event(self, event: EventItem) -> None:
        with self._session() as session:
            session.merge(self._to_model(event))
            session.commit()

    def delete_event(self, event_id: str) -> None:
        with self._session() as session:
            session.execute(delete(EventModel).where(EventModel.id == event_id))
            session.commit()

    def delete_all(self) -> None:
        with self._session() as session:
            session.execute(delete(EventModel))
            session.execute(delete(CourseModel))
            session.commit()

    # endregion

    # region Course operations
    def get_course_by_code(self, code: str) -> Optional[CourseRecord]:
        with self._session() as session:
            model = session.execute(select(CourseModel).where(CourseModel.code == code)).scalars().first()
            if not model:
                return None
            return CourseRecord(id=model.id, code=model.code, title=model.title, created_at=model.created_at)

    def save_course(self, course: CourseRecord) -> None:
        with self._session() as session:
            session.merge(
                CourseModel(id=course.id, code=course.code, title=course.title, created_at=course.created_at)
            )
            session.commit()

    def list_courses(self) -> List[CourseRecord]:
        with self._session() as session:
            models = session.execute(select(CourseModel)).scalars().all()
            return [CourseRecord(id=m.id, code=m.code, title=m.title, created_at=m.created_at) for m in models]

    # endregion
