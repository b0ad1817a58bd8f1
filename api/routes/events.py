from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_repo
from syllabus_sync.importing import EventRepository

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
def list_events(course_code: Optional[str] = None, repo: EventRepository = Depends(get_repo)):
    events = repo.list_events()
    if course_code:
        events = [e for e in events if e.course_code == course_code]
    return [e.to_dict() for e in events]


@router.get("/courses")
def list_courses(repo: EventRepository = Depends(get_repo)):
    return [
        {
            "id": c.id,
            "code": c.code,
            "title": c.title,
            "createdAt": c.created_at.isoformat() if c.created_at else None,
        }
        for c in sorted(repo.list_courses(), key=lambda c: c.code)
    ]
