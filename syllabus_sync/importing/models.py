from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ImportStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ImportErrorKind(str, Enum):
    NETWORK = "network"
    SERVER = "server"
    INVALID_RESPONSE = "invalid_response"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ImportStage(str, Enum):
    PREPARATION = "preparation"
    EXTRACTION = "extraction"
    PRE_ANALYSIS = "pre_analysis"
    REMOTE_PARSE = "remote_parse"
    MERGE = "merge"

    @property
    def window(self) -> Tuple[float, float]:
        return STAGE_WINDOWS[self]


STAGE_WINDOWS: Dict[ImportStage, Tuple[float, float]] = {
    ImportStage.PREPARATION: (0.0, 0.20),
    ImportStage.EXTRACTION: (0.20, 0.50),
    ImportStage.PRE_ANALYSIS: (0.50, 0.70),
    ImportStage.REMOTE_PARSE: (0.70, 0.95),
    ImportStage.MERGE: (0.95, 1.0),
}


class EventType(str, Enum):
    ASSIGNMENT = "ASSIGNMENT"
    QUIZ = "QUIZ"
    MIDTERM = "MIDTERM"
    FINAL = "FINAL"
    LAB = "LAB"
    LECTURE = "LECTURE"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EventType":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.OTHER


def parse_service_datetime(value: str) -> datetime:
    """
    Parse the date strings produced by the parsing service.

    Local timestamps (with or without milliseconds) and date-only values are
    returned naive; offset-qualified values keep their tzinfo.
    """
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO 8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class EventItem:
    id: str
    course_code: str
    type: EventType
    title: str
    start: datetime
    end: Optional[datetime] = None
    all_day: Optional[bool] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    recurrence_rule: Optional[str] = None
    reminder_minutes: Optional[int] = None
    confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "EventItem":
        if not isinstance(payload, dict):
            raise TypeError(f"Expected an event object, got {type(payload).__name__}")
        end = payload.get("end")
        reminder = payload.get("reminderMinutes")
        confidence = payload.get("confidence")
        return cls(
            id=str(payload["id"]),
            course_code=str(payload["courseCode"]),
            type=EventType.parse(payload.get("type")),
            title=str(payload["title"]),
            start=parse_service_datetime(payload["start"]),
            end=parse_service_datetime(end) if end else None,
            all_day=payload.get("allDay"),
            location=payload.get("location"),
            notes=payload.get("notes"),
            recurrence_rule=payload.get("recurrenceRule"),
            reminder_minutes=int(reminder) if reminder is not None else None,
            confidence=float(confidence) if confidence is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "courseCode": self.course_code,
            "type": self.type.value,
            "title": self.title,
            "start": _format_datetime(self.start),
            "end": _format_datetime(self.end),
            "allDay": self.all_day,
            "location": self.location,
            "notes": self.notes,
            "recurrenceRule": self.recurrence_rule,
            "reminderMinutes": self.reminder_minutes,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ValidationSummary:
    total_events: Optional[int] = None
    valid_events: Optional[int] = None
    invalid_events: Optional[int] = None
    clamped_events: Optional[int] = None
    defaults_applied: Optional[int] = None


@dataclass(frozen=True)
class ParseDiagnostics:
    source: str
    confidence: float
    processing_time_ms: Optional[int] = None
    text_length: Optional[int] = None
    warnings: List[str] = field(default_factory=list)
    validation: Optional[ValidationSummary] = None
    model: Optional[str] = None
    model_processing_time_ms: Optional[int] = None
    denied_reason: Optional[str] = None

    def summary(self) -> str:
        """Short one-line description, e.g. ``OpenAI • Confidence 87% • gpt-4o``."""
        components = ["OpenAI" if self.source == "openai" else self.source]
        components.append(f"Confidence {round(self.confidence * 100)}%")
        if self.model:
            components.append(self.model)
        if self.denied_reason:
            components.append(f"Denied: {self.denied_reason}")
        return " • ".join(components)

    def to_dict(self) -> Dict[str, Any]:
        validation = None
        if self.validation is not None:
            validation = {
                "totalEvents": self.validation.total_events,
                "validEvents": self.validation.valid_events,
                "invalidEvents": self.validation.invalid_events,
                "clampedEvents": self.validation.clamped_events,
                "defaultsApplied": self.validation.defaults_applied,
            }
        return {
            "source": self.source,
            "confidence": self.confidence,
            "processingTimeMs": self.processing_time_ms,
            "textLength": self.text_length,
            "warnings": list(self.warnings),
            "validation": validation,
            "model": self.model,
            "modelProcessingTimeMs": self.model_processing_time_ms,
            "deniedReason": self.denied_reason,
        }


@dataclass(frozen=True)
class StructuredExtraction:
    plain_text: str
    table_text: str
    page_count: int = 0


@dataclass(frozen=True)
class ImportErrorState:
    request_id: str
    kind: ImportErrorKind
    message: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "requestId": self.request_id,
            "kind": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class CourseRecord:
    id: str
    code: str
    title: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
