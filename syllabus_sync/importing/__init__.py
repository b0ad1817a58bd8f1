"""
Import subsystem exports.

The docling-backed extractor lives in `syllabus_sync.importing.engine` and is
imported from there so the rest of the subsystem loads without docling.
"""

from .cancellation import CancellationController, ImportCancelled
from .classifier import ErrorClassifier
from .client import APIRequest, ParserAPIClient
from .config import ImportConfig, ParserClientConfig, ProgressConfig
from .errors import (
    APIClientError,
    EmptyPayloadError,
    ExtractionError,
    InvalidURLError,
    ParserDecodingError,
    ParserNetworkError,
    ParserServerError,
    RateLimitedError,
    RequestFailedError,
    RequestTimeoutError,
    ResponseDecodingError,
    ServerResponseError,
    SyllabusParserError,
    UnauthorizedError,
)
from .models import (
    CourseRecord,
    EventItem,
    EventType,
    ImportErrorKind,
    ImportErrorState,
    ImportStage,
    ImportStatus,
    ParseDiagnostics,
    StructuredExtraction,
    ValidationSummary,
)
from .parser import RemoteSyllabusParser, SyllabusParser
from .pipeline import ImportPipeline
from .progress import ProgressSimulator
from .repository import EventRepository, InMemoryEventRepository, SqlAlchemyEventRepository
from .session import ImportSession, SessionSnapshot
from .storage import ImportStoragePaths, LocalImportStorage

__all__ = [
    "APIClientError",
    "APIRequest",
    "CancellationController",
    "CourseRecord",
    "EmptyPayloadError",
    "ErrorClassifier",
    "EventItem",
    "EventRepository",
    "EventType",
    "ExtractionError",
    "ImportCancelled",
    "ImportConfig",
    "ImportErrorKind",
    "ImportErrorState",
    "ImportPipeline",
    "ImportSession",
    "ImportStage",
    "ImportStatus",
    "ImportStoragePaths",
    "InMemoryEventRepository",
    "InvalidURLError",
    "LocalImportStorage",
    "ParseDiagnostics",
    "ParserAPIClient",
    "ParserClientConfig",
    "ParserDecodingError",
    "ParserNetworkError",
    "ParserServerError",
    "ProgressConfig",
    "ProgressSimulator",
    "RateLimitedError",
    "RemoteSyllabusParser",
    "RequestFailedError",
    "RequestTimeoutError",
    "ResponseDecodingError",
    "ServerResponseError",
    "SessionSnapshot",
    "SqlAlchemyEventRepository",
    "StructuredExtraction",
    "SyllabusParser",
    "SyllabusParserError",
    "UnauthorizedError",
    "ValidationSummary",
]
