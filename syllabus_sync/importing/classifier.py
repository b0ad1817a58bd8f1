from __future__ import annotations

import logging
import socket
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

import httpx

from .errors import (
    EmptyPayloadError,
    InvalidURLError,
    ParserDecodingError,
    ParserNetworkError,
    ParserServerError,
    RateLimitedError,
    RequestFailedError,
    RequestTimeoutError,
    ResponseDecodingError,
    ServerResponseError,
    UnauthorizedError,
)
from .models import ImportErrorKind, ImportErrorState

logger = logging.getLogger(__name__)


def describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ErrorClassifier:
    """
    Maps failures from any import stage onto the small user-facing taxonomy.

    Parser errors are checked first, then transport errors, then bare network
    errors; anything else is Unknown and keeps its own description.
    """

    def classify(self, cause: BaseException) -> Tuple[ImportErrorKind, str]:
        # Parser-level causes
        if isinstance(cause, EmptyPayloadError):
            return ImportErrorKind.VALIDATION, str(cause)
        if isinstance(cause, ParserNetworkError):
            return ImportErrorKind.NETWORK, cause.description
        if isinstance(cause, ParserServerError):
            return ImportErrorKind.SERVER, cause.description
        if isinstance(cause, ParserDecodingError):
            return ImportErrorKind.INVALID_RESPONSE, str(cause)
        if isinstance(cause, UnauthorizedError):
            return ImportErrorKind.SERVER, str(cause)
        if isinstance(cause, RateLimitedError):
            if cause.retry_after is not None:
                return (
                    ImportErrorKind.SERVER,
                    f"We're hitting parsing limits. Try again in {cause.retry_after} seconds.",
                )
            return ImportErrorKind.SERVER, str(cause)

        # Transport-level causes
        if isinstance(cause, InvalidURLError):
            return ImportErrorKind.SERVER, "The parser endpoint is misconfigured."
        if isinstance(cause, RequestFailedError):
            return ImportErrorKind.NETWORK, describe(cause.underlying)
        if isinstance(cause, RequestTimeoutError):
            return ImportErrorKind.NETWORK, "The parser took too long to respond. Please try again."
        if isinstance(cause, ResponseDecodingError):
            return ImportErrorKind.INVALID_RESPONSE, "We received an unexpected response from the parser service."
        if isinstance(cause, ServerResponseError):
            return ImportErrorKind.SERVER, cause.message or "The parser service returned an error."

        # Bare network stack
        if isinstance(cause, (httpx.TransportError, ConnectionError, socket.gaierror)):
            return ImportErrorKind.NETWORK, describe(cause)

        return ImportErrorKind.UNKNOWN, describe(cause)

    def build_error(self, cause: BaseException, request_id: Optional[str] = None) -> ImportErrorState:
        kind, message = self.classify(cause)
        state = ImportErrorState(
            request_id=request_id or uuid.uuid4().hex,
            kind=kind,
            message=message,
            timestamp=datetime.now(timezone.utc),
        )
        logger.error(
            "[ImportError][%s] [%s] type=%s message=%s underlying=%s",
            state.request_id,
            state.timestamp.isoformat(),
            state.kind.value,
            state.message,
            describe(cause),
        )
        return state
