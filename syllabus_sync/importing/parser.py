from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .client import APIRequest, ParserAPIClient
from .errors import (
    APIClientError,
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
    SyllabusParserError,
    UnauthorizedError,
)
from .models import EventItem, ParseDiagnostics, ValidationSummary

logger = logging.getLogger(__name__)

PARSE_TIMEOUT_SECONDS = 90.0


class SyllabusParser:
    """
    Abstract syllabus parser: turns extracted table text into events.

    After `parse` returns, `latest_diagnostics`, `raw_response` and
    `latest_preprocessed_text` describe that call.
    """

    latest_diagnostics: Optional[ParseDiagnostics] = None
    raw_response: Optional[str] = None
    latest_preprocessed_text: Optional[str] = None

    async def parse(self, text: str) -> List[EventItem]:
        raise NotImplementedError


class RemoteSyllabusParser(SyllabusParser):
    """Parser backed by the remote `/parse` endpoint."""

    def __init__(self, client: ParserAPIClient, timezone: str = "UTC"):
        self.client = client
        self.timezone = timezone
        self.latest_diagnostics = None
        self.raw_response = None
        self.latest_preprocessed_text = None

    async def parse(self, text: str) -> List[EventItem]:
        trimmed = text.strip()
        if not trimmed:
            self.latest_diagnostics = None
            raise EmptyPayloadError()

        self.latest_preprocessed_text = None
        request = APIRequest(
            path="/parse",
            method="POST",
            headers={"Content-Type": "application/json"},
            json={"text": trimmed, "timezone": self.timezone},
            timeout=PARSE_TIMEOUT_SECONDS,
        )
        try:
            payload, raw = await self.client.send_with_raw_response(request)
        except (APIClientError, httpx.TransportError) as exc:
            self.raw_response = None
            self.latest_preprocessed_text = None
            raise self._map_error(exc) from exc

        try:
            events = [EventItem.from_dict(item) for item in payload["events"]]
            diagnostics = self._map_diagnostics(payload)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            self.raw_response = raw
            raise ParserDecodingError() from exc

        self.latest_diagnostics = diagnostics
        self.raw_response = raw
        self.latest_preprocessed_text = payload.get("preprocessedText")
        logger.info(
            "Parser returned %d events (confidence=%.2f, model=%s)",
            len(events),
            diagnostics.confidence,
            diagnostics.model,
        )
        return events

    def _map_diagnostics(self, payload: Dict[str, Any]) -> ParseDiagnostics:
        envelope = _object(payload.get("diagnostics"), "diagnostics")
        openai = _object(envelope.get("openai"), "diagnostics.openai")
        validation_payload = _object(envelope.get("validation"), "diagnostics.validation")
        validation = None
        if validation_payload:
            validation = ValidationSummary(
                total_events=validation_payload.get("totalEvents"),
                valid_events=validation_payload.get("validEvents"),
                invalid_events=validation_payload.get("invalidEvents"),
                clamped_events=validation_payload.get("clampedEvents"),
                defaults_applied=validation_payload.get("defaultsApplied"),
            )
        return ParseDiagnostics(
            source=str(payload.get("source", "openai")),
            confidence=float(payload["confidence"]),
            processing_time_ms=envelope.get("processingTimeMs"),
            text_length=envelope.get("textLength"),
            warnings=list(envelope.get("warnings") or []),
            validation=validation,
            model=openai.get("usedModel"),
            model_processing_time_ms=openai.get("processingTimeMs"),
            denied_reason=openai.get("denied"),
        )

    def _map_error(self, exc: Exception) -> SyllabusParserError:
        if isinstance(exc, InvalidURLError):
            return ParserServerError("The parser endpoint is misconfigured.")
        if isinstance(exc, RequestFailedError):
            return ParserNetworkError(friendly_message(exc.underlying))
        if isinstance(exc, RequestTimeoutError):
            return ParserNetworkError("The parser took too long to respond. Please try again.")
        if isinstance(exc, ResponseDecodingError):
            return ParserDecodingError()
        if isinstance(exc, ServerResponseError):
            if exc.status == 401:
                return UnauthorizedError()
            if exc.status == 429:
                return RateLimitedError(exc.retry_after)
            return ParserServerError(exc.message or f"The parser returned an error (status {exc.status}).")
        if isinstance(exc, httpx.TransportError):
            return ParserNetworkError(friendly_message(exc))
        return ParserServerError(str(exc))


def friendly_message(error: BaseException) -> str:
    if isinstance(error, httpx.TimeoutException):
        return "The request timed out. Please try again."
    if isinstance(error, httpx.ConnectError):
        return "We couldn't reach the parsing service."
    if isinstance(error, (httpx.ReadError, httpx.RemoteProtocolError)):
        return "The network connection was interrupted."
    if isinstance(error, httpx.TransportError):
        return str(error) or "Unable to reach the server. Please check your connection and try again."
    return "Unable to reach the server. Please check your connection and try again."


def _object(value: Any, name: str) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TypeError(f"'{name}' must be an object, got {type(value).__name__}")
    return value
