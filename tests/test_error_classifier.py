import socket

import httpx
import pytest

from syllabus_sync.importing import (
    EmptyPayloadError,
    ErrorClassifier,
    ImportErrorKind,
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


@pytest.mark.parametrize(
    "cause, kind, message",
    [
        (EmptyPayloadError(), ImportErrorKind.VALIDATION, "The extracted syllabus text was empty."),
        (ParserNetworkError("offline"), ImportErrorKind.NETWORK, "offline"),
        (ParserServerError("boom"), ImportErrorKind.SERVER, "boom"),
        (ParserDecodingError(), ImportErrorKind.INVALID_RESPONSE, "The server returned data in an unexpected format."),
        (
            UnauthorizedError(),
            ImportErrorKind.SERVER,
            "We couldn't authenticate with the server. Please try again later.",
        ),
        (
            RateLimitedError(30),
            ImportErrorKind.SERVER,
            "We're hitting parsing limits. Try again in 30 seconds.",
        ),
        (RateLimitedError(), ImportErrorKind.SERVER, "We've hit the parsing limit. Please try again shortly."),
        (InvalidURLError("nope"), ImportErrorKind.SERVER, "The parser endpoint is misconfigured."),
        (
            RequestTimeoutError(),
            ImportErrorKind.NETWORK,
            "The parser took too long to respond. Please try again.",
        ),
        (
            ResponseDecodingError(),
            ImportErrorKind.INVALID_RESPONSE,
            "We received an unexpected response from the parser service.",
        ),
        (ServerResponseError(503, "maintenance"), ImportErrorKind.SERVER, "maintenance"),
        (ServerResponseError(500), ImportErrorKind.SERVER, "The parser service returned an error."),
        (ValueError("odd"), ImportErrorKind.UNKNOWN, "odd"),
    ],
)
def test_classify(cause, kind, message):
    assert ErrorClassifier().classify(cause) == (kind, message)


def test_request_failed_uses_underlying_description():
    cause = RequestFailedError(httpx.ConnectError("connection refused"))
    assert ErrorClassifier().classify(cause) == (ImportErrorKind.NETWORK, "connection refused")


@pytest.mark.parametrize(
    "cause",
    [httpx.ConnectError("down"), ConnectionResetError("reset"), socket.gaierror("no such host")],
)
def test_bare_network_errors(cause):
    kind, _message = ErrorClassifier().classify(cause)
    assert kind == ImportErrorKind.NETWORK


def test_unknown_error_without_message_uses_type_name():
    class Weird(Exception):
        pass

    assert ErrorClassifier().classify(Weird()) == (ImportErrorKind.UNKNOWN, "Weird")


def test_build_error_keeps_request_id_and_logs(caplog):
    state = ErrorClassifier().build_error(ParserServerError("boom"), "req-1")
    assert state.request_id == "req-1"
    assert state.kind == ImportErrorKind.SERVER
    assert state.timestamp.tzinfo is not None
    assert "[ImportError][req-1]" in caplog.text
    assert "underlying=boom" in caplog.text


def test_build_error_generates_request_id():
    state = ErrorClassifier().build_error(ValueError("x"))
    assert state.request_id
