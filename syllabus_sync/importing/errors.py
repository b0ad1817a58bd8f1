"""
Exception types raised by the import collaborators.

Two families mirror the two layers a remote parse goes through: the HTTP
transport (`APIClientError`) and the syllabus parser built on top of it
(`SyllabusParserError`). Extraction failures have their own type.
"""

from __future__ import annotations

from typing import Optional


class ExtractionError(RuntimeError):
    """The document could not be read or converted."""


# region Transport errors
class APIClientError(Exception):
    """Base class for failures raised by the parser HTTP client."""


class InvalidURLError(APIClientError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"The server URL is invalid: {url!r}")


class RequestFailedError(APIClientError):
    def __init__(self, underlying: BaseException):
        self.underlying = underlying
        super().__init__(str(underlying) or type(underlying).__name__)


class RequestTimeoutError(APIClientError):
    def __init__(self) -> None:
        super().__init__("The request timed out.")


class ResponseDecodingError(APIClientError):
    def __init__(self) -> None:
        super().__init__("Received an unexpected response from the server.")


class ServerResponseError(APIClientError):
    def __init__(self, status: int, message: Optional[str] = None, retry_after: Optional[int] = None):
        self.status = status
        self.message = message
        self.retry_after = retry_after
        super().__init__(message or f"Server responded with status code {status}.")


# endregion


# region Parser errors
class SyllabusParserError(Exception):
    """Lightweight errors surfaced to the user when parsing fails."""


class EmptyPayloadError(SyllabusParserError):
    def __init__(self) -> None:
        super().__init__("The extracted syllabus text was empty.")


class ParserNetworkError(SyllabusParserError):
    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


class ParserServerError(SyllabusParserError):
    def __init__(self, description: str):
        self.description = description
        super().__init__(description)


class ParserDecodingError(SyllabusParserError):
    def __init__(self) -> None:
        super().__init__("The server returned data in an unexpected format.")


class UnauthorizedError(SyllabusParserError):
    def __init__(self) -> None:
        super().__init__("We couldn't authenticate with the server. Please try again later.")


class RateLimitedError(SyllabusParserError):
    def __init__(self, retry_after: Optional[int] = None):
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"We've hit the parsing limit. Please retry in {retry_after} seconds."
        else:
            message = "We've hit the parsing limit. Please try again shortly."
        super().__init__(message)


# endregion
