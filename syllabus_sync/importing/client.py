"""
Async HTTP client for the syllabus parsing service.

Uses httpx with a configurable base URL, request timeout and a small retry
budget for timeouts, flaky connections and 408/5xx responses. Every failure
leaves as an `APIClientError` subclass.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import httpx

from .config import ParserClientConfig
from .errors import (
    InvalidURLError,
    RequestFailedError,
    RequestTimeoutError,
    ResponseDecodingError,
    ServerResponseError,
)

logger = logging.getLogger(__name__)


@dataclass
class APIRequest:
    path: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    json: Optional[Any] = None
    timeout: Optional[float] = None


class ParserAPIClient:
    def __init__(
        self,
        config: ParserClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        client_id: Optional[str] = None,
    ):
        self.config = config
        self.client_id = client_id or str(uuid.uuid4())
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def __aenter__(self) -> "ParserAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def send_with_raw_response(self, request: APIRequest) -> Tuple[Any, str]:
        """
        Send `request` and return the decoded JSON body together with the raw
        response text.
        """
        url = self._build_url(request.path)
        headers = self._build_headers(request)
        timeout = request.timeout or self.config.request_timeout
        attempts = self.config.max_retry_count + 1

        for attempt in range(attempts):
            is_last = attempt == attempts - 1
            try:
                response = await self._http.request(
                    request.method,
                    url,
                    headers=headers,
                    json=request.json,
                    timeout=timeout,
                )
            except httpx.TimeoutException as exc:
                if not is_last:
                    logger.warning("Request to %s timed out (attempt %s/%s)", url, attempt + 1, attempts)
                    continue
                raise RequestTimeoutError() from exc
            except httpx.TransportError as exc:
                if not is_last and self._should_retry(exc):
                    logger.warning("Request to %s failed: %s; retrying", url, exc)
                    await asyncio.sleep(self.config.transport_retry_backoff)
                    continue
                raise RequestFailedError(exc) from exc

            status = response.status_code
            if 200 <= status < 300:
                try:
                    return response.json(), response.text
                except ValueError as exc:
                    raise ResponseDecodingError() from exc

            message = self._decode_server_message(response)
            if status == 401:
                raise ServerResponseError(status, message, None)
            retry_after = self._parse_retry_after(response)
            if (status == 408 or 500 <= status < 600) and not is_last:
                logger.warning("Parser responded %s (attempt %s/%s); retrying", status, attempt + 1, attempts)
                await asyncio.sleep(self.config.server_retry_backoff)
                continue
            raise ServerResponseError(status, message, retry_after)

        raise RequestFailedError(RuntimeError("No request attempts were made"))

    def _build_url(self, path: str) -> httpx.URL:
        try:
            base = httpx.URL(self.config.base_url)
        except httpx.InvalidURL as exc:
            raise InvalidURLError(self.config.base_url) from exc
        if base.scheme not in ("http", "https") or not base.host:
            raise InvalidURLError(self.config.base_url)
        return base.join(path)

    def _build_headers(self, request: APIRequest) -> Dict[str, str]:
        headers = dict(self.config.default_headers)
        headers.setdefault("Content-Type", "application/json")
        headers.setdefault("Accept", "application/json")
        headers["x-client-id"] = self.client_id
        headers.update(request.headers)
        return headers

    @staticmethod
    def _should_retry(exc: httpx.TransportError) -> bool:
        return isinstance(exc, (httpx.NetworkError, httpx.RemoteProtocolError))

    @staticmethod
    def _decode_server_message(response: httpx.Response) -> Optional[str]:
        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError:
            return None
        if isinstance(payload, dict):
            for key in ("error", "message"):
                value = payload.get(key)
                if isinstance(value, str):
                    return value
        return None

    @staticmethod
    def _parse_retry_after(response: httpx.Response) -> Optional[int]:
        header = response.headers.get("Retry-After")
        if header is None:
            return None
        try:
            return int(header.strip())
        except ValueError:
            return None
