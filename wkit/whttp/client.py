"""
Fluent async HTTP request builder with timeout retry and typed response decoding.

    resp = await (
        new_get(User)
        .with_base_url("https://api.example.com/users/{uid}")
        .with_path_param("42")
        .with_query_param("expand", "orders")
        .with_retry(3, 1.0, 4.0)
        .send()
    )
    user = resp.data

Builder calls never raise. The first configuration error is kept and raised by
send(); every later builder call is a no-op.
"""
from __future__ import annotations
import asyncio
import dataclasses
import json
import logging
import random
import re
from datetime import timedelta
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, TypeVar, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, PydanticSchemaGenerationError, TypeAdapter, ValidationError

from wkit.observability.metrics import http_client_requests_total, http_client_retries_total
from wkit.whttp.errors import (
    ConfigurationError,
    DecodeError,
    HttpClientError,
    ProtocolError,
    TransportError,
)
from wkit.whttp.transport import create_http_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

Seconds = Union[int, float, timedelta]

# Matches placeholders in a URL template such as /user/{uid}/order/{oid}
PATH_PARAM_PATTERN = re.compile(r"\{([^{}]+)}")

# Left unescaped in path segments besides the unreserved set; "/" is escaped
PATH_SAFE_CHARS = "!$&'()*+,;=:@"


def is_timeout_error(exc: BaseException) -> bool:
    """Default retry predicate: only deadline failures are retried."""
    return isinstance(exc, httpx.TimeoutException)


def _seconds(value: Seconds) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _query_pairs(obj: Any) -> Dict[str, List[str]]:
    """Flatten a pydantic model, dataclass or mapping into query key/values."""
    if isinstance(obj, BaseModel):
        data = obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        data = TypeAdapter(type(obj)).dump_python(obj, mode="json", exclude_none=True)
    elif isinstance(obj, Mapping):
        data = dict(obj)
    else:
        raise TypeError(
            f"expected a pydantic model, dataclass or mapping, got {type(obj).__name__}"
        )

    pairs: Dict[str, List[str]] = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            raise TypeError(f"nested value for query key {key!r} is not supported")
        items = value if isinstance(value, (list, tuple)) else [value]
        pairs[str(key)] = [_query_value(v) for v in items if v is not None]
    return pairs


class RetryPolicy:
    """Exponential backoff with jitter, applied to retryable transport errors."""

    def __init__(
        self,
        max_attempts: int = 1,
        base_delay: float = 1.0,
        max_delay: float = 0.0,
        retry_on: Optional[Callable[[BaseException], bool]] = None,
    ):
        if max_attempts <= 0:
            max_attempts = 1
        if base_delay <= 0:
            base_delay = 1.0
        if max_delay <= 0:
            max_delay = base_delay * 16
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.retry_on = retry_on or is_timeout_error

    def delay_for(self, attempt: int) -> float:
        """Sleep before the attempt that follows failed attempt `attempt` (1-based)."""
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        return delay * (0.5 + random.random())


class ResponseWrapper(Generic[T]):
    """Successful (2xx) response: raw bytes, decoded data and headers."""

    def __init__(self, status_code: int, headers: httpx.Headers, content: bytes, data: T):
        self.status_code = status_code
        self.headers = headers
        self.content = content
        self.data = data

    def header(self, key: str) -> str:
        """First value for key, or an empty string."""
        values = self.headers.get_list(key)
        return values[0] if values else ""

    def header_multi(self, key: str) -> List[str]:
        """All values for key, or an empty list."""
        return self.headers.get_list(key)


class RequestBuilder(Generic[T]):
    """
    Accumulates one request and sends it once.
    Not safe for concurrent mutation; the underlying httpx client may be shared.
    """

    def __init__(
        self,
        method: str,
        response_type: Any = Any,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.method = method.upper()
        self.response_type = response_type
        self.base_url = ""
        self.full_url = ""
        self.query_params: Dict[str, List[str]] = {}
        self.headers: Dict[str, str] = {}
        self.body: Optional[bytes] = None
        self.timeout: Optional[float] = None
        self.retry = RetryPolicy()
        self.error: Optional[HttpClientError] = None
        self._client = client
        self._sent = False
        self._adapter: Optional[TypeAdapter] = None
        try:
            self._adapter = TypeAdapter(response_type)
        except (PydanticSchemaGenerationError, TypeError) as e:
            self._fail(ConfigurationError(f"unsupported response type {response_type!r}: {e}"))

    def _fail(self, error: HttpClientError) -> None:
        if self.error is None:
            logger.debug(f"Request builder error deferred to send: {error.message}")
            self.error = error

    def _blocked(self) -> bool:
        if self._sent:
            self._fail(ConfigurationError("request already sent, create a new builder"))
            return True
        return self.error is not None

    def with_base_url(self, base_url: str) -> "RequestBuilder[T]":
        if self._blocked():
            return self
        try:
            url = httpx.URL(base_url)
        except httpx.InvalidURL as e:
            self._fail(ConfigurationError(f"invalid base url {base_url!r}: {e}"))
            return self
        relative_ok = (
            url.is_relative_url
            and self._client is not None
            and bool(str(self._client.base_url))
        )
        if url.scheme not in ("http", "https") and not relative_ok:
            self._fail(ConfigurationError(f"unsupported base url {base_url!r}"))
            return self
        self.base_url = base_url
        return self

    def with_timeout(self, timeout: Seconds) -> "RequestBuilder[T]":
        """Per-request deadline; zero or negative keeps the client default."""
        if self._blocked():
            return self
        seconds = _seconds(timeout)
        if seconds > 0:
            self.timeout = seconds
        return self

    def with_retry(
        self,
        max_attempts: int,
        base_delay: Seconds = 1.0,
        max_delay: Seconds = 0.0,
        retry_on: Optional[Callable[[BaseException], bool]] = None,
    ) -> "RequestBuilder[T]":
        """
        max_attempts counts every attempt including the first.
        Non-positive values fall back to 1 attempt, 1s base delay, 16x base max delay.
        """
        if self._blocked():
            return self
        self.retry = RetryPolicy(
            max_attempts,
            _seconds(base_delay),
            _seconds(max_delay),
            retry_on,
        )
        return self

    def with_json_body(self, body: Any) -> "RequestBuilder[T]":
        if self._blocked():
            return self
        try:
            if isinstance(body, BaseModel):
                encoded = body.model_dump_json(by_alias=True).encode()
            else:
                encoded = json.dumps(body).encode()
        except (TypeError, ValueError) as e:
            self._fail(ConfigurationError(f"json body encoding failed: {e}"))
            return self
        self.body = encoded
        return self.with_header("Content-Type", "application/json")

    def with_path_param(self, *values: Any) -> "RequestBuilder[T]":
        """Fill {placeholders} left to right; each value is path-escaped."""
        if self._blocked():
            return self
        placeholders = [m.group(0) for m in PATH_PARAM_PATTERN.finditer(self.base_url)]
        if len(placeholders) != len(values):
            self._fail(ConfigurationError(
                f"path param count mismatch: expected {len(placeholders)}, got {len(values)}"
            ))
            return self
        url = self.base_url
        for placeholder, value in zip(placeholders, values):
            url = url.replace(placeholder, quote(str(value), safe=PATH_SAFE_CHARS), 1)
        self.base_url = url
        return self

    def with_query_param(self, key: str, value: Any) -> "RequestBuilder[T]":
        """Set one query parameter; empty values are skipped."""
        if self._blocked():
            return self
        if value is None or value == "":
            return self
        self.query_params[key] = [_query_value(value)]
        return self

    def with_query_params(self, params: Mapping[str, Any]) -> "RequestBuilder[T]":
        for key, value in params.items():
            self.with_query_param(key, value)
        return self

    def with_query_params_from_model(self, params: Any) -> "RequestBuilder[T]":
        """
        Derive query parameters from a pydantic model (aliases as keys, None omitted),
        a dataclass or a mapping. List fields become repeated keys.
        """
        if self._blocked():
            return self
        try:
            pairs = _query_pairs(params)
        except (TypeError, ValueError) as e:
            self._fail(ConfigurationError(f"query params from {type(params).__name__}: {e}"))
            return self
        for key, values in pairs.items():
            values = [v for v in values if v != ""]
            if values:
                self.query_params[key] = values
        return self

    def with_header(self, key: str, value: Any) -> "RequestBuilder[T]":
        """Set one header (case-insensitive overwrite); empty values are skipped."""
        if self._blocked():
            return self
        if value is None or value == "":
            return self
        for existing in [k for k in self.headers if k.lower() == key.lower()]:
            del self.headers[existing]
        self.headers[key] = str(value)
        return self

    def with_headers(self, headers: Mapping[str, Any]) -> "RequestBuilder[T]":
        for key, value in headers.items():
            self.with_header(key, value)
        return self

    def _build_url(self) -> str:
        if not self.query_params:
            return self.base_url
        query = str(httpx.QueryParams(
            [(key, value) for key, values in self.query_params.items() for value in values]
        ))
        separator = "&" if "?" in self.base_url else "?"
        return f"{self.base_url}{separator}{query}"

    def _build_request(self, client: httpx.AsyncClient) -> httpx.Request:
        self.full_url = self._build_url()
        kwargs: Dict[str, Any] = {"content": self.body, "headers": self.headers}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        try:
            return client.build_request(self.method, self.full_url, **kwargs)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"invalid url {self.full_url!r}: {e}") from e

    async def _execute(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        """Send with retry; only errors accepted by retry_on are retried."""
        max_attempts = self.retry.max_attempts
        last_error: Optional[httpx.RequestError] = None
        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay = self.retry.delay_for(attempt - 1)
                http_client_retries_total.labels(method=self.method).inc()
                logger.warning(
                    f"Retrying {self.method} {self.full_url} in {delay:.2f}s "
                    f"(attempt {attempt}/{max_attempts})"
                )
                await asyncio.sleep(delay)
            try:
                response = await client.send(request)
            except httpx.RequestError as e:
                last_error = e
                timeout = is_timeout_error(e)
                http_client_requests_total.labels(
                    method=self.method, outcome="timeout" if timeout else "error"
                ).inc()
                if not self.retry.retry_on(e):
                    logger.error(f"{self.method} {self.full_url} failed: {e!r}")
                    raise TransportError(
                        f"{self.method} {self.full_url} failed: {e}", timeout=timeout
                    ) from e
                logger.warning(
                    f"{self.method} {self.full_url} attempt {attempt}/{max_attempts} failed: {e!r}"
                )
                continue
            http_client_requests_total.labels(method=self.method, outcome="response").inc()
            return response

        raise TransportError(
            f"{self.method} {self.full_url} failed after {max_attempts} attempts: {last_error}",
            timeout=is_timeout_error(last_error),
        ) from last_error

    def _handle_response(self, response: httpx.Response) -> ResponseWrapper[T]:
        content = response.content
        status = response.status_code

        if 200 <= status < 300:
            try:
                data = self._adapter.validate_json(content)
            except ValidationError as e:
                raise DecodeError(
                    f"cannot decode response body as {self.response_type!r}: {e}", status
                ) from e
            return ResponseWrapper(status, response.headers, content, data)

        try:
            body = json.loads(content)
        except ValueError as e:
            raise DecodeError(
                f"cannot parse error response body (status {status}): {e}", status
            ) from e
        if not isinstance(body, dict):
            raise DecodeError(
                f"error response body is not a JSON object (status {status})", status
            )
        logger.warning(f"{self.method} {self.full_url} returned {status}: {body}")
        raise ProtocolError(status, body)

    async def send(self) -> ResponseWrapper[T]:
        """
        Raise the first deferred builder error, otherwise send the request.
        Returns a ResponseWrapper for 2xx; raises TransportError, ProtocolError
        or DecodeError otherwise.
        """
        if self._sent:
            raise ConfigurationError("request already sent, create a new builder")
        self._sent = True
        if self.error is not None:
            raise self.error
        if not self.base_url:
            raise ConfigurationError("base url not set")

        client = self._client or create_http_client()
        try:
            request = self._build_request(client)
            logger.debug(f"Sending {self.method} {self.full_url}")
            response = await self._execute(client, request)
            return self._handle_response(response)
        finally:
            if self._client is None:
                await client.aclose()


def new_get(response_type: Any = Any, client: Optional[httpx.AsyncClient] = None) -> RequestBuilder:
    return RequestBuilder("GET", response_type, client)


def new_post(response_type: Any = Any, client: Optional[httpx.AsyncClient] = None) -> RequestBuilder:
    return RequestBuilder("POST", response_type, client)


def new_put(response_type: Any = Any, client: Optional[httpx.AsyncClient] = None) -> RequestBuilder:
    return RequestBuilder("PUT", response_type, client)


def new_patch(response_type: Any = Any, client: Optional[httpx.AsyncClient] = None) -> RequestBuilder:
    return RequestBuilder("PATCH", response_type, client)


def new_delete(response_type: Any = Any, client: Optional[httpx.AsyncClient] = None) -> RequestBuilder:
    return RequestBuilder("DELETE", response_type, client)
