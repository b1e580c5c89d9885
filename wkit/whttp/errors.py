"""
Exceptions raised by the request builder.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class HttpClientError(Exception):
    """Base exception for request builder errors."""
    def __init__(self, code: str, message: str, status_code: int = 500):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ConfigurationError(HttpClientError):
    """Invalid builder input: path params, body encoding, query model."""
    def __init__(self, message: str):
        super().__init__("configuration_error", message, 400)


class TransportError(HttpClientError):
    """Network-level failure (connect, timeout, TLS)."""
    def __init__(self, message: str, timeout: bool = False):
        self.timeout = timeout
        super().__init__("timeout" if timeout else "transport_error", message, 503)


class ProtocolError(HttpClientError):
    """Upstream answered with a status outside [200, 300)."""
    def __init__(self, status_code: int, body: Optional[Dict[str, Any]] = None):
        self.body = body if body is not None else {}
        super().__init__(
            "upstream_error",
            f"HTTP status code not 2xx, got {status_code}",
            status_code,
        )


class DecodeError(HttpClientError):
    """Response body could not be parsed."""
    def __init__(self, message: str, status_code: int = 500):
        super().__init__("decode_error", message, status_code)
