"""
HTTP client factory with pooled keep-alive defaults.
"""
from __future__ import annotations
from typing import Optional
import httpx
from wkit.config import settings


def create_http_client(
    timeout: Optional[float] = None,
    user_agent: Optional[str] = None,
    **kwargs
) -> httpx.AsyncClient:
    """
    Create a configured async HTTP client with:
    - Default timeout from settings (HTTP_TIMEOUT, connect HTTP_CONNECT_TIMEOUT)
    - Custom user-agent
    - Keep-alive pool (100 idle connections, 90s idle expiry)
    - No transport-level retries; the request builder owns the retry loop
    """
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", user_agent or settings.HTTP_USER_AGENT)

    timeout_config = httpx.Timeout(
        timeout if timeout is not None else settings.HTTP_TIMEOUT,
        connect=settings.HTTP_CONNECT_TIMEOUT,
    )

    limits = httpx.Limits(
        max_connections=None,
        max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS,
        keepalive_expiry=settings.HTTP_KEEPALIVE_EXPIRY,
    )

    transport = kwargs.pop("transport", None) or httpx.AsyncHTTPTransport(
        retries=0, limits=limits
    )

    return httpx.AsyncClient(
        timeout=timeout_config,
        headers=headers,
        transport=transport,
        **kwargs
    )
