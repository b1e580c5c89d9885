"""
FastAPI wrappers that render handler results and errors as the response envelope.

    server = Server(title="orders")

    def get_order(request):
        order = load(request.path_params["oid"])
        if order is None:
            raise new_error_code_with_status(20001, "order not found", 404)
        return order

    server.add_route("/orders/{oid}", get_order)
"""
import inspect
import logging
import os
from typing import Any, Callable, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware

from wkit.observability.metrics import setup_metrics
from wkit.wcode.codes import RetCode
from wkit.wresp.errors import ApiErrorCode, new_error_code_with_status
from wkit.wresp.middleware import RequestIDMiddleware
from wkit.wresp.models import ApiResponse, INTERNAL_ERROR_CODE, INTERNAL_ERROR_PRINT_INFO

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Any]


async def _call(fn: Handler, request: Request) -> Any:
    if inspect.iscoroutinefunction(fn):
        return await fn(request)
    return await run_in_threadpool(fn, request)


def error_response(error: BaseException) -> JSONResponse:
    """Map an exception to the error envelope and its HTTP status."""
    status = 500
    if isinstance(error, ApiErrorCode):
        resp = ApiResponse.failure(error.code, error.message, str(error))
        status = error.http_status
    elif isinstance(error, RetCode) and error.code is not None:
        resp = ApiResponse.failure(error.code.code, error.code.message, str(error))
    else:
        logger.error(f"Unhandled error: {error}", exc_info=error)
        resp = ApiResponse.failure(INTERNAL_ERROR_CODE, str(error), INTERNAL_ERROR_PRINT_INFO)
    return JSONResponse(status_code=status, content=resp.to_content())


class Server:
    """Holds the FastAPI app and wraps plain handlers into envelope-producing endpoints."""

    def __init__(
        self,
        router: Optional[FastAPI] = None,
        metrics_enabled: Optional[bool] = None,
        **kwargs,
    ):
        self.router = router or FastAPI(**kwargs)
        self.router.add_middleware(RequestIDMiddleware)
        setup_metrics(self.router, metrics_enabled)

    def wrap_handler(self, handler: Handler):
        """handler(request) returns data or raises; the result is wrapped in the envelope."""
        async def endpoint(request: Request):
            try:
                data = await _call(handler, request)
                content = ApiResponse.success(data).to_content()
            except Exception as e:
                return error_response(e)
            return JSONResponse(status_code=200, content=content)

        endpoint.__name__ = getattr(handler, "__name__", "endpoint")
        return endpoint

    def wrap_middleware(self, middleware: Handler):
        """middleware(request) raising aborts the request with the error envelope."""
        async def dispatch(request: Request, call_next):
            try:
                await _call(middleware, request)
            except Exception as e:
                return error_response(e)
            return await call_next(request)

        return dispatch

    def wrap_file_download(self, handler: Handler, download: bool = True):
        """handler(request) returns a file path; download=True forces an attachment."""
        async def endpoint(request: Request):
            try:
                file_path = await _call(handler, request)
                if not os.path.isfile(file_path):
                    raise new_error_code_with_status(
                        INTERNAL_ERROR_CODE, f"file not found: {os.path.basename(file_path)}", 404
                    )
                if not download:
                    return FileResponse(file_path)
                # Starlette quotes the name and falls back to filename*= for non-ASCII
                return FileResponse(
                    file_path,
                    filename=os.path.basename(file_path),
                    media_type="application/octet-stream",
                    content_disposition_type="attachment",
                )
            except Exception as e:
                return error_response(e)

        endpoint.__name__ = getattr(handler, "__name__", "download")
        return endpoint

    def add_route(self, path: str, handler: Handler, methods: Optional[List[str]] = None) -> None:
        self.router.add_api_route(path, self.wrap_handler(handler), methods=methods or ["GET"])

    def add_file_route(self, path: str, handler: Handler, download: bool = True) -> None:
        self.router.add_api_route(path, self.wrap_file_download(handler, download), methods=["GET"])

    def use(self, middleware: Handler) -> None:
        """
        Register middleware just inside RequestIDMiddleware, so its error
        envelopes still carry X-Request-ID and a bound trace id.
        """
        if self.router.middleware_stack is not None:
            raise RuntimeError("Cannot add middleware after an application has started")
        position = next(
            i for i, m in enumerate(self.router.user_middleware) if m.cls is RequestIDMiddleware
        )
        self.router.user_middleware.insert(
            position + 1,
            Middleware(BaseHTTPMiddleware, dispatch=self.wrap_middleware(middleware)),
        )
