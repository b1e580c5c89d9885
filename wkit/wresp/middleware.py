"""
Request ID middleware: binds the log trace id for the duration of a request.
"""
import logging
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from wkit.utils.ids import request_id as get_request_id
from wkit.wlog.context import reset_trace_id, with_trace_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests and responses, log request/response."""

    async def dispatch(self, request: Request, call_next):
        req_id = get_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = req_id
        token = with_trace_id(req_id)

        start_time = time.time()
        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={"request_id": req_id, "path": request.url.path},
        )

        try:
            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"Request completed: {request.method} {request.url.path} status={response.status_code}",
                extra={
                    "request_id": req_id,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                },
            )
        finally:
            reset_trace_id(token)

        response.headers[REQUEST_ID_HEADER] = req_id
        return response
