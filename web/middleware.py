"""
HTTP middleware: request correlation, access logging and request timeouts.
"""
import asyncio
import logging
import time
from typing import Callable
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse

from core.observability import (
    get_logger,
    generate_correlation_id,
    correlation_context,
    get_correlation_id,
    metrics,
)

logger = get_logger(__name__)

# Seconds before a request is answered with 504
DEFAULT_REQUEST_TIMEOUT = 30.0
SLOW_ENDPOINT_TIMEOUT = 120.0  # range reports fan out one lookup per day

SLOW_PATH_PREFIXES = (
    "/api/admin/buyers",
    "/api/buyers/",
)

# Probed by the load balancer; neither logged nor timed out
QUIET_PATHS = ("/api/health", "/health")


def _is_slow_path(path: str, method: str) -> bool:
    return method == "GET" and path.startswith(SLOW_PATH_PREFIXES) and not path.endswith("/expenses")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _route_key(request: Request) -> str:
    """METHOD plus route template, so path parameters do not mint new keys."""
    route = request.scope.get("route")
    template = getattr(route, "path", None) or "<unmatched>"
    return f"{request.method} {template}"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Bind a correlation id per request (taken from X-Request-ID when the
    caller sends one), log start and finish, and count the request.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        method, path = request.method, request.url.path
        endpoint = f"{method} {path}"
        quiet = path in QUIET_PATHS

        with correlation_context(request_id):
            started = time.perf_counter()
            if not quiet:
                logger.info(
                    f"Request started: {endpoint}",
                    extra={
                        "method": method,
                        "path": path,
                        "client_ip": request.client.host if request.client else "unknown",
                    }
                )

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    f"Request failed: {endpoint}",
                    extra={"duration_ms": round(_elapsed_ms(started), 2), "error": str(e)}
                )
                metrics.record_error(type(e).__name__)
                raise

            duration_ms = _elapsed_ms(started)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            route_key = _route_key(request)
            metrics.record_request(route_key)
            metrics.record_timing(route_key, duration_ms)
            if response.status_code >= 400:
                metrics.record_error(f"HTTP_{response.status_code}")

            if not quiet:
                logger.log(
                    logging.INFO if response.status_code < 400 else logging.WARNING,
                    f"Request completed: {endpoint}",
                    extra={"status_code": response.status_code, "duration_ms": round(duration_ms, 2)}
                )

            return response


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Answer 504 when a request runs past its timeout.

    Calls already handed to the spreadsheet client keep running in their
    worker thread; only the response is abandoned.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        timeout = SLOW_ENDPOINT_TIMEOUT if _is_slow_path(path, request.method) else DEFAULT_REQUEST_TIMEOUT

        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Request timeout: {request.method} {path}",
                extra={"timeout": timeout}
            )
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "error": "Request Timeout",
                    "detail": f"Request exceeded {timeout}s timeout",
                    "path": path,
                    "correlation_id": get_correlation_id(),
                }
            )
