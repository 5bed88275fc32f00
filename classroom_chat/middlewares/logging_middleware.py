"""
Request logging middleware.
Logs one line per request and response with timing, and tags responses
with the request ID. Message bodies are never logged.
"""
import logging
import re
import time
import uuid
from typing import Dict, Optional, Set
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Configure loggers
request_logger = logging.getLogger("request")
performance_logger = logging.getLogger("performance")

# Sensitive headers to exclude from logging
SENSITIVE_HEADERS = {
    "authorization", "cookie", "x-api-key", "x-auth-token",
    "authentication", "proxy-authorization"
}

UUID_SEGMENT = re.compile(r"/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging middleware."""

    def __init__(
        self,
        app,
        slow_request_seconds: float = 1.0,
        exclude_paths: Optional[Set[str]] = None,
        include_headers: bool = False
    ):
        super().__init__(app)
        self.slow_request_seconds = slow_request_seconds
        self.exclude_paths = exclude_paths or {"/health", "/favicon.ico"}
        self.include_headers = include_headers

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if request.url.path in self.exclude_paths:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()
        endpoint = self._normalize_endpoint(request.url.path)
        log_data = {
            "request_id": request_id,
            "method": request.method,
            "endpoint": endpoint,
            "client_ip": self._get_client_ip(request),
        }
        if self.include_headers:
            log_data["headers"] = self._filter_sensitive_headers(dict(request.headers))
        request_logger.info(f"{request.method} {endpoint} started", extra=log_data)

        try:
            response = await call_next(request)
        except Exception as exc:
            request_logger.error(
                f"{request.method} {endpoint} raised {type(exc).__name__}: {exc}",
                extra={**log_data, "process_time": time.time() - start_time},
                exc_info=True
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id

        message = f"{request.method} {endpoint} -> {response.status_code} in {process_time * 1000:.1f}ms"
        log_data.update({"status_code": response.status_code, "process_time": process_time})
        if response.status_code >= 500:
            request_logger.error(message, extra=log_data)
        elif response.status_code >= 400:
            request_logger.warning(message, extra=log_data)
        else:
            request_logger.info(message, extra=log_data)

        if process_time > self.slow_request_seconds:
            performance_logger.warning(f"Slow request detected: {process_time:.2f}s", extra=log_data)

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Get client IP address, considering proxies."""
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _filter_sensitive_headers(self, headers: Dict[str, str]) -> Dict[str, str]:
        return {
            key: value if key.lower() not in SENSITIVE_HEADERS else "[REDACTED]"
            for key, value in headers.items()
        }

    def _normalize_endpoint(self, path: str) -> str:
        # Room and message IDs collapse so log lines group by route
        return UUID_SEGMENT.sub("/{id}", path)
