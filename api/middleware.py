"""
Request middleware for the logistics KPI API.

Provides:
- Request ID propagation (X-Request-ID) for log correlation
- JSON request logs with timing
- Security headers
- Sanitized 500 responses for unexpected errors
- Prometheus-style request metrics, merged with engine timings
"""
import json
import logging
import re
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Optional

from fastapi import FastAPI
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.metrics import metrics as engine_metrics

SERVICE_NAME = "logistics-kpi-api"

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_ctx.get()


class StructuredLogger:
    """JSON log lines with service name and request id attached."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log(self, level: str, message: str, **kwargs):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "service": SERVICE_NAME,
            "request_id": get_request_id(),
            **kwargs,
        }
        entry = {k: v for k, v in entry.items() if v is not None}
        getattr(self.logger, level.lower())(json.dumps(entry, default=str))

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)


structured_logger = StructuredLogger("logistics.api")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    }

    def __init__(self, app, enable_hsts: bool = False):
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers[name] = value
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Accepts or generates a request ID and echoes it in the response."""

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of each request."""

    EXCLUDED_PATHS = {"/api/health", "/api/health/live", "/api/health/ready", "/api/metrics"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            structured_logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise

        structured_logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            query=str(request.query_params) if request.query_params else None,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            client_ip=request.client.host if request.client else None,
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Turns unexpected exceptions into a JSON 500.

    The full error is always logged; the response only carries the
    exception text in debug mode.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_id = get_request_id()
            structured_logger.error(
                "Unhandled exception",
                error=str(e),
                error_type=type(e).__name__,
                path=request.url.path,
                method=request.method,
            )
            detail = str(e) if self.debug else "An internal error occurred. Quote the request ID when reporting it."
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error", "detail": detail, "request_id": request_id},
                headers={"X-Request-ID": request_id} if request_id else {},
            )


class MetricsCollector:
    """In-memory request counters and latency sums, keyed by method/path/status."""

    _UUID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
    _NUMERIC = re.compile(r"/\d+(?=/|$)")

    def __init__(self):
        self._lock = Lock()
        self.request_count: Dict[str, int] = {}
        self.request_duration_sum: Dict[str, float] = {}
        self.error_count: Dict[str, int] = {}
        self.start_time = datetime.now(timezone.utc)

    def _normalize_path(self, path: str) -> str:
        path = self._UUID.sub("{id}", path)
        return self._NUMERIC.sub("/{id}", path)

    def record_request(self, method: str, path: str, status_code: int, duration_seconds: float):
        normalized = self._normalize_path(path)
        key = f"{method}:{normalized}:{status_code}"
        with self._lock:
            self.request_count[key] = self.request_count.get(key, 0) + 1
            self.request_duration_sum[key] = self.request_duration_sum.get(key, 0.0) + duration_seconds
            if status_code >= 500:
                error_key = f"{method}:{normalized}"
                self.error_count[error_key] = self.error_count.get(error_key, 0) + 1

    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.start_time).total_seconds()

    def get_metrics(self) -> dict:
        with self._lock:
            return {
                "uptime_seconds": round(self.uptime_seconds(), 1),
                "requests": {
                    "total": sum(self.request_count.values()),
                    "by_endpoint": dict(self.request_count),
                },
                "errors": {
                    "total": sum(self.error_count.values()),
                    "by_endpoint": dict(self.error_count),
                },
                "engine": engine_metrics.get_summary(),
            }

    def get_prometheus_metrics(self) -> str:
        """Request and engine metrics in Prometheus exposition format."""
        lines = [
            "# HELP logistics_uptime_seconds Time since service start",
            "# TYPE logistics_uptime_seconds gauge",
            f"logistics_uptime_seconds {self.uptime_seconds()}",
            "# HELP logistics_requests_total Total request count",
            "# TYPE logistics_requests_total counter",
        ]
        with self._lock:
            counts = dict(self.request_count)
            durations = dict(self.request_duration_sum)
            errors = dict(self.error_count)

        for key, count in counts.items():
            method, path, status = key.split(":")
            labels = f'method="{method}",path="{path}",status="{status}"'
            lines.append(f"logistics_requests_total{{{labels}}} {count}")

        lines.append("# HELP logistics_request_duration_seconds Request duration")
        lines.append("# TYPE logistics_request_duration_seconds summary")
        for key, total in durations.items():
            method, path, status = key.split(":")
            labels = f'method="{method}",path="{path}",status="{status}"'
            lines.append(f"logistics_request_duration_seconds_sum{{{labels}}} {total}")
            lines.append(f"logistics_request_duration_seconds_count{{{labels}}} {counts.get(key, 0)}")

        lines.append("# HELP logistics_errors_total Total 5xx responses")
        lines.append("# TYPE logistics_errors_total counter")
        for key, count in errors.items():
            method, path = key.split(":")
            lines.append(f'logistics_errors_total{{method="{method}",path="{path}"}} {count}')

        engine = engine_metrics.get_summary()
        lines.append("# HELP logistics_engine_operation_ms_avg Average engine operation duration")
        lines.append("# TYPE logistics_engine_operation_ms_avg gauge")
        for name, stats in engine["timings"].items():
            lines.append(f'logistics_engine_operation_ms_avg{{operation="{name}"}} {stats["avg_ms"]}')
        lines.append("# HELP logistics_engine_events_total Engine counters")
        lines.append("# TYPE logistics_engine_events_total counter")
        for name, value in engine["counters"].items():
            lines.append(f'logistics_engine_events_total{{name="{name}"}} {value}')

        return "\n".join(lines)


metrics_collector = MetricsCollector()


class MetricsMiddleware(BaseHTTPMiddleware):
    """Feeds request timings into the metrics collector."""

    EXCLUDED_PATHS = {"/api/health", "/api/metrics", "/api/metrics/json"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        metrics_collector.record_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_seconds=time.perf_counter() - start,
        )
        return response


def setup_middleware(app: FastAPI, debug: bool = False, enable_hsts: bool = False):
    """
    Install the middleware stack.

    Middleware runs in reverse order of addition, so error handling
    (added last) wraps everything else.
    """
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=enable_hsts)
    app.add_middleware(ErrorHandlingMiddleware, debug=debug)
