from __future__ import annotations

import logging
import sys
import time
from collections.abc import Sequence
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

REQUEST_COUNT = Counter(
    "appboot_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "appboot_http_request_duration_seconds",
    "HTTP request latency (seconds)",
    ["method", "path"],
)
CONSTRUCTION_STEP_DURATION = Histogram(
    "appboot_construction_step_duration_seconds",
    "Duration of each application context construction step (seconds)",
    ["step"],
)
ALLOWED_HTTP_METHOD_LABELS = {"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"}
UNMATCHED_PATH_LABEL = "/_unmatched"

logger = logging.getLogger("appboot.http")


def metric_method_label(method: str | None) -> str:
    normalized = (method or "").upper()
    if normalized in ALLOWED_HTTP_METHOD_LABELS:
        return normalized
    return "OTHER"


def metric_status_label(status_code: int) -> str:
    if 100 <= int(status_code) <= 599:
        return str(int(status_code))
    return "000"


def metric_path_label(request: Request) -> str:
    # Route templates keep label cardinality bounded.
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if route_path:
        return str(route_path)
    return UNMATCHED_PATH_LABEL


def status_code_from_exception(exc: Exception) -> int:
    if isinstance(exc, RequestValidationError):
        return 400
    if isinstance(exc, StarletteHTTPException):
        return int(exc.status_code)
    return 500


def observe_construction_step(step: str, elapsed_seconds: float) -> None:
    CONSTRUCTION_STEP_DURATION.labels(step).observe(elapsed_seconds)


def _observe_request_metrics(*, method: str, path: str, status_code: int, elapsed_seconds: float) -> None:
    method_label = metric_method_label(method)
    REQUEST_COUNT.labels(method_label, path, metric_status_label(status_code)).inc()
    REQUEST_LATENCY.labels(method_label, path).observe(elapsed_seconds)


def register_observability(api: FastAPI, *, metrics_dependencies: Sequence[Any] = ()) -> None:
    @api.middleware("http")
    async def request_observability(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()
        client_ip = request.client.host if request.client else None
        response: Response | None = None

        try:
            response = await call_next(request)
        finally:
            elapsed = time.perf_counter() - started
            path = metric_path_label(request)
            current_exc = sys.exc_info()[1]
            if current_exc is not None:
                status_code = 500
                if isinstance(current_exc, Exception):
                    status_code = status_code_from_exception(current_exc)
            else:
                assert response is not None
                status_code = int(response.status_code)
                response.headers["X-Request-Id"] = request_id
            _observe_request_metrics(
                method=request.method,
                path=path,
                status_code=status_code,
                elapsed_seconds=elapsed,
            )
            log_payload = {
                "request_id": request_id,
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(elapsed * 1000, 2),
                "client_ip": client_ip,
            }
            if status_code >= 500:
                logger.error("request_failed", extra=log_payload)
            else:
                logger.info("request_completed", extra=log_payload)

        assert response is not None
        return response

    @api.get("/metrics", tags=["system"], include_in_schema=False, dependencies=list(metrics_dependencies))
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
