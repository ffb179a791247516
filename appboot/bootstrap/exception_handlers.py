from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from appboot.errors import (
    http_exception_response,
    internal_error_response,
    not_found_response,
    validation_error_response,
)


def register_exception_handlers(api: FastAPI, *, logger: logging.Logger) -> None:
    @api.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and request.scope.get("route") is None:
            # no route matched the path
            return not_found_response(request)
        return http_exception_response(request, exc)

    @api.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return validation_error_response(request, exc.errors())

    @api.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "serving - unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
            extra={
                "component": "http_server",
                "request_id": getattr(request.state, "request_id", None),
                "error": type(exc).__name__,
            },
        )
        return internal_error_response(request)
