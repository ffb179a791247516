"""JSON error envelopes returned by the HTTP transport.

Every error body has ``code`` and ``message``; ``request_id`` and
``details`` are added when known. Authentication failures carry the
reason in ``details.reason``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

VALIDATION_ERROR = "VALIDATION_ERROR"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
INTERNAL_ERROR = "INTERNAL_ERROR"

STATUS_ERROR_CODES = {
    401: UNAUTHORIZED,
    403: FORBIDDEN,
    404: NOT_FOUND,
    405: METHOD_NOT_ALLOWED,
}


def auth_error(status_code: int, code: str, message: str, reason: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message, "reason": reason})


def unauthorized(reason: str) -> HTTPException:
    return auth_error(401, UNAUTHORIZED, "Unauthorized", reason)


def forbidden(reason: str) -> HTTPException:
    return auth_error(403, FORBIDDEN, "Forbidden", reason)


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    body: dict[str, Any] = {"code": code, "message": message}
    if request_id:
        body["request_id"] = request_id
    if details is not None:
        body["details"] = jsonable_encoder(details)
    return JSONResponse(body, status_code=status_code, headers={"X-Request-Id": request_id} if request_id else None)


def not_found_response(request: Request) -> JSONResponse:
    return error_response(request, status_code=404, code=NOT_FOUND, message="Not Found")


def validation_error_response(request: Request, errors: Sequence[Any]) -> JSONResponse:
    message = "; ".join(str(err.get("msg", "invalid request")) for err in errors)
    return error_response(
        request,
        status_code=400,
        code=VALIDATION_ERROR,
        message=message or "invalid request",
        details=list(errors),
    )


def internal_error_response(request: Request) -> JSONResponse:
    return error_response(request, status_code=500, code=INTERNAL_ERROR, message="Internal Server Error")


def http_exception_response(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail
    if isinstance(detail, dict):
        # raised by auth_error()
        return error_response(
            request,
            status_code=exc.status_code,
            code=str(detail.get("code") or STATUS_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")),
            message=str(detail.get("message") or "Request failed"),
            details={"reason": detail["reason"]} if detail.get("reason") else None,
        )
    return error_response(
        request,
        status_code=exc.status_code,
        code=STATUS_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        message=str(detail) if detail is not None else "Request failed",
    )
