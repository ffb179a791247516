from __future__ import annotations

from fastapi import APIRouter, FastAPI

from appboot.schemas import ErrorResponse, HealthResponse, InfoResponse
from appboot.security import AuthenticationEndpoint, LoginResponse


def register_system_routes(api: FastAPI, *, authentication_endpoint: AuthenticationEndpoint) -> None:
    @api.get("/health", tags=["system"], response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="alive")

    api.add_api_route(
        "/login",
        authentication_endpoint.authenticate,
        methods=["POST"],
        tags=["security"],
        response_model=LoginResponse,
        responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    )


def register_private_routes(router: APIRouter, *, app_name: str, version: str) -> None:
    @router.get(
        "/info",
        tags=["system"],
        response_model=InfoResponse,
        responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    )
    async def info() -> InfoResponse:
        return InfoResponse(appName=app_name, version=version)
