from __future__ import annotations

import logging

from fastapi import Header, Request
from pydantic import BaseModel, ConfigDict, Field

from appboot.errors import forbidden, unauthorized
from appboot.security_jwt import JwtTokenManager, TokenError
from appboot.security_principals import (
    InMemoryPrincipalManager,
    InvalidCredentialsError,
    Principal,
    PrincipalNotFoundError,
)

logger = logging.getLogger("appboot.security")


class ResourceDeniedError(Exception):
    pass


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    token: str


class DefaultAuthenticationService:
    def __init__(self, principal_manager: InMemoryPrincipalManager, token_manager: JwtTokenManager) -> None:
        self._principal_manager = principal_manager
        self._token_manager = token_manager

    def authenticate(self, username: str, raw_password: str) -> str:
        principal = self._principal_manager.authenticate(username, raw_password)
        return self._token_manager.generate(principal)


class DefaultAuthorizationService:
    def __init__(self, token_manager: JwtTokenManager, principal_manager: InMemoryPrincipalManager) -> None:
        self._token_manager = token_manager
        self._principal_manager = principal_manager

    def authorize(self, token: str, resource: str) -> Principal:
        claims = self._token_manager.validate(token)
        username = claims["sub"]
        principal = self._principal_manager.find(username)
        if not self._principal_manager.verify_resource(username, resource):
            raise ResourceDeniedError(f"principal {username} is not allowed to access {resource}")
        return principal


def resource_for_request(request: Request) -> str:
    return f"{request.method.upper()} {request.url.path}"


class AuthenticationEndpoint:
    def __init__(self, authentication_service: DefaultAuthenticationService) -> None:
        self._authentication_service = authentication_service

    async def authenticate(self, payload: LoginRequest) -> LoginResponse:
        try:
            token = self._authentication_service.authenticate(payload.username, payload.password)
        except InvalidCredentialsError:
            raise unauthorized("invalid_credentials")
        return LoginResponse(token=token)


class AuthorizationFilter:
    """FastAPI dependency guarding the authenticated route group."""

    def __init__(self, authorization_service: DefaultAuthorizationService) -> None:
        self._authorization_service = authorization_service

    async def authorize(
        self,
        request: Request,
        authorization: str | None = Header(default=None, alias="Authorization"),
    ) -> Principal:
        if not authorization:
            raise unauthorized("missing_authorization_header")
        scheme, _, value = authorization.partition(" ")
        token = value.strip()
        if scheme.lower() != "bearer" or not token:
            raise unauthorized("invalid_authorization_header")

        resource = resource_for_request(request)
        try:
            principal = self._authorization_service.authorize(token, resource)
        except (TokenError, PrincipalNotFoundError):
            raise unauthorized("invalid_token")
        except ResourceDeniedError:
            logger.warning("resource_denied", extra={"path": request.url.path, "method": request.method})
            raise forbidden("resource_denied")

        request.state.principal = principal
        return principal
