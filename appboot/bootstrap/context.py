from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from fastapi import APIRouter, FastAPI

    from appboot.database import Datasource, DatasourceContext, TransactionHandler
    from appboot.environment import Environment
    from appboot.bootstrap.contracts import GrpcServiceDescriptor
    from appboot.security import (
        AuthenticationEndpoint,
        AuthorizationFilter,
        DefaultAuthenticationService,
        DefaultAuthorizationService,
    )
    from appboot.security_jwt import JwtTokenManager
    from appboot.security_passwords import BcryptPasswordEncoder, DefaultPasswordGenerator, DefaultPasswordManager
    from appboot.security_principals import InMemoryPrincipalManager

DEFAULT_LOGGER_NAME = "appboot"


@dataclass
class Enablers:
    """Feature toggles for the optional subsystems. Any combination is valid."""

    database_enabled: bool = False
    http_server_enabled: bool = False
    grpc_server_enabled: bool = False


@dataclass
class HttpConfig:
    host: Optional[str] = None
    port: Optional[str] = None
    swagger_port: Optional[str] = None
    cors_allow_origin: Optional[str] = None


@dataclass
class GrpcConfig:
    host: Optional[str] = None
    port: Optional[str] = None


@dataclass
class SecurityConfig:
    token_signature_key: Optional[str] = None
    token_timeout_minutes: Optional[int] = None
    password_min_length: Optional[int] = None
    password_min_special_chars: Optional[int] = None
    password_min_numbers: Optional[int] = None
    password_min_uppercase: Optional[int] = None
    password_bcrypt_rounds: Optional[int] = None


@dataclass
class DatabaseConfig:
    driver: Optional[str] = None
    param_holder: Optional[str] = None
    datasource_url: Optional[str] = None
    datasource_username: Optional[str] = None
    datasource_password: Optional[str] = None
    datasource_server: Optional[str] = None
    datasource_service: Optional[str] = None


@dataclass
class ApplicationContext:
    """Everything one process builds at startup.

    Fields are written by the construction sequence only. After that the
    context is handed to the wiring callback and to request handlers, which
    must treat it as read-only.
    """

    app_name: str
    version: str
    cmd_args: list[str]
    enablers: Enablers = field(default_factory=Enablers)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(DEFAULT_LOGGER_NAME))

    http_config: HttpConfig = field(default_factory=HttpConfig)
    grpc_config: GrpcConfig = field(default_factory=GrpcConfig)
    security_config: SecurityConfig = field(default_factory=SecurityConfig)
    database_config: DatabaseConfig = field(default_factory=DatabaseConfig)

    environment: Optional[Environment] = None

    datasource_context: Optional[DatasourceContext] = None
    datasource: Optional[Datasource] = None
    transaction_handler: Optional[TransactionHandler] = None

    password_encoder: Optional[BcryptPasswordEncoder] = None
    password_generator: Optional[DefaultPasswordGenerator] = None
    password_manager: Optional[DefaultPasswordManager] = None
    principal_manager: Optional[InMemoryPrincipalManager] = None
    token_manager: Optional[JwtTokenManager] = None
    authentication_service: Optional[DefaultAuthenticationService] = None
    authorization_service: Optional[DefaultAuthorizationService] = None
    authentication_endpoint: Optional[AuthenticationEndpoint] = None
    authorization_filter: Optional[AuthorizationFilter] = None

    public_router: Optional[FastAPI] = None
    private_router: Optional[APIRouter] = None

    grpc_service_desc: Optional[GrpcServiceDescriptor] = None
    grpc_service_server: Any = None

    stopped: bool = False
