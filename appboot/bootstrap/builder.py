from __future__ import annotations

import secrets
from collections.abc import Mapping
from typing import Any, Optional

from appboot.bootstrap.context import ApplicationContext
from appboot.bootstrap.contracts import ComponentFactory
from appboot.bootstrap.http import build_http_server
from appboot.bootstrap.validation import fail
from appboot.database import Datasource, DatasourceContext, TransactionHandler
from appboot.environment import Environment
from appboot.security import (
    AuthenticationEndpoint,
    AuthorizationFilter,
    DefaultAuthenticationService,
    DefaultAuthorizationService,
)
from appboot.security_jwt import JwtTokenManager
from appboot.security_passwords import BcryptPasswordEncoder, DefaultPasswordGenerator, DefaultPasswordManager
from appboot.security_principals import InMemoryPrincipalManager

GENERATED_SIGNATURE_KEY_BYTES = 48

COMPONENT_SLOTS: tuple[str, ...] = (
    "environment",
    "config",
    "datasource_context",
    "datasource",
    "transaction_handler",
    "password_encoder",
    "password_generator",
    "password_manager",
    "principal_manager",
    "token_manager",
    "authentication_service",
    "authorization_service",
    "authentication_endpoint",
    "authorization_filter",
    "http_server",
    "grpc_server",
)


def _or_default(value: Optional[int], default: int) -> int:
    return default if value is None else int(value)


def default_environment(ctx: ApplicationContext) -> Environment:
    return Environment.from_process(ctx.cmd_args)


def default_config(ctx: ApplicationContext) -> None:
    fail(ctx.logger, "starting up - error setting up configuration: config function not implemented")


def default_datasource_context(ctx: ApplicationContext) -> DatasourceContext:
    config = ctx.database_config
    return DatasourceContext(
        config.driver or "",
        config.param_holder,
        config.datasource_url or "",
        username=config.datasource_username or "",
        password=config.datasource_password or "",
        server=config.datasource_server or "",
        service=config.datasource_service or "",
    )


def default_datasource(ctx: ApplicationContext) -> Datasource:
    return Datasource(ctx.datasource_context)


def default_transaction_handler(ctx: ApplicationContext) -> TransactionHandler:
    return TransactionHandler(ctx.datasource)


def default_password_encoder(ctx: ApplicationContext) -> BcryptPasswordEncoder:
    return BcryptPasswordEncoder(rounds=_or_default(ctx.security_config.password_bcrypt_rounds, 12))


def default_password_generator(ctx: ApplicationContext) -> DefaultPasswordGenerator:
    config = ctx.security_config
    return DefaultPasswordGenerator(
        length=_or_default(config.password_min_length, 16),
        min_special_chars=_or_default(config.password_min_special_chars, 2),
        min_numbers=_or_default(config.password_min_numbers, 2),
        min_uppercase=_or_default(config.password_min_uppercase, 2),
    )


def default_password_manager(ctx: ApplicationContext) -> DefaultPasswordManager:
    return DefaultPasswordManager(ctx.password_encoder, ctx.password_generator)


def default_principal_manager(ctx: ApplicationContext) -> InMemoryPrincipalManager:
    return InMemoryPrincipalManager(ctx.password_manager)


def default_token_manager(ctx: ApplicationContext) -> JwtTokenManager:
    signature_key = ctx.security_config.token_signature_key
    if not signature_key:
        ctx.logger.warning(
            "starting up - no token signature key configured, using a per-process random key",
            extra={"step": "token_manager"},
        )
        signature_key = secrets.token_urlsafe(GENERATED_SIGNATURE_KEY_BYTES)
    return JwtTokenManager(
        signature_key,
        issuer=ctx.app_name,
        timeout_minutes=_or_default(ctx.security_config.token_timeout_minutes, 60),
    )


def default_authentication_service(ctx: ApplicationContext) -> DefaultAuthenticationService:
    return DefaultAuthenticationService(ctx.principal_manager, ctx.token_manager)


def default_authorization_service(ctx: ApplicationContext) -> DefaultAuthorizationService:
    return DefaultAuthorizationService(ctx.token_manager, ctx.principal_manager)


def default_authentication_endpoint(ctx: ApplicationContext) -> AuthenticationEndpoint:
    return AuthenticationEndpoint(ctx.authentication_service)


def default_authorization_filter(ctx: ApplicationContext) -> AuthorizationFilter:
    return AuthorizationFilter(ctx.authorization_service)


def default_grpc_server(_ctx: ApplicationContext) -> tuple[Any, Any]:
    return None, None


DEFAULT_FACTORIES: Mapping[str, ComponentFactory] = {
    "environment": default_environment,
    "config": default_config,
    "datasource_context": default_datasource_context,
    "datasource": default_datasource,
    "transaction_handler": default_transaction_handler,
    "password_encoder": default_password_encoder,
    "password_generator": default_password_generator,
    "password_manager": default_password_manager,
    "principal_manager": default_principal_manager,
    "token_manager": default_token_manager,
    "authentication_service": default_authentication_service,
    "authorization_service": default_authorization_service,
    "authentication_endpoint": default_authentication_endpoint,
    "authorization_filter": default_authorization_filter,
    "http_server": build_http_server,
    "grpc_server": default_grpc_server,
}


class BeanBuilder:
    """Named, overridable factories for every subsystem.

    Keyword arguments replace the matching default; ``None`` keeps it.
    """

    def __init__(self, **overrides: Optional[ComponentFactory]) -> None:
        self._factories: dict[str, Optional[ComponentFactory]] = dict(DEFAULT_FACTORIES)
        for name, factory in overrides.items():
            if factory is not None:
                self.override(name, factory)

    def override(self, name: str, factory: Optional[ComponentFactory]) -> "BeanBuilder":
        if name not in COMPONENT_SLOTS:
            raise KeyError(f"unknown component slot: {name}")
        self._factories[name] = factory
        return self

    def factory(self, name: str) -> ComponentFactory:
        factory = self._factories.get(name)
        if factory is None:
            raise KeyError(f"component slot has no factory: {name}")
        return factory

    def missing_slots(self) -> list[str]:
        return [name for name in COMPONENT_SLOTS if not callable(self._factories.get(name))]
