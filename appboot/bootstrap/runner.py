from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Optional

from appboot.bootstrap.builder import BeanBuilder
from appboot.bootstrap.context import DEFAULT_LOGGER_NAME, ApplicationContext, Enablers
from appboot.bootstrap.contracts import InitDelegate
from appboot.bootstrap.http import mount_private_router
from appboot.bootstrap.sequencer import build_application_context, stop_application_context
from appboot.bootstrap.validation import (
    PreconditionFailure,
    fail,
    require,
    validate_boot_arguments,
    validate_grpc_transport,
    validate_http_transport,
)
from appboot.lifecycle import Lifecycle
from appboot.servers import GrpcServer, HttpServer, TransportError

LifecycleFactory = Callable[[str, str, logging.Logger], Lifecycle]


def _default_lifecycle(name: str, version: str, logger: logging.Logger) -> Lifecycle:
    return Lifecycle(name, version, logger=logger)


def attach_transports(ctx: ApplicationContext, lifecycle: Lifecycle) -> None:
    if ctx.enablers.http_server_enabled:
        validate_http_transport(ctx)
        api = mount_private_router(ctx)
        try:
            http_server = HttpServer(api, ctx.http_config.host or "", ctx.http_config.port or "")
        except Exception as exc:
            fail(ctx.logger, f"starting up - error setting up the http server: {exc}", component="http_server")
        lifecycle.attach("HttpServer", http_server)

    if ctx.enablers.grpc_server_enabled:
        validate_grpc_transport(ctx)
        try:
            grpc_server = GrpcServer(
                ctx.grpc_service_desc,
                ctx.grpc_service_server,
                ctx.grpc_config.host or "",
                ctx.grpc_config.port or "",
            )
        except Exception as exc:
            fail(ctx.logger, f"starting up - error setting up the grpc server: {exc}", component="grpc_server")
        lifecycle.attach("GrpcServer", grpc_server)


def run_application(
    app_name: str,
    version: str,
    args: Optional[list[str]],
    enablers: Optional[Enablers],
    builder: Optional[BeanBuilder],
    fn: Optional[InitDelegate],
    *,
    logger: Optional[logging.Logger] = None,
    lifecycle_factory: LifecycleFactory = _default_lifecycle,
) -> int:
    """Build the context, hand it to ``fn``, serve until a signal, shut down.

    Returns 0 after an orderly, signal-driven shutdown. Every fatal condition
    raises ``PreconditionFailure`` (exit code 1); the context is stopped
    either way.
    """
    active_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
    validate_boot_arguments(active_logger, app_name, args, builder)
    require(fn is not None, active_logger, "starting up - error setting up the application: fn is None")
    assert fn is not None

    lifecycle = lifecycle_factory(app_name, version, active_logger)
    ctx = build_application_context(app_name, version, args, enablers, builder, logger=active_logger)
    try:
        try:
            fn(ctx)
        except PreconditionFailure:
            raise
        except Exception as exc:
            fail(active_logger, f"starting up - error setting up the application: {exc}", error=type(exc).__name__)

        attach_transports(ctx, lifecycle)

        active_logger.info(f"Application {app_name} - {version} started", extra={"app_name": app_name})
        try:
            lifecycle.run()
        except TransportError as exc:
            fail(active_logger, f"running - application stopped with a transport error: {exc}", app_name=app_name)
        return 0
    finally:
        stop_application_context(ctx)
