from __future__ import annotations

import logging
from typing import Any, NoReturn

from appboot.bootstrap.context import ApplicationContext

FATAL_EXIT_CODE = 1


class PreconditionFailure(SystemExit):
    """Terminates the process with a non-zero exit code.

    Subclassing SystemExit means an uncaught failure ends the interpreter
    with ``FATAL_EXIT_CODE`` and no traceback, while callers and tests can
    still catch it by type.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(FATAL_EXIT_CODE)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


def fail(logger: logging.Logger, message: str, **details: Any) -> NoReturn:
    logger.critical(message, extra=details)
    raise PreconditionFailure(message, details=details)


def require(condition: Any, logger: logging.Logger, message: str, **details: Any) -> None:
    if not condition:
        fail(logger, message, **details)


def validate_boot_arguments(logger: logging.Logger, app_name: str | None, args: Any, builder: Any) -> None:
    require(app_name, logger, "starting up - error setting up the application: app_name is empty")
    require(args is not None, logger, "starting up - error setting up the application: args is None")
    require(builder is not None, logger, "starting up - error setting up the application: builder is None")


def is_port_number(value: Any) -> bool:
    text = str(value or "").strip()
    return text.isdigit() and 0 <= int(text) <= 65535


def validate_http_transport(ctx: ApplicationContext) -> None:
    http_config = ctx.http_config
    configured = (
        ctx.public_router is not None
        and http_config is not None
        and bool(http_config.host)
        and bool(http_config.port)
    )
    require(
        configured,
        ctx.logger,
        "starting up - error setting up the application: http server is enabled "
        "but no public router or http host/port is provided",
        component="http_server",
    )
    require(
        is_port_number(http_config.port),
        ctx.logger,
        f"starting up - error setting up the application: http port {http_config.port!r} is not a port number",
        component="http_server",
    )


def validate_grpc_transport(ctx: ApplicationContext) -> None:
    grpc_config = ctx.grpc_config
    configured = (
        ctx.grpc_service_desc is not None
        and ctx.grpc_service_server is not None
        and grpc_config is not None
        and bool(grpc_config.host)
        and bool(grpc_config.port)
    )
    require(
        configured,
        ctx.logger,
        "starting up - error setting up the application: grpc server is enabled "
        "but no grpc service descriptor, grpc service server or grpc host/port is provided",
        component="grpc_server",
    )
