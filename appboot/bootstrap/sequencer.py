"""Ordered construction and shutdown of the application context.

Construction walks ``CONSTRUCTION_STEPS`` top to bottom. Every step names
the builder slot it invokes, the context attributes it reads and the ones it
writes, so the dependency order is data rather than source layout. Any
failure goes through ``fail`` and ends the process; disabling a subsystem
through ``Enablers`` is the only way to skip a gated step.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from appboot.bootstrap.builder import BeanBuilder
from appboot.bootstrap.context import DEFAULT_LOGGER_NAME, ApplicationContext, Enablers
from appboot.bootstrap.validation import PreconditionFailure, fail, require, validate_boot_arguments
from appboot.observability import observe_construction_step


@dataclass(frozen=True)
class ConstructionStep:
    slot: str
    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()
    enabler: Optional[str] = None
    phase: str = ""

    def is_enabled(self, enablers: Enablers) -> bool:
        if self.enabler is None:
            return True
        return bool(getattr(enablers, self.enabler))


CONSTRUCTION_STEPS: tuple[ConstructionStep, ...] = (
    ConstructionStep("environment", provides=("environment",), phase="environment variables"),
    ConstructionStep("config", requires=("environment",), phase="configuration"),
    ConstructionStep(
        "datasource_context",
        provides=("datasource_context",),
        enabler="database_enabled",
        phase="db connection",
    ),
    ConstructionStep(
        "datasource",
        requires=("datasource_context",),
        provides=("datasource",),
        enabler="database_enabled",
        phase="db connection",
    ),
    ConstructionStep(
        "transaction_handler",
        requires=("datasource",),
        provides=("transaction_handler",),
        enabler="database_enabled",
        phase="db connection",
    ),
    ConstructionStep("password_encoder", provides=("password_encoder",), phase="security"),
    ConstructionStep("password_generator", provides=("password_generator",), phase="security"),
    ConstructionStep(
        "password_manager",
        requires=("password_encoder", "password_generator"),
        provides=("password_manager",),
        phase="security",
    ),
    ConstructionStep(
        "principal_manager",
        requires=("password_manager",),
        provides=("principal_manager",),
        phase="security",
    ),
    ConstructionStep(
        "token_manager",
        requires=("password_manager",),
        provides=("token_manager",),
        phase="security",
    ),
    ConstructionStep(
        "authentication_service",
        requires=("password_manager", "principal_manager", "token_manager"),
        provides=("authentication_service",),
        phase="security",
    ),
    ConstructionStep(
        "authorization_service",
        requires=("principal_manager", "token_manager"),
        provides=("authorization_service",),
        phase="security",
    ),
    ConstructionStep(
        "authentication_endpoint",
        requires=("authentication_service",),
        provides=("authentication_endpoint",),
        phase="security",
    ),
    ConstructionStep(
        "authorization_filter",
        requires=("authorization_service",),
        provides=("authorization_filter",),
        phase="security",
    ),
    ConstructionStep(
        "http_server",
        requires=("authentication_endpoint", "authorization_filter"),
        provides=("public_router", "private_router"),
        enabler="http_server_enabled",
        phase="http server",
    ),
    ConstructionStep(
        "grpc_server",
        provides=("grpc_service_desc", "grpc_service_server"),
        enabler="grpc_server_enabled",
        phase="grpc server",
    ),
)


def _assign_outputs(ctx: ApplicationContext, step: ConstructionStep, result: Any) -> None:
    if not step.provides:
        return
    if len(step.provides) == 1:
        values: tuple[Any, ...] = (result,)
    elif isinstance(result, tuple) and len(result) == len(step.provides):
        values = result
    else:
        fail(
            ctx.logger,
            f"starting up - error setting up {step.slot}: factory must return {len(step.provides)} values",
            step=step.slot,
        )
    for name, value in zip(step.provides, values):
        require(
            value is not None,
            ctx.logger,
            f"starting up - error setting up {step.slot}: factory returned no {name}",
            step=step.slot,
        )
        setattr(ctx, name, value)


def run_construction_step(ctx: ApplicationContext, builder: BeanBuilder, step: ConstructionStep) -> None:
    for name in step.requires:
        require(
            getattr(ctx, name, None) is not None,
            ctx.logger,
            f"starting up - error setting up {step.slot}: {name} is not available",
            step=step.slot,
        )

    factory = builder.factory(step.slot)
    started = time.perf_counter()
    try:
        result = factory(ctx)
    except PreconditionFailure:
        raise
    except Exception as exc:
        fail(
            ctx.logger,
            f"starting up - error setting up {step.slot}: {exc}",
            step=step.slot,
            error=type(exc).__name__,
        )
    elapsed = time.perf_counter() - started
    observe_construction_step(step.slot, elapsed)
    _assign_outputs(ctx, step, result)
    ctx.logger.debug(
        f"starting up - {step.slot} ready",
        extra={"step": step.slot, "duration_ms": round(elapsed * 1000, 2)},
    )


def build_application_context(
    app_name: str,
    version: str,
    args: Optional[list[str]],
    enablers: Optional[Enablers],
    builder: Optional[BeanBuilder],
    *,
    logger: Optional[logging.Logger] = None,
) -> ApplicationContext:
    active_logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)

    validate_boot_arguments(active_logger, app_name, args, builder)
    assert builder is not None and args is not None
    missing = builder.missing_slots()
    require(
        not missing,
        active_logger,
        f"starting up - error setting up the application: builder has no factory for {', '.join(missing)}",
    )
    if enablers is None:
        active_logger.warning(
            "starting up - warning setting up the application: "
            "http server, grpc server and database connectivity are disabled"
        )
        enablers = Enablers()

    active_logger.info(f"starting up - starting up ApplicationContext {app_name}", extra={"app_name": app_name})
    ctx = ApplicationContext(
        app_name=app_name,
        version=version,
        cmd_args=list(args),
        enablers=enablers,
        logger=active_logger,
    )

    phase = None
    for step in CONSTRUCTION_STEPS:
        if not step.is_enabled(enablers):
            continue
        if step.phase != phase:
            phase = step.phase
            active_logger.info(f"starting up - setting up {phase}", extra={"app_name": app_name})
        run_construction_step(ctx, builder, step)

    return ctx


def stop_application_context(ctx: ApplicationContext) -> None:
    """Release what construction acquired. Never raises; safe to call repeatedly."""
    logger = ctx.logger
    if not ctx.stopped:
        ctx.stopped = True
        if ctx.datasource is not None and ctx.datasource_context is not None:
            logger.info("shutting down - closing up db connection")
            try:
                ctx.datasource.close()
            except Exception as exc:
                logger.error(f"shutting down - error closing db connection: {exc}", extra={"error": type(exc).__name__})
            else:
                logger.info("shutting down - db connection closed")

    logger.info(f"shutting down - ApplicationContext closed {ctx.app_name}", extra={"app_name": ctx.app_name})
