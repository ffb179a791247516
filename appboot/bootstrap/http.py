from __future__ import annotations

from fastapi import APIRouter, Depends, FastAPI

from appboot.bootstrap.context import ApplicationContext
from appboot.bootstrap.exception_handlers import register_exception_handlers
from appboot.bootstrap.middleware import register_core_middleware
from appboot.bootstrap.system_routes import register_private_routes, register_system_routes
from appboot.observability import register_observability

PRIVATE_ROUTER_PREFIX = "/api"
PRIVATE_ROUTER_MOUNTED_ATTR = "private_router_mounted"


def build_http_server(ctx: ApplicationContext) -> tuple[FastAPI, APIRouter]:
    """Public FastAPI app plus the ``/api`` group guarded by the authorization filter."""
    if ctx.authentication_endpoint is None or ctx.authorization_filter is None:
        raise RuntimeError("security chain must be built before the http server")

    api = FastAPI(title=ctx.app_name, version=ctx.version)
    api.state.app_name = ctx.app_name

    register_core_middleware(api, ctx.http_config)
    register_observability(api, metrics_dependencies=[Depends(ctx.authorization_filter.authorize)])
    register_system_routes(api, authentication_endpoint=ctx.authentication_endpoint)
    register_exception_handlers(api, logger=ctx.logger)

    private_router = APIRouter(
        prefix=PRIVATE_ROUTER_PREFIX,
        dependencies=[Depends(ctx.authorization_filter.authorize)],
    )
    register_private_routes(private_router, app_name=ctx.app_name, version=ctx.version)
    return api, private_router


def mount_private_router(ctx: ApplicationContext) -> FastAPI:
    """Include the authenticated group into the public app, once.

    FastAPI copies routes at include time, so this has to run after the
    wiring callback has registered its own private routes.
    """
    api = ctx.public_router
    if api is None:
        raise RuntimeError("public router is not built")
    if ctx.private_router is not None and not getattr(api.state, PRIVATE_ROUTER_MOUNTED_ATTR, False):
        api.include_router(ctx.private_router)
        setattr(api.state, PRIVATE_ROUTER_MOUNTED_ATTR, True)
    return api
