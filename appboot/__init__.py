from appboot.bootstrap import (
    ApplicationContext,
    BeanBuilder,
    Enablers,
    GrpcServiceDescriptor,
    PreconditionFailure,
    build_application_context,
    run_application,
    stop_application_context,
)
from appboot.version import APP_VERSION

__all__ = [
    "APP_VERSION",
    "ApplicationContext",
    "BeanBuilder",
    "Enablers",
    "GrpcServiceDescriptor",
    "PreconditionFailure",
    "build_application_context",
    "run_application",
    "stop_application_context",
]
