from appboot.bootstrap.builder import COMPONENT_SLOTS, BeanBuilder
from appboot.bootstrap.context import (
    ApplicationContext,
    DatabaseConfig,
    Enablers,
    GrpcConfig,
    HttpConfig,
    SecurityConfig,
)
from appboot.bootstrap.contracts import GrpcServiceDescriptor
from appboot.bootstrap.http import mount_private_router
from appboot.bootstrap.runner import run_application
from appboot.bootstrap.sequencer import CONSTRUCTION_STEPS, build_application_context, stop_application_context
from appboot.bootstrap.validation import PreconditionFailure

__all__ = [
    "COMPONENT_SLOTS",
    "CONSTRUCTION_STEPS",
    "ApplicationContext",
    "BeanBuilder",
    "DatabaseConfig",
    "Enablers",
    "GrpcConfig",
    "GrpcServiceDescriptor",
    "HttpConfig",
    "PreconditionFailure",
    "SecurityConfig",
    "build_application_context",
    "mount_private_router",
    "run_application",
    "stop_application_context",
]
