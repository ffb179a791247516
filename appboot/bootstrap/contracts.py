from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    import grpc

    from appboot.bootstrap.context import ApplicationContext

ComponentFactory: TypeAlias = Callable[["ApplicationContext"], Any]
InitDelegate: TypeAlias = Callable[["ApplicationContext"], None]
GrpcServicerRegistrar: TypeAlias = Callable[[Any, "grpc.Server"], None]


@dataclass(frozen=True)
class GrpcServiceDescriptor:
    """What a gRPC builder hands back next to its servicer.

    ``register`` is usually the generated ``add_<Service>Servicer_to_server``
    function; ``service_names`` are the fully-qualified names advertised
    through server reflection.
    """

    register: GrpcServicerRegistrar
    service_names: tuple[str, ...] = field(default_factory=tuple)
