from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent import futures
from typing import Any, Optional

import grpc
import h11
import uvicorn
from fastapi import FastAPI
from grpc_reflection.v1alpha import reflection
from uvicorn.protocols.http.h11_impl import H11Protocol

from appboot.bootstrap.contracts import GrpcServiceDescriptor

HTTP_READ_HEADER_TIMEOUT_SECONDS = 60
GRPC_MAX_WORKERS = 10


class TransportError(RuntimeError):
    pass


def join_host_port(host: str, port: str | int) -> str:
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class HeaderTimeoutH11Protocol(H11Protocol):
    """h11 protocol that closes a connection whose request headers take too long.

    The deadline is armed when the connection is made and again after each
    response, and cleared as soon as a complete request head has been parsed.
    """

    header_read_timeout: float = HTTP_READ_HEADER_TIMEOUT_SECONDS

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._header_timeout_task: Optional[asyncio.TimerHandle] = None

    def connection_made(self, transport: asyncio.Transport) -> None:  # type: ignore[override]
        super().connection_made(transport)
        self._arm_header_timeout()

    def connection_lost(self, exc: Exception | None) -> None:
        self._cancel_header_timeout()
        super().connection_lost(exc)

    def handle_events(self) -> None:
        super().handle_events()
        if self.conn.their_state is not h11.IDLE:
            self._cancel_header_timeout()

    def on_response_complete(self) -> None:
        super().on_response_complete()
        if not self.transport.is_closing() and self.conn.their_state is h11.IDLE:
            self._arm_header_timeout()

    def _arm_header_timeout(self) -> None:
        self._cancel_header_timeout()
        self._header_timeout_task = self.loop.call_later(self.header_read_timeout, self._header_timeout_handler)

    def _cancel_header_timeout(self) -> None:
        if self._header_timeout_task is not None:
            self._header_timeout_task.cancel()
            self._header_timeout_task = None

    def _header_timeout_handler(self) -> None:
        self._header_timeout_task = None
        if not self.transport.is_closing():
            self.logger.debug("closing connection: request headers not received in time")
            self.transport.close()


def header_timeout_protocol(seconds: float) -> type[HeaderTimeoutH11Protocol]:
    return type(HeaderTimeoutH11Protocol.__name__, (HeaderTimeoutH11Protocol,), {"header_read_timeout": seconds})


class HttpServer:
    """uvicorn server that can be run from a worker thread.

    uvicorn only installs its own signal handlers on the main thread, so
    signal handling stays with the lifecycle. Request heads must arrive within
    ``read_header_timeout_seconds``; the same value bounds keep-alive idling.
    """

    def __init__(
        self,
        app: FastAPI,
        host: str,
        port: str | int,
        *,
        read_header_timeout_seconds: float = HTTP_READ_HEADER_TIMEOUT_SECONDS,
    ) -> None:
        self.address = join_host_port(host, port)
        self.config = uvicorn.Config(
            app,
            host=host,
            port=int(port),
            http=header_timeout_protocol(read_header_timeout_seconds),
            timeout_keep_alive=read_header_timeout_seconds,
            log_config=None,
            access_log=False,
        )
        self._server = uvicorn.Server(self.config)

    def run(self) -> None:
        try:
            self._server.run()
        except SystemExit as exc:
            raise TransportError(f"http server on {self.address} failed to start") from exc
        if not self._server.started:
            raise TransportError(f"http server on {self.address} failed to start")

    def stop(self) -> None:
        self._server.should_exit = True


def _default_grpc_server() -> grpc.Server:
    return grpc.server(futures.ThreadPoolExecutor(max_workers=GRPC_MAX_WORKERS))


class GrpcServer:
    def __init__(
        self,
        descriptor: GrpcServiceDescriptor,
        servicer: Any,
        host: str,
        port: str | int,
        *,
        server_factory: Callable[[], grpc.Server] | None = None,
    ) -> None:
        self.address = join_host_port(host, port)
        self._server = (server_factory or _default_grpc_server)()
        descriptor.register(servicer, self._server)
        reflection.enable_server_reflection((*descriptor.service_names, reflection.SERVICE_NAME), self._server)
        self._lock = threading.Lock()
        self._stopped = False

    def run(self) -> None:
        with self._lock:
            if self._stopped:
                return
            try:
                bound_port = self._server.add_insecure_port(self.address)
            except RuntimeError as exc:
                raise TransportError(f"grpc server could not bind {self.address}") from exc
            if not bound_port:
                raise TransportError(f"grpc server could not bind {self.address}")
            self._server.start()
        self._server.wait_for_termination()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
        self._server.stop(grace=None)
