from __future__ import annotations

import socket
import threading
import time
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI

from appboot.bootstrap.contracts import GrpcServiceDescriptor
from appboot.servers import (
    HTTP_READ_HEADER_TIMEOUT_SECONDS,
    GrpcServer,
    HeaderTimeoutH11Protocol,
    HttpServer,
    TransportError,
    join_host_port,
)


def test_join_host_port_brackets_ipv6_hosts():
    assert join_host_port("localhost", "8080") == "localhost:8080"
    assert join_host_port("::1", 50051) == "[::1]:50051"


def test_http_server_binds_configured_address_with_read_timeout():
    api = FastAPI()
    server = HttpServer(api, "127.0.0.1", "8081")

    assert server.address == "127.0.0.1:8081"
    assert server.config.host == "127.0.0.1"
    assert server.config.port == 8081
    assert server.config.timeout_keep_alive == HTTP_READ_HEADER_TIMEOUT_SECONDS
    assert server.config.app is api
    assert issubclass(server.config.http, HeaderTimeoutH11Protocol)
    assert server.config.http.header_read_timeout == HTTP_READ_HEADER_TIMEOUT_SECONDS


def test_http_server_stop_asks_uvicorn_to_exit():
    server = HttpServer(FastAPI(), "127.0.0.1", "8082")
    server.stop()
    assert server._server.should_exit is True


def _serve_in_background(server):
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()
    deadline = time.monotonic() + 5
    while not server._server.started:
        assert time.monotonic() < deadline, "http server did not start"
        time.sleep(0.01)
    return thread


def _bound_port(server):
    return server._server.servers[0].sockets[0].getsockname()[1]


def test_http_server_closes_connections_whose_headers_stall():
    api = FastAPI()

    @api.get("/ping")
    async def ping():
        return {"ok": True}

    server = HttpServer(api, "127.0.0.1", 0, read_header_timeout_seconds=0.3)
    thread = _serve_in_background(server)
    try:
        port = _bound_port(server)
        with socket.create_connection(("127.0.0.1", port), timeout=5) as stalled:
            stalled.sendall(b"GET /ping HTTP/1.1\r\nHost: localhost\r\n")
            assert stalled.recv(1024) == b""

        with socket.create_connection(("127.0.0.1", port), timeout=5) as prompt:
            prompt.sendall(b"GET /ping HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n")
            assert prompt.recv(1024).startswith(b"HTTP/1.1 200")
    finally:
        server.stop()
        thread.join(timeout=5)


def _grpc_server(fake_server, registered):
    descriptor = GrpcServiceDescriptor(
        register=lambda servicer, server: registered.append((servicer, server)),
        service_names=("demo.Greeter",),
    )
    return GrpcServer(descriptor, "servicer", "localhost", "50051", server_factory=lambda: fake_server)


def test_grpc_server_registers_service_and_reflection():
    fake_server = MagicMock()
    registered = []

    server = _grpc_server(fake_server, registered)

    assert registered == [("servicer", fake_server)]
    assert server.address == "localhost:50051"
    assert fake_server.add_generic_rpc_handlers.called


def test_grpc_server_binds_starts_and_waits():
    fake_server = MagicMock()
    fake_server.add_insecure_port.return_value = 50051
    server = _grpc_server(fake_server, [])

    server.run()

    fake_server.add_insecure_port.assert_called_once_with("localhost:50051")
    fake_server.start.assert_called_once_with()
    fake_server.wait_for_termination.assert_called_once_with()


def test_grpc_server_bind_failure_raises_transport_error():
    fake_server = MagicMock()
    fake_server.add_insecure_port.return_value = 0
    server = _grpc_server(fake_server, [])

    with pytest.raises(TransportError, match="could not bind localhost:50051"):
        server.run()
    fake_server.start.assert_not_called()


def test_grpc_server_stopped_before_run_never_starts():
    fake_server = MagicMock()
    server = _grpc_server(fake_server, [])

    server.stop()
    server.run()

    fake_server.stop.assert_called_once_with(grace=None)
    fake_server.start.assert_not_called()
