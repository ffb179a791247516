from typing import Any, Callable, Dict, List, Optional

import logging

import pytest
from fastapi.testclient import TestClient

from appboot.bootstrap import (
    ApplicationContext,
    BeanBuilder,
    Enablers,
    build_application_context,
    mount_private_router,
    stop_application_context,
)
from appboot.bootstrap.contracts import GrpcServiceDescriptor

TEST_SIGNATURE_KEY = "appboot-test-signature-key-0123456789abcdef"
TEST_PASSWORD = "Str0ng!Pass#Word99"
TEST_APP_NAME = "appboot-test"
TEST_VERSION = "1.2.3"


def make_config_loader(
    *,
    http_host: Optional[str] = "localhost",
    http_port: Optional[str] = "8080",
    grpc_host: Optional[str] = "localhost",
    grpc_port: Optional[str] = "50051",
    database_url: str = "sqlite://",
    **security_overrides: Any,
) -> Callable[[ApplicationContext], None]:
    def _load(ctx: ApplicationContext) -> None:
        ctx.http_config.host = http_host
        ctx.http_config.port = http_port
        ctx.grpc_config.host = grpc_host
        ctx.grpc_config.port = grpc_port
        ctx.security_config.token_signature_key = TEST_SIGNATURE_KEY
        ctx.security_config.password_bcrypt_rounds = 4
        ctx.security_config.password_min_length = 12
        for name, value in security_overrides.items():
            setattr(ctx.security_config, name, value)
        ctx.database_config.driver = "sqlite"
        ctx.database_config.datasource_url = database_url

    return _load


def stub_grpc_server(_ctx: ApplicationContext):
    descriptor = GrpcServiceDescriptor(register=lambda servicer, server: None, service_names=("test.Echo",))
    return descriptor, object()


def build_test_builder(**overrides: Any) -> BeanBuilder:
    factories: Dict[str, Any] = {"config": make_config_loader(), "grpc_server": stub_grpc_server}
    factories.update(overrides)
    return BeanBuilder(**factories)


def build_test_context(enablers: Optional[Enablers] = None, **overrides: Any) -> ApplicationContext:
    return build_application_context(
        TEST_APP_NAME,
        TEST_VERSION,
        [],
        enablers if enablers is not None else Enablers(),
        build_test_builder(**overrides),
        logger=logging.getLogger("appboot.test"),
    )


class RecordingBuilder(BeanBuilder):
    """Builder that remembers the order in which slots were asked for."""

    def __init__(self, **overrides: Any) -> None:
        super().__init__(**overrides)
        self.calls: List[str] = []

    def factory(self, name: str):
        inner = super().factory(name)

        def _recorded(ctx):
            self.calls.append(name)
            return inner(ctx)

        return _recorded


def build_recording_builder(**overrides: Any) -> RecordingBuilder:
    factories: Dict[str, Any] = {"config": make_config_loader(), "grpc_server": stub_grpc_server}
    factories.update(overrides)
    return RecordingBuilder(**factories)


class FakeEngine:
    def __init__(self, *, dispose_error: Optional[Exception] = None) -> None:
        self.dispose_calls = 0
        self._dispose_error = dispose_error

    def dispose(self) -> None:
        self.dispose_calls += 1
        if self._dispose_error is not None:
            raise self._dispose_error


class FakeLifecycle:
    def __init__(self, name: str, version: str, logger: logging.Logger, *, run_error: Optional[Exception] = None):
        self.name = name
        self.version = version
        self.logger = logger
        self.attached: List[tuple] = []
        self.run_calls = 0
        self._run_error = run_error

    def attach(self, name: str, server: Any) -> None:
        self.attached.append((name, server))

    def run(self) -> None:
        self.run_calls += 1
        if self._run_error is not None:
            raise self._run_error


@pytest.fixture
def http_context():
    ctx = build_test_context(Enablers(http_server_enabled=True))
    yield ctx
    stop_application_context(ctx)


@pytest.fixture
def http_client(http_context):
    api = mount_private_router(http_context)
    with TestClient(api) as tc:
        yield tc
