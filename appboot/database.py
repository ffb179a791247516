from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any, Optional, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

T = TypeVar("T")

URL_PLACEHOLDERS = (":username", ":password", ":server", ":service")


class DatasourceContext:
    """Connection settings with the URL placeholders already resolved.

    The URL may contain ``:username``, ``:password``, ``:server`` and
    ``:service``; each is replaced by the matching credential.
    """

    def __init__(
        self,
        driver: str,
        param_holder: Optional[str],
        url: str,
        username: str = "",
        password: str = "",
        server: str = "",
        service: str = "",
    ) -> None:
        if not (driver or "").strip():
            raise ValueError("datasource driver is required")
        if not (url or "").strip():
            raise ValueError("datasource url is required")
        self.driver = driver.strip()
        self.param_holder = (param_holder or "").strip() or None
        replacements = {
            ":username": username or "",
            ":password": password or "",
            ":server": server or "",
            ":service": service or "",
        }
        resolved = url
        for placeholder in URL_PLACEHOLDERS:
            resolved = resolved.replace(placeholder, replacements[placeholder])
        self._url = resolved

    @property
    def url(self) -> str:
        if "://" in self._url:
            return self._url
        return f"{self.driver}://{self._url}"


class Datasource:
    """Owns the SQLAlchemy engine; the engine is created on first use."""

    def __init__(
        self,
        datasource_context: DatasourceContext,
        *,
        engine_factory: Callable[..., Engine] | None = None,
        **engine_options: Any,
    ) -> None:
        self._context = datasource_context
        self._engine_factory = engine_factory
        self._engine_options = engine_options
        self._engine: Engine | None = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def get_database(self) -> Engine:
        with self._lock:
            if self._closed:
                raise RuntimeError("datasource is closed")
            if self._engine is None:
                factory = self._engine_factory or create_engine
                options: dict[str, Any] = {"pool_pre_ping": True}
                if self._context.param_holder:
                    options["paramstyle"] = self._context.param_holder
                options.update(self._engine_options)
                self._engine = factory(self._context.url, **options)
            return self._engine

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.dispose()


class TransactionHandler:
    def __init__(self, datasource: Datasource) -> None:
        self._datasource = datasource

    def handle(self, fn: Callable[[Connection], T]) -> T:
        """Run ``fn`` inside one transaction; commit on success, roll back on error."""
        engine = self._datasource.get_database()
        with engine.begin() as conn:
            return fn(conn)
