from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Sequence
from typing import Any, Optional, Protocol

from appboot.servers import TransportError

STOP_JOIN_TIMEOUT_SECONDS = 5.0
WAIT_POLL_SECONDS = 0.5


def default_signals() -> tuple[signal.Signals, ...]:
    names = ("SIGINT", "SIGTERM", "SIGQUIT")
    return tuple(getattr(signal, name) for name in names if hasattr(signal, name))


class Server(Protocol):
    def run(self) -> None: ...

    def stop(self) -> None: ...


class Lifecycle:
    """Signal-aware run loop for the attached servers.

    Every server runs in its own thread. ``run`` blocks until one of the
    registered signals arrives, ``request_shutdown`` is called, or a server
    fails; then it stops every server. A server failure is re-raised as
    ``TransportError`` once everything is stopped.
    """

    def __init__(
        self,
        name: str,
        version: str,
        *,
        signals: Optional[Sequence[int]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.name = name
        self.version = version
        self.signals = tuple(default_signals() if signals is None else signals)
        self.logger = logger or logging.getLogger("appboot.lifecycle")
        self._servers: list[tuple[str, Server]] = []
        self._shutdown = threading.Event()
        self._failures: list[tuple[str, BaseException]] = []
        self._failures_lock = threading.Lock()
        self._previous_handlers: dict[int, Any] = {}
        self.received_signal: Optional[int] = None

    @property
    def servers(self) -> list[tuple[str, Server]]:
        return list(self._servers)

    def attach(self, name: str, server: Server) -> None:
        self._servers.append((name, server))

    def request_shutdown(self, signum: Optional[int] = None) -> None:
        if signum is not None and self.received_signal is None:
            self.received_signal = signum
        self._shutdown.set()

    def _handle_signal(self, signum: int, _frame: Any) -> None:
        self.logger.info(f"shutting down - received signal {signal.Signals(signum).name}")
        self.request_shutdown(signum)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            self.logger.warning("signal handlers can only be installed from the main thread")
            return
        for sig in self.signals:
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def _serve(self, name: str, server: Server) -> None:
        try:
            server.run()
        except (Exception, SystemExit) as exc:
            self.logger.error(f"server {name} failed: {exc}", extra={"component": name})
            with self._failures_lock:
                self._failures.append((name, exc))
            self._shutdown.set()

    def _stop_servers(self) -> None:
        for name, server in reversed(self._servers):
            try:
                server.stop()
            except Exception as exc:
                self.logger.error(f"shutting down - error stopping {name}: {exc}", extra={"component": name})

    def run(self) -> None:
        threads: list[threading.Thread] = []
        self._install_signal_handlers()
        try:
            for name, server in self._servers:
                thread = threading.Thread(
                    target=self._serve,
                    args=(name, server),
                    name=f"{self.name}-{name}",
                    daemon=True,
                )
                thread.start()
                threads.append(thread)
                self.logger.info(f"starting up - {name} attached", extra={"component": name})
            while not self._shutdown.wait(WAIT_POLL_SECONDS):
                pass
        finally:
            self._stop_servers()
            self._restore_signal_handlers()

        for thread in threads:
            thread.join(STOP_JOIN_TIMEOUT_SECONDS)

        with self._failures_lock:
            failures = list(self._failures)
        if failures:
            name, exc = failures[0]
            raise TransportError(f"{name} stopped with an error: {exc}") from exc
