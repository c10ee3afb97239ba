"""Serialized-access server sharing one SQLite connection between many callers.

The server owns a single ``apsw.Connection`` and services every request on a
dedicated worker thread, strictly in arrival order. Callers block on a
``Future`` until their reply arrives or their timeout elapses.

A caller timeout only stops the caller from waiting. The request stays queued
(or keeps running) and completes normally; its reply is discarded. A
"timed-out" write may therefore still land. Queued requests cannot be
cancelled either; reply futures are marked running as soon as they are queued.

Usage:
    server = Server.start("app.db", name="main")
    server.call("INSERT INTO t VALUES (?)", [1])
    rows = call("main", "SELECT * FROM t", into="map")
    server.stop()
"""

from __future__ import annotations

import itertools
import queue
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence, Union

import apsw

from sqlitex.shared import paths
from sqlitex.shared.config import AppConfig, DatabaseSettings
from sqlitex.shared.database import DEFAULT_BUSY_TIMEOUT_MS, close_connection, open_from_settings
from sqlitex.shared.exceptions import (
    CallTimeout,
    EngineError,
    QueryError,
    ServerError,
    ServerStopped,
)
from sqlitex.shared.logging import Logger, get_logger

from . import executor
from .types import Failure, QueryOptions, Row, RowShape

__all__ = ["Server", "call", "stop", "whereis"]

_STOP = object()
_ids = itertools.count(1)

_registry: dict[str, "Server"] = {}
_registry_lock = threading.Lock()


@dataclass(slots=True)
class Request:
    """A pending call: what to run plus the caller's reply slot."""

    kind: str  # "query" or "exec"
    sql: str
    options: QueryOptions
    reply: Future = field(default_factory=Future)
    abandoned: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)


class Server:
    """Single-owner worker that funnels every request through one connection."""

    def __init__(
        self,
        connection: apsw.Connection,
        *,
        name: str | None = None,
        config: AppConfig | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.connection = connection
        self.name = name
        self.config = config
        self._label = name or f"server-{next(_ids)}"
        self._logger = (logger or get_logger()).child(self._label)
        self._queue: "queue.Queue[Request | object]" = queue.Queue()
        self._submit_lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(target=self._worker, name=f"sqlitex-{self._label}", daemon=True)
        self._thread.start()

    @classmethod
    def start(
        cls,
        target: str | Path | None = None,
        *,
        name: str | None = None,
        config: AppConfig | None = None,
        logger: Logger | None = None,
    ) -> Server:
        """Open a connection and start servicing requests on it.

        Open errors are raised here, in the caller's thread, as EngineError.
        """
        settings = _settings(target, config)
        with _registry_lock:
            if name is not None and name in _registry:
                raise ServerError(f"A server named '{name}' is already running.")
            connection = open_from_settings(settings)
            server = cls(connection, name=name, config=config, logger=logger)
            if name is not None:
                _registry[name] = server
        server._logger.debug(f"started on {settings.target}")
        return server

    # ------------------------------------------------------------------ #
    # Public API

    @property
    def alive(self) -> bool:
        return not self._closed and self._thread.is_alive()

    def call(
        self,
        sql: str,
        bind: Sequence[Any] | None = None,
        into: RowShape | str | None = None,
        timeout: float | None = None,
        *,
        options: QueryOptions | None = None,
    ) -> Union[list[Row], Failure]:
        """Run ``sql`` on the server's connection; returns rows or a Failure.

        Raises CallTimeout if no reply arrives within ``timeout`` seconds.
        """
        opts = self._options(bind, into, timeout, options)
        request = self._submit("query", sql, opts)
        return self._await(request, opts.timeout)

    query = call

    def submit(
        self,
        sql: str,
        bind: Sequence[Any] | None = None,
        into: RowShape | str | None = None,
        *,
        options: QueryOptions | None = None,
    ) -> "Future[Union[list[Row], Failure]]":
        """Queue ``sql`` without waiting and return the reply future.

        The future is already running when returned: queued work cannot be
        withdrawn, so ``cancel()`` on it returns False.
        """
        opts = self._options(bind, into, None, options)
        return self._submit("query", sql, opts).reply

    def query_or_fail(
        self,
        sql: str,
        bind: Sequence[Any] | None = None,
        into: RowShape | str | None = None,
        timeout: float | None = None,
        *,
        options: QueryOptions | None = None,
    ) -> list[Row]:
        result = self.call(sql, bind, into, timeout, options=options)
        if isinstance(result, Failure):
            raise QueryError(result.reason) from result.reason
        return result

    def exec(self, sql: str, timeout: float | None = None) -> Union[bool, Failure]:
        """Run a script of one or more statements; returns True or a Failure."""
        opts = self._options(None, None, timeout, None)
        request = self._submit("exec", sql, opts)
        return self._await(request, opts.timeout)

    def stop(self, join_timeout: float | None = None) -> None:
        """Stop accepting requests, drain the queue and close the connection."""
        with self._submit_lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_STOP)
        if threading.current_thread() is not self._thread:
            self._thread.join(join_timeout)
        if self.name is not None:
            with _registry_lock:
                if _registry.get(self.name) is self:
                    del _registry[self.name]
        self._logger.debug("stopped")

    def __enter__(self) -> Server:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def __repr__(self) -> str:
        state = "running" if self.alive else "stopped"
        return f"Server(name={self.name!r}, {state})"

    # ------------------------------------------------------------------ #
    # Caller side

    def _options(
        self,
        bind: Sequence[Any] | None,
        into: RowShape | str | None,
        timeout: float | None,
        options: QueryOptions | None,
    ) -> QueryOptions:
        base = options or QueryOptions(
            into=self.config.query.into if self.config else RowShape.LIST,
            timeout=self.config.server.call_timeout if self.config else None,
        )
        return QueryOptions(
            bind=base.bind if bind is None else tuple(bind),
            into=base.into if into is None else into,
            timeout=base.timeout if timeout is None else timeout,
        )

    def _submit(self, kind: str, sql: str, options: QueryOptions) -> Request:
        with self._submit_lock:
            if self._closed:
                raise ServerStopped(f"Server {self._label} is stopped.")
            request = Request(kind=kind, sql=sql, options=options)
            request.reply.set_running_or_notify_cancel()
            self._queue.put(request)
        return request

    def _await(self, request: Request, timeout: float | None) -> Any:
        try:
            return request.reply.result(timeout=timeout)
        except FutureTimeout as exc:
            with request.lock:
                if not request.reply.done():
                    request.abandoned = True
                    raise CallTimeout(request.sql, timeout or 0.0) from exc
        # The reply landed between the timeout and taking the lock.
        return request.reply.result()

    # ------------------------------------------------------------------ #
    # Worker side

    def _worker(self) -> None:
        try:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    break
                self._service(item)  # type: ignore[arg-type]
        finally:
            try:
                close_connection(self.connection)
            except EngineError as exc:
                self._logger.error(f"closing connection failed: {exc}")

    def _service(self, request: Request) -> None:
        try:
            if request.kind == "exec":
                result = executor.execute_script(self.connection, request.sql)
            else:
                result = executor.run(self.connection, request.sql, options=request.options)
        except Exception as exc:
            with request.lock:
                request.reply.set_exception(exc)
                abandoned = request.abandoned
        else:
            with request.lock:
                request.reply.set_result(result)
                abandoned = request.abandoned
        if abandoned:
            self._logger.debug(f"caller timed out; reply discarded for: {request.sql}")


def _settings(target: str | Path | None, config: AppConfig | None) -> DatabaseSettings:
    if config is not None:
        settings = config.database
        if target is None:
            return settings
        return DatabaseSettings(
            target=paths.resolve_target(target),
            read_only=settings.read_only,
            busy_timeout_ms=settings.busy_timeout_ms,
            statement_cache_size=settings.statement_cache_size,
        )
    return DatabaseSettings(
        target=paths.resolve_target(target if target is not None else paths.MEMORY_TARGET),
        read_only=False,
        busy_timeout_ms=DEFAULT_BUSY_TIMEOUT_MS,
        statement_cache_size=0,
    )


def whereis(name: str) -> Server | None:
    """Return the running server registered under ``name``, if any."""
    with _registry_lock:
        return _registry.get(name)


def _resolve(server: Server | str) -> Server:
    if isinstance(server, Server):
        return server
    found = whereis(server)
    if found is None:
        raise ServerError(f"No server named '{server}' is running.")
    return found


def call(
    server: Server | str,
    sql: str,
    bind: Sequence[Any] | None = None,
    into: RowShape | str | None = None,
    timeout: float | None = None,
) -> Union[list[Row], Failure]:
    """Send a query to a server instance or to a registered server name."""
    return _resolve(server).call(sql, bind, into, timeout)


def stop(server: Server | str) -> None:
    _resolve(server).stop()
