"""Connection lifecycle for one master client.

A ``ConnectionManager`` owns at most one live channel. The channel is built
lazily on first use, dropped by ``invalidate`` after a failure, and rebuilt
on next use against whatever endpoint the selection policy resolves at that
time. All state changes happen under one lock, so two threads never build
two channels and a thread whose attempt failed never tears down a
connection another thread already replaced.

Calls run inside ``acquire()``. An invalidated connection is detached at
once, so new calls connect afresh, but its channel stays open until the
last call still running on it has released it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import grpc

from .config import MasterAddress
from .context import MasterClientContext
from .exceptions import ClientClosedError, ServiceVersionMismatchError, from_rpc_error
from .identity import ServiceIdentity
from .selection import MasterSelectionPolicy
from .wire import ServiceVersionClientServiceStub, messages

logger = logging.getLogger(__name__)

ChannelFactory = Callable[[MasterAddress], grpc.Channel]
StubFactory = Callable[[grpc.Channel], Any]


@dataclass(frozen=True)
class Connection:
    """A live channel to one endpoint plus the call stub built on it."""

    address: MasterAddress
    channel: grpc.Channel
    stub: Any
    generation: int


class ConnectionManager:
    """Owns the single transport channel of a master client."""

    def __init__(
        self,
        context: MasterClientContext,
        identity: ServiceIdentity,
        selection: MasterSelectionPolicy,
        after_connect: StubFactory,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        self._context = context
        self._identity = identity
        self._selection = selection
        self._after_connect = after_connect
        self._channel_factory = channel_factory or self._open_channel
        self._lock = threading.RLock()
        self._connection: Connection | None = None
        self._generation = 0
        self._open_channels = 0
        # generation -> calls running on that connection
        self._in_flight: dict[int, int] = {}
        # generation -> detached channel waiting for its calls to finish
        self._draining: dict[int, grpc.Channel] = {}
        self._closed = False

    @property
    def identity(self) -> ServiceIdentity:
        return self._identity

    @property
    def selection(self) -> MasterSelectionPolicy:
        return self._selection

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connection is not None

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def remote_address(self) -> MasterAddress | None:
        with self._lock:
            return self._connection.address if self._connection is not None else None

    @property
    def open_channel_count(self) -> int:
        """Channels opened and not yet closed, draining ones included."""
        with self._lock:
            return self._open_channels

    @property
    def draining_channel_count(self) -> int:
        """Detached channels still carrying calls."""
        with self._lock:
            return len(self._draining)

    @property
    def live_channel_count(self) -> int:
        """Channels new calls can land on; never more than one."""
        with self._lock:
            return self._open_channels - len(self._draining)

    def in_flight(self, connection: Connection) -> int:
        with self._lock:
            return self._in_flight.get(connection.generation, 0)

    def ensure_connected(self) -> Connection:
        """Return the live connection, building one first if there is none."""
        with self._lock:
            if self._closed:
                raise ClientClosedError(f"{self._identity.name} client is closed")
            if self._connection is None:
                self._connection = self._connect()
            return self._connection

    @contextmanager
    def acquire(self) -> Iterator[Connection]:
        """Hold the live connection for the duration of one call."""
        with self._lock:
            connection = self.ensure_connected()
            generation = connection.generation
            self._in_flight[generation] = self._in_flight.get(generation, 0) + 1
        try:
            yield connection
        finally:
            self._release(connection)

    def invalidate(self, connection: Connection | None = None) -> bool:
        """Detach the current connection.

        When ``connection`` is given, only detach if it is still the current
        one. The channel is closed now if no call is running on it, otherwise
        when the last such call releases it. Returns True if a connection was
        detached.
        """
        with self._lock:
            current = self._connection
            if current is None:
                return False
            if connection is not None and connection.generation != current.generation:
                logger.debug(
                    "Skipping invalidation of stale connection #%d to %s",
                    connection.generation,
                    connection.address,
                )
                return False
            self._connection = None
            if self._in_flight.get(current.generation):
                self._draining[current.generation] = current.channel
                logger.debug(
                    "Connection #%d to %s detached with %d call(s) in flight",
                    current.generation,
                    current.address,
                    self._in_flight[current.generation],
                )
            else:
                self._close_channel(current.channel)
            self._selection.reset()
            logger.debug("Disconnected from %s @ %s", self._identity, current.address)
            return True

    def close(self) -> None:
        """Close the client for good, cancelling calls in flight. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            current, self._connection = self._connection, None
            draining, self._draining = list(self._draining.values()), {}
            for channel in draining:
                self._close_channel(channel)
            if current is not None:
                self._close_channel(current.channel)
                logger.debug("Closed connection to %s @ %s", self._identity, current.address)

    def _release(self, connection: Connection) -> None:
        with self._lock:
            generation = connection.generation
            remaining = self._in_flight.get(generation, 0) - 1
            if remaining > 0:
                self._in_flight[generation] = remaining
                return
            self._in_flight.pop(generation, None)
            channel = self._draining.pop(generation, None)
            if channel is not None:
                self._close_channel(channel)
                logger.debug("Closed drained connection #%d to %s", generation, connection.address)

    def _connect(self) -> Connection:
        address = self._selection.resolve()
        logger.debug("Connecting to %s @ %s", self._identity, address)
        channel = self._channel_factory(address)
        self._open_channels += 1
        try:
            if self._context.config.version_check:
                self._check_version(channel, address)
            stub = self._after_connect(channel)
        except BaseException:
            self._close_channel(channel)
            self._selection.reset()
            raise
        self._generation += 1
        logger.info(
            "Connected to %s @ %s (connection #%d)", self._identity, address, self._generation
        )
        return Connection(address=address, channel=channel, stub=stub, generation=self._generation)

    def _check_version(self, channel: grpc.Channel, address: MasterAddress) -> None:
        stub = ServiceVersionClientServiceStub(channel, timeout=self._context.config.connect_timeout)
        request = messages.GetServiceVersionRequest(
            service_type=self._identity.service_type.value
        )
        try:
            response = stub.GetServiceVersion(request)
        except grpc.RpcError as exc:
            raise from_rpc_error(exc) from exc
        if response.version != self._identity.version:
            raise ServiceVersionMismatchError(
                self._identity.name, self._identity.version, response.version, address.target
            )

    def _open_channel(self, address: MasterAddress) -> grpc.Channel:
        options = list(self._context.channel_options)
        if self._context.credentials is not None:
            return grpc.secure_channel(address.target, self._context.credentials, options=options)
        return grpc.insecure_channel(address.target, options=options)

    def _close_channel(self, channel: grpc.Channel) -> None:
        self._open_channels -= 1
        try:
            channel.close()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Error closing channel: %s", exc)
