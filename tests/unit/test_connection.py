import json
import threading

import pytest

from master_client.config import MasterAddress
from master_client.connection import ConnectionManager
from master_client.exceptions import (
    ClientClosedError,
    ServiceVersionMismatchError,
    UnavailableError,
)
from master_client.identity import BLOCK_MASTER_CLIENT_SERVICE
from master_client.selection import MasterSelectionPolicy

A = MasterAddress("master-a", 19998)
B = MasterAddress("master-b", 19998)


class _FakeChannel:
    def __init__(self, factory, address):
        self.factory = factory
        self.address = address
        self.closed = False

    def unary_unary(self, path, request_serializer=None, response_deserializer=None):
        def call(request, timeout=None, metadata=None):
            version = self.factory.versions.get(self.address, BLOCK_MASTER_CLIENT_SERVICE.version)
            return json.dumps({"version": version}).encode()

        return call

    def close(self):
        if not self.closed:
            self.closed = True
            self.factory.closed(self)


class _ChannelFactory:
    def __init__(self, versions=None):
        self.versions = dict(versions or {})
        self.channels = []
        self.open = 0
        self.max_open = 0
        self._lock = threading.Lock()

    def __call__(self, address):
        with self._lock:
            self.open += 1
            self.max_open = max(self.max_open, self.open)
            channel = _FakeChannel(self, address)
            self.channels.append(channel)
            return channel

    def closed(self, channel):
        with self._lock:
            self.open -= 1


@pytest.fixture
def build(make_context):
    def _build(selection=None, versions=None, version_check=True):
        factory = _ChannelFactory(versions)
        manager = ConnectionManager(
            make_context(version_check=version_check),
            BLOCK_MASTER_CLIENT_SERVICE,
            selection or MasterSelectionPolicy.rotating([A, B]),
            after_connect=lambda channel: ("stub", channel),
            channel_factory=factory,
        )
        return manager, factory

    return _build


def test_connects_lazily_and_reuses_connection(build):
    manager, factory = build()

    assert not manager.is_connected
    assert factory.channels == []

    first = manager.ensure_connected()
    second = manager.ensure_connected()

    assert first is second
    assert manager.is_connected
    assert manager.remote_address == A
    assert first.stub == ("stub", first.channel)
    assert len(factory.channels) == 1


def test_invalidate_closes_channel_and_moves_to_next_candidate(build):
    manager, factory = build()
    first = manager.ensure_connected()

    assert manager.invalidate(first)

    assert first.channel.closed
    assert not manager.is_connected
    second = manager.ensure_connected()
    assert second.address == B
    assert second.generation == first.generation + 1


def test_stale_invalidate_leaves_newer_connection_alone(build):
    manager, factory = build()
    stale = manager.ensure_connected()
    manager.invalidate(stale)
    fresh = manager.ensure_connected()

    assert not manager.invalidate(stale)

    assert manager.ensure_connected() is fresh
    assert not fresh.channel.closed


def test_invalidate_without_connection_is_a_no_op(build):
    manager, _ = build()

    assert not manager.invalidate()


def test_version_mismatch_is_fatal_and_leaves_no_channel(build):
    manager, factory = build(selection=MasterSelectionPolicy.specified(A), versions={A: 3})

    with pytest.raises(ServiceVersionMismatchError) as exc_info:
        manager.ensure_connected()

    assert exc_info.value.expected == BLOCK_MASTER_CLIENT_SERVICE.version
    assert exc_info.value.actual == 3
    assert not manager.is_connected
    assert manager.open_channel_count == 0
    assert factory.open == 0


def test_version_check_can_be_disabled(build):
    manager, factory = build(versions={A: 99}, version_check=False)

    assert manager.ensure_connected().address == A


def test_failed_connect_resets_selection(build):
    manager, _ = build(versions={A: 1})

    with pytest.raises(ServiceVersionMismatchError):
        manager.ensure_connected()

    assert manager.ensure_connected().address == B


def test_selection_failure_propagates(make_context):
    class _NoPrimary:
        def get_primary_rpc_address(self):
            raise UnavailableError("no primary")

        def get_master_rpc_addresses(self):
            return [A]

    factory = _ChannelFactory()
    manager = ConnectionManager(
        make_context(),
        BLOCK_MASTER_CLIENT_SERVICE,
        MasterSelectionPolicy.primary(_NoPrimary()),
        after_connect=lambda channel: channel,
        channel_factory=factory,
    )

    with pytest.raises(UnavailableError):
        manager.ensure_connected()
    assert factory.channels == []


def test_close_is_idempotent_and_final(build):
    manager, factory = build()
    connection = manager.ensure_connected()

    manager.close()
    manager.close()

    assert manager.is_closed
    assert connection.channel.closed
    assert manager.open_channel_count == 0
    with pytest.raises(ClientClosedError):
        manager.ensure_connected()


def test_concurrent_failures_never_open_two_channels(build):
    manager, factory = build()
    threads = 16
    rounds = 25
    barrier = threading.Barrier(threads)
    errors = []

    def worker():
        try:
            barrier.wait()
            for _ in range(rounds):
                connection = manager.ensure_connected()
                manager.invalidate(connection)
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    pool = [threading.Thread(target=worker) for _ in range(threads)]
    for thread in pool:
        thread.start()
    for thread in pool:
        thread.join()

    assert errors == []
    assert factory.max_open <= 1
    assert manager.open_channel_count <= 1


def test_invalidate_keeps_channel_open_while_a_call_is_running(build):
    manager, factory = build()

    with manager.acquire() as held:
        assert manager.in_flight(held) == 1
        assert manager.invalidate(held)

        assert not held.channel.closed
        assert not manager.is_connected
        assert manager.draining_channel_count == 1
        assert manager.live_channel_count == 0

        fresh = manager.ensure_connected()
        assert fresh.generation == held.generation + 1
        assert fresh.address == B
        assert manager.live_channel_count == 1

    assert held.channel.closed
    assert not fresh.channel.closed
    assert manager.draining_channel_count == 0
    assert manager.open_channel_count == 1


def test_drained_channel_closes_after_last_caller_releases(build):
    manager, _ = build()
    first = manager.acquire()
    second = manager.acquire()
    held = first.__enter__()
    assert second.__enter__() is held
    assert manager.in_flight(held) == 2

    manager.invalidate(held)
    first.__exit__(None, None, None)
    assert not held.channel.closed

    second.__exit__(None, None, None)
    assert held.channel.closed
    assert manager.in_flight(held) == 0


def test_release_after_failure_inside_acquire(build):
    manager, _ = build()

    with pytest.raises(UnavailableError):
        with manager.acquire() as held:
            manager.invalidate(held)
            raise UnavailableError("connection reset")

    assert held.channel.closed
    assert manager.open_channel_count == 0


def test_close_tears_down_draining_channels_at_once(build):
    manager, _ = build()

    with manager.acquire() as held:
        manager.invalidate(held)
        manager.close()

        assert held.channel.closed
        assert manager.open_channel_count == 0

    assert manager.open_channel_count == 0


def test_acquire_on_closed_manager_raises(build):
    manager, factory = build()
    manager.close()

    with pytest.raises(ClientClosedError):
        with manager.acquire():
            pass
    assert factory.channels == []
