import threading
import time

import grpc
import pytest

from master_client.block import BlockMasterClient
from master_client.exceptions import RetriesExhaustedError, UnavailableError
from master_client.observability import AttemptOutcome
from master_client.testing import FakeBlockMaster, FakeMasterServer


class _SlowBlockInfoMaster(FakeBlockMaster):
    """Holds every GetBlockInfo answer until the test lets it go."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.proceed = threading.Event()

    def GetBlockInfo(self, request, context):  # noqa: N802
        response = super().GetBlockInfo(request, context)
        self.started.set()
        self.proceed.wait(5)
        return response


class _RecordingObserver:
    def __init__(self):
        self._lock = threading.Lock()
        self.records = []

    def on_attempt(self, record):
        with self._lock:
            self.records.append(record)


class _CountingChannelFactory:
    """Opens real channels and notes how many live ones the client already had."""

    def __init__(self):
        self.client = None
        self.live_at_open = []

    def __call__(self, address):
        self.live_at_open.append(self.client.executor.connections.live_channel_count)
        return grpc.insecure_channel(address.target)


def test_failure_in_one_thread_does_not_cancel_another_threads_call(make_context):
    master = _SlowBlockInfoMaster()
    master.add_worker("worker-1")
    results = {}

    def slow_call():
        try:
            results["block"] = client.get_block_info(42)
        except Exception as exc:  # noqa: BLE001
            results["error"] = exc

    with FakeMasterServer(master) as server:
        context = make_context(masters=[server.address.target], max_attempts=1)
        with BlockMasterClient(context) as client:
            slow = threading.Thread(target=slow_call)
            slow.start()
            assert master.started.wait(5)

            master.fail_next(1, grpc.StatusCode.UNAVAILABLE)
            with pytest.raises(RetriesExhaustedError):
                client.get_used_bytes()

            connections = client.executor.connections
            assert not client.is_connected
            assert connections.draining_channel_count == 1

            master.proceed.set()
            slow.join(5)

            assert "error" not in results
            assert results["block"].block_id == 42
            assert master.call_count("GetBlockInfo") == 1
            assert connections.draining_channel_count == 0
            assert connections.open_channel_count == 0


def test_concurrent_calls_survive_intermittent_failures(make_context):
    master = FakeBlockMaster()
    master.add_worker("worker-1")
    threads = 8
    calls_per_thread = 5
    injections = 5
    observer = _RecordingObserver()
    factory = _CountingChannelFactory()
    results = {}
    errors = []

    with FakeMasterServer(master, max_workers=threads) as server:
        # Every call gets more attempts than there are injected failures in total.
        context = make_context(masters=[server.address.target], max_attempts=30)
        client = BlockMasterClient(context, observer=observer, channel_factory=factory)
        factory.client = client
        barrier = threading.Barrier(threads + 1)

        def worker(offset):
            try:
                barrier.wait()
                for block_id in range(offset, offset + calls_per_thread):
                    results[block_id] = client.get_block_info(block_id).block_id
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        pool = [
            threading.Thread(target=worker, args=(index * calls_per_thread,))
            for index in range(threads)
        ]
        master.fail_next(3, grpc.StatusCode.UNAVAILABLE)
        for thread in pool:
            thread.start()
        barrier.wait()
        for _ in range(injections):
            master.fail_next(2, grpc.StatusCode.UNAVAILABLE)
            time.sleep(0.005)
        for thread in pool:
            thread.join(30)
        client.close()

    expected = threads * calls_per_thread
    assert errors == []
    assert results == {block_id: block_id for block_id in range(expected)}
    assert factory.live_at_open
    assert set(factory.live_at_open) == {0}
    assert client.executor.connections.open_channel_count == 0

    failed = [record for record in observer.records if record.outcome is AttemptOutcome.TRANSIENT]
    assert failed
    # Only injected failures; a torn-down shared channel would show up as CANCELLED.
    assert all(isinstance(record.error, UnavailableError) for record in failed)
    ok = [record for record in observer.records if record.outcome is AttemptOutcome.OK]
    assert len(ok) == expected
