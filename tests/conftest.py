"""
Test configuration for the master client test suite.
"""

from __future__ import annotations

import pytest

from master_client.config import ClientConfig, RetryConfig
from master_client.context import MasterClientContext
from master_client.retry import counting_retry


# Test markers
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Add markers based on where a test lives."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep developer settings out of the tests."""
    for name in (
        "MASTER_CLIENT_CONFIG",
        "MASTER_CLIENT_ENV",
        "MASTER_CLIENT_MASTERS",
        "MASTER_CLIENT_SELECTION_POLICY",
        "MASTER_CLIENT_RPC_TIMEOUT",
        "MASTER_CLIENT_CLIENT_NAME",
        "MASTER_CLIENT_RETRY_MAX_DURATION",
        "MASTER_CLIENT_RETRY_MAX_ATTEMPTS",
        "MASTER_CLIENT_LOG_LEVEL",
        "MASTER_CLIENT_LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_context():
    """Build a context for the given masters with a small attempt budget."""

    def _make(
        masters=("127.0.0.1:1",),
        selection_policy="specified",
        max_attempts=3,
        version_check=True,
        client_name="master-client-test",
    ):
        config = ClientConfig(
            master_addresses=list(masters),
            selection_policy=selection_policy,
            rpc_timeout=5.0,
            connect_timeout=1.0,
            version_check=version_check,
            client_name=client_name,
            retry=RetryConfig(max_duration=0, base_sleep=0, max_sleep=0, max_attempts=max_attempts),
        )
        return MasterClientContext.create(config, retry_policy_factory=counting_retry(max_attempts))

    return _make
