import dataclasses
import textwrap

import pytest

from master_client.config import (
    DEFAULT_MASTER_RPC_PORT,
    ClientConfig,
    MasterAddress,
    RetryConfig,
    load_config,
)
from master_client.exceptions import ConfigurationError


def test_parse_address_with_and_without_port():
    assert MasterAddress.parse("master-1:1234") == MasterAddress("master-1", 1234)
    assert MasterAddress.parse(" master-2 ") == MasterAddress("master-2", DEFAULT_MASTER_RPC_PORT)
    assert MasterAddress("m", 1).target == "m:1"


@pytest.mark.parametrize("value", ["", ":19998", "master:port"])
def test_parse_rejects_malformed_addresses(value):
    with pytest.raises(ConfigurationError):
        MasterAddress.parse(value)


def test_defaults():
    config = ClientConfig()

    assert config.addresses == [MasterAddress("localhost", DEFAULT_MASTER_RPC_PORT)]
    assert config.selection_policy == "primary"
    assert not config.tls_enabled
    assert config.retry.max_duration == 120.0


def test_unknown_selection_policy_is_rejected():
    with pytest.raises(ConfigurationError):
        ClientConfig(selection_policy="random")


def test_masters_may_be_a_comma_separated_string():
    config = ClientConfig.from_dict({"master_addresses": "a:1, b:2,"})

    assert config.addresses == [MasterAddress("a", 1), MasterAddress("b", 2)]


def test_yaml_file_with_env_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("PRIMARY_HOST", "master-7")
    path = tmp_path / "client.yaml"
    path.write_text(
        textwrap.dedent(
            """
            master_client:
              master_addresses:
                - "${PRIMARY_HOST}:19998"
                - "${STANDBY_HOST:-standby}:19998"
              selection_policy: rotating
              rpc_timeout: 12
              version_check: "false"
              retry:
                max_duration: 0
                max_attempts: 4
            """
        )
    )

    config = ClientConfig.from_yaml_file(path)

    assert config.addresses == [MasterAddress("master-7", 19998), MasterAddress("standby", 19998)]
    assert config.selection_policy == "rotating"
    assert config.rpc_timeout == 12.0
    assert config.version_check is False
    assert config.retry == RetryConfig(max_duration=0.0, max_attempts=4)


def test_missing_yaml_file(tmp_path):
    with pytest.raises(ConfigurationError):
        ClientConfig.from_yaml_file(tmp_path / "absent.yaml")


def test_invalid_yaml_file(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("master_client: [unterminated")

    with pytest.raises(ConfigurationError):
        ClientConfig.from_yaml_file(path)


def test_load_config_reads_environment_file(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "staging.yaml").write_text(
        "master_client:\n  master_addresses: ['stage-master:1']\n"
    )
    monkeypatch.setenv("MASTER_CLIENT_ENV", "staging")

    config = load_config()

    assert config.addresses == [MasterAddress("stage-master", 1)]


def test_load_config_prefers_explicit_path(tmp_path, monkeypatch):
    path = tmp_path / "explicit.yaml"
    path.write_text("master_addresses: ['explicit:2']\n")
    monkeypatch.setenv("MASTER_CLIENT_CONFIG", str(path))

    assert load_config().addresses == [MasterAddress("explicit", 2)]


def test_load_config_without_file():
    assert load_config().addresses == ClientConfig().addresses

    with pytest.raises(ConfigurationError):
        load_config(use_defaults=False)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MASTER_CLIENT_MASTERS", "m1:10,m2:20")
    monkeypatch.setenv("MASTER_CLIENT_SELECTION_POLICY", "ROTATING")
    monkeypatch.setenv("MASTER_CLIENT_RPC_TIMEOUT", "2.5")
    monkeypatch.setenv("MASTER_CLIENT_RETRY_MAX_ATTEMPTS", "7")

    config = load_config()

    assert config.addresses == [MasterAddress("m1", 10), MasterAddress("m2", 20)]
    assert config.selection_policy == "rotating"
    assert config.rpc_timeout == 2.5
    assert config.retry.max_attempts == 7


def test_retry_config_builds_attempt_bounded_policy():
    policy = RetryConfig(max_duration=0, base_sleep=0, max_sleep=0, max_attempts=2).policy_factory()()

    assert policy.next_delay() == 0.0
    assert policy.next_delay() is None


def test_retry_config_builds_time_bounded_policy():
    policy = RetryConfig(max_duration=60, base_sleep=0.01, max_sleep=0.02, jitter=False).policy_factory()()

    assert policy.next_delay() == pytest.approx(0.01)
    assert not policy.exhausted


def test_config_is_immutable():
    config = ClientConfig(master_addresses=["a:1"], tls={"enabled": False})

    assert config.master_addresses == ("a:1",)
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.rpc_timeout = 1.0
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.retry.max_attempts = 1
    with pytest.raises(TypeError):
        config.tls["enabled"] = True


def test_apply_environment_returns_a_copy(monkeypatch):
    base = ClientConfig(master_addresses=["a:1"], retry=RetryConfig(max_attempts=3))
    monkeypatch.setenv("MASTER_CLIENT_MASTERS", "b:2")
    monkeypatch.setenv("MASTER_CLIENT_CLIENT_NAME", "reporting")
    monkeypatch.setenv("MASTER_CLIENT_RETRY_MAX_ATTEMPTS", "9")

    overridden = base.apply_environment()

    assert overridden is not base
    assert overridden.addresses == [MasterAddress("b", 2)]
    assert overridden.client_name == "reporting"
    assert overridden.retry.max_attempts == 9
    assert base.master_addresses == ("a:1",)
    assert base.client_name == "master-client"
    assert base.retry.max_attempts == 3


def test_apply_environment_validates_overrides(monkeypatch):
    monkeypatch.setenv("MASTER_CLIENT_SELECTION_POLICY", "random")

    with pytest.raises(ConfigurationError):
        ClientConfig().apply_environment()
