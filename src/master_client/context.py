"""Immutable per-client settings shared by the connection and retry layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import grpc

from .config import ClientConfig, load_config
from .grpc_tls import build_client_credentials, tls_channel_options
from .identity import ServiceType
from .inquire import PollingMasterInquireClient, ServiceVersionCheck, SingleMasterInquireClient
from .retry import RetryPolicyFactory
from .selection import MasterSelectionPolicy, SelectionPolicyType


@dataclass(frozen=True)
class MasterClientContext:
    """Everything a master client needs that does not change after construction."""

    config: ClientConfig
    retry_policy_factory: RetryPolicyFactory
    credentials: grpc.ChannelCredentials | None = None
    channel_options: tuple[tuple[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def create(
        cls,
        config: ClientConfig | None = None,
        retry_policy_factory: RetryPolicyFactory | None = None,
    ) -> MasterClientContext:
        """Build a context from configuration (loaded from the environment if omitted)."""
        config = config or load_config()
        credentials = None
        options: tuple[tuple[str, Any], ...] = (
            ("grpc.primary_user_agent", config.client_name),
        )
        if config.tls_enabled:
            credentials = build_client_credentials(config.tls)
            options += tls_channel_options(config.tls)
        return cls(
            config=config,
            retry_policy_factory=retry_policy_factory or config.retry.policy_factory(),
            credentials=credentials,
            channel_options=options,
        )

    @property
    def client_name(self) -> str:
        return self.config.client_name

    def selection_policy(
        self, service_type: ServiceType = ServiceType.BLOCK_MASTER_CLIENT_SERVICE
    ) -> MasterSelectionPolicy:
        """Build the master selection strategy named in the configuration."""
        addresses = self.config.addresses
        policy_type = SelectionPolicyType(self.config.selection_policy)
        if policy_type is SelectionPolicyType.SPECIFIED:
            return MasterSelectionPolicy.specified(addresses[0])
        if policy_type is SelectionPolicyType.ROTATING:
            return MasterSelectionPolicy.rotating(addresses)
        if len(addresses) == 1:
            return MasterSelectionPolicy.primary(SingleMasterInquireClient(addresses[0]))
        check = ServiceVersionCheck(
            service_type=service_type,
            credentials=self.credentials,
            timeout=self.config.connect_timeout,
            options=self.channel_options,
        )
        return MasterSelectionPolicy.primary(PollingMasterInquireClient(addresses, check))
