"""Process-wide client cache handed to the reconciliation core."""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from netpolicy_sync.clients import (
    ClientFactory,
    FirewallClient,
    GitRepository,
    IPAMClient,
    VirtualizationManager,
)
from netpolicy_sync.config import APIEndpoint

from .clients import FortiOSClient, GitCLIRepository, NetboxClient, NSXClient
from .config import RuntimeConfig

LOG = logging.getLogger(__name__)


class AgentClientFactory(ClientFactory):
    """Build each client once per endpoint and reuse it for every pass."""

    def __init__(self, runtime: RuntimeConfig) -> None:
        self._runtime = runtime
        self._cache: Dict[Tuple[str, str], Any] = {}

    def _http_options(self) -> Dict[str, Any]:
        return {
            "timeout": self._runtime.request_timeout,
            "verify": self._runtime.verify_tls,
            "user_agent": self._runtime.user_agent,
        }

    def _cached(self, kind: str, key: str, build):
        cache_key = (kind, key)
        if cache_key not in self._cache:
            LOG.debug("creating %s client for %s", kind, key)
            self._cache[cache_key] = build()
        return self._cache[cache_key]

    def virtualization_manager(self, endpoint: APIEndpoint) -> VirtualizationManager:
        return self._cached(
            "nsx",
            endpoint.url,
            lambda: NSXClient.from_endpoint(endpoint, **self._http_options()),
        )

    def ipam(self, endpoint: APIEndpoint) -> IPAMClient:
        return self._cached(
            "netbox",
            endpoint.url,
            lambda: NetboxClient.from_endpoint(endpoint, **self._http_options()),
        )

    def firewall(self, endpoint: APIEndpoint) -> FirewallClient:
        return self._cached(
            "fortios",
            endpoint.url,
            lambda: FortiOSClient.from_endpoint(endpoint, **self._http_options()),
        )

    def repository(self, name: str, url: str) -> GitRepository:
        return self._cached(
            "git",
            name,
            lambda: GitCLIRepository.open_or_clone(
                self._runtime.repo_dir / name,
                url,
                author_name=self._runtime.git_author_name,
                author_email=self._runtime.git_author_email,
            ),
        )
