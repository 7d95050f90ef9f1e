"""Policy definitions: parsing and the sources a pass loads them from.

Both sources accept the expanded policy documents served by the policy
catalogue::

    name: web-tier
    scope: exposure
    query: https://ipam.example.org/api/ipam/prefixes/?tag=web-tier
    netbox_endpoint: {name: ipam, url: https://ipam.example.org/api, key: ...}
    nsx_managers:
      - {name: gm, url: https://gm.example.org/global-manager/api/v1,
         user: svc, pass: ..., type: global}
    group_tags: [web]            # or [{name: web}]
    vm_tags: [web]
    firewalls:
      - endpoint: {name: fw1, url: https://fw1.example.org, key: ...}
        vdoms: [root]
    git_configs:
      - endpoint: {name: policies, url: https://git.example.org/net/policies.git, key: ...}
        branch: main
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

import yaml

from netpolicy_sync.config import (
    APIEndpoint,
    FirewallTarget,
    GitTarget,
    ManagerType,
    Policy,
)
from netpolicy_sync.errors import ConfigurationError

from .clients.nam import NAMClient
from .config import expand_env

LOG = logging.getLogger(__name__)


def _names(values: Optional[Iterable[Any]]) -> Sequence[str]:
    names: List[str] = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("name")
        if value:
            names.append(str(value))
    return tuple(names)


def _parse_endpoint(entry: Any, *, manager: bool = False) -> APIEndpoint:
    if not isinstance(entry, dict) or not entry.get("url"):
        raise ConfigurationError("endpoint must be a mapping with a 'url'")

    manager_type = None
    if manager:
        raw_type = str(entry.get("type") or ManagerType.LOCAL.value)
        try:
            manager_type = ManagerType(raw_type)
        except ValueError as exc:
            raise ConfigurationError(f"unsupported manager type '{raw_type}'") from exc

    username = entry.get("user", entry.get("username"))
    password = entry.get("pass", entry.get("password"))
    return APIEndpoint(
        name=str(entry.get("name") or entry["url"]),
        url=str(entry["url"]),
        username=expand_env(username),
        password=expand_env(password),
        key=expand_env(entry.get("key")),
        type=manager_type,
    )


def _parse_firewall(entry: dict) -> FirewallTarget:
    vdoms = _names(entry.get("vdoms")) or ("root",)
    return FirewallTarget(endpoint=_parse_endpoint(entry.get("endpoint")), vdoms=vdoms)


def _parse_git(entry: dict) -> GitTarget:
    endpoint = entry.get("endpoint")
    return GitTarget(
        endpoint=_parse_endpoint(endpoint) if endpoint else None,
        branch=entry.get("branch") or None,
    )


def parse_policy(entry: dict) -> Policy:
    if not isinstance(entry, dict):
        raise ConfigurationError("policy must be a mapping")
    for key in ("name", "scope"):
        if not entry.get(key):
            raise ConfigurationError(f"policy missing '{key}'")

    ipam = entry.get("netbox_endpoint")
    return Policy(
        name=str(entry["name"]),
        scope=str(entry["scope"]),
        query=entry.get("query") or None,
        ipam_endpoint=_parse_endpoint(ipam) if ipam else None,
        managers=tuple(
            _parse_endpoint(m, manager=True) for m in entry.get("nsx_managers") or []
        ),
        group_tags=_names(entry.get("group_tags")),
        vm_tags=_names(entry.get("vm_tags")),
        firewalls=tuple(_parse_firewall(f) for f in entry.get("firewalls") or []),
        git_targets=tuple(_parse_git(g) for g in entry.get("git_configs") or []),
    )


def parse_policies(entries: Iterable[dict]) -> List[Policy]:
    """Parse every entry, skipping (and logging) malformed policies."""

    policies: List[Policy] = []
    for entry in entries:
        try:
            policies.append(parse_policy(entry))
        except ConfigurationError as exc:
            name = entry.get("name") if isinstance(entry, dict) else None
            LOG.error("Skipping invalid policy %s: %s", name or "<unnamed>", exc)
    return policies


class FilePolicySource:
    """Read policies from a YAML or JSON file on every pass."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def __call__(self) -> List[Policy]:
        try:
            text = self._path.read_text()
            if self._path.suffix == ".json":
                payload = json.loads(text)
            else:
                payload = yaml.safe_load(text)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"cannot read policy file {self._path}: {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("policies")
        if not isinstance(payload, list):
            raise ConfigurationError(f"policy file {self._path} must contain a 'policies' list")

        policies = parse_policies(payload)
        LOG.debug("loaded %d policies from %s", len(policies), self._path)
        return policies


class NAMPolicySource:
    """Fetch the expanded policy list from the policy catalogue API."""

    def __init__(self, client: NAMClient) -> None:
        self._client = client

    def __call__(self) -> List[Policy]:
        policies = parse_policies(self._client.network_policies())
        LOG.debug("loaded %d policies from %s", len(policies), self._client.hostname)
        return policies
