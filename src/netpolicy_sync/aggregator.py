"""Collect raw exposure addresses for a policy from every configured source."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Set

from .clients import ClientFactory, VirtualizationManager
from .config import APIEndpoint, ManagerType, Policy

LOG = logging.getLogger(__name__)

POLICY_PATH_SCOPE = "policyPath"


def _has_tag(obj: Dict[str, Any], scope: str, tag: str) -> bool:
    return any(
        t.get("scope") == scope and t.get("tag") == tag for t in obj.get("tags") or []
    )


class SourceAggregator:
    """Union the addresses of tagged groups, tagged VMs and IPAM prefixes.

    Errors raised by any manager or the IPAM endpoint propagate unchanged so
    the whole policy is abandoned rather than published from partial data.
    """

    def __init__(self, clients: ClientFactory) -> None:
        self._clients = clients

    def collect(self, policy: Policy) -> Set[str]:
        addresses: Set[str] = set()
        addresses |= self.ipam_prefixes(policy)
        addresses |= self.vm_addresses(policy)
        addresses |= self.group_addresses(policy)
        LOG.debug("policy %s aggregated %d raw addresses", policy.name, len(addresses))
        return addresses

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    def group_addresses(self, policy: Policy) -> Set[str]:
        addresses: Set[str] = set()
        for endpoint in policy.managers:
            manager = self._clients.virtualization_manager(endpoint)
            for tag in policy.group_tags:
                groups = self._tagged_groups(manager, endpoint, policy.scope, tag)
                if endpoint.type is ManagerType.GLOBAL:
                    addresses.update(self._expression_addresses(groups))
                else:
                    addresses.update(self._member_addresses(manager, endpoint, groups))
        return addresses

    def _tagged_groups(
        self,
        manager: VirtualizationManager,
        endpoint: APIEndpoint,
        scope: str,
        tag: str,
    ) -> List[Dict[str, Any]]:
        global_manager = endpoint.type is ManagerType.GLOBAL
        resource_type = "Group" if global_manager else "NSGroup"
        scoped = manager.search(
            f"resource_type:{resource_type} AND tags.scope:{scope}",
            global_manager,
        )
        groups = [group for group in scoped if _has_tag(group, scope, tag)]
        LOG.debug(
            "manager %s: %d of %d %s objects tagged %s=%s",
            endpoint.name,
            len(groups),
            len(scoped),
            resource_type,
            scope,
            tag,
        )
        return groups

    @staticmethod
    def _expression_addresses(groups: Iterable[Dict[str, Any]]) -> Set[str]:
        addresses: Set[str] = set()
        for group in groups:
            for expression in group.get("expression") or []:
                addresses.update(expression.get("ip_addresses") or [])
        return addresses

    @staticmethod
    def _member_addresses(
        manager: VirtualizationManager,
        endpoint: APIEndpoint,
        groups: Iterable[Dict[str, Any]],
    ) -> Set[str]:
        addresses: Set[str] = set()
        for group in groups:
            policy_path = next(
                (
                    t.get("tag")
                    for t in group.get("tags") or []
                    if t.get("scope") == POLICY_PATH_SCOPE
                ),
                None,
            )
            if not policy_path:
                LOG.warning(
                    "group %s on manager %s has no %s tag; skipping",
                    group.get("display_name") or group.get("id"),
                    endpoint.name,
                    POLICY_PATH_SCOPE,
                )
                continue
            addresses.update(manager.group_member_addresses(policy_path))
        return addresses

    # ------------------------------------------------------------------
    # Virtual machines
    # ------------------------------------------------------------------
    def vm_addresses(self, policy: Policy) -> Set[str]:
        addresses: Set[str] = set()
        for endpoint in policy.managers:
            if endpoint.type is not ManagerType.GLOBAL_MANAGED:
                continue
            manager = self._clients.virtualization_manager(endpoint)
            for tag in policy.vm_tags:
                running = manager.search(
                    "resource_type:VirtualMachine"
                    f" AND tags.scope:{policy.scope} AND power_state:VM_RUNNING",
                    False,
                )
                for vm in running:
                    if not _has_tag(vm, policy.scope, tag):
                        continue
                    addresses.update(self._vm_interface_addresses(manager, vm))
        return addresses

    @staticmethod
    def _vm_interface_addresses(
        manager: VirtualizationManager, vm: Dict[str, Any]
    ) -> List[str]:
        vm_id = vm.get("external_id")
        if not vm_id:
            return []
        return [
            ip
            for vif in manager.virtual_interfaces(vm_id)
            for info in vif.get("ip_address_info") or []
            for ip in info.get("ip_addresses") or []
        ]

    # ------------------------------------------------------------------
    # IPAM
    # ------------------------------------------------------------------
    def ipam_prefixes(self, policy: Policy) -> Set[str]:
        if policy.ipam_endpoint is None or not policy.query:
            return set()
        ipam = self._clients.ipam(policy.ipam_endpoint)
        prefixes = ipam.prefixes(policy.query)
        LOG.debug("policy %s: %d prefixes from IPAM", policy.name, len(prefixes))
        return {str(prefix) for prefix in prefixes}
