"""Kubernetes NetworkPolicy and Cilium CIDRGroup manifest rendering."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Sequence

import yaml

from .config import NormalizedCIDR, sorted_cidrs

NETWORK_POLICY_DIR = "kubernetesNetworkPolicies"
CIDR_GROUP_DIR = "ciliumGroups"
POLICY_LABEL = "network-policies"


@dataclass(frozen=True)
class NetworkPolicyManifest:
    """Ingress NetworkPolicy admitting traffic from a list of CIDRs."""

    name: str
    cidrs: Sequence[str]

    api_version = "networking.k8s.io/v1"
    kind = "NetworkPolicy"

    def to_document(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name},
            "spec": {
                "podSelector": {"matchLabels": {POLICY_LABEL: self.name}},
                "policyTypes": ["Ingress"],
                "ingress": [
                    {"from": [{"ipBlock": {"cidr": cidr}} for cidr in self.cidrs]},
                ],
            },
        }


@dataclass(frozen=True)
class CIDRGroupManifest:
    name: str
    cidrs: Sequence[str]

    api_version = "cilium.io/v2alpha1"
    kind = "CiliumCIDRGroup"

    def to_document(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name},
            "spec": {"externalCIDRs": list(self.cidrs)},
        }


def dump_manifest(manifest: NetworkPolicyManifest | CIDRGroupManifest) -> str:
    """Serialize ``manifest`` keeping the schema's field order."""

    return yaml.safe_dump(
        manifest.to_document(),
        sort_keys=False,
        default_flow_style=False,
    )


def build_manifests(
    policy_name: str, cidrs: Iterable[NormalizedCIDR]
) -> tuple[NetworkPolicyManifest, CIDRGroupManifest]:
    ordered = tuple(sorted_cidrs(cidrs))
    return (
        NetworkPolicyManifest(name=policy_name, cidrs=ordered),
        CIDRGroupManifest(name=policy_name, cidrs=ordered),
    )


@dataclass
class RenderResult:
    """Files written by a render operation."""

    file_name: str
    network_policy_path: Path
    cidr_group_path: Path
    network_policy_text: str
    cidr_group_text: str


class ManifestRenderer:
    """Write the two manifests of a policy below ``root``."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def render(self, policy_name: str, cidrs: Iterable[NormalizedCIDR]) -> RenderResult:
        network_policy, cidr_group = build_manifests(policy_name, cidrs)
        file_name = f"{policy_name}.yaml"

        policy_dir = self._root / NETWORK_POLICY_DIR
        group_dir = self._root / CIDR_GROUP_DIR
        policy_dir.mkdir(parents=True, exist_ok=True)
        group_dir.mkdir(parents=True, exist_ok=True)

        policy_text = dump_manifest(network_policy)
        group_text = dump_manifest(cidr_group)
        policy_path = policy_dir / file_name
        group_path = group_dir / file_name
        policy_path.write_text(policy_text)
        group_path.write_text(group_text)

        return RenderResult(
            file_name=file_name,
            network_policy_path=policy_path,
            cidr_group_path=group_path,
            network_policy_text=policy_text,
            cidr_group_text=group_text,
        )
