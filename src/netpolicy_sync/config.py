"""Data structures describing exposure policies and normalized addresses.

These dataclasses are shared by every stage of a reconciliation pass and carry
no behaviour beyond small formatting helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence


class ManagerType(Enum):
    """How a virtualization manager exposes its groups and machines.

    ``GLOBAL`` managers embed member addresses directly in group membership
    expressions.  ``LOCAL`` managers need a second lookup per group through
    the group's policy path.  ``GLOBAL_MANAGED`` marks local managers whose
    virtual machines are tagged from a global manager and can therefore be
    selected by VM tag.
    """

    GLOBAL = "global"
    LOCAL = "local"
    GLOBAL_MANAGED = "global_managed"


class AddressFamily(Enum):
    IPV4 = 4
    IPV6 = 6

    @property
    def group_name(self) -> str:
        """Fixed name of the exposure address group for this family."""

        if self is AddressFamily.IPV4:
            return "grp_internet_exposed_vms"
        return "grp6_internet_exposed_vms"

    @property
    def host_prefix(self) -> int:
        return 32 if self is AddressFamily.IPV4 else 128


class AddressKind(Enum):
    IPV4_ADDRESS = "ipv4-address"
    IPV4_CIDR = "ipv4-cidr"
    IPV6_ADDRESS = "ipv6-address"
    IPV6_CIDR = "ipv6-cidr"


@dataclass(frozen=True)
class APIEndpoint:
    """Connection details for one external system.

    Attributes
    ----------
    name:
        Human readable label used in log messages.
    url:
        Base URL of the API, or the clone URL for git endpoints.
    username / password:
        Basic authentication credentials (virtualization managers).
    key:
        API token (IPAM, firewall and git endpoints).
    type:
        Manager type, only meaningful for virtualization managers.
    """

    name: str
    url: str
    username: Optional[str] = None
    password: Optional[str] = None
    key: Optional[str] = None
    type: Optional[ManagerType] = None


@dataclass(frozen=True)
class FirewallTarget:
    endpoint: APIEndpoint
    vdoms: Sequence[str] = ("root",)


@dataclass(frozen=True)
class GitTarget:
    """Repository and branch a policy's manifests are published to.

    Both fields are optional at parse time; a target missing either one is
    rejected when it is published so that other targets still run.
    """

    endpoint: Optional[APIEndpoint]
    branch: Optional[str]


@dataclass(frozen=True)
class Policy:
    """One exposure policy, immutable for the duration of a pass."""

    name: str
    scope: str
    query: Optional[str] = None
    ipam_endpoint: Optional[APIEndpoint] = None
    managers: Sequence[APIEndpoint] = ()
    group_tags: Sequence[str] = ()
    vm_tags: Sequence[str] = ()
    firewalls: Sequence[FirewallTarget] = ()
    git_targets: Sequence[GitTarget] = ()


@dataclass(frozen=True)
class NormalizedCIDR:
    """A validated, non link-local address in CIDR notation.

    ``address`` keeps the text of the input so CIDR inputs round
    trip unchanged; ordering follows the rendered string.
    """

    address: str
    prefix_length: int
    family: AddressFamily = field(compare=False)
    kind: AddressKind = field(compare=False)

    @property
    def cidr(self) -> str:
        return f"{self.address}/{self.prefix_length}"

    def __str__(self) -> str:
        return self.cidr

    def __lt__(self, other: "NormalizedCIDR") -> bool:
        if not isinstance(other, NormalizedCIDR):
            return NotImplemented
        return self.cidr < other.cidr


def sorted_cidrs(cidrs) -> list[str]:
    """Return CIDR strings sorted ascending by string value."""

    return sorted(str(cidr) for cidr in cidrs)
