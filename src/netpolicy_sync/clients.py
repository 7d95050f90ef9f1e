"""Abstract interfaces for the external systems a pass talks to.

Concrete HTTP and git implementations live in :mod:`netpolicy_agent.clients`;
the reconciliation core only depends on these contracts so tests can plug in
in-memory fakes.  Lookups of absent resources raise
:class:`~netpolicy_sync.errors.ResourceNotFound`, every other failure raises
:class:`~netpolicy_sync.errors.TransportError`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .config import AddressFamily, APIEndpoint


class VirtualizationManager(ABC):
    """Tag, group and virtual machine queries against one manager."""

    @abstractmethod
    def search(self, query: str, global_manager: bool = False) -> List[Dict[str, Any]]:
        """Return every object matching the search ``query``."""

    @abstractmethod
    def group_member_addresses(self, policy_path: str) -> List[str]:
        """Return the member IP addresses of the group at ``policy_path``."""

    @abstractmethod
    def virtual_interfaces(self, owner_vm_id: str) -> List[Dict[str, Any]]:
        """Return the network interface records of a virtual machine."""


class IPAMClient(ABC):
    @abstractmethod
    def prefixes(self, query: str) -> List[str]:
        """Return the prefix strings selected by ``query``."""


class FirewallClient(ABC):
    """Address object and address group operations scoped per VDOM."""

    @property
    @abstractmethod
    def hostname(self) -> str:
        """Name of the device, used in log messages and change records."""

    @abstractmethod
    def get_address(self, family: AddressFamily, name: str, vdom: str) -> Dict[str, Any]:
        """Return the address object ``name``."""

    @abstractmethod
    def create_address(self, family: AddressFamily, payload: Dict[str, Any], vdom: str) -> None:
        """Create an address object from ``payload``."""

    @abstractmethod
    def delete_address(self, family: AddressFamily, name: str, vdom: str) -> None:
        """Delete the address object ``name``."""

    @abstractmethod
    def reference_count(self, family: AddressFamily, name: str, vdom: str) -> Optional[int]:
        """Return how many configuration entries reference ``name``.

        ``None`` means the device did not report a count.
        """

    @abstractmethod
    def get_address_group(self, family: AddressFamily, name: str, vdom: str) -> Dict[str, Any]:
        """Return the address group ``name`` including its ``member`` list."""

    @abstractmethod
    def create_address_group(self, family: AddressFamily, payload: Dict[str, Any], vdom: str) -> None:
        """Create an address group from ``payload``."""

    @abstractmethod
    def update_address_group(
        self, family: AddressFamily, name: str, payload: Dict[str, Any], vdom: str
    ) -> None:
        """Replace the address group ``name`` with ``payload``."""


class GitRepository(ABC):
    """Working copy of a remote repository with a single ``origin`` remote."""

    @property
    @abstractmethod
    def path(self) -> Path:
        """Root directory of the working tree."""

    @abstractmethod
    def fetch(self) -> None: ...

    @abstractmethod
    def branches(self) -> Sequence[str]:
        """Return local branch names and ``remotes/origin/<name>`` entries."""

    @abstractmethod
    def checkout_new_branch(self, branch: str) -> None: ...

    @abstractmethod
    def checkout(self, branch: str) -> None: ...

    @abstractmethod
    def pull(self, branch: str) -> None: ...

    @abstractmethod
    def has_upstream(self) -> bool:
        """Return whether the current branch tracks a remote branch."""

    @abstractmethod
    def push(self, branch: str, set_upstream: bool = False) -> None: ...

    @abstractmethod
    def is_clean(self) -> bool:
        """Return ``True`` when the working tree has no changes."""

    @abstractmethod
    def add_all(self) -> None: ...

    @abstractmethod
    def commit(self, message: str) -> None: ...


class ClientFactory(ABC):
    """Hands out one client per endpoint for the lifetime of the process."""

    @abstractmethod
    def virtualization_manager(self, endpoint: APIEndpoint) -> VirtualizationManager: ...

    @abstractmethod
    def ipam(self, endpoint: APIEndpoint) -> IPAMClient: ...

    @abstractmethod
    def firewall(self, endpoint: APIEndpoint) -> FirewallClient: ...

    @abstractmethod
    def repository(self, name: str, url: str) -> GitRepository:
        """Return the working copy for repository ``name``, cloning ``url`` on first use."""
