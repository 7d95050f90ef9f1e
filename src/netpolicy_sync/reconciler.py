"""Firewall address-group reconciliation.

For every (firewall, VDOM, family) the reconciler drives the device from its
current state to the desired exposure set in a fixed sequence of phases:

``DISCOVER``
    read the desired address objects and the family's fixed-name group; a
    missing object or group is not an error.
``DIFF``
    compare group members with the desired set by object name.
``CREATE_MISSING_OBJECTS``
    create every desired object the device does not have yet.
``UPDATE_GROUP``
    create the group, or replace its membership in a single update when
    anything was added or removed.  Address groups cannot be empty, so an
    empty desired set never creates or empties a group.
``GUARDED_REMOVE``
    delete objects that left the group unless other configuration still
    references them.

Calls are issued strictly one after another.  Any error other than "not found"
stops the reconciliation for that family and propagates to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from .clients import FirewallClient
from .config import AddressFamily, NormalizedCIDR
from .errors import ResourceNotFound

LOG = logging.getLogger(__name__)

MANAGED_COMMENT = "Managed by netpolicy-sync"


class Phase(Enum):
    DISCOVER = "discover"
    DIFF = "diff"
    CREATE_MISSING_OBJECTS = "create-missing-objects"
    UPDATE_GROUP = "update-group"
    GUARDED_REMOVE = "guarded-remove"
    DONE = "done"


@dataclass(frozen=True)
class ManagedAddressObject:
    """Firewall address object keyed by its name."""

    name: str
    family: AddressFamily
    cidr: str

    @classmethod
    def from_cidr(cls, cidr: NormalizedCIDR) -> "ManagedAddressObject":
        return cls(name=cidr.cidr, family=cidr.family, cidr=cidr.cidr)

    def payload(self) -> Dict[str, Any]:
        key = "subnet" if self.family is AddressFamily.IPV4 else "ip6"
        return {"name": self.name, key: self.cidr, "comment": MANAGED_COMMENT}


@dataclass(frozen=True)
class AddressGroup:
    name: str
    family: AddressFamily
    members: frozenset[str]

    @classmethod
    def from_payload(cls, family: AddressFamily, payload: Dict[str, Any]) -> "AddressGroup":
        members = frozenset(
            str(m["name"]) for m in payload.get("member") or [] if m.get("name")
        )
        return cls(name=str(payload.get("name", family.group_name)), family=family, members=members)

    def payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "member": [{"name": name} for name in sorted(self.members)],
        }


@dataclass(frozen=True)
class ChangeRecord:
    """Audit record for a membership update."""

    group: str
    added: List[str]
    removed: List[str]
    source_system: str
    destination_system: str
    server: str
    vdom: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.group,
            "type": "UPDATE",
            "src": {"system": self.source_system},
            "dst": {
                "system": self.destination_system,
                "server": self.server,
                "options": {"vdom": self.vdom},
            },
            "changes": {"added": list(self.added), "removed": list(self.removed)},
        }


@dataclass
class ReconcileResult:
    """What one reconciliation did on the device."""

    server: str
    vdom: str
    family: AddressFamily
    phase: Phase = Phase.DISCOVER
    created_objects: List[str] = field(default_factory=list)
    group_created: bool = False
    change: Optional[ChangeRecord] = None
    deleted_objects: List[str] = field(default_factory=list)
    skipped_in_use: List[str] = field(default_factory=list)

    @property
    def mutations(self) -> int:
        """Number of create/update/delete calls issued against the device."""

        return (
            len(self.created_objects)
            + int(self.group_created)
            + int(self.change is not None)
            + len(self.deleted_objects)
        )


class FirewallGroupReconciler:
    """Reconcile the exposure address groups of a single firewall."""

    def __init__(
        self,
        firewall: FirewallClient,
        *,
        source_system: str = "nsx",
        destination_system: str = "fortigate",
    ) -> None:
        self._firewall = firewall
        self._source_system = source_system
        self._destination_system = destination_system

    def reconcile_all(self, vdom: str, cidrs: Iterable[NormalizedCIDR]) -> List[ReconcileResult]:
        cidrs = list(cidrs)
        return [
            self.reconcile(vdom, family, [c for c in cidrs if c.family is family])
            for family in (AddressFamily.IPV4, AddressFamily.IPV6)
        ]

    def reconcile(
        self,
        vdom: str,
        family: AddressFamily,
        cidrs: Iterable[NormalizedCIDR],
    ) -> ReconcileResult:
        result = ReconcileResult(server=self._firewall.hostname, vdom=vdom, family=family)
        desired = {
            obj.name: obj
            for obj in (ManagedAddressObject.from_cidr(c) for c in cidrs)
            if obj.family is family
        }

        missing = self._discover_missing(family, desired, vdom)
        group = self._discover_group(family, vdom)

        result.phase = Phase.DIFF
        current: Set[str] = set(group.members) if group else set()
        to_add = sorted(set(desired) - current)
        to_remove = sorted(current - set(desired))

        result.phase = Phase.CREATE_MISSING_OBJECTS
        for obj in missing:
            self._firewall.create_address(family, obj.payload(), vdom)
            result.created_objects.append(obj.name)
            LOG.info(
                "Created %s address object '%s' on %s VDOM '%s'",
                family.name,
                obj.name,
                result.server,
                vdom,
            )

        result.phase = Phase.UPDATE_GROUP
        desired_group = AddressGroup(
            name=family.group_name, family=family, members=frozenset(desired)
        )
        if group is None:
            if desired:
                self._firewall.create_address_group(family, desired_group.payload(), vdom)
                result.group_created = True
                LOG.info(
                    "Created address group '%s' with %d members on %s VDOM '%s'",
                    desired_group.name,
                    len(desired),
                    result.server,
                    vdom,
                )
            else:
                LOG.debug(
                    "No %s addresses desired and no group '%s' on %s VDOM '%s'",
                    family.name,
                    desired_group.name,
                    result.server,
                    vdom,
                )
        elif not desired:
            LOG.warning(
                "No %s addresses desired; leaving address group '%s' on %s VDOM '%s' "
                "unchanged with %d members",
                family.name,
                group.name,
                result.server,
                vdom,
                len(current),
            )
            to_remove = []
        elif to_add or to_remove:
            self._firewall.update_address_group(family, group.name, desired_group.payload(), vdom)
            result.change = ChangeRecord(
                group=group.name,
                added=to_add,
                removed=to_remove,
                source_system=self._source_system,
                destination_system=self._destination_system,
                server=result.server,
                vdom=vdom,
            )
            LOG.info(
                "Updated address group '%s' on %s VDOM '%s'",
                group.name,
                result.server,
                vdom,
                extra={"change": result.change.as_dict()},
            )

        result.phase = Phase.GUARDED_REMOVE
        for name in to_remove:
            if self._in_use(family, name, vdom):
                result.skipped_in_use.append(name)
                LOG.info(
                    "Address object '%s' is still in use on %s VDOM '%s', skipping deletion",
                    name,
                    result.server,
                    vdom,
                )
                continue
            self._firewall.delete_address(family, name, vdom)
            result.deleted_objects.append(name)
            LOG.info(
                "Deleted %s address object '%s' from %s VDOM '%s'",
                family.name,
                name,
                result.server,
                vdom,
            )

        result.phase = Phase.DONE
        return result

    # ------------------------------------------------------------------
    # Discovery helpers
    # ------------------------------------------------------------------
    def _discover_missing(
        self,
        family: AddressFamily,
        desired: Dict[str, ManagedAddressObject],
        vdom: str,
    ) -> List[ManagedAddressObject]:
        missing: List[ManagedAddressObject] = []
        for name in sorted(desired):
            try:
                self._firewall.get_address(family, name, vdom)
            except ResourceNotFound:
                missing.append(desired[name])
        return missing

    def _discover_group(self, family: AddressFamily, vdom: str) -> Optional[AddressGroup]:
        try:
            payload = self._firewall.get_address_group(family, family.group_name, vdom)
        except ResourceNotFound:
            LOG.debug(
                "Address group '%s' not found on %s VDOM '%s'",
                family.group_name,
                self._firewall.hostname,
                vdom,
            )
            return None
        return AddressGroup.from_payload(family, payload)

    def _in_use(self, family: AddressFamily, name: str, vdom: str) -> bool:
        count = self._firewall.reference_count(family, name, vdom)
        return count != 0
