"""Exposure policy reconciliation core.

The package turns exposure policies into two kinds of enforced state:

* membership of the fixed-name address groups on firewall devices; and
* Kubernetes NetworkPolicy / Cilium CIDRGroup manifests kept in git.

Addresses are collected from virtualization-manager tags and IPAM prefixes,
normalized to CIDR notation, and then applied to each target with the minimal
set of changes.  External systems are reached only through the interfaces in
:mod:`netpolicy_sync.clients`, so everything here runs without network access
in tests.
"""

from .normalizer import normalize  # noqa: F401
from .worker import PassStatus, SyncWorker  # noqa: F401

__all__ = ["PassStatus", "SyncWorker", "normalize"]
